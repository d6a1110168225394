"""Parsing helpers shared by the resource kinds."""

from fusion_ops.utils.data_units import DataUnitFormatError, convert_data_units
from fusion_ops.utils.self_link import SelfLinkFormatError, parse_self_link
from fusion_ops.utils.time_periods import (
    TimePeriodFormatError,
    iso8601_minutes_to_int,
    minutes_to_iso8601,
    parse_human_readable_period,
)

__all__ = [
    "DataUnitFormatError",
    "convert_data_units",
    "SelfLinkFormatError",
    "parse_self_link",
    "TimePeriodFormatError",
    "iso8601_minutes_to_int",
    "minutes_to_iso8601",
    "parse_human_readable_period",
]
