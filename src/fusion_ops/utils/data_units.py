"""Data-unit strings ("1G", "512M", "1024") for volume sizes."""

import re

_DATA_UNIT_RE = re.compile(r"^(0|[1-9]\d*)([KMGTP])?$")
_SUFFIX_POWERS = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5}


class DataUnitFormatError(ValueError):
    """Raised for a size string that is not a number with an optional K/M/G/T/P suffix."""


def convert_data_units(value: str, factor: int = 1024) -> int:
    """
    Convert a size with an optional unit suffix into a plain integer.

    Args:
        value: e.g. "10G"
        factor: Multiplier per unit step (1024 for bytes)

    Examples:
        >>> convert_data_units("1K")
        1024
        >>> convert_data_units("3", factor=1000)
        3
    """
    match = _DATA_UNIT_RE.match(str(value))
    if match is None:
        raise DataUnitFormatError(f"invalid data unit format: {value!r}")
    number, suffix = match.groups()
    if suffix is None:
        return int(number)
    return int(number) * factor ** _SUFFIX_POWERS[suffix]
