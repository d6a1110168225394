"""Self-link parsing for importing existing resources by path."""

from typing import Sequence


class SelfLinkFormatError(ValueError):
    """Raised when a self link does not match the expected resource path."""


def parse_self_link(self_link: str, group_names: Sequence[str]) -> dict[str, str]:
    """
    Split a self link into its group -> name pairs.

    The link must be exactly "/<group1>/<name1>/<group2>/<name2>/...", with
    the groups in the given order and every name non-empty.

    Example:
        >>> parse_self_link(
        ...     "/tenants/t1/tenant-spaces/ts1",
        ...     ["tenants", "tenant-spaces"],
        ... )
        {'tenants': 't1', 'tenant-spaces': 'ts1'}
    """
    parts = self_link.split("/")
    if len(parts) % 2 == 0 or (len(parts) - 1) // 2 != len(group_names) or parts[0] != "":
        raise SelfLinkFormatError(f"self link has incorrect format: {self_link!r}")

    fields: dict[str, str] = {}
    for index, group in enumerate(group_names):
        name = parts[index * 2 + 2]
        if parts[index * 2 + 1] != group or not name:
            raise SelfLinkFormatError(f"self link has incorrect format: {self_link!r}")
        fields[group] = name
    return fields
