"""
Planned configuration plus last known state of a single resource.

Providers read the desired values from `config`, record what the server
reports with `set()`, and compare the two with `has_change()`.
"""

from typing import Any, Optional


class ResourceData:
    """
    Desired config and observed state for one resource.

    Attributes:
        id: Server-assigned resource id ("" until created or after removal)
    """

    def __init__(
        self,
        config: Optional[dict[str, Any]] = None,
        state: Optional[dict[str, Any]] = None,
        resource_id: str = "",
    ):
        self._config = dict(config or {})
        self._state = dict(state or {})
        self.id = resource_id

    @property
    def config(self) -> dict[str, Any]:
        return dict(self._config)

    @property
    def state(self) -> dict[str, Any]:
        return dict(self._state)

    def get(self, key: str, default: Any = None) -> Any:
        """Desired value, falling back to the observed one, then `default`."""
        if key in self._config and self._config[key] is not None:
            return self._config[key]
        return self._state.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key)
        return default if value in (None, "") else str(value)

    def has_change(self, key: str) -> bool:
        """True if the configured value differs from the observed one."""
        if key not in self._config:
            return False
        return self._config[key] != self._state.get(key)

    def changed_fields(self) -> list[str]:
        return sorted(key for key in self._config if self.has_change(key))

    def set(self, key: str, value: Any) -> None:
        self._state[key] = value

    def set_id(self, resource_id: str) -> None:
        self.id = resource_id

    def commit(self) -> None:
        """Record the desired config as applied; a following read overrides it."""
        self._state.update(self._config)

    def plan(self, **changes: Any) -> "ResourceData":
        """Copy with updated desired config and the same state and id."""
        config = dict(self._config)
        config.update(changes)
        return ResourceData(config, self._state, self.id)

    def __repr__(self) -> str:
        return f"ResourceData(id={self.id!r}, config={self._config!r})"
