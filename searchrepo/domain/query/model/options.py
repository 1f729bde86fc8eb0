"""Option bags - an untyped store with typed accessors layered over it.

Options nobody reads are carried along and ignored, never rejected.
"""

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from typing_extensions import Self


class OptionsBase:
    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def set_option(self, name: str, value: Any) -> Self:
        self._values[name] = value
        return self

    def get_option(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def has_option(self, name: str) -> bool:
        return name in self._values

    def remove_option(self, name: str) -> Self:
        self._values.pop(name, None)
        return self

    def append_option(self, name: str, *values: Any) -> Self:
        """Extend a list-valued option."""
        self._values.setdefault(name, []).extend(values)
        return self

    def merge_from(self, other: "OptionsBase | None") -> Self:
        """Copy options from another bag; list-valued options are concatenated."""
        if other is None:
            return self
        for name, value in other._values.items():
            if isinstance(value, list):
                self.append_option(name, *value)
            else:
                self._values[name] = value
        return self

    def clone(self) -> Self:
        cloned = copy.copy(self)
        cloned._values = {
            name: list(value) if isinstance(value, list) else value
            for name, value in self._values.items()
        }
        return cloned

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._values!r})"
