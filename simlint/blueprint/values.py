"""Value tree produced by the blueprint parser.

A blueprint is a tree of tables, strings, numbers and booleans. Tables
are the only container: arrays are tables whose integer keys run
contiguously from 1. Accessors never raise; a missing key or a value of
the wrong type reads as ``None`` so callers can fall back to defaults.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple, Union

LuaKey = Union[str, int]
LuaValue = Union["LuaTable", str, float, bool]


def is_number(value: object) -> bool:
    return isinstance(value, float) and not isinstance(value, bool)


class LuaTable:
    """Ordered mapping from text or positive-integer keys to values."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Dict[LuaKey, LuaValue]] = None) -> None:
        self._entries: Dict[LuaKey, LuaValue] = dict(entries or {})

    def __setitem__(self, key: LuaKey, value: LuaValue) -> None:
        self._entries[key] = value

    def __getitem__(self, key: LuaKey) -> LuaValue:
        return self._entries[key]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[LuaKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LuaTable):
            return NotImplemented
        if len(self._entries) != len(other._entries):
            return False
        for (key_a, value_a), (key_b, value_b) in zip(self._entries.items(), other._entries.items()):
            # bool compares equal to 1.0, so types are checked explicitly
            if type(key_a) is not type(key_b) or type(value_a) is not type(value_b):
                return False
            if key_a != key_b or value_a != value_b:
                return False
        return True

    def __repr__(self) -> str:
        return f"LuaTable({self._entries!r})"

    def items(self) -> Iterator[Tuple[LuaKey, LuaValue]]:
        return iter(self._entries.items())

    def keys(self) -> Iterator[LuaKey]:
        return iter(self._entries.keys())

    def get(self, key: LuaKey, default: Optional[LuaValue] = None) -> Optional[LuaValue]:
        return self._entries.get(key, default)

    def get_str(self, key: LuaKey) -> Optional[str]:
        value = self._entries.get(key)
        return value if isinstance(value, str) else None

    def get_num(self, key: LuaKey) -> Optional[float]:
        value = self._entries.get(key)
        return value if is_number(value) else None

    def get_bool(self, key: LuaKey) -> Optional[bool]:
        value = self._entries.get(key)
        return value if isinstance(value, bool) else None

    def get_table(self, key: LuaKey) -> Optional["LuaTable"]:
        value = self._entries.get(key)
        return value if isinstance(value, LuaTable) else None

    def array_length(self) -> int:
        """Return the highest key ``n`` such that 1..n are all present."""

        length = 0
        while (length + 1) in self._entries:
            length += 1
        return length

    def get_index(self, index: int) -> Optional[LuaValue]:
        """Return the element at a 1-based array position, if any."""

        if index < 1:
            return None
        return self._entries.get(index)

    def array(self) -> List[LuaValue]:
        return [self._entries[i] for i in range(1, self.array_length() + 1)]


__all__ = ["LuaTable", "LuaKey", "LuaValue", "is_number"]
