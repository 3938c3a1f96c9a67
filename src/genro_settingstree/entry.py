# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SettingsEntry - one typed leaf value of a SettingsTree."""

from __future__ import annotations

from typing import Any

from .kinds import EntryKind, export, normalize


class SettingsEntry:
    """A typed value stored under a key.

    Each entry has:
    - key: The entry's name within its tree
    - kind: The EntryKind, fixed at creation
    - value: The stored (immutable) form of the value, None when null
    - is_null: Presence flag, True for an explicitly stored null

    Null is tracked by the flag rather than inferred from the value, so
    every kind follows the same three-state rule: key absent, key present
    with null, key present with a value.

    Example:
        >>> entry = SettingsEntry('retries', EntryKind.INT, 3)
        >>> entry.kind
        <EntryKind.INT: (1, 'xint')>
        >>> entry.get()
        3
    """

    __slots__ = ('key', 'kind', 'value', 'is_null')

    def __init__(self, key: str, kind: EntryKind, value: Any = None) -> None:
        """Initialize a SettingsEntry.

        Args:
            key: The entry's key.
            kind: The entry kind (not SUBTREE).
            value: The value, validated and normalized for the kind.

        Raises:
            TypeError: If the value does not fit the kind.
            ValueError: If an integer is out of range for the kind.
        """
        self.key = key
        self.kind = kind
        self.value = normalize(kind, value)
        self.is_null = self.value is None

    def __repr__(self) -> str:
        value_repr = 'null' if self.is_null else repr(self.value)
        return f"SettingsEntry({self.key!r}, {self.kind.name}, {value_repr})"

    def get(self) -> Any:
        """Return the value in caller-facing form (arrays as new lists)."""
        if self.is_null:
            return None
        return export(self.kind, self.value)

    def copy(self) -> SettingsEntry:
        """Return an independent entry with the same key, kind and value."""
        # stored values are immutable, sharing them is safe
        clone = SettingsEntry.__new__(SettingsEntry)
        clone.key = self.key
        clone.kind = self.kind
        clone.value = self.value
        clone.is_null = self.is_null
        return clone

    def format_value(self) -> str:
        """Return a short human-readable rendering of the value."""
        if self.is_null:
            return 'null'
        if self.kind is EntryKind.BYTE_ARRAY:
            return self.value.hex()
        if self.kind is EntryKind.VALUE:
            return f"<{self.value.type_id}: {len(self.value.payload)} bytes>"
        if self.kind is EntryKind.VALUE_ARRAY:
            items = ['null' if v is None else f"<{v.type_id}>" for v in self.value]
            return f"[{', '.join(items)}]"
        if self.kind.is_array:
            return repr(list(self.value))
        return repr(self.value)
