# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SettingsTree - An ordered, strongly-typed hierarchical settings container.

This module provides the SettingsTree class, the unit of storage, comparison
and encoding in genro-settingstree. A tree maps keys to typed entries or to
nested trees, keeps insertion order, and distinguishes three states for
every key: absent, present with a null marker, present with a value.

Key Features:
    - **Typed entries**: int, double, boolean, char, short, byte, string and
      fixed-length arrays of each, checked on write and on read
    - **Extensible values**: domain objects stored through a CodecRegistry
    - **Nested trees**: add_subtree() returns a live handle to the child
    - **Ordered keys**: key_set() follows insertion order; overwriting a key
      keeps its position

Read Semantics:
    - get_<kind>(key): KeyNotFoundError if absent, TypeMismatchError if the
      key holds another kind, None for a stored null
    - get_<kind>(key, default): default only if the key is absent; a stored
      null still returns None and kind conflicts still raise

Example:
    Basic usage::

        tree = SettingsTree('node-settings')
        tree.add_int('retries', 3).add_string('label', None)
        columns = tree.add_subtree('columns')
        columns.add_string_array('included', ['a', 'b'])

        tree.get_int('retries')            # 3
        tree.get_string('label', 'x')      # None, the key holds a null
        tree.get_string('missing', 'x')    # 'x'
        tree.key_set()                     # ['retries', 'label', 'columns']
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Sequence, Union

from ..entry import SettingsEntry
from ..exceptions import (
    InvalidKeyError,
    KeyNotFoundError,
    TypeMismatchError,
    UnknownExtensibleTypeError,
)
from ..identity import is_identical
from ..kinds import EntryKind
from ..registry import CodecRegistry, ExtensibleValue, default_registry

logger = logging.getLogger(__name__)

_MISSING = object()

Item = Union[SettingsEntry, 'SettingsTree']


def _check_key(key: Any) -> None:
    if key is None:
        raise InvalidKeyError("Key must not be None")
    if not isinstance(key, str):
        raise InvalidKeyError(f"Key must be a string, not {type(key).__name__}")


class SettingsTree:
    """An ordered mapping from keys to typed entries and nested trees.

    SettingsTree provides:
    - add_<kind>(key, value): Store or overwrite a typed value
    - get_<kind>(key[, default]): Read a typed value
    - add_value/get_value: Extensible values through a CodecRegistry
    - add_subtree/get_subtree: Nested trees
    - key_set(), contains_key(), remove(), copy(), walk()

    A tree exclusively owns its entries and nested trees; there are no
    back-references to parents. Trees are not synchronized: build a tree
    from one thread, then share it read-only.

    Attributes:
        name: The tree's name. Nested trees are named by their key.

    Example:
        >>> tree = SettingsTree('test')
        >>> tree.add_int_array('sizes', [42, 13])
        SettingsTree('test', ['sizes'])
        >>> tree.get_int_array('sizes')
        [42, 13]
    """

    __slots__ = ('name', '_entries', '_registry')

    def __init__(self, name: str, registry: CodecRegistry | None = None) -> None:
        """Initialize an empty SettingsTree.

        Args:
            name: The tree's name.
            registry: Registry used to encode and decode extensible values.
                Defaults to the process-wide registry.

        Raises:
            InvalidKeyError: If name is None or not a string.
        """
        _check_key(name)
        self.name = name
        self._entries: dict[str, Item] = {}
        self._registry = registry if registry is not None else default_registry

    # ==================== Special Methods ====================

    def __repr__(self) -> str:
        return f"SettingsTree({self.name!r}, {list(self._entries)})"

    def __str__(self) -> str:
        return self.to_string()

    def __len__(self) -> int:
        """Return the number of direct entries and sub-trees."""
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        """Iterate over keys in insertion order."""
        return iter(list(self._entries))

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def registry(self) -> CodecRegistry:
        """The registry used for extensible values."""
        return self._registry

    # ==================== Internals ====================

    def _add(self, key: str, kind: EntryKind, value: Any) -> SettingsTree:
        _check_key(key)
        self._entries[key] = SettingsEntry(key, kind, value)
        return self

    def _find(self, key: str, kind: EntryKind) -> Item | None:
        """Return the item under key checked against kind, None if absent."""
        item = self._entries.get(key)
        if item is None:
            return None
        actual = EntryKind.SUBTREE if isinstance(item, SettingsTree) else item.kind
        if actual is not kind:
            raise TypeMismatchError(
                f"Key '{key}' in '{self.name}' holds {actual.name}, not {kind.name}"
            )
        return item

    def _missing(self, key: str, default: Any) -> Any:
        if default is _MISSING:
            raise KeyNotFoundError(f"Key '{key}' not found in '{self.name}'")
        return default

    def _get(self, key: str, kind: EntryKind, default: Any = _MISSING) -> Any:
        entry = self._find(key, kind)
        if entry is None:
            return self._missing(key, default)
        return entry.get()

    # ==================== Scalars ====================

    def add_int(self, key: str, value: int) -> SettingsTree:
        """Store a signed 32-bit int."""
        return self._add(key, EntryKind.INT, value)

    def get_int(self, key: str, default: Any = _MISSING) -> int:
        """Read an int."""
        return self._get(key, EntryKind.INT, default)

    def add_double(self, key: str, value: float) -> SettingsTree:
        """Store a 64-bit float. Ints are converted."""
        return self._add(key, EntryKind.DOUBLE, value)

    def get_double(self, key: str, default: Any = _MISSING) -> float:
        """Read a double."""
        return self._get(key, EntryKind.DOUBLE, default)

    def add_boolean(self, key: str, value: bool) -> SettingsTree:
        """Store a boolean."""
        return self._add(key, EntryKind.BOOLEAN, value)

    def get_boolean(self, key: str, default: Any = _MISSING) -> bool:
        """Read a boolean."""
        return self._get(key, EntryKind.BOOLEAN, default)

    def add_char(self, key: str, value: str) -> SettingsTree:
        """Store a single character."""
        return self._add(key, EntryKind.CHAR, value)

    def get_char(self, key: str, default: Any = _MISSING) -> str:
        """Read a character."""
        return self._get(key, EntryKind.CHAR, default)

    def add_short(self, key: str, value: int) -> SettingsTree:
        """Store a signed 16-bit int."""
        return self._add(key, EntryKind.SHORT, value)

    def get_short(self, key: str, default: Any = _MISSING) -> int:
        """Read a short."""
        return self._get(key, EntryKind.SHORT, default)

    def add_byte(self, key: str, value: int) -> SettingsTree:
        """Store a signed 8-bit int (-128..127)."""
        return self._add(key, EntryKind.BYTE, value)

    def get_byte(self, key: str, default: Any = _MISSING) -> int:
        """Read a byte."""
        return self._get(key, EntryKind.BYTE, default)

    def add_string(self, key: str, value: str | None) -> SettingsTree:
        """Store a string, or a null marker for None."""
        return self._add(key, EntryKind.STRING, value)

    def get_string(self, key: str, default: Any = _MISSING) -> str | None:
        """Read a string."""
        return self._get(key, EntryKind.STRING, default)

    # ==================== Arrays ====================

    def add_int_array(self, key: str, values: Sequence[int] | None) -> SettingsTree:
        return self._add(key, EntryKind.INT_ARRAY, values)

    def get_int_array(self, key: str, default: Any = _MISSING) -> list[int] | None:
        return self._get(key, EntryKind.INT_ARRAY, default)

    def add_double_array(self, key: str, values: Sequence[float] | None) -> SettingsTree:
        return self._add(key, EntryKind.DOUBLE_ARRAY, values)

    def get_double_array(self, key: str, default: Any = _MISSING) -> list[float] | None:
        return self._get(key, EntryKind.DOUBLE_ARRAY, default)

    def add_boolean_array(self, key: str, values: Sequence[bool] | None) -> SettingsTree:
        return self._add(key, EntryKind.BOOLEAN_ARRAY, values)

    def get_boolean_array(self, key: str, default: Any = _MISSING) -> list[bool] | None:
        return self._get(key, EntryKind.BOOLEAN_ARRAY, default)

    def add_char_array(self, key: str, values: Sequence[str] | str | None) -> SettingsTree:
        """Store characters; a str is split into its characters."""
        return self._add(key, EntryKind.CHAR_ARRAY, values)

    def get_char_array(self, key: str, default: Any = _MISSING) -> list[str] | None:
        return self._get(key, EntryKind.CHAR_ARRAY, default)

    def add_short_array(self, key: str, values: Sequence[int] | None) -> SettingsTree:
        return self._add(key, EntryKind.SHORT_ARRAY, values)

    def get_short_array(self, key: str, default: Any = _MISSING) -> list[int] | None:
        return self._get(key, EntryKind.SHORT_ARRAY, default)

    def add_byte_array(self, key: str, values: bytes | Sequence[int] | None) -> SettingsTree:
        """Store raw bytes. Lists of ints in 0..255 are accepted too."""
        return self._add(key, EntryKind.BYTE_ARRAY, values)

    def get_byte_array(self, key: str, default: Any = _MISSING) -> bytes | None:
        return self._get(key, EntryKind.BYTE_ARRAY, default)

    def add_string_array(
        self, key: str, values: Sequence[str | None] | None
    ) -> SettingsTree:
        """Store strings. Individual elements may be None."""
        return self._add(key, EntryKind.STRING_ARRAY, values)

    def get_string_array(
        self, key: str, default: Any = _MISSING
    ) -> list[str | None] | None:
        return self._get(key, EntryKind.STRING_ARRAY, default)

    # ==================== Extensible Values ====================

    def _encode_value(self, value: Any) -> ExtensibleValue | None:
        if value is None or isinstance(value, ExtensibleValue):
            return value
        return self._registry.encode(value)

    def _decode_value(self, key: str, value: ExtensibleValue | None) -> Any:
        if value is None:
            return None
        try:
            return self._registry.decode(value)
        except UnknownExtensibleTypeError:
            logger.debug(f"Cannot decode '{key}' in '{self.name}': unknown type id '{value.type_id}'")
            raise

    def add_value(self, key: str, value: Any) -> SettingsTree:
        """Store an extensible value through the tree's registry.

        Args:
            key: The entry key.
            value: A value whose class has a registered codec, an already
                encoded ExtensibleValue, or None for a null marker.

        Raises:
            InvalidKeyError: If key is None or not a string.
            UnsupportedTypeError: If no codec handles the value's class.
        """
        _check_key(key)
        return self._add(key, EntryKind.VALUE, self._encode_value(value))

    def get_value(self, key: str, default: Any = _MISSING) -> Any:
        """Read and decode an extensible value.

        Raises:
            KeyNotFoundError: If absent and no default is given.
            TypeMismatchError: If the key holds another kind.
            UnknownExtensibleTypeError: If the stored type id has no codec.
                The entry is left untouched, so callers may skip it.
        """
        entry = self._find(key, EntryKind.VALUE)
        if entry is None:
            return self._missing(key, default)
        return self._decode_value(key, entry.value)

    def get_raw_value(self, key: str, default: Any = _MISSING) -> ExtensibleValue | None:
        """Read an extensible value without decoding it."""
        return self._get(key, EntryKind.VALUE, default)

    def add_value_array(self, key: str, values: Sequence[Any] | None) -> SettingsTree:
        """Store a sequence of extensible values. Elements may be None."""
        _check_key(key)
        if values is None:
            return self._add(key, EntryKind.VALUE_ARRAY, None)
        if isinstance(values, (str, bytes)):
            raise TypeError(f"VALUE_ARRAY expects a sequence, not {type(values).__name__}")
        encoded = [self._encode_value(value) for value in values]
        return self._add(key, EntryKind.VALUE_ARRAY, encoded)

    def get_value_array(self, key: str, default: Any = _MISSING) -> list[Any] | None:
        """Read and decode a sequence of extensible values."""
        entry = self._find(key, EntryKind.VALUE_ARRAY)
        if entry is None:
            return self._missing(key, default)
        if entry.is_null:
            return None
        return [self._decode_value(key, value) for value in entry.value]

    def get_raw_value_array(
        self, key: str, default: Any = _MISSING
    ) -> list[ExtensibleValue | None] | None:
        """Read a sequence of extensible values without decoding them."""
        return self._get(key, EntryKind.VALUE_ARRAY, default)

    # ==================== Sub-trees ====================

    def add_subtree(self, key: str) -> SettingsTree:
        """Create an empty nested tree under key and return it.

        Any prior entry under key is replaced. The returned tree is the
        live child, so changes made through it are visible from here.

        Raises:
            InvalidKeyError: If key is None or not a string.
        """
        _check_key(key)
        child = SettingsTree(key, self._registry)
        self._entries[key] = child
        return child

    def get_subtree(self, key: str, default: Any = _MISSING) -> SettingsTree:
        """Return the live nested tree under key.

        Raises:
            KeyNotFoundError: If absent and no default is given.
            TypeMismatchError: If the key holds an entry.
        """
        child = self._find(key, EntryKind.SUBTREE)
        if child is None:
            return self._missing(key, default)
        return child

    # ==================== Keys and Entries ====================

    def contains_key(self, key: str) -> bool:
        """True if an entry (null or not) or a sub-tree exists under key."""
        return key in self._entries

    def key_set(self) -> list[str]:
        """Return keys in insertion order."""
        return list(self._entries)

    def items(self) -> list[tuple[str, Item]]:
        """Return (key, entry or sub-tree) pairs in insertion order."""
        return list(self._entries.items())

    def add_entry(self, entry: SettingsEntry) -> SettingsTree:
        """Store a prebuilt SettingsEntry under its own key.

        Extensible values in the entry are taken as already encoded.

        Raises:
            InvalidKeyError: If the entry's key is None or not a string.
        """
        _check_key(entry.key)
        self._entries[entry.key] = entry
        return self

    def get_entry(self, key: str) -> Item:
        """Return the raw SettingsEntry or SettingsTree under key.

        Raises:
            KeyNotFoundError: If key is absent.
        """
        try:
            return self._entries[key]
        except KeyError:
            raise KeyNotFoundError(f"Key '{key}' not found in '{self.name}'") from None

    def get_kind(self, key: str) -> EntryKind:
        """Return the kind stored under key (SUBTREE for nested trees)."""
        item = self.get_entry(key)
        return EntryKind.SUBTREE if isinstance(item, SettingsTree) else item.kind

    def remove(self, key: str) -> Item:
        """Remove and return the entry or sub-tree under key.

        Re-adding the key afterwards places it at the end of key_set().

        Raises:
            KeyNotFoundError: If key is absent.
        """
        try:
            return self._entries.pop(key)
        except KeyError:
            raise KeyNotFoundError(f"Key '{key}' not found in '{self.name}'") from None

    def clear(self) -> None:
        """Remove all entries and sub-trees."""
        self._entries.clear()

    # ==================== Copy and Compare ====================

    def copy(self, name: str | None = None) -> SettingsTree:
        """Return a deep copy of this tree.

        Args:
            name: Name of the copy. Defaults to this tree's name.
        """
        clone = SettingsTree(self.name if name is None else name, self._registry)
        stack = [(self, clone)]
        while stack:
            source, target = stack.pop()
            for key, item in source._entries.items():
                if isinstance(item, SettingsTree):
                    child = SettingsTree(item.name, item._registry)
                    target._entries[key] = child
                    stack.append((item, child))
                else:
                    target._entries[key] = item.copy()
        return clone

    def is_identical(self, other: SettingsTree) -> bool:
        """True if other holds the same keys, kinds and values in order."""
        return is_identical(self, other)

    # ==================== Walk ====================

    def walk(self) -> Iterator[tuple[str, Item]]:
        """Yield (path, item) pairs depth first, in key order.

        Paths join keys with dots; a sub-tree is yielded before its
        children. Nesting depth is not limited by the interpreter's
        recursion limit.

        Example:
            >>> for path, item in tree.walk():
            ...     print(path, item)
        """
        stack = [('', iter(self.items()))]
        while stack:
            prefix, items = stack[-1]
            for key, item in items:
                path = f"{prefix}.{key}" if prefix else key
                yield path, item
                if isinstance(item, SettingsTree):
                    stack.append((path, iter(item.items())))
                    break
            else:
                stack.pop()

    def to_string(self, indent: str = '  ') -> str:
        """Return an indented, human-readable dump of the tree."""
        lines = [f"{self.name} ({EntryKind.SUBTREE.type_name})"]
        stack = [iter(self.items())]
        while stack:
            pad = indent * len(stack)
            for key, item in stack[-1]:
                if isinstance(item, SettingsTree):
                    lines.append(f"{pad}{key} ({EntryKind.SUBTREE.type_name})")
                    stack.append(iter(item.items()))
                    break
                lines.append(f"{pad}{key} ({item.kind.type_name}) -> {item.format_value()}")
            else:
                stack.pop()
        return '\n'.join(lines)
