# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Entry kinds and per-kind value validation.

Every value stored in a SettingsTree is tagged with an EntryKind. The kind
carries a stable one-byte code (used by the binary codec) and a type name
(used by the XML codec), so neither encoding depends on enum ordering.

Stored forms:
    - scalars: ``int``, ``float``, ``bool``, one-character ``str``, ``str``
    - arrays: tuples of the scalar form, ``bytes`` for BYTE_ARRAY
    - extensible values: ExtensibleValue records
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .registry import ExtensibleValue


class EntryKind(Enum):
    """The kind of a settings entry: (binary code, XML type name)."""

    INT = (1, 'xint')
    DOUBLE = (2, 'xdouble')
    BOOLEAN = (3, 'xboolean')
    CHAR = (4, 'xchar')
    SHORT = (5, 'xshort')
    BYTE = (6, 'xbyte')
    STRING = (7, 'xstring')
    INT_ARRAY = (8, 'xint_array')
    DOUBLE_ARRAY = (9, 'xdouble_array')
    BOOLEAN_ARRAY = (10, 'xboolean_array')
    CHAR_ARRAY = (11, 'xchar_array')
    SHORT_ARRAY = (12, 'xshort_array')
    BYTE_ARRAY = (13, 'xbyte_array')
    STRING_ARRAY = (14, 'xstring_array')
    VALUE = (15, 'xvalue')
    VALUE_ARRAY = (16, 'xvalue_array')
    SUBTREE = (17, 'config')

    def __init__(self, code: int, type_name: str) -> None:
        self.code = code
        self.type_name = type_name

    @property
    def is_array(self) -> bool:
        """True for the fixed-length sequence kinds."""
        return self in _ELEMENT_KINDS

    @property
    def is_nullable(self) -> bool:
        """True if an entry of this kind may hold a null marker."""
        return self not in _PRIMITIVE_KINDS and self is not EntryKind.SUBTREE

    @property
    def element_kind(self) -> EntryKind:
        """The scalar kind of an array kind's elements."""
        try:
            return _ELEMENT_KINDS[self]
        except KeyError:
            raise ValueError(f"{self.name} is not an array kind") from None

    @classmethod
    def from_code(cls, code: int) -> EntryKind:
        """Return the kind for a binary code.

        Raises:
            ValueError: If no kind uses this code.
        """
        try:
            return _BY_CODE[code]
        except KeyError:
            raise ValueError(f"Unknown entry kind code {code}") from None

    @classmethod
    def from_type_name(cls, type_name: str) -> EntryKind:
        """Return the kind for an XML type name.

        Raises:
            ValueError: If no kind uses this name.
        """
        try:
            return _BY_TYPE_NAME[type_name]
        except KeyError:
            raise ValueError(f"Unknown entry type '{type_name}'") from None


_PRIMITIVE_KINDS = frozenset({
    EntryKind.INT, EntryKind.DOUBLE, EntryKind.BOOLEAN,
    EntryKind.CHAR, EntryKind.SHORT, EntryKind.BYTE,
})

_ELEMENT_KINDS: dict[EntryKind, EntryKind] = {
    EntryKind.INT_ARRAY: EntryKind.INT,
    EntryKind.DOUBLE_ARRAY: EntryKind.DOUBLE,
    EntryKind.BOOLEAN_ARRAY: EntryKind.BOOLEAN,
    EntryKind.CHAR_ARRAY: EntryKind.CHAR,
    EntryKind.SHORT_ARRAY: EntryKind.SHORT,
    EntryKind.BYTE_ARRAY: EntryKind.BYTE,
    EntryKind.STRING_ARRAY: EntryKind.STRING,
    EntryKind.VALUE_ARRAY: EntryKind.VALUE,
}

_BY_CODE = {kind.code: kind for kind in EntryKind}
_BY_TYPE_NAME = {kind.type_name: kind for kind in EntryKind}

INT_RANGES: dict[EntryKind, tuple[int, int]] = {
    EntryKind.INT: (-2**31, 2**31 - 1),
    EntryKind.SHORT: (-2**15, 2**15 - 1),
    EntryKind.BYTE: (-2**7, 2**7 - 1),
}


def normalize(kind: EntryKind, value: Any) -> Any:
    """Validate a value for a kind and return its stored form.

    Args:
        kind: Target entry kind (not SUBTREE).
        value: The caller's value. None stores a null marker for
            nullable kinds.

    Returns:
        The immutable stored form of the value.

    Raises:
        TypeError: If the value has the wrong type, or is None for a
            primitive kind.
        ValueError: If an integer is out of the kind's range.
    """
    if kind is EntryKind.SUBTREE:
        raise TypeError("Sub-trees are not stored as values")
    if value is None:
        if not kind.is_nullable:
            raise TypeError(f"{kind.name} values cannot be None")
        return None
    if kind.is_array:
        return _normalize_array(kind, value)
    return _normalize_scalar(kind, value)


def export(kind: EntryKind, value: Any) -> Any:
    """Return the caller-facing form of a stored value.

    Arrays come back as fresh lists so callers cannot alter the tree
    through a returned array. BYTE_ARRAY values are immutable bytes.
    """
    if value is None or not kind.is_array or kind is EntryKind.BYTE_ARRAY:
        return value
    return list(value)


def _normalize_scalar(kind: EntryKind, value: Any) -> Any:
    if kind in INT_RANGES:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{kind.name} expects int, not {type(value).__name__}")
        low, high = INT_RANGES[kind]
        if not low <= value <= high:
            raise ValueError(f"{value} is out of range for {kind.name} ({low}..{high})")
        return value
    if kind is EntryKind.DOUBLE:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"DOUBLE expects float, not {type(value).__name__}")
        return float(value)
    if kind is EntryKind.BOOLEAN:
        if not isinstance(value, bool):
            raise TypeError(f"BOOLEAN expects bool, not {type(value).__name__}")
        return value
    if kind is EntryKind.CHAR:
        if not isinstance(value, str) or len(value) != 1:
            raise TypeError(f"CHAR expects a single character, not {value!r}")
        return value
    if kind is EntryKind.STRING:
        if not isinstance(value, str):
            raise TypeError(f"STRING expects str, not {type(value).__name__}")
        return value
    if kind is EntryKind.VALUE:
        if not isinstance(value, ExtensibleValue):
            raise TypeError(f"VALUE expects ExtensibleValue, not {type(value).__name__}")
        return value
    raise TypeError(f"{kind.name} is not a scalar kind")


def _normalize_array(kind: EntryKind, value: Any) -> tuple[Any, ...] | bytes:
    if kind is EntryKind.BYTE_ARRAY:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, (list, tuple)):
            # bytes() rejects values outside 0..255 with ValueError
            return bytes(value)
        raise TypeError(f"BYTE_ARRAY expects bytes, not {type(value).__name__}")

    if isinstance(value, str):
        if kind is not EntryKind.CHAR_ARRAY:
            raise TypeError(f"{kind.name} expects a sequence, not str")
        return tuple(value)
    if isinstance(value, (bytes, bytearray, dict, set, frozenset)):
        raise TypeError(f"{kind.name} expects an ordered sequence, not {type(value).__name__}")
    try:
        items = iter(value)
    except TypeError:
        raise TypeError(f"{kind.name} expects a sequence, not {type(value).__name__}") from None

    element_kind = kind.element_kind
    return tuple(normalize(element_kind, item) for item in items)
