# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Deep identity comparison of settings trees.

Used to check that an encode/decode round trip is lossless. Two trees are
identical when they hold the same keys in the same order and, key by key,
the same kind, the same null state and equal values:

- doubles compare by IEEE-754 bit pattern, so nan matches nan and 0.0 does
  not match -0.0
- arrays compare element-wise
- extensible values compare by (type_id, payload), no codec required
- sub-trees compare recursively

Tree names are not part of the comparison.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING, Any

from .entry import SettingsEntry
from .kinds import EntryKind

if TYPE_CHECKING:
    from .tree import SettingsTree

_DOUBLE = struct.Struct('>d')


def is_identical(a: SettingsTree, b: SettingsTree) -> bool:
    """Return True if two trees are structurally identical.

    Args:
        a: First tree.
        b: Second tree.

    Returns:
        True if keys, order, kinds, null states and values all match.
    """
    # explicit stack: in-memory trees may nest past the recursion limit
    stack = [(a, b)]
    while stack:
        tree_a, tree_b = stack.pop()
        if tree_a is tree_b:
            continue
        left = tree_a.items()
        right = tree_b.items()
        if len(left) != len(right):
            return False
        for (key_a, item_a), (key_b, item_b) in zip(left, right):
            if key_a != key_b:
                return False
            a_is_entry = isinstance(item_a, SettingsEntry)
            if a_is_entry != isinstance(item_b, SettingsEntry):
                return False
            if a_is_entry:
                if not entries_identical(item_a, item_b):
                    return False
            else:
                stack.append((item_a, item_b))
    return True


def entries_identical(a: SettingsEntry, b: SettingsEntry) -> bool:
    """Return True if two entries have the same kind, null state and value."""
    if a.kind is not b.kind or a.is_null != b.is_null:
        return False
    if a.is_null:
        return True
    if a.kind is EntryKind.DOUBLE:
        return _same_double(a.value, b.value)
    if a.kind is EntryKind.DOUBLE_ARRAY:
        return len(a.value) == len(b.value) and all(
            _same_double(x, y) for x, y in zip(a.value, b.value)
        )
    return _same(a.value, b.value)


def _same_double(x: float, y: float) -> bool:
    return _DOUBLE.pack(x) == _DOUBLE.pack(y)


def _same(x: Any, y: Any) -> bool:
    # bool is an int subclass; a stored True must not match a stored 1
    if type(x) is not type(y):
        return False
    return x == y
