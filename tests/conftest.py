# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import struct
from dataclasses import dataclass

import pytest

from genro_settingstree import CodecRegistry, SettingsTree, default_registry


@dataclass(frozen=True)
class FuzzyNumber:
    """Triangular fuzzy number used as a sample extensible value."""

    a: float
    b: float
    c: float

    def to_bytes(self) -> bytes:
        return struct.pack('>3d', self.a, self.b, self.c)

    @classmethod
    def from_bytes(cls, data: bytes) -> FuzzyNumber:
        return cls(*struct.unpack('>3d', data))


@dataclass(frozen=True)
class Interval:
    """Closed interval used as a second extensible value."""

    low: int
    high: int


def encode_interval(value: Interval) -> bytes:
    return struct.pack('>ii', value.low, value.high)


def decode_interval(data: bytes) -> Interval:
    return Interval(*struct.unpack('>ii', data))


@pytest.fixture(autouse=True)
def isolate_default_registry():
    """Restore the process-wide registry after each test."""
    saved = list(default_registry)
    yield
    default_registry.clear()
    for codec in saved:
        default_registry.register(codec.type_id, codec.value_type, codec.encode, codec.decode)


@pytest.fixture
def fuzzy_number():
    """The FuzzyNumber class."""
    return FuzzyNumber


@pytest.fixture
def interval():
    """The Interval class."""
    return Interval


@pytest.fixture
def registry():
    """A private registry with FuzzyNumber and Interval codecs."""
    reg = CodecRegistry()
    reg.register('fuzzy.number', FuzzyNumber, FuzzyNumber.to_bytes, FuzzyNumber.from_bytes)
    reg.register('interval', Interval, encode_interval, decode_interval)
    return reg


@pytest.fixture
def populated_tree(registry):
    """A tree exercising every kind, null states and three nesting levels."""
    tree = SettingsTree('test-settings', registry)
    tree.add_int('kint', 5)
    tree.add_int_array('kintarray', [42, 13])
    tree.add_int_array('kint_array_0', [])
    tree.add_int_array('kint-', None)
    tree.add_double('kdouble', 5.5)
    tree.add_double('knegzero', -0.0)
    tree.add_double('knan', float('nan'))
    tree.add_double('kinf', float('-inf'))
    tree.add_double_array('kdoublearray', [42.42, 13.13, 0.1])
    tree.add_double_array('kdouble-', None)
    tree.add_boolean('kboolean', True)
    tree.add_boolean_array('kbooleanarray', [False, True])
    tree.add_boolean_array('kboolean_array_0', [])
    tree.add_char('kchar', '5')
    tree.add_char('knewline', '\n')
    tree.add_char_array('kchararray', ['4', '2'])
    tree.add_char_array('kchar-', None)
    tree.add_short('kshort', ord('5'))
    tree.add_short_array('kshortarray', [-32768, 32767])
    tree.add_byte('kbyte', ord('b'))
    tree.add_byte('kbyteneg', -128)
    tree.add_byte_array('kbytearray', b'42')
    tree.add_byte_array('kbyte_array_0', b'')
    tree.add_byte_array('kbyte-', None)
    tree.add_string('kString', 'B')
    tree.add_string('nullString', None)
    tree.add_string('unicode', 'caffè \U0001f600')
    tree.add_string_array('kStringarray', ['T', 'P', 'M'])
    tree.add_string_array('kString_array_0', [])
    tree.add_string_array('kString-', None)
    tree.add_string_array('kString_with_null', ['a', None, ''])
    tree.add_value('kvalue', FuzzyNumber(0.0, 1.0, 2.0))
    tree.add_value('nullValue', None)
    tree.add_value_array('kvaluearray', [Interval(1, 2), None, FuzzyNumber(1.0, 2.0, 3.0)])
    tree.add_value_array('kvalue_array_0', [])
    tree.add_value_array('kvalue-', None)

    special = tree.add_subtree('special_strings')
    special.add_string('N', '\n')
    special.add_string('R', '\r')
    special.add_string('T', '\t')
    special.add_string('EMPTY', '')
    special.add_string('LENGTH1', ' ')
    special.add_string('null', None)
    special.add_string('NULL', 'null')
    special.add_string('PERCENT', '100%%00010')
    special.add_string('SURROGATE', '\ud800')

    level1 = tree.add_subtree('level1')
    level1.add_int('depth', 1)
    level2 = level1.add_subtree('level2')
    level2.add_int('depth', 2)
    level3 = level2.add_subtree('level3')
    level3.add_int('depth', 3)
    level3.add_value('deep', Interval(-5, 5))
    level2.add_subtree('empty')
    return tree
