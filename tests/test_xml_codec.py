# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Tests for the XML codec."""

import io
import logging
import math
import struct
import xml.etree.ElementTree as ET

import pytest

from genro_settingstree import (
    CodecOptions,
    MalformedDocumentError,
    SettingsTree,
    SettingsTreeError,
    UnknownExtensibleTypeError,
    from_xml,
    to_xml,
    xml_codec,
)
from genro_settingstree.serialization.xml_codec import escape_text, unescape_text

COMPACT = CodecOptions(indent=None)


def _doc(body, name='r'):
    return f'<config key="{name}">{body}</config>'


class TestEscaping:
    """Tests for text escaping."""

    @pytest.mark.parametrize('text, escaped', [
        ('plain', 'plain'),
        ('', ''),
        ('\n', '%%00010'),
        ('\r', '%%00013'),
        ('\t', '%%00009'),
        ('100%', '100%%00037'),
        ('\x00', '%%00000'),
        ('\x7f', '%%00127'),
        ('\ud800', '%%55296'),
        ('\uffff', '%%65535'),
        ('caffè', 'caffè'),
    ])
    def test_escape(self, text, escaped):
        """Test each escaped character and its reverse."""
        assert escape_text(text) == escaped
        assert unescape_text(escaped) == text

    def test_escaped_text_is_not_escaped_twice(self):
        """Test text that looks like an escape survives."""
        text = '100%%00010'
        assert unescape_text(escape_text(text)) == text

    def test_stray_percent(self):
        """Test a bare '%' is rejected."""
        with pytest.raises(MalformedDocumentError):
            unescape_text('50%')

    def test_short_escape(self):
        """Test an escape with too few digits is rejected."""
        with pytest.raises(MalformedDocumentError):
            unescape_text('%%123')

    def test_percent_after_escape(self):
        """Test a trailing bare '%' after a valid escape is rejected."""
        with pytest.raises(MalformedDocumentError):
            unescape_text('%%00037%')


class TestDocumentLayout:
    """The document shape of small trees."""

    def test_single_int(self):
        """Test a compact one-entry document."""
        tree = SettingsTree('r').add_int('a', 5)
        assert to_xml(tree, COMPACT) == _doc('<entry key="a" type="xint">5</entry>')

    def test_null_entry(self):
        """Test null entries carry isnull and no content."""
        tree = SettingsTree('r').add_string('s', None)
        assert to_xml(tree, COMPACT) == _doc('<entry key="s" type="xstring" isnull="true" />')

    def test_array(self):
        """Test arrays declare their size and list items."""
        tree = SettingsTree('r').add_int_array('a', [42, 13])
        assert to_xml(tree, COMPACT) == _doc(
            '<entry key="a" type="xint_array" size="2"><item>42</item><item>13</item></entry>'
        )

    def test_byte_array_hex(self):
        """Test byte arrays are written as hex."""
        tree = SettingsTree('r').add_byte_array('b', b'42')
        assert to_xml(tree, COMPACT) == _doc(
            '<entry key="b" type="xbyte_array" size="2">3432</entry>'
        )

    def test_escaped_key_and_value(self):
        """Test keys and strings are escaped."""
        tree = SettingsTree('r').add_string('a\tb', 'x\ny')
        assert to_xml(tree, COMPACT) == _doc(
            '<entry key="a%%00009b" type="xstring">x%%00010y</entry>'
        )

    def test_extensible_value(self, registry, interval):
        """Test extensible values carry a type id and base64 payload."""
        tree = SettingsTree('r', registry).add_value('v', interval(1, 2))
        assert to_xml(tree, COMPACT) == _doc(
            '<entry key="v" type="xvalue" typeid="interval">AAAAAQAAAAI=</entry>'
        )

    def test_nested_config(self):
        """Test sub-trees become nested config elements."""
        tree = SettingsTree('r')
        tree.add_subtree('c').add_boolean('b', False)
        assert to_xml(tree, COMPACT) == _doc(
            '<config key="c"><entry key="b" type="xboolean">false</entry></config>'
        )

    def test_indented(self):
        """Test the default output is pretty-printed."""
        tree = SettingsTree('r')
        tree.add_subtree('c').add_int('i', 1)
        assert to_xml(tree) == (
            '<config key="r">\n'
            '  <config key="c">\n'
            '    <entry key="i" type="xint">1</entry>\n'
            '  </config>\n'
            '</config>'
        )


class TestRoundTrip:
    """Encode/decode preserves every kind and nesting level."""

    @pytest.mark.parametrize('options', [CodecOptions(), COMPACT, CodecOptions(indent='\t')])
    def test_populated_tree(self, populated_tree, registry, options):
        """Test the full sample tree survives with any indentation."""
        text = to_xml(populated_tree, options)
        decoded = from_xml(text, registry)
        assert decoded.is_identical(populated_tree)
        assert decoded.name == 'test-settings'

    def test_special_strings(self, populated_tree, registry):
        """Test whitespace, empty and null strings stay distinct."""
        special = from_xml(to_xml(populated_tree), registry).get_subtree('special_strings')
        assert special.get_string('N') == '\n'
        assert special.get_string('R') == '\r'
        assert special.get_string('T') == '\t'
        assert special.get_string('EMPTY') == ''
        assert special.get_string('LENGTH1') == ' '
        assert special.get_string('null') is None
        assert special.get_string('NULL') == 'null'
        assert special.get_string('PERCENT') == '100%%00010'
        assert special.get_string('SURROGATE') == '\ud800'

    def test_values_readable_after_decode(self, populated_tree, registry, fuzzy_number, interval):
        """Test decoded extensible values resolve through the registry."""
        decoded = from_xml(to_xml(populated_tree), registry)
        assert decoded.get_value('kvalue') == fuzzy_number(0.0, 1.0, 2.0)
        assert decoded.get_value_array('kvaluearray') == [
            interval(1, 2), None, fuzzy_number(1.0, 2.0, 3.0),
        ]

    def test_control_characters_in_keys(self):
        """Test keys holding control characters and percent signs."""
        tree = SettingsTree('n\name')
        tree.add_int('\x01%', 1)
        tree.add_subtree('\r\n').add_string('', '')
        decoded = from_xml(to_xml(tree))
        assert decoded.is_identical(tree)
        assert decoded.name == 'n\name'

    def test_double_precision(self):
        """Test doubles keep full precision and special values."""
        tree = SettingsTree('d')
        tree.add_double_array('a', [0.1, 1e-310, -0.0, float('inf'), float('nan')])
        assert from_xml(to_xml(tree)).is_identical(tree)

    def test_nan_bit_patterns(self):
        """Test negative and payload-carrying NaNs keep their exact bits."""
        negative_nan = math.copysign(float('nan'), -1.0)
        payload_nan = struct.unpack('>d', bytes.fromhex('7ff8000000000001'))[0]
        tree = SettingsTree('d')
        tree.add_double('n', negative_nan)
        tree.add_double_array('a', [float('nan'), negative_nan, payload_nan])
        text = to_xml(tree, COMPACT)
        assert '<entry key="n" type="xdouble">nan:fff8000000000000</entry>' in text
        assert '<item>nan</item>' in text
        decoded = from_xml(text)
        assert decoded.is_identical(tree)
        assert struct.pack('>d', decoded.get_double('n')) == struct.pack('>d', negative_nan)

    def test_bytes_input(self, populated_tree, registry):
        """Test decoding an encoded bytes document."""
        text = to_xml(populated_tree).encode('utf-8', 'surrogatepass')
        assert from_xml(text, registry).is_identical(populated_tree)


class TestMalformed:
    """Structural errors raise MalformedDocumentError."""

    @pytest.mark.parametrize('document', [
        '<settings key="r" />',
        '<config />',
        _doc('<entry type="xint">1</entry>'),
        _doc('<entry key="a">1</entry>'),
        _doc('<entry key="a" type="xlong">1</entry>'),
        _doc('<entry key="a" type="config" />'),
        _doc('<entry key="a" type="xstring" isnull="yes" />'),
        _doc('<entry key="a" type="xint" isnull="true" />'),
        _doc('<entry key="a" type="xint">1.5</entry>'),
        _doc('<entry key="a" type="xint" />'),
        _doc('<entry key="a" type="xint">2147483648</entry>'),
        _doc('<entry key="a" type="xdouble">abc</entry>'),
        _doc('<entry key="a" type="xboolean">True</entry>'),
        _doc('<entry key="a" type="xchar">ab</entry>'),
        _doc('<entry key="a" type="xstring">50%</entry>'),
        _doc('<entry key="a" type="xstring"><item>x</item></entry>'),
        _doc('<entry key="a" type="xint_array"><item>1</item></entry>'),
        _doc('<entry key="a" type="xint_array" size="2"><item>1</item></entry>'),
        _doc('<entry key="a" type="xint_array" size="x" />'),
        _doc('<entry key="a" type="xint_array" size="\u00b2" />'),
        _doc('<entry key="a" type="xint_array" size="-1" />'),
        _doc('<entry key="a" type="xdouble">nan:3ff0000000000000</entry>'),
        _doc('<entry key="a" type="xdouble">nan:fff8</entry>'),
        _doc('<entry key="a" type="xint_array" size="1"><value>1</value></entry>'),
        _doc('<entry key="a" type="xbyte_array" size="1">zz</entry>'),
        _doc('<entry key="a" type="xbyte_array" size="3">3432</entry>'),
        _doc('<entry key="a" type="xvalue">AAAA</entry>'),
        _doc('<entry key="a" type="xvalue" typeid="t">not base64!</entry>'),
        _doc('<entry key="a" type="xint">1</entry><entry key="a" type="xint">2</entry>'),
        _doc('<entry key="a" type="xint">1</entry><config key="a" />'),
        _doc('<other key="a" />'),
        '<config key="r"><entry key="a" type="xint">1</entry>',
        'not xml at all',
    ])
    def test_rejected(self, document):
        """Test each malformed document is rejected."""
        with pytest.raises(MalformedDocumentError):
            from_xml(document)

    def test_no_partial_tree_on_error(self):
        """Test errors after valid entries still raise."""
        document = _doc(
            '<entry key="ok" type="xint">1</entry>'
            '<entry key="bad" type="xint">x</entry>'
        )
        with pytest.raises(MalformedDocumentError, match="'bad'"):
            from_xml(document)

    def test_malformed_is_value_error(self):
        """Test MalformedDocumentError can be caught as ValueError."""
        with pytest.raises(ValueError):
            from_xml('<')


class TestDepth:
    """Nesting limits on encode and decode."""

    @staticmethod
    def _nested(depth):
        root = SettingsTree('root')
        node = root
        for i in range(depth):
            node = node.add_subtree(f'n{i}')
        return root

    def test_within_limit(self):
        """Test nesting exactly at max_depth is accepted."""
        options = CodecOptions(max_depth=3)
        tree = self._nested(3)
        assert from_xml(to_xml(tree, options), options=options).is_identical(tree)

    def test_encode_too_deep(self):
        """Test the encoder refuses trees deeper than max_depth."""
        with pytest.raises(SettingsTreeError, match='max_depth'):
            to_xml(self._nested(4), CodecOptions(max_depth=3))

    def test_decode_too_deep(self):
        """Test the decoder refuses documents nested deeper than max_depth."""
        text = to_xml(self._nested(4))
        with pytest.raises(MalformedDocumentError, match='max_depth'):
            from_xml(text, options=CodecOptions(max_depth=3))


class TestUnknownTypes:
    """Extensible values whose codec is missing on the decoding side."""

    def test_opaque_by_default(self, registry, interval):
        """Test unknown type ids decode and fail only on get_value."""
        tree = SettingsTree('r', registry).add_value('v', interval(1, 2))
        text = to_xml(tree)
        registry.unregister('interval')
        decoded = from_xml(text, registry)
        with pytest.raises(UnknownExtensibleTypeError):
            decoded.get_value('v')
        assert to_xml(decoded) == text

    def test_check_registered(self, registry, interval):
        """Test check_registered fails at decode time."""
        tree = SettingsTree('r', registry).add_value_array('v', [interval(1, 2)])
        text = to_xml(tree)
        registry.unregister('interval')
        with pytest.raises(UnknownExtensibleTypeError):
            from_xml(text, registry, CodecOptions(check_registered=True))


class TestFiles:
    """Element, stream and file helpers."""

    def test_element_round_trip(self, populated_tree, registry):
        """Test to_element/from_element without serializing text."""
        element = xml_codec.to_element(populated_tree)
        assert element.tag == 'config'
        assert xml_codec.from_element(element, registry).is_identical(populated_tree)

    def test_save_load_path(self, populated_tree, registry, tmp_path):
        """Test saving to and loading from a file path."""
        path = tmp_path / 'settings.xml'
        xml_codec.save(populated_tree, path)
        assert path.read_bytes().startswith(b"<?xml version='1.0' encoding='utf-8'?>")
        assert xml_codec.load(path, registry).is_identical(populated_tree)

    def test_save_load_stream(self, populated_tree, registry):
        """Test saving to and loading from a binary stream."""
        buffer = io.BytesIO()
        xml_codec.save(populated_tree, buffer)
        buffer.seek(0)
        assert xml_codec.load(buffer, registry).is_identical(populated_tree)

    def test_load_not_xml(self, tmp_path):
        """Test loading a file that is not XML."""
        path = tmp_path / 'broken.xml'
        path.write_bytes(b'\x00\x01')
        with pytest.raises(MalformedDocumentError):
            xml_codec.load(path)

    def test_parsed_by_standard_tools(self, populated_tree):
        """Test the output is well-formed for any XML parser."""
        root = ET.fromstring(to_xml(populated_tree))
        assert [child.get('key') for child in root][:3] == ['kint', 'kintarray', 'kint_array_0']

    def test_logging(self, caplog):
        """Test encode and decode log at debug level."""
        with caplog.at_level(logging.DEBUG, logger='genro_settingstree.serialization.xml_codec'):
            from_xml(to_xml(SettingsTree('logged')))
        assert "Encoded tree 'logged'" in caplog.text
        assert "Decoded tree 'logged'" in caplog.text
