# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""XML codec - self-describing text encoding of a SettingsTree.

One ``config`` element per tree, one ``entry`` element per value::

    <config key="node-settings">
      <entry key="retries" type="xint">3</entry>
      <entry key="label" type="xstring" isnull="true" />
      <entry key="sizes" type="xint_array" size="2">
        <item>42</item>
        <item>13</item>
      </entry>
      <entry key="raw" type="xbyte_array" size="2">3432</entry>
      <entry key="point" type="xvalue" typeid="point">AAAAAQ==</entry>
      <config key="columns">
        <entry key="included" type="xstring_array" size="1">
          <item>a</item>
        </entry>
      </config>
    </config>

Text escaping: ``%``, code points below U+0020, U+007F, surrogates and
U+FFFE/U+FFFF are written as ``%%`` plus a five digit decimal code point,
so newline, carriage return, tab, the empty string and a null value all
read back distinctly. Keys and type ids are escaped the same way.

Doubles use repr(). A NaN other than the default quiet NaN is written as
``nan:`` plus the hex of its eight big-endian bytes, so sign and payload
survive. Booleans are ``true``/``false``, byte arrays hex and extensible
payloads base64. Every array declares its ``size``, which must
match the number of items on read.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import struct
import xml.etree.ElementTree as ET
from os import PathLike
from typing import IO, Any

from ..entry import SettingsEntry
from ..exceptions import MalformedDocumentError, SettingsTreeError, UnknownExtensibleTypeError
from ..kinds import INT_RANGES, EntryKind
from ..options import DEFAULT_OPTIONS, CodecOptions
from ..registry import CodecRegistry, ExtensibleValue, default_registry
from ..tree import SettingsTree

logger = logging.getLogger(__name__)

CONFIG_TAG = 'config'
ENTRY_TAG = 'entry'
ITEM_TAG = 'item'

_ESCAPE_RE = re.compile(r'[%\x00-\x1f\x7f\ud800-\udfff\ufffe\uffff]')
_UNESCAPE_RE = re.compile(r'%%([0-9]{5})|%')
_INTEGER_RE = re.compile(r'-?[0-9]+')
_SIZE_RE = re.compile(r'[0-9]+')
_NAN_RE = re.compile(r'nan:([0-9a-f]{16})')
_DOUBLE = struct.Struct('>d')
_CANONICAL_NAN = _DOUBLE.pack(float('nan'))


def escape_text(text: str) -> str:
    """Escape characters XML cannot carry verbatim."""
    return _ESCAPE_RE.sub(lambda m: f'%%{ord(m.group()):05d}', text)


def unescape_text(text: str) -> str:
    """Reverse escape_text().

    Raises:
        MalformedDocumentError: On a stray or invalid escape sequence.
    """
    def _replace(match: re.Match[str]) -> str:
        code = match.group(1)
        if code is None:
            raise MalformedDocumentError(f"Unescaped '%' in {text!r}")
        try:
            return chr(int(code))
        except ValueError:
            raise MalformedDocumentError(f"Invalid escape '%%{code}'") from None

    return _UNESCAPE_RE.sub(_replace, text)


# ==================== Encoding ====================


def to_element(tree: SettingsTree, options: CodecOptions | None = None) -> ET.Element:
    """Build the element structure of a tree.

    Raises:
        SettingsTreeError: If sub-trees nest deeper than max_depth.
    """
    options = options or DEFAULT_OPTIONS
    root = ET.Element(CONFIG_TAG, key=escape_text(tree.name))
    _fill_element(root, tree, 0, options)
    return root


def _fill_element(element: ET.Element, tree: SettingsTree, depth: int, options: CodecOptions) -> None:
    if depth > options.max_depth:
        raise SettingsTreeError(f"Tree nesting exceeds max_depth={options.max_depth}")
    for key, item in tree.items():
        if isinstance(item, SettingsTree):
            child = ET.SubElement(element, CONFIG_TAG, key=escape_text(key))
            _fill_element(child, item, depth + 1, options)
        else:
            _write_entry(element, key, item)


def _write_entry(parent: ET.Element, key: str, entry: SettingsEntry) -> None:
    kind = entry.kind
    element = ET.SubElement(parent, ENTRY_TAG, key=escape_text(key), type=kind.type_name)
    if entry.is_null:
        element.set('isnull', 'true')
        return
    value = entry.value
    if kind is EntryKind.BYTE_ARRAY:
        element.set('size', str(len(value)))
        element.text = value.hex()
    elif kind is EntryKind.VALUE:
        _write_extensible(element, value)
    elif kind.is_array:
        element.set('size', str(len(value)))
        for item in value:
            child = ET.SubElement(element, ITEM_TAG)
            if item is None:
                child.set('isnull', 'true')
            elif kind.element_kind is EntryKind.VALUE:
                _write_extensible(child, item)
            else:
                child.text = _format_scalar(kind.element_kind, item)
    else:
        element.text = _format_scalar(kind, value)


def _write_extensible(element: ET.Element, value: ExtensibleValue) -> None:
    element.set('typeid', escape_text(value.type_id))
    element.text = base64.b64encode(value.payload).decode('ascii')


def _format_double(value: float) -> str:
    if value != value:
        bits = _DOUBLE.pack(value)
        if bits != _CANONICAL_NAN:
            return f'nan:{bits.hex()}'
    return repr(value)


def _format_scalar(kind: EntryKind, value: Any) -> str:
    if kind is EntryKind.DOUBLE:
        return _format_double(value)
    if kind is EntryKind.BOOLEAN:
        return 'true' if value else 'false'
    if kind in (EntryKind.CHAR, EntryKind.STRING):
        return escape_text(value)
    return str(value)


def to_xml(tree: SettingsTree, options: CodecOptions | None = None) -> str:
    """Encode a tree as an XML document string."""
    options = options or DEFAULT_OPTIONS
    element = to_element(tree, options)
    if options.indent is not None:
        ET.indent(element, space=options.indent)
    text = ET.tostring(element, encoding='unicode')
    logger.debug(f"Encoded tree '{tree.name}' to {len(text)} XML characters")
    return text


def save(
    tree: SettingsTree,
    target: str | PathLike[str] | IO[bytes],
    options: CodecOptions | None = None,
) -> None:
    """Write a tree as an XML document to a file path or binary stream."""
    options = options or DEFAULT_OPTIONS
    element = to_element(tree, options)
    if options.indent is not None:
        ET.indent(element, space=options.indent)
    ET.ElementTree(element).write(target, encoding=options.encoding, xml_declaration=True)


# ==================== Decoding ====================


class _ElementReader:
    """Rebuilds a tree from parsed elements."""

    def __init__(self, registry: CodecRegistry | None, options: CodecOptions) -> None:
        self._registry = registry if registry is not None else default_registry
        self._options = options

    def read(self, element: ET.Element) -> SettingsTree:
        if element.tag != CONFIG_TAG:
            raise MalformedDocumentError(
                f"Root element must be <{CONFIG_TAG}>, not <{element.tag}>"
            )
        tree = SettingsTree(self._key(element), self._registry)
        self._read_children(element, tree, 0)
        return tree

    def _attr(self, element: ET.Element, name: str) -> str:
        value = element.get(name)
        if value is None:
            raise MalformedDocumentError(
                f"<{element.tag}> is missing required attribute '{name}'"
            )
        return value

    def _key(self, element: ET.Element) -> str:
        return unescape_text(self._attr(element, 'key'))

    def _read_children(self, element: ET.Element, tree: SettingsTree, depth: int) -> None:
        for child in element:
            key = self._key(child)
            if tree.contains_key(key):
                raise MalformedDocumentError(f"Duplicate key '{key}' in config '{tree.name}'")
            if child.tag == CONFIG_TAG:
                if depth + 1 > self._options.max_depth:
                    raise MalformedDocumentError(
                        f"Config '{key}' exceeds max_depth={self._options.max_depth}"
                    )
                self._read_children(child, tree.add_subtree(key), depth + 1)
            elif child.tag == ENTRY_TAG:
                tree.add_entry(self._read_entry(child, key))
            else:
                raise MalformedDocumentError(f"Unexpected element <{child.tag}> in '{tree.name}'")

    def _is_null(self, element: ET.Element) -> bool:
        flag = element.get('isnull', 'false')
        if flag not in ('true', 'false'):
            raise MalformedDocumentError(f"Invalid isnull value '{flag}'")
        return flag == 'true'

    def _read_entry(self, element: ET.Element, key: str) -> SettingsEntry:
        type_name = self._attr(element, 'type')
        try:
            kind = EntryKind.from_type_name(type_name)
        except ValueError as e:
            raise MalformedDocumentError(f"{e} for key '{key}'") from None
        if kind is EntryKind.SUBTREE:
            raise MalformedDocumentError(f"Entry '{key}' cannot have type '{type_name}'")

        if self._is_null(element):
            if not kind.is_nullable:
                raise MalformedDocumentError(f"{kind.name} entry '{key}' cannot be null")
            value = None
        else:
            value = self._read_value(element, kind, key)
        try:
            return SettingsEntry(key, kind, value)
        except (TypeError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid {kind.name} value for '{key}': {e}") from e

    def _size(self, element: ET.Element, key: str) -> int:
        size = self._attr(element, 'size')
        if not _SIZE_RE.fullmatch(size):
            raise MalformedDocumentError(f"Invalid size '{size}' for '{key}'")
        return int(size)

    def _read_value(self, element: ET.Element, kind: EntryKind, key: str) -> Any:
        if kind is EntryKind.BYTE_ARRAY:
            size = self._size(element, key)
            try:
                value = bytes.fromhex(element.text or '')
            except ValueError:
                raise MalformedDocumentError(f"Invalid hex data for '{key}'") from None
            if len(value) != size:
                raise MalformedDocumentError(
                    f"'{key}' declares size {size} but holds {len(value)} bytes"
                )
            return value
        if kind is EntryKind.VALUE:
            return self._read_extensible(element, key)
        if kind.is_array:
            size = self._size(element, key)
            items = list(element)
            if len(items) != size:
                raise MalformedDocumentError(
                    f"'{key}' declares size {size} but has {len(items)} items"
                )
            values = []
            for item in items:
                if item.tag != ITEM_TAG:
                    raise MalformedDocumentError(f"Unexpected element <{item.tag}> in '{key}'")
                if self._is_null(item):
                    values.append(None)
                elif kind.element_kind is EntryKind.VALUE:
                    values.append(self._read_extensible(item, key))
                else:
                    values.append(self._parse_scalar(kind.element_kind, item.text or '', key))
            return values
        if len(element):
            raise MalformedDocumentError(f"Scalar entry '{key}' must not have child elements")
        return self._parse_scalar(kind, element.text or '', key)

    def _read_extensible(self, element: ET.Element, key: str) -> ExtensibleValue:
        type_id = unescape_text(self._attr(element, 'typeid'))
        try:
            payload = base64.b64decode(element.text or '', validate=True)
        except binascii.Error:
            raise MalformedDocumentError(f"Invalid base64 payload for '{key}'") from None
        if self._options.check_registered and not self._registry.is_registered(type_id):
            raise UnknownExtensibleTypeError(type_id)
        return ExtensibleValue(type_id, payload)

    def _parse_scalar(self, kind: EntryKind, text: str, key: str) -> Any:
        if kind in INT_RANGES:
            if not _INTEGER_RE.fullmatch(text):
                raise MalformedDocumentError(f"Invalid {kind.name} '{text}' for '{key}'")
            return int(text)
        if kind is EntryKind.DOUBLE:
            return self._parse_double(text, key)
        if kind is EntryKind.BOOLEAN:
            if text not in ('true', 'false'):
                raise MalformedDocumentError(f"Invalid BOOLEAN '{text}' for '{key}'")
            return text == 'true'
        return unescape_text(text)

    def _parse_double(self, text: str, key: str) -> float:
        match = _NAN_RE.fullmatch(text)
        if match:
            value = _DOUBLE.unpack(bytes.fromhex(match.group(1)))[0]
            if value == value:
                raise MalformedDocumentError(f"'{text}' for '{key}' is not a NaN bit pattern")
            return value
        try:
            return float(text)
        except ValueError:
            raise MalformedDocumentError(f"Invalid DOUBLE '{text}' for '{key}'") from None


def from_element(
    element: ET.Element,
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Rebuild a tree from its root ``config`` element.

    Raises:
        MalformedDocumentError: On any structural inconsistency. No partial
            tree is returned.
        UnknownExtensibleTypeError: With check_registered, for unknown
            extensible type ids.
    """
    return _ElementReader(registry, options or DEFAULT_OPTIONS).read(element)


def from_xml(
    text: str | bytes,
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Decode an XML document string produced by to_xml()."""
    try:
        element = ET.fromstring(text)
    except ET.ParseError as e:
        raise MalformedDocumentError(f"Not a well-formed XML document: {e}") from e
    tree = from_element(element, registry, options)
    logger.debug(f"Decoded tree '{tree.name}' from {len(text)} XML characters")
    return tree


def load(
    source: str | PathLike[str] | IO[bytes],
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Read a tree from an XML file path or binary stream."""
    try:
        element = ET.parse(source).getroot()
    except ET.ParseError as e:
        raise MalformedDocumentError(f"Not a well-formed XML document: {e}") from e
    return from_element(element, registry, options)
