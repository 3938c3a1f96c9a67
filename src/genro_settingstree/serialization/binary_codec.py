# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Binary codec - compact byte encoding of a SettingsTree.

All integers are big-endian. A stream holds exactly one root tree frame::

    tree    := string(name) u32(count) entry{count}
    entry   := string(key) u8(kind code) u8(null flag) [value]
    string  := u32(byte length) utf-8 bytes

Values by kind:
    - INT i32, DOUBLE f64, BOOLEAN u8, CHAR u32 code point, SHORT i16, BYTE i8
    - STRING string
    - arrays: u32(length) followed by the elements; STRING_ARRAY and
      VALUE_ARRAY elements each carry their own u8 null flag
    - BYTE_ARRAY: u32(length) raw bytes
    - VALUE: string(type_id) u32(payload length) payload
    - SUBTREE: a nested tree frame whose name equals the entry key

Nothing is written when the null flag is set. Nested trees are written
depth first, before the next sibling. Versioning, when needed, is stored as
an ordinary entry.

Example:
    >>> data = encode(tree)
    >>> decode(data).is_identical(tree)
    True
"""

from __future__ import annotations

import logging
import struct
from os import PathLike
from typing import IO, Any

from ..entry import SettingsEntry
from ..exceptions import MalformedStreamError, SettingsTreeError, UnknownExtensibleTypeError
from ..kinds import EntryKind
from ..options import DEFAULT_OPTIONS, CodecOptions
from ..registry import CodecRegistry, ExtensibleValue, default_registry
from ..tree import SettingsTree

logger = logging.getLogger(__name__)

_U8 = struct.Struct('>B')
_U32 = struct.Struct('>I')

_NUMBER_FORMATS: dict[EntryKind, str] = {
    EntryKind.INT: 'i',
    EntryKind.DOUBLE: 'd',
    EntryKind.SHORT: 'h',
    EntryKind.BYTE: 'b',
}

_NUMBER_STRUCTS: dict[EntryKind, struct.Struct] = {
    kind: struct.Struct('>' + fmt) for kind, fmt in _NUMBER_FORMATS.items()
}

_NULL_FLAGS = {0: False, 1: True}


class BinaryWriter:
    """Accumulates the encoding of one tree."""

    def __init__(self, options: CodecOptions = DEFAULT_OPTIONS) -> None:
        self._buffer = bytearray()
        self._options = options

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write_tree(self, tree: SettingsTree, name: str | None = None, depth: int = 0) -> None:
        """Append a tree frame.

        Raises:
            SettingsTreeError: If sub-trees nest deeper than max_depth.
        """
        if depth > self._options.max_depth:
            raise SettingsTreeError(
                f"Tree nesting exceeds max_depth={self._options.max_depth}"
            )
        self._string(tree.name if name is None else name)
        items = tree.items()
        self._buffer += _U32.pack(len(items))
        for key, item in items:
            self._string(key)
            if isinstance(item, SettingsTree):
                self._buffer += _U8.pack(EntryKind.SUBTREE.code)
                self._buffer += _U8.pack(0)
                self.write_tree(item, key, depth + 1)
                continue
            self._buffer += _U8.pack(item.kind.code)
            self._buffer += _U8.pack(1 if item.is_null else 0)
            if not item.is_null:
                self._value(item.kind, item.value)

    def _string(self, text: str) -> None:
        raw = text.encode('utf-8', 'surrogatepass')
        self._buffer += _U32.pack(len(raw))
        self._buffer += raw

    def _extensible(self, value: ExtensibleValue) -> None:
        self._string(value.type_id)
        self._buffer += _U32.pack(len(value.payload))
        self._buffer += value.payload

    def _value(self, kind: EntryKind, value: Any) -> None:
        if kind in _NUMBER_FORMATS:
            self._buffer += _NUMBER_STRUCTS[kind].pack(value)
        elif kind is EntryKind.BOOLEAN:
            self._buffer += _U8.pack(1 if value else 0)
        elif kind is EntryKind.CHAR:
            self._buffer += _U32.pack(ord(value))
        elif kind is EntryKind.STRING:
            self._string(value)
        elif kind is EntryKind.VALUE:
            self._extensible(value)
        elif kind is EntryKind.BYTE_ARRAY:
            self._buffer += _U32.pack(len(value))
            self._buffer += value
        else:
            self._array(kind, value)

    def _array(self, kind: EntryKind, values: tuple[Any, ...]) -> None:
        element = kind.element_kind
        self._buffer += _U32.pack(len(values))
        if element in _NUMBER_FORMATS:
            self._buffer += struct.pack(f'>{len(values)}{_NUMBER_FORMATS[element]}', *values)
        elif element is EntryKind.BOOLEAN:
            self._buffer += bytes(1 if v else 0 for v in values)
        elif element is EntryKind.CHAR:
            self._buffer += struct.pack(f'>{len(values)}I', *map(ord, values))
        else:
            for value in values:
                self._buffer += _U8.pack(1 if value is None else 0)
                if value is not None:
                    self._value(element, value)


class BinaryReader:
    """Decodes one tree frame from a byte buffer."""

    def __init__(
        self,
        data: bytes,
        registry: CodecRegistry | None = None,
        options: CodecOptions = DEFAULT_OPTIONS,
    ) -> None:
        self._data = bytes(data)
        self._pos = 0
        self._registry = registry if registry is not None else default_registry
        self._options = options

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read_tree(self) -> SettingsTree:
        """Read the root frame and check that nothing follows it.

        Raises:
            MalformedStreamError: On any structural inconsistency.
            UnknownExtensibleTypeError: With check_registered, for an
                extensible value whose type id has no codec.
        """
        tree = SettingsTree(self._string(), self._registry)
        self._read_entries(tree, 0)
        if self.remaining:
            raise MalformedStreamError(
                f"{self.remaining} unexpected trailing bytes at offset {self._pos}"
            )
        return tree

    def _take(self, size: int) -> bytes:
        if size > self.remaining:
            raise MalformedStreamError(
                f"Truncated stream: needed {size} bytes at offset {self._pos}, "
                f"{self.remaining} available"
            )
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def _unpack(self, fmt: struct.Struct) -> Any:
        return fmt.unpack(self._take(fmt.size))[0]

    def _string(self) -> str:
        raw = self._take(self._unpack(_U32))
        try:
            return raw.decode('utf-8', 'surrogatepass')
        except UnicodeDecodeError as e:
            raise MalformedStreamError(f"Invalid UTF-8 string before offset {self._pos}") from e

    def _null_flag(self) -> bool:
        flag = self._unpack(_U8)
        try:
            return _NULL_FLAGS[flag]
        except KeyError:
            raise MalformedStreamError(
                f"Invalid null flag {flag} at offset {self._pos - 1}"
            ) from None

    def _read_entries(self, tree: SettingsTree, depth: int) -> None:
        count = self._unpack(_U32)
        for _ in range(count):
            key = self._string()
            if tree.contains_key(key):
                raise MalformedStreamError(f"Duplicate key '{key}' in tree '{tree.name}'")
            code = self._unpack(_U8)
            try:
                kind = EntryKind.from_code(code)
            except ValueError as e:
                raise MalformedStreamError(f"{e} for key '{key}' at offset {self._pos - 1}") from None
            is_null = self._null_flag()

            if kind is EntryKind.SUBTREE:
                if is_null:
                    raise MalformedStreamError(f"Sub-tree '{key}' is flagged null")
                if depth + 1 > self._options.max_depth:
                    raise MalformedStreamError(
                        f"Sub-tree '{key}' exceeds max_depth={self._options.max_depth}"
                    )
                name = self._string()
                if name != key:
                    raise MalformedStreamError(f"Sub-tree name '{name}' does not match key '{key}'")
                self._read_entries(tree.add_subtree(key), depth + 1)
                continue

            if is_null and not kind.is_nullable:
                raise MalformedStreamError(f"{kind.name} entry '{key}' cannot be null")
            value = None if is_null else self._value(kind)
            try:
                entry = SettingsEntry(key, kind, value)
            except (TypeError, ValueError) as e:
                raise MalformedStreamError(f"Invalid {kind.name} value for '{key}': {e}") from e
            tree.add_entry(entry)

    def _extensible(self) -> ExtensibleValue:
        type_id = self._string()
        payload = self._take(self._unpack(_U32))
        if self._options.check_registered and not self._registry.is_registered(type_id):
            raise UnknownExtensibleTypeError(type_id)
        return ExtensibleValue(type_id, payload)

    def _value(self, kind: EntryKind) -> Any:
        if kind in _NUMBER_FORMATS:
            return self._unpack(_NUMBER_STRUCTS[kind])
        if kind is EntryKind.BOOLEAN:
            flag = self._unpack(_U8)
            if flag not in (0, 1):
                raise MalformedStreamError(f"Invalid boolean byte {flag} at offset {self._pos - 1}")
            return flag == 1
        if kind is EntryKind.CHAR:
            return self._char(self._unpack(_U32))
        if kind is EntryKind.STRING:
            return self._string()
        if kind is EntryKind.VALUE:
            return self._extensible()
        if kind is EntryKind.BYTE_ARRAY:
            return self._take(self._unpack(_U32))
        return self._array(kind)

    def _char(self, code_point: int) -> str:
        try:
            return chr(code_point)
        except (ValueError, OverflowError):
            raise MalformedStreamError(f"Invalid character code point {code_point}") from None

    def _array(self, kind: EntryKind) -> list[Any]:
        element = kind.element_kind
        length = self._unpack(_U32)
        if element in _NUMBER_FORMATS:
            fmt = struct.Struct(f'>{length}{_NUMBER_FORMATS[element]}')
            return list(fmt.unpack(self._take(fmt.size)))
        if element is EntryKind.BOOLEAN:
            raw = self._take(length)
            if any(b > 1 for b in raw):
                raise MalformedStreamError(f"Invalid boolean array for {kind.name}")
            return [b == 1 for b in raw]
        if element is EntryKind.CHAR:
            fmt = struct.Struct(f'>{length}I')
            return [self._char(cp) for cp in fmt.unpack(self._take(fmt.size))]
        values = []
        for _ in range(length):
            values.append(None if self._null_flag() else self._value(element))
        return values


def encode(tree: SettingsTree, options: CodecOptions | None = None) -> bytes:
    """Encode a tree to bytes.

    Raises:
        SettingsTreeError: If sub-trees nest deeper than max_depth.
    """
    writer = BinaryWriter(options or DEFAULT_OPTIONS)
    writer.write_tree(tree)
    data = writer.getvalue()
    logger.debug(f"Encoded tree '{tree.name}' to {len(data)} bytes")
    return data


def decode(
    data: bytes,
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Decode bytes produced by encode() into a new tree.

    Args:
        data: The encoded tree.
        registry: Registry attached to the decoded tree. Defaults to the
            process-wide registry.
        options: Codec options.

    Raises:
        MalformedStreamError: On any structural inconsistency. No partial
            tree is returned.
        UnknownExtensibleTypeError: With check_registered, for unknown
            extensible type ids.
    """
    tree = BinaryReader(data, registry, options or DEFAULT_OPTIONS).read_tree()
    logger.debug(f"Decoded tree '{tree.name}' from {len(data)} bytes")
    return tree


def write(tree: SettingsTree, stream: IO[bytes], options: CodecOptions | None = None) -> int:
    """Encode a tree into a binary stream. Returns the number of bytes."""
    data = encode(tree, options)
    stream.write(data)
    return len(data)


def read(
    stream: IO[bytes],
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Decode a tree from the rest of a binary stream."""
    return decode(stream.read(), registry, options)


def save(
    tree: SettingsTree, path: str | PathLike[str], options: CodecOptions | None = None
) -> None:
    """Encode a tree into a file."""
    with open(path, 'wb') as f:
        write(tree, f, options)


def load(
    path: str | PathLike[str],
    registry: CodecRegistry | None = None,
    options: CodecOptions | None = None,
) -> SettingsTree:
    """Decode a tree from a file."""
    with open(path, 'rb') as f:
        return read(f, registry, options)
