# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Encodings for SettingsTree.

Available codecs:
- binary_codec: compact big-endian byte frames
- xml_codec: self-describing XML document

Both codecs carry extensible values as (type id, payload) and resolve them
through the same CodecRegistry contract.

Example:
    >>> from genro_settingstree.serialization import binary_codec, xml_codec
    >>> restored = binary_codec.decode(binary_codec.encode(tree))
    >>> restored.is_identical(xml_codec.from_xml(xml_codec.to_xml(tree)))
    True
"""

from . import binary_codec, xml_codec
from .binary_codec import decode as from_bytes
from .binary_codec import encode as to_bytes
from .xml_codec import from_xml, to_xml

__all__ = [
    'binary_codec',
    'xml_codec',
    'to_bytes',
    'from_bytes',
    'to_xml',
    'from_xml',
]
