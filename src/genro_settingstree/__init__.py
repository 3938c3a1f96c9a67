# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Genro-SettingsTree - Typed hierarchical settings with binary and XML persistence.

A lightweight, zero-dependency library for saving and restoring program
state as ordered trees of strongly-typed entries, with pluggable codecs for
domain values.
"""

__version__ = "0.1.0"

from .entry import SettingsEntry
from .exceptions import (
    CodecRegistrationError,
    InvalidKeyError,
    KeyNotFoundError,
    MalformedDocumentError,
    MalformedStreamError,
    SettingsTreeError,
    TypeMismatchError,
    UnknownExtensibleTypeError,
    UnsupportedTypeError,
)
from .identity import is_identical
from .kinds import EntryKind
from .options import DEFAULT_MAX_DEPTH, CodecOptions
from .registry import (
    CodecRegistry,
    ExtensibleValue,
    ValueCodec,
    default_registry,
    extensible_type,
    register_codec,
    unregister_codec,
)
from .serialization import binary_codec, from_bytes, from_xml, to_bytes, to_xml, xml_codec
from .tree import SettingsTree

__all__ = [
    # Core classes
    "SettingsTree",
    "SettingsEntry",
    "EntryKind",
    "is_identical",
    # Extensible values
    "CodecRegistry",
    "ExtensibleValue",
    "ValueCodec",
    "default_registry",
    "extensible_type",
    "register_codec",
    "unregister_codec",
    # Codecs
    "CodecOptions",
    "DEFAULT_MAX_DEPTH",
    "binary_codec",
    "xml_codec",
    "to_bytes",
    "from_bytes",
    "to_xml",
    "from_xml",
    # Exceptions
    "SettingsTreeError",
    "InvalidKeyError",
    "KeyNotFoundError",
    "TypeMismatchError",
    "UnsupportedTypeError",
    "UnknownExtensibleTypeError",
    "CodecRegistrationError",
    "MalformedStreamError",
    "MalformedDocumentError",
]
