# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SettingsTree exceptions."""

from __future__ import annotations


class SettingsTreeError(Exception):
    """Base exception for SettingsTree errors."""

    pass


class InvalidKeyError(SettingsTreeError, ValueError):
    """Raised when a value is written under a null or non-string key."""

    pass


class KeyNotFoundError(SettingsTreeError, KeyError):
    """Raised when reading a key that is not present and no default is given."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ''


class TypeMismatchError(SettingsTreeError, TypeError):
    """Raised when a key is read as a different kind than it was stored."""

    pass


class UnsupportedTypeError(SettingsTreeError, TypeError):
    """Raised when adding an extensible value whose type has no codec."""

    pass


class UnknownExtensibleTypeError(SettingsTreeError, LookupError):
    """Raised when an extensible value's type id has no registered codec.

    This is recoverable: callers may skip the entry and continue.

    Attributes:
        type_id: The unresolved type identifier.
    """

    def __init__(self, type_id: str, message: str | None = None) -> None:
        self.type_id = type_id
        super().__init__(message or f"No codec registered for type id '{type_id}'")


class CodecRegistrationError(SettingsTreeError, ValueError):
    """Raised when a codec registration collides with an existing one."""

    pass


class MalformedStreamError(SettingsTreeError, ValueError):
    """Raised when a binary stream is structurally inconsistent."""

    pass


class MalformedDocumentError(SettingsTreeError, ValueError):
    """Raised when an XML settings document is structurally inconsistent."""

    pass
