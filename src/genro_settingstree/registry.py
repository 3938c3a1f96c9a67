# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Codec registry for extensible values.

Extensible values are domain objects the settings core knows nothing about.
Collaborators register a codec for each of them: a stable type id, the
Python class whose instances it handles, and a pair of pure functions
converting between an instance and its payload bytes.

A tree stores an extensible value as an ExtensibleValue record holding the
type id and the payload, so it can be copied, compared and encoded without
the codec being available. Only reading the value back as a domain object
needs the codec.

Duplicate registrations are rejected with CodecRegistrationError. Passing
``replace=True`` overwrites instead: every codec colliding on the type id or
on the value class is dropped before the new one is stored.

Example:
    >>> registry = CodecRegistry()
    >>> registry.register('point', Point, Point.pack, Point.unpack)
    >>> ev = registry.encode(Point(1, 2))
    >>> ev.type_id
    'point'
    >>> registry.decode(ev)
    Point(x=1, y=2)

    Classes can register themselves::

        @extensible_type('fuzzy.number')
        class FuzzyNumber:
            def to_bytes(self) -> bytes: ...

            @classmethod
            def from_bytes(cls, data: bytes) -> FuzzyNumber: ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from operator import methodcaller
from typing import Any, Callable, Iterator

from .exceptions import (
    CodecRegistrationError,
    UnknownExtensibleTypeError,
    UnsupportedTypeError,
)

logger = logging.getLogger(__name__)

Encoder = Callable[[Any], bytes]
Decoder = Callable[[bytes], Any]


@dataclass(frozen=True)
class ExtensibleValue:
    """An encoded extensible value: type id plus opaque payload."""

    type_id: str
    payload: bytes

    def __repr__(self) -> str:
        return f"ExtensibleValue({self.type_id!r}, <{len(self.payload)} bytes>)"


@dataclass(frozen=True)
class ValueCodec:
    """A registered serialize/deserialize pair for one value class."""

    type_id: str
    value_type: type
    encode: Encoder
    decode: Decoder


class CodecRegistry:
    """Maps type ids to value codecs.

    Lookup for decoding is by type id only. Lookup for encoding is by the
    value's class, trying the exact class first and then its bases in
    method resolution order.
    """

    __slots__ = ('_codecs', '_by_type')

    def __init__(self) -> None:
        self._codecs: dict[str, ValueCodec] = {}
        self._by_type: dict[type, str] = {}

    def __repr__(self) -> str:
        return f"CodecRegistry({list(self._codecs)})"

    def __len__(self) -> int:
        return len(self._codecs)

    def __iter__(self) -> Iterator[ValueCodec]:
        return iter(list(self._codecs.values()))

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._codecs

    def register(
        self,
        type_id: str,
        value_type: type,
        encode: Encoder,
        decode: Decoder,
        replace: bool = False,
    ) -> ValueCodec:
        """Register a codec.

        Args:
            type_id: Stable identifier written alongside every payload.
            value_type: Class whose instances this codec encodes.
            encode: Function turning an instance into payload bytes.
            decode: Function turning payload bytes into an instance.
            replace: If True, overwrite colliding registrations instead
                of rejecting them.

        Returns:
            The registered ValueCodec.

        Raises:
            CodecRegistrationError: If the arguments are invalid, or the
                type id or value class is already registered and
                replace is False.
        """
        if not isinstance(type_id, str) or not type_id:
            raise CodecRegistrationError(f"type_id must be a non-empty string, not {type_id!r}")
        if not isinstance(value_type, type):
            raise CodecRegistrationError(f"value_type must be a class, not {value_type!r}")
        if not callable(encode) or not callable(decode):
            raise CodecRegistrationError(f"encode and decode for '{type_id}' must be callable")

        conflicts = set()
        if type_id in self._codecs:
            conflicts.add(type_id)
        bound_id = self._by_type.get(value_type)
        if bound_id is not None and bound_id != type_id:
            conflicts.add(bound_id)

        if conflicts:
            if not replace:
                raise CodecRegistrationError(
                    f"Cannot register '{type_id}' for {value_type.__name__}: "
                    f"conflicts with {sorted(conflicts)}"
                )
            for conflict in sorted(conflicts):
                logger.warning(f"Replacing extensible codec '{conflict}' with '{type_id}'")
                self._drop(conflict)

        codec = ValueCodec(type_id, value_type, encode, decode)
        self._codecs[type_id] = codec
        self._by_type[value_type] = type_id
        logger.debug(f"Registered extensible codec: type_id={type_id}, type={value_type.__name__}")
        return codec

    def unregister(self, type_id: str) -> bool:
        """Remove the codec for a type id.

        Returns:
            True if a codec was removed, False if none was registered.
        """
        if type_id not in self._codecs:
            return False
        self._drop(type_id)
        logger.debug(f"Unregistered extensible codec: type_id={type_id}")
        return True

    def _drop(self, type_id: str) -> None:
        codec = self._codecs.pop(type_id)
        if self._by_type.get(codec.value_type) == type_id:
            del self._by_type[codec.value_type]

    def is_registered(self, type_id: str) -> bool:
        """True if a codec exists for the type id."""
        return type_id in self._codecs

    def codec_for(self, type_id: str) -> ValueCodec:
        """Return the codec for a type id.

        Raises:
            UnknownExtensibleTypeError: If nothing is registered under it.
        """
        try:
            return self._codecs[type_id]
        except KeyError:
            raise UnknownExtensibleTypeError(type_id) from None

    def codec_for_value(self, value: Any) -> ValueCodec:
        """Return the codec handling a value's class or its nearest base.

        Raises:
            UnsupportedTypeError: If no codec handles the value's class.
        """
        for cls in type(value).__mro__:
            type_id = self._by_type.get(cls)
            if type_id is not None:
                return self._codecs[type_id]
        raise UnsupportedTypeError(
            f"No extensible codec registered for type {type(value).__name__}"
        )

    def encode(self, value: Any) -> ExtensibleValue:
        """Encode a domain value into an ExtensibleValue.

        Raises:
            UnsupportedTypeError: If no codec handles the value's class.
            TypeError: If the codec does not return bytes.
        """
        codec = self.codec_for_value(value)
        payload = codec.encode(value)
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"Codec '{codec.type_id}' returned {type(payload).__name__}, expected bytes"
            )
        return ExtensibleValue(codec.type_id, bytes(payload))

    def decode(self, value: ExtensibleValue) -> Any:
        """Decode an ExtensibleValue into a domain value.

        Raises:
            UnknownExtensibleTypeError: If the type id is not registered.
        """
        return self.codec_for(value.type_id).decode(value.payload)

    def type_ids(self) -> list[str]:
        """Return registered type ids in registration order."""
        return list(self._codecs)

    def clear(self) -> None:
        """Remove every codec."""
        self._codecs.clear()
        self._by_type.clear()


default_registry = CodecRegistry()
"""Process-wide registry used by trees created without an explicit one."""


def register_codec(
    type_id: str,
    value_type: type,
    encode: Encoder,
    decode: Decoder,
    replace: bool = False,
) -> ValueCodec:
    """Register a codec in the process-wide registry."""
    return default_registry.register(type_id, value_type, encode, decode, replace=replace)


def unregister_codec(type_id: str) -> bool:
    """Remove a codec from the process-wide registry."""
    return default_registry.unregister(type_id)


def extensible_type(
    type_id: str,
    registry: CodecRegistry | None = None,
    replace: bool = False,
) -> Callable[[type], type]:
    """Class decorator registering a self-serializing class.

    The class must provide ``to_bytes(self) -> bytes`` and a
    ``from_bytes(cls, data)`` classmethod.

    Args:
        type_id: Stable identifier for the class's payloads.
        registry: Target registry. Defaults to the process-wide one.
        replace: Overwrite colliding registrations.

    Returns:
        Decorator returning the class unchanged.
    """
    def decorator(cls: type) -> type:
        if not callable(getattr(cls, 'to_bytes', None)) or not callable(
            getattr(cls, 'from_bytes', None)
        ):
            raise CodecRegistrationError(
                f"{cls.__name__} must define to_bytes() and from_bytes() to be an extensible type"
            )
        target = registry if registry is not None else default_registry
        target.register(type_id, cls, methodcaller('to_bytes'), cls.from_bytes, replace=replace)
        return cls

    return decorator
