# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Codec options shared by the binary and XML encodings."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_DEPTH = 64
"""Maximum sub-tree nesting accepted by the codecs (the root is depth 0)."""


@dataclass(frozen=True)
class CodecOptions:
    """Settings controlling how trees are encoded and decoded.

    Attributes:
        max_depth: Deepest sub-tree nesting written or read. Deeper trees
            are rejected instead of recursing without bound.
        check_registered: If True, decoding fails with
            UnknownExtensibleTypeError as soon as an extensible value's
            type id has no codec in the target registry. If False,
            payloads are carried opaquely and resolved on get_value().
        indent: Indentation used to pretty-print XML, None for compact
            output.
        encoding: Character encoding of saved XML documents.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    check_registered: bool = False
    indent: str | None = '  '
    encoding: str = 'utf-8'

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, not {self.max_depth}")


DEFAULT_OPTIONS = CodecOptions()
