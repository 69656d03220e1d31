"""
Identifier codec: blob ids and quilt patch ids.

Wire form is URL-safe base64 without padding. A blob id decodes to a 32 byte
digest. A quilt patch id decodes to the quilt's blob id followed by a
version byte and the little-endian u16 start/end indices of the patch
inside the quilt.
"""

from __future__ import annotations

import base64
import binascii
import re
import struct
from dataclasses import dataclass

from .errors import InvalidIdentifier

BLOB_ID_LENGTH = 32
QUILT_PATCH_VERSION_1 = 1

_ALPHABET_RE = re.compile(r"[A-Za-z0-9_-]+")
_PATCH_STRUCT = struct.Struct("<BHH")
_U16_MAX = 0xFFFF


def encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def check_identifier(text: str) -> str:
    """Validate alphabet and padding only; return the string unchanged."""
    if not isinstance(text, str) or not text:
        raise InvalidIdentifier(str(text), "empty identifier")
    if "=" in text:
        raise InvalidIdentifier(text, "padding is not allowed")
    if _ALPHABET_RE.fullmatch(text) is None:
        raise InvalidIdentifier(text, "character outside the base64url alphabet")
    return text


def decode(text: str) -> bytes:
    check_identifier(text)
    if len(text) % 4 == 1:
        raise InvalidIdentifier(text, "impossible base64 length")
    try:
        raw = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as e:
        raise InvalidIdentifier(text, str(e)) from e
    # reject non-zero trailing bits so every id has exactly one spelling
    if encode(raw) != text:
        raise InvalidIdentifier(text, "non-canonical encoding")
    return raw


def decode_blob_id(text: str) -> bytes:
    raw = decode(text)
    if len(raw) != BLOB_ID_LENGTH:
        raise InvalidIdentifier(text, f"blob id must be {BLOB_ID_LENGTH} bytes, got {len(raw)}")
    return raw


def blob_id_from_digest(digest: bytes) -> str:
    if len(digest) != BLOB_ID_LENGTH:
        raise ValueError(f"digest must be {BLOB_ID_LENGTH} bytes")
    return encode(digest)


@dataclass(frozen=True)
class QuiltPatchId:
    """Locator of one file inside a stored quilt."""

    quilt_id: str
    start_index: int
    end_index: int
    version: int = QUILT_PATCH_VERSION_1

    def __post_init__(self) -> None:
        decode_blob_id(self.quilt_id)
        if self.version != QUILT_PATCH_VERSION_1:
            raise InvalidIdentifier(self.quilt_id, f"unsupported quilt patch version {self.version}")
        if not (0 <= self.start_index < self.end_index <= _U16_MAX):
            raise InvalidIdentifier(
                self.quilt_id, f"invalid patch range [{self.start_index}, {self.end_index})"
            )

    @classmethod
    def parse(cls, text: str) -> "QuiltPatchId":
        raw = decode(text)
        if len(raw) != BLOB_ID_LENGTH + _PATCH_STRUCT.size:
            raise InvalidIdentifier(text, f"quilt patch id must be {BLOB_ID_LENGTH + _PATCH_STRUCT.size} bytes")
        version, start, end = _PATCH_STRUCT.unpack_from(raw, BLOB_ID_LENGTH)
        if version != QUILT_PATCH_VERSION_1:
            raise InvalidIdentifier(text, f"unsupported quilt patch version {version}")
        if not start < end:
            raise InvalidIdentifier(text, f"invalid patch range [{start}, {end})")
        return cls(quilt_id=encode(raw[:BLOB_ID_LENGTH]), start_index=start, end_index=end, version=version)

    def to_bytes(self) -> bytes:
        return decode_blob_id(self.quilt_id) + _PATCH_STRUCT.pack(self.version, self.start_index, self.end_index)

    def __str__(self) -> str:
        return encode(self.to_bytes())
