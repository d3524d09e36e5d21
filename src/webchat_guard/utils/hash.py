"""Normalization and one-way hashing of client-supplied identifiers."""

from __future__ import annotations

import re
from typing import Final

from blake3 import blake3

MESSAGE_HASH_MAX_CHARS: Final[int] = 200
_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")


def blake3_hexdigest(data: bytes) -> str:
    """Return the hexadecimal BLAKE3 digest of the supplied data."""
    return blake3(data).hexdigest()


def short_hash(value: str) -> str:
    """Return an opaque, prefixed digest of a text value.

    Lone surrogates are encoded as-is rather than rejected.
    """
    digest = blake3_hexdigest(value.encode("utf-8", "surrogatepass"))
    return f"h{digest}"


def storable_text(value: str) -> str:
    """Replace lone surrogates so the text can be written as UTF-8."""
    return value.encode("utf-8", "replace").decode("utf-8")


def clean_token(value: str | None) -> str | None:
    """Trim a token or secret, mapping blank values to None."""
    if not value:
        return None
    trimmed = storable_text(value).strip()
    return trimmed or None


def hash_identifier(value: str | None) -> str | None:
    """Hash a device fingerprint or user agent for bucketing.

    Matching is case-insensitive and ignores surrounding whitespace.
    """
    cleaned = value.strip() if value else None
    return short_hash(cleaned.lower()) if cleaned else None


def hash_message(message: str | None) -> str | None:
    """Hash the normalized form of a message body.

    Whitespace runs collapse to one space and only the first 200 characters of
    the lower-cased text count, so trivially varied spam hashes the same.
    """
    if not message:
        return None
    compact = _WHITESPACE_RE.sub(" ", message).strip().lower()[:MESSAGE_HASH_MAX_CHARS]
    return short_hash(compact) if compact else None
