"""The identifier codec — raw identifier, pseudonym and transport token.

Three textual forms of one BSN:

    raw        "123456782"                       (memory only)
    pseudonym  "ps-{holder}-{cipher}"            (stored)
    token      "token-{audience}-{cipher}-{nonce}" (wire)

The cipher is the raw identifier XORed with a 4-byte key derived from the
audience, hex encoded. A token is a pseudonym plus a one-time nonce, so
stripping the nonce is all it takes to go from token to pseudonym; the raw
identifier is only materialised when a pseudonym is re-wrapped for another
audience.

This is reversible indirection, not encryption.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from typing import NamedTuple

from bsnguard.errors import (
    InvalidEncodingError,
    InvalidPseudonymFormatError,
    InvalidTokenFormatError,
)

TOKEN_PREFIX = "token-"
PSEUDONYM_PREFIX = "ps-"
NONCE_BYTES = 4

_MIN_PSEUDONYM_LENGTH = len(PSEUDONYM_PREFIX) + 1
_HEX = re.compile(r"[0-9a-fA-F]*")


class TokenParts(NamedTuple):
    audience: str
    cipher_hex: str
    nonce: str


class PseudonymParts(NamedTuple):
    holder: str
    cipher_hex: str


def derive_key(value: str) -> int:
    """31-bit key: first four SHA-256 bytes, big-endian, shifted right once."""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") >> 1


def _xor(data: bytes, key: int) -> bytes:
    key_bytes = key.to_bytes(4, "big")
    return bytes(b ^ key_bytes[i % 4] for i, b in enumerate(data))


def encode(raw: str, audience: str) -> str:
    """XOR ``raw`` with the audience key and return lowercase hex."""
    if not raw:
        return ""
    return _xor(raw.encode("utf-8", "surrogateescape"), derive_key(audience)).hex()


def check_cipher(cipher_hex: str) -> None:
    """Raise :class:`InvalidEncodingError` unless ``cipher_hex`` is even-length hex."""
    if len(cipher_hex) % 2 != 0:
        raise InvalidEncodingError("invalid hex encoding: odd length")
    if not _HEX.fullmatch(cipher_hex):
        raise InvalidEncodingError("invalid hex encoding: non-hex character")


def decode(cipher_hex: str, audience: str) -> str:
    """Inverse of :func:`encode` for the same audience."""
    if not cipher_hex:
        return ""
    check_cipher(cipher_hex)
    # Bytes that are not UTF-8 survive as surrogates, so encode() restores them.
    return _xor(bytes.fromhex(cipher_hex), derive_key(audience)).decode("utf-8", "surrogateescape")


def create_token(raw: str, audience: str) -> str:
    """Wrap ``raw`` in a fresh transport token for ``audience``."""
    nonce = secrets.token_hex(NONCE_BYTES)
    return f"{TOKEN_PREFIX}{audience}-{encode(raw, audience)}-{nonce}"


def parse_token(token: str) -> TokenParts:
    """Split a token into audience, cipher and nonce.

    The audience may itself contain hyphens: the last two segments are
    always cipher and nonce, everything before them is the audience. A
    cipher that is not even-length hex raises :class:`InvalidEncodingError`.
    """
    if not token.startswith(TOKEN_PREFIX) or len(token) <= len(TOKEN_PREFIX):
        raise InvalidTokenFormatError("invalid token format")
    parts = token[len(TOKEN_PREFIX):].split("-")
    if len(parts) < 3:
        raise InvalidTokenFormatError("invalid token format")
    audience = "-".join(parts[:-2])
    if not audience or not parts[-1]:
        raise InvalidTokenFormatError("invalid token format")
    # Format only; the cipher is not decoded here.
    check_cipher(parts[-2])
    return TokenParts(audience=audience, cipher_hex=parts[-2], nonce=parts[-1])


def parse_pseudonym(pseudonym: str) -> PseudonymParts:
    """Split a pseudonym into holder and cipher at the last hyphen."""
    if len(pseudonym) < _MIN_PSEUDONYM_LENGTH or not pseudonym.startswith(PSEUDONYM_PREFIX):
        raise InvalidPseudonymFormatError("invalid pseudonym format")
    rest = pseudonym[len(PSEUDONYM_PREFIX):]
    last_hyphen = rest.rfind("-")
    if last_hyphen <= 0:
        raise InvalidPseudonymFormatError("invalid pseudonym format")
    return PseudonymParts(holder=rest[:last_hyphen], cipher_hex=rest[last_hyphen + 1:])


def token_to_pseudonym(token: str) -> str:
    """Drop the nonce. The cipher is checked for format and carried over undecoded."""
    parts = parse_token(token)
    return f"{PSEUDONYM_PREFIX}{parts.audience}-{parts.cipher_hex}"


def pseudonym_to_token(pseudonym: str, audience: str) -> str:
    """Re-wrap a stored pseudonym as a fresh token for ``audience``."""
    parts = parse_pseudonym(pseudonym)
    raw = decode(parts.cipher_hex, parts.holder)
    return create_token(raw, audience)


def identifier_to_pseudonym(raw: str, audience: str) -> str:
    """Shorthand for ``token_to_pseudonym(create_token(raw, audience))``."""
    return f"{PSEUDONYM_PREFIX}{audience}-{encode(raw, audience)}"


def token_to_identifier(token: str) -> str:
    """Recover the raw identifier from a token, using its own audience."""
    parts = parse_token(token)
    return decode(parts.cipher_hex, parts.audience)
