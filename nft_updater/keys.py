"""Private key normalisation.

Wallets export Solana secret keys in several shapes. Every accepted shape is
normalised to the canonical form used for signing: standard base64 text of
the 64-byte ed25519 secret key (seed followed by public key).

Detection order:

1. Phantom-style base58 strings (88 characters starting with ``"2"``).
2. Keypair-file style JSON arrays (``[12, 250, ...]``).
3. Anything else is assumed to already be canonical and passed through.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
import logging
import re
from dataclasses import dataclass

import base58
from solders.keypair import Keypair

from .errors import InvalidKeyEncoding

logger = logging.getLogger(__name__)

SECRET_KEY_LENGTH = 64
BASE58_KEY_LENGTH = 88
BASE58_KEY_PREFIX = "2"
BASE58_ALPHABET_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")


class KeyEncoding(str, enum.Enum):
    BASE58 = "base58"
    BYTE_ARRAY = "byte-array"
    CANONICAL = "canonical"


def _looks_like_canonical_base64(raw: str) -> bool:
    # 64 bytes of base64 are also 88 characters long; padding tells them apart.
    if not raw.endswith("=="):
        return False
    try:
        return len(base64.b64decode(raw, validate=True)) == SECRET_KEY_LENGTH
    except (binascii.Error, ValueError):
        return False


def _decode_base58_key(raw: str) -> bytes:
    if not BASE58_ALPHABET_RE.match(raw):
        raise InvalidKeyEncoding(
            "Private key looks like a base58 wallet export but contains characters "
            "outside the base58 alphabet"
        )
    try:
        decoded = base58.b58decode(raw)
    except ValueError as exc:
        raise InvalidKeyEncoding(f"Could not decode base58 private key: {exc}") from exc
    if len(decoded) != SECRET_KEY_LENGTH:
        raise InvalidKeyEncoding(
            f"Base58 private key decoded to {len(decoded)} bytes; expected {SECRET_KEY_LENGTH}"
        )
    return decoded


def _decode_byte_array(raw: str, *, strict: bool) -> bytes | None:
    """Return key bytes for a 64-entry JSON array, ``None`` to pass through."""

    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        if strict:
            raise InvalidKeyEncoding(f"Bracketed private key is not valid JSON: {exc}") from exc
        logger.debug("Bracketed key is not JSON; passing it through unchanged")
        return None

    if not isinstance(parsed, list) or len(parsed) != SECRET_KEY_LENGTH:
        if strict:
            size = len(parsed) if isinstance(parsed, list) else "non-array"
            raise InvalidKeyEncoding(
                f"Keypair array must contain exactly {SECRET_KEY_LENGTH} integers (got {size})"
            )
        logger.debug("Bracketed key is not a %d-entry array; passing it through", SECRET_KEY_LENGTH)
        return None

    # bool is an int subclass; true/false are never key bytes.
    if not all(isinstance(item, int) and not isinstance(item, bool) for item in parsed):
        raise InvalidKeyEncoding("Keypair array entries must all be integers")
    if not all(0 <= item <= 255 for item in parsed):
        raise InvalidKeyEncoding("Keypair array entries must be between 0 and 255")
    return bytes(parsed)


def detect_and_decode(raw: str, *, strict_arrays: bool = False) -> tuple[str, KeyEncoding]:
    """Return ``(canonical_text, original_encoding)`` for a user-supplied key."""

    if (
        len(raw) == BASE58_KEY_LENGTH
        and raw.startswith(BASE58_KEY_PREFIX)
        and not _looks_like_canonical_base64(raw)
    ):
        secret = _decode_base58_key(raw)
        return base64.b64encode(secret).decode("ascii"), KeyEncoding.BASE58

    if raw.startswith("[") and raw.endswith("]"):
        secret = _decode_byte_array(raw, strict=strict_arrays)
        if secret is not None:
            return base64.b64encode(secret).decode("ascii"), KeyEncoding.BYTE_ARRAY

    return raw, KeyEncoding.CANONICAL


def normalize_private_key(raw: str, *, strict_arrays: bool = False) -> str:
    """Normalise ``raw`` to canonical base64 text, raising ``InvalidKeyEncoding``."""

    canonical, _encoding = detect_and_decode(raw, strict_arrays=strict_arrays)
    return canonical


@dataclass(frozen=True)
class KeyMaterial:
    """Canonical secret key text plus the encoding it was supplied in."""

    canonical: str
    encoding: KeyEncoding = KeyEncoding.CANONICAL

    @classmethod
    def from_input(cls, raw: str, *, strict_arrays: bool = False) -> "KeyMaterial":
        canonical, encoding = detect_and_decode(raw, strict_arrays=strict_arrays)
        return cls(canonical=canonical, encoding=encoding)

    def secret_bytes(self) -> bytes:
        try:
            secret = base64.b64decode(self.canonical, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidKeyEncoding(f"Private key is not valid base64: {exc}") from exc
        if len(secret) != SECRET_KEY_LENGTH:
            raise InvalidKeyEncoding(
                f"Private key is {len(secret)} bytes; expected {SECRET_KEY_LENGTH}"
            )
        return secret

    def to_keypair(self) -> Keypair:
        secret = self.secret_bytes()
        try:
            return Keypair.from_bytes(secret)
        except ValueError as exc:
            raise InvalidKeyEncoding(f"Private key bytes are not a valid keypair: {exc}") from exc

    def __repr__(self) -> str:
        return f"KeyMaterial(encoding={self.encoding.value!r}, canonical=<redacted>)"
