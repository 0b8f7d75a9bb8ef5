"""
Key derivation for nearauth.

Turns the raw secp256k1 private key returned by the identity provider into
a NEAR-native ed25519 keypair and the account identifier bound to it:
  - Raw key decoding and validation (hex / base64 / raw bytes)
  - Deterministic ed25519 keypair from the 32-byte seed
  - NEAR key-string encoding (``ed25519:<base58>``)
  - Account identifier = hex of the raw public key bytes

Nothing here performs I/O or consults a randomness source; the same raw key
always yields the same keypair and account.
"""

from __future__ import annotations

import base64
import binascii
import string

import base58
from ecdsa import SECP256k1
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from nearauth_core.errors import InvalidKeyMaterial

KEY_TYPE_ED25519 = "ed25519"
SEED_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SECRET_KEY_LENGTH = 64

# The identity provider hands out secp256k1 private scalars.
SECP256K1_ORDER = SECP256k1.order

_HEX_DIGITS = frozenset(string.hexdigits)


# ===================================================================
#  Raw key decoding
# ===================================================================

def _decode_text(raw: str) -> bytes:
    text = raw.strip()
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    if not text:
        raise InvalidKeyMaterial("raw provider key is empty")

    if set(text) <= _HEX_DIGITS:
        if len(text) > SEED_LENGTH * 2:
            raise InvalidKeyMaterial(
                "hex-encoded provider key is too long",
                details={"hex_digits": len(text)},
            )
        # Providers strip leading zero nibbles; restore the 32-byte width.
        return bytes.fromhex(text.rjust(SEED_LENGTH * 2, "0"))

    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyMaterial(
            "provider key is neither hex nor base64 encoded", cause=exc,
        ) from exc


def decode_raw_key(raw: str | bytes | bytearray) -> bytes:
    """
    Decode an untrusted provider key into a validated 32-byte scalar.

    Accepts a hex string (optionally ``0x``-prefixed, zero-padded on the
    left to 64 digits), a base64 string, or 32 raw bytes.  The value must be
    a valid secp256k1 private key, i.e. ``1 <= k < n``.

    Raises
    ------
    InvalidKeyMaterial
        If the input cannot be decoded or is out of range.
    """
    if isinstance(raw, (bytes, bytearray)):
        key = bytes(raw)
    elif isinstance(raw, str):
        key = _decode_text(raw)
    else:
        raise InvalidKeyMaterial(
            "provider key has unsupported type",
            details={"type": type(raw).__name__},
        )

    if len(key) != SEED_LENGTH:
        raise InvalidKeyMaterial(
            f"provider key must be {SEED_LENGTH} bytes",
            details={"length": len(key)},
        )

    scalar = int.from_bytes(key, "big")
    if not 1 <= scalar < SECP256K1_ORDER:
        raise InvalidKeyMaterial("provider key is not a valid secp256k1 scalar")
    return key


# ===================================================================
#  NEAR key types
# ===================================================================

def _encode_key_string(data: bytes) -> str:
    return f"{KEY_TYPE_ED25519}:{base58.b58encode(data).decode('ascii')}"


def _decode_key_string(encoded: str) -> bytes:
    key_type, sep, body = encoded.partition(":")
    if not sep:
        key_type, body = KEY_TYPE_ED25519, encoded
    if key_type.lower() != KEY_TYPE_ED25519:
        raise InvalidKeyMaterial(
            "unsupported key type", details={"key_type": key_type},
        )
    try:
        return base58.b58decode(body)
    except ValueError as exc:
        raise InvalidKeyMaterial("key string is not valid base58", cause=exc) from exc


class PublicKey:
    """An ed25519 public key in NEAR's ``ed25519:<base58>`` notation."""

    def __init__(self, data: bytes):
        if len(data) != PUBLIC_KEY_LENGTH:
            raise InvalidKeyMaterial(
                f"public key must be {PUBLIC_KEY_LENGTH} bytes",
                details={"length": len(data)},
            )
        self.data = bytes(data)
        self.key_type = KEY_TYPE_ED25519

    @classmethod
    def from_string(cls, encoded: str) -> PublicKey:
        return cls(_decode_key_string(encoded))

    def to_string(self) -> str:
        return _encode_key_string(self.data)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Return True when *signature* is a valid signature of *message*."""
        try:
            VerifyKey(self.data).verify(message, signature)
        except BadSignatureError:
            return False
        return True

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PublicKey) and other.data == self.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"PublicKey({self.to_string()})"


class KeyPairEd25519:
    """
    NEAR ed25519 keypair.

    The secret key follows the NEAR / tweetnacl layout: the 32-byte seed
    followed by the 32-byte public key.  ``repr()`` only shows the public
    half.
    """

    def __init__(self, seed: bytes):
        if len(seed) != SEED_LENGTH:
            raise InvalidKeyMaterial(
                f"ed25519 seed must be {SEED_LENGTH} bytes",
                details={"length": len(seed)},
            )
        self._signing_key = SigningKey(bytes(seed))
        self.public_key = PublicKey(bytes(self._signing_key.verify_key))

    @classmethod
    def from_seed(cls, seed: bytes) -> KeyPairEd25519:
        return cls(seed)

    @classmethod
    def from_string(cls, encoded: str) -> KeyPairEd25519:
        """Parse ``ed25519:<base58(seed || public)>`` (or a bare 32-byte seed)."""
        data = _decode_key_string(encoded)
        if len(data) not in (SEED_LENGTH, SECRET_KEY_LENGTH):
            raise InvalidKeyMaterial(
                "secret key must be 32 or 64 bytes", details={"length": len(data)},
            )
        pair = cls(data[:SEED_LENGTH])
        if len(data) == SECRET_KEY_LENGTH and data[SEED_LENGTH:] != pair.public_key.data:
            raise InvalidKeyMaterial("secret key does not match its public half")
        return pair

    @property
    def seed(self) -> bytes:
        return bytes(self._signing_key)

    @property
    def secret_key(self) -> bytes:
        return self.seed + self.public_key.data

    def to_string(self) -> str:
        return _encode_key_string(self.secret_key)

    def get_public_key(self) -> PublicKey:
        return self.public_key

    def sign(self, message: bytes) -> bytes:
        """Return the detached 64-byte signature of *message*."""
        return bytes(self._signing_key.sign(message).signature)

    def verify(self, message: bytes, signature: bytes) -> bool:
        return self.public_key.verify(message, signature)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, KeyPairEd25519) and other.secret_key == self.secret_key

    def __hash__(self) -> int:
        return hash(self.public_key)

    def __repr__(self) -> str:
        return f"KeyPairEd25519(public_key={self.public_key.to_string()})"


# ===================================================================
#  Derivation
# ===================================================================

def derive_keypair(raw: str | bytes | bytearray) -> KeyPairEd25519:
    """
    Derive the NEAR keypair for a raw provider key.

    The validated 32-byte secp256k1 scalar is used as the ed25519 seed,
    matching the identity provider's own ed25519 export.
    """
    return KeyPairEd25519.from_seed(decode_raw_key(raw))


def account_id_for(pair: KeyPairEd25519) -> str:
    """Account identifier for *pair*: lowercase hex of the raw public key."""
    return pair.public_key.data.hex()
