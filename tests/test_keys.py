"""
Test suite for nearauth_core.keys — raw key decoding and ed25519 derivation.

Covers:
  - Determinism of derive_keypair / account_id_for
  - RFC 8032 golden vectors
  - Accepted raw key encodings (hex, 0x, short hex, base64, raw bytes)
  - Rejected key material
  - NEAR key strings and signing
"""

import base64
import unittest

import base58

from nearauth_core.errors import ErrorKind, InvalidKeyMaterial
from nearauth_core.keys import (
    SECP256K1_ORDER,
    KeyPairEd25519,
    PublicKey,
    account_id_for,
    decode_raw_key,
    derive_keypair,
)

from conftest import (
    RFC8032_PUBLIC,
    RFC8032_PUBLIC_2,
    RFC8032_SEED,
    RFC8032_SEED_2,
)

DEADBEEF = "deadbeef" * 8
DEADBEEF_ACCOUNT = "ff57575dc7af8bfc4d0837cc1ce2017b686a88145dc5579a958e3462fe9a908e"


class TestDeterminism(unittest.TestCase):

    def test_same_key_same_pair(self):
        k1 = derive_keypair(DEADBEEF)
        k2 = derive_keypair(DEADBEEF)
        self.assertEqual(k1, k2)
        self.assertEqual(k1.secret_key, k2.secret_key)
        self.assertEqual(k1.public_key, k2.public_key)

    def test_account_id_stable(self):
        ids = {account_id_for(derive_keypair(DEADBEEF)) for _ in range(5)}
        self.assertEqual(len(ids), 1)

    def test_deadbeef_seed_is_the_raw_key(self):
        pair = derive_keypair(DEADBEEF)
        self.assertEqual(pair.seed, bytes.fromhex(DEADBEEF))
        self.assertEqual(pair.secret_key[32:], pair.public_key.data)

    def test_different_keys_different_accounts(self):
        a = account_id_for(derive_keypair(RFC8032_SEED))
        b = account_id_for(derive_keypair(RFC8032_SEED_2))
        self.assertNotEqual(a, b)


class TestGoldenVectors(unittest.TestCase):

    def test_rfc8032_test1_account_id(self):
        self.assertEqual(account_id_for(derive_keypair(RFC8032_SEED)), RFC8032_PUBLIC)

    def test_rfc8032_test2_account_id(self):
        self.assertEqual(account_id_for(derive_keypair(RFC8032_SEED_2)), RFC8032_PUBLIC_2)

    def test_deadbeef_golden_account(self):
        pair = derive_keypair(DEADBEEF)
        self.assertEqual(account_id_for(pair), DEADBEEF_ACCOUNT)
        self.assertEqual(
            pair.public_key.to_string(),
            "ed25519:" + base58.b58encode(bytes.fromhex(DEADBEEF_ACCOUNT)).decode(),
        )
        self.assertEqual(derive_keypair("0x" + DEADBEEF.upper()), pair)

    def test_rfc8032_test1_signature(self):
        pair = derive_keypair(RFC8032_SEED)
        expected = bytes.fromhex(
            "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e06522490155"
            "5fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
        )
        self.assertEqual(pair.sign(b""), expected)

    def test_account_id_is_lowercase_hex(self):
        account_id = account_id_for(derive_keypair(DEADBEEF))
        self.assertEqual(len(account_id), 64)
        self.assertEqual(account_id, account_id.lower())
        bytes.fromhex(account_id)


class TestRawKeyEncodings(unittest.TestCase):

    def test_0x_prefix(self):
        self.assertEqual(derive_keypair("0x" + RFC8032_SEED), derive_keypair(RFC8032_SEED))

    def test_uppercase_and_whitespace(self):
        self.assertEqual(derive_keypair(f"  {RFC8032_SEED.upper()}\n"),
                         derive_keypair(RFC8032_SEED))

    def test_short_hex_is_left_padded(self):
        self.assertEqual(decode_raw_key("1"), b"\x00" * 31 + b"\x01")
        self.assertEqual(decode_raw_key("abc"), bytes.fromhex("0" * 61 + "abc"))

    def test_base64(self):
        encoded = base64.b64encode(bytes.fromhex(RFC8032_SEED)).decode()
        self.assertEqual(derive_keypair(encoded), derive_keypair(RFC8032_SEED))

    def test_raw_bytes(self):
        raw = bytes.fromhex(RFC8032_SEED)
        self.assertEqual(derive_keypair(raw), derive_keypair(RFC8032_SEED))
        self.assertEqual(derive_keypair(bytearray(raw)), derive_keypair(RFC8032_SEED))

    def test_largest_valid_scalar(self):
        key = (SECP256K1_ORDER - 1).to_bytes(32, "big")
        self.assertEqual(decode_raw_key(key.hex()), key)


class TestInvalidKeyMaterial(unittest.TestCase):

    def assertInvalid(self, raw):
        with self.assertRaises(InvalidKeyMaterial) as ctx:
            derive_keypair(raw)
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_KEY_MATERIAL)
        return ctx.exception

    def test_zero_scalar(self):
        self.assertInvalid("00" * 32)

    def test_scalar_at_curve_order(self):
        self.assertInvalid(SECP256K1_ORDER.to_bytes(32, "big").hex())

    def test_scalar_above_curve_order(self):
        self.assertInvalid("ff" * 32)

    def test_hex_too_long(self):
        self.assertInvalid("1" * 65)

    def test_not_hex_or_base64(self):
        self.assertInvalid("not a key!")

    def test_base64_wrong_length(self):
        self.assertInvalid(base64.b64encode(b"\x01" * 16).decode())

    def test_empty(self):
        self.assertInvalid("")
        self.assertInvalid("0x")

    def test_bytes_wrong_length(self):
        self.assertInvalid(b"\x01" * 31)

    def test_unsupported_type(self):
        self.assertInvalid(None)
        self.assertInvalid(12345)

    def test_message_does_not_echo_key(self):
        bad = "ff" * 32
        exc = self.assertInvalid(bad)
        self.assertNotIn(bad, str(exc))


class TestKeyStrings(unittest.TestCase):

    def test_public_key_string(self):
        pair = derive_keypair(RFC8032_SEED)
        encoded = pair.public_key.to_string()
        self.assertTrue(encoded.startswith("ed25519:"))
        self.assertEqual(base58.b58decode(encoded.split(":", 1)[1]).hex(), RFC8032_PUBLIC)
        self.assertEqual(PublicKey.from_string(encoded), pair.public_key)

    def test_secret_key_string_roundtrip(self):
        pair = derive_keypair(DEADBEEF)
        self.assertEqual(KeyPairEd25519.from_string(pair.to_string()), pair)

    def test_from_bare_seed_string(self):
        seed_b58 = base58.b58encode(bytes.fromhex(RFC8032_SEED)).decode()
        pair = KeyPairEd25519.from_string(seed_b58)
        self.assertEqual(pair.public_key.data.hex(), RFC8032_PUBLIC)

    def test_mismatched_public_half(self):
        a = derive_keypair(RFC8032_SEED)
        b = derive_keypair(RFC8032_SEED_2)
        forged = "ed25519:" + base58.b58encode(a.seed + b.public_key.data).decode()
        with self.assertRaises(InvalidKeyMaterial):
            KeyPairEd25519.from_string(forged)

    def test_unknown_key_type(self):
        with self.assertRaises(InvalidKeyMaterial):
            KeyPairEd25519.from_string("secp256k1:abc")

    def test_bad_base58(self):
        with self.assertRaises(InvalidKeyMaterial):
            PublicKey.from_string("ed25519:0OIl")

    def test_repr_hides_secret(self):
        pair = derive_keypair(DEADBEEF)
        text = repr(pair)
        self.assertNotIn(pair.to_string(), text)
        self.assertNotIn(DEADBEEF, text)
        self.assertIn(pair.public_key.to_string(), text)


class TestSigning(unittest.TestCase):

    def test_sign_and_verify(self):
        pair = derive_keypair(DEADBEEF)
        sig = pair.sign(b"hello near")
        self.assertEqual(len(sig), 64)
        self.assertTrue(pair.verify(b"hello near", sig))
        self.assertTrue(pair.public_key.verify(b"hello near", sig))

    def test_verify_rejects_other_message(self):
        pair = derive_keypair(DEADBEEF)
        sig = pair.sign(b"hello near")
        self.assertFalse(pair.verify(b"hello there", sig))

    def test_verify_rejects_other_key(self):
        sig = derive_keypair(RFC8032_SEED).sign(b"msg")
        self.assertFalse(derive_keypair(RFC8032_SEED_2).verify(b"msg", sig))
