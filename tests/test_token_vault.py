"""Tests for the AES-256-GCM token vault."""

import base64
import os
import unittest
from unittest import mock

from support import VAULT_KEY, make_vault

from mailsync.auth.token_vault import (
    KEY_LENGTH,
    NONCE_LENGTH,
    TAG_LENGTH,
    TokenVault,
    clear_key_cache,
    decode_key,
    generate_key,
    load_vault_key,
)
from mailsync.errors import ConfigurationError, DecryptionError


class TestTokenVault(unittest.TestCase):
    def test_round_trip(self):
        vault = make_vault()
        blob = vault.seal("1//refresh-token-value")
        self.assertEqual(len(blob), NONCE_LENGTH + TAG_LENGTH + len("1//refresh-token-value"))
        self.assertEqual(vault.open(blob), "1//refresh-token-value")

    def test_seal_uses_fresh_nonce(self):
        vault = make_vault()
        a = vault.seal("same")
        b = vault.seal("same")
        self.assertNotEqual(a[:NONCE_LENGTH], b[:NONCE_LENGTH])
        self.assertEqual(vault.open(a), vault.open(b))

    def test_flipped_byte_fails_in_every_region(self):
        vault = make_vault()
        blob = vault.seal("secret")
        for index in (0, NONCE_LENGTH, NONCE_LENGTH + TAG_LENGTH):
            tampered = bytearray(blob)
            tampered[index] ^= 0x01
            with self.subTest(index=index), self.assertRaises(DecryptionError):
                vault.open(bytes(tampered))

    def test_wrong_key_fails(self):
        blob = make_vault().seal("secret")
        other = TokenVault(bytes(reversed(VAULT_KEY)))
        with self.assertRaises(DecryptionError):
            other.open(blob)

    def test_short_blob_is_malformed(self):
        with self.assertRaises(DecryptionError):
            make_vault().open(b"\x00" * (NONCE_LENGTH + TAG_LENGTH - 1))

    def test_wrong_key_length_rejected(self):
        with self.assertRaises(ConfigurationError):
            TokenVault(b"short")


class TestVaultKey(unittest.TestCase):
    def setUp(self):
        clear_key_cache()

    def tearDown(self):
        clear_key_cache()

    def test_generated_key_decodes_to_32_bytes(self):
        self.assertEqual(len(decode_key(generate_key())), KEY_LENGTH)

    def test_key_loaded_from_environment(self):
        raw = base64.b64encode(VAULT_KEY).decode("ascii")
        with mock.patch.dict(os.environ, {"TOKEN_VAULT_KEY": raw}):
            self.assertEqual(load_vault_key(), VAULT_KEY)
            blob = TokenVault().seal("from-env")
        self.assertEqual(make_vault().open(blob), "from-env")

    def test_missing_key_is_configuration_error(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigurationError):
                load_vault_key()

    def test_bad_key_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            decode_key("not base64!!")
        with self.assertRaises(ConfigurationError):
            decode_key(base64.b64encode(b"\x01" * 16).decode("ascii"))


if __name__ == "__main__":
    unittest.main()
