import os
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from errors import CredentialStoreError
from spotify_api.token_manager import Credentials, TokenManager


def _credentials(**overrides) -> Credentials:
    values = dict(
        client_id="cid",
        access_token="at",
        refresh_token="rt",
        expires_at=1700000000.25,
        scope="user-read-playback-state user-modify-playback-state",
    )
    values.update(overrides)
    return Credentials(**values)


class TestTokenManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "nested", "credentials.json")
        self.tm = TokenManager(self.path)

    def tearDown(self):
        self._tmp.cleanup()

    def test_load_without_file_returns_none(self):
        self.assertIsNone(self.tm.load())

    def test_roundtrip_keeps_all_fields(self):
        creds = _credentials()
        self.tm.save(creds)
        self.assertEqual(self.tm.load(), creds)

    def test_save_of_loaded_credentials_is_byte_identical(self):
        self.tm.save(_credentials(refresh_token=None, scope=None))
        with open(self.path, "rb") as f:
            first = f.read()

        self.tm.save(self.tm.load())
        with open(self.path, "rb") as f:
            second = f.read()

        self.assertEqual(first, second)
        self.assertEqual(os.listdir(os.path.dirname(self.path)), ["credentials.json"])

    def test_corrupted_file_raises_credential_store_error(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        with self.assertRaises(CredentialStoreError):
            self.tm.load()

    def test_incomplete_file_raises_credential_store_error(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write('{"client_id": "cid"}')
        with self.assertRaises(CredentialStoreError) as ctx:
            self.tm.load()
        self.assertIsInstance(ctx.exception, IOError)

    def test_unwritable_location_raises_credential_store_error(self):
        blocker = os.path.join(self._tmp.name, "blocker")
        with open(blocker, "w", encoding="utf-8") as f:
            f.write("")
        tm = TokenManager(os.path.join(blocker, "credentials.json"))
        with self.assertRaises(CredentialStoreError):
            tm.save(_credentials())

    def test_clear(self):
        self.assertFalse(self.tm.clear())
        self.tm.save(_credentials())
        self.assertTrue(self.tm.clear())
        self.assertIsNone(self.tm.load())

    def test_is_expired_uses_skew(self):
        creds = _credentials(expires_at=1000.0)
        self.assertFalse(TokenManager.is_expired(creds, now=900.0))
        self.assertTrue(TokenManager.is_expired(creds, now=950.0))
        self.assertTrue(TokenManager.is_expired(creds, now=1001.0))

    def test_has_scopes(self):
        creds = _credentials(scope="a b")
        self.assertTrue(TokenManager.has_scopes(creds, ["a"]))
        self.assertFalse(TokenManager.has_scopes(creds, ["a", "c"]))
        self.assertTrue(TokenManager.has_scopes(_credentials(scope=None), ["anything"]))

    def test_from_token_response_computes_expiry(self):
        creds = Credentials.from_spotify_token_response(
            "cid",
            {"access_token": "at", "expires_in": 3600, "token_type": "Bearer"},
            previous_refresh_token="kept",
            now=100.0,
        )
        self.assertEqual(creds.expires_at, 3700.0)
        self.assertEqual(creds.refresh_token, "kept")


if __name__ == "__main__":
    unittest.main(verbosity=2)
