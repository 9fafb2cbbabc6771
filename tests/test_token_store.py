"""Tests for the persisted token cache store."""

import os
import stat
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

import sys

# Allow importing m365_mcp when running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
os.environ.setdefault("M365_MCP_HOME", tempfile.mkdtemp(prefix="m365-mcp-test-"))

from m365_mcp.auth import token_store as token_store_module
from m365_mcp.auth.errors import CacheIOError
from m365_mcp.auth.token_store import (
    FileBackend,
    KeyringBackend,
    TokenStore,
    create_token_store,
)
from tests.fakes import FakeKeyring

BLOB = b'{"AccessToken": {}, "Account": {"a": {"username": "ada@contoso.com"}}}'


class BrokenBackend:
    """Backend whose every operation fails."""

    name = "broken"

    def verify(self):
        return True

    def read(self):
        raise CacheIOError("read failed")

    def write(self, data):
        raise CacheIOError("write failed")

    def delete(self):
        raise CacheIOError("delete failed")


class TestFileBackedStore(unittest.TestCase):
    """TokenStore over a plain file."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "cache" / "token-cache.bin"
        self.store = TokenStore([FileBackend(self.path)])

    def tearDown(self):
        self._tmp.cleanup()

    def test_load_missing_returns_none(self):
        self.assertIsNone(self.store.load())

    def test_save_then_load_round_trips(self):
        self.store.save(BLOB)
        self.assertEqual(self.store.load(), BLOB)
        # A second store over the same file sees the same bytes
        self.assertEqual(TokenStore([FileBackend(self.path)]).load(), BLOB)

    def test_save_replaces_previous_blob(self):
        self.store.save(BLOB)
        self.store.save(b"{}")
        self.assertEqual(self.store.load(), b"{}")

    def test_corrupt_blob_is_discarded(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_bytes(b"\x00\xffnot json")
        self.assertIsNone(self.store.load())
        self.assertFalse(self.path.exists())
        # The store keeps working after discarding the bad artifact
        self.store.save(BLOB)
        self.assertEqual(self.store.load(), BLOB)

    def test_non_object_json_is_corrupt(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_bytes(b"[1, 2, 3]")
        self.assertIsNone(self.store.load())
        self.assertFalse(self.path.exists())

    def test_clear_removes_blob(self):
        self.store.save(BLOB)
        self.store.clear()
        self.assertFalse(self.path.exists())
        self.assertIsNone(self.store.load())

    def test_clear_without_blob_is_noop(self):
        self.store.clear()
        self.assertIsNone(self.store.load())

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    def test_file_is_owner_only(self):
        self.store.save(BLOB)
        mode = stat.S_IMODE(self.path.stat().st_mode)
        self.assertEqual(mode, 0o600)

    def test_no_temp_files_left_behind(self):
        self.store.save(BLOB)
        self.store.save(BLOB)
        self.assertEqual([p.name for p in self.path.parent.iterdir()], [self.path.name])

    def test_concurrent_saves_leave_one_valid_blob(self):
        blobs = [f'{{"writer": {i}}}'.encode() for i in range(8)]
        threads = [threading.Thread(target=self.store.save, args=(b,)) for b in blobs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertIn(self.store.load(), blobs)


class TestStoreFailures(unittest.TestCase):
    """Storage errors never escape the store."""

    def test_failures_are_absorbed(self):
        store = TokenStore([BrokenBackend()])
        self.assertIsNone(store.load())
        store.save(BLOB)
        store.clear()

    def test_unwritable_location(self):
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "not-a-dir"
            blocker.write_text("x")
            store = TokenStore([FileBackend(blocker / "token-cache.bin")])
            store.save(BLOB)
            self.assertIsNone(store.load())

    def test_empty_candidates_rejected(self):
        with self.assertRaises(ValueError):
            TokenStore([])


class TestKeyringSelection(unittest.TestCase):
    """Keyring is preferred when usable, the file otherwise."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.file_backend = FileBackend(Path(self._tmp.name) / "token-cache.bin")

    def tearDown(self):
        self._tmp.cleanup()

    def test_working_keyring_is_selected(self):
        fake = FakeKeyring()
        store = TokenStore([KeyringBackend(backend=fake), self.file_backend])
        self.assertEqual(store.backend.name, "keyring")
        # The verification entry is removed again
        self.assertEqual(fake.entries, {})

        store.save(BLOB)
        self.assertEqual(store.load(), BLOB)
        self.assertFalse(self.file_backend.path.exists())

    def test_unusable_keyring_falls_back_to_file(self):
        store = TokenStore([KeyringBackend(backend=FakeKeyring(fail=True)), self.file_backend])
        self.assertEqual(store.backend.name, "file")
        store.save(BLOB)
        self.assertEqual(self.file_backend.path.read_bytes(), BLOB)

    def test_corrupt_keyring_entry_is_discarded(self):
        fake = FakeKeyring()
        backend = KeyringBackend(service="svc", username="cache", backend=fake)
        store = TokenStore([backend, self.file_backend])
        fake.entries[("svc", "cache")] = "%%% not base64 %%%"
        self.assertIsNone(store.load())
        self.assertNotIn(("svc", "cache"), fake.entries)

    def test_keyring_clear_without_entry(self):
        store = TokenStore([KeyringBackend(backend=FakeKeyring()), self.file_backend])
        store.clear()
        self.assertIsNone(store.load())

    def test_file_mode_skips_keyring(self):
        store = create_token_store("file", cache_path=self.file_backend.path)
        self.assertEqual(store.backend.name, "file")

    def test_keyring_mode_never_falls_back_to_file(self):
        with mock.patch.object(token_store_module.keyring, "get_keyring", return_value=FakeKeyring(fail=True)), \
                mock.patch.object(token_store_module, "logger") as logger:
            store = create_token_store("keyring", cache_path=self.file_backend.path)
            store.save(BLOB)
            self.assertIsNone(store.load())
        self.assertEqual(store.backend.name, "keyring")
        self.assertFalse(self.file_backend.path.exists())
        logger.warning.assert_any_call("token_store.backend_unverified", backend="keyring")

    def test_keyring_mode_uses_working_keyring(self):
        fake = FakeKeyring()
        with mock.patch.object(token_store_module.keyring, "get_keyring", return_value=fake):
            store = create_token_store("keyring", cache_path=self.file_backend.path)
            store.save(BLOB)
            self.assertEqual(store.load(), BLOB)
        self.assertFalse(self.file_backend.path.exists())

    def test_platform_keyring_errors_are_absorbed(self):
        fake = FakeKeyring()
        store = TokenStore([KeyringBackend(backend=fake), self.file_backend])
        store.save(BLOB)
        fake.error = RuntimeError("org.freedesktop.DBus.Error.ServiceUnknown")
        self.assertIsNone(store.load())
        store.save(BLOB)
        store.clear()

    def test_unknown_mode_rejected(self):
        with self.assertRaises(ValueError):
            create_token_store("vault", cache_path=self.file_backend.path)


if __name__ == "__main__":
    unittest.main()
