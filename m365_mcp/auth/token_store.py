"""Durable storage for the serialized MSAL token cache.

The blob lives in the OS keyring when one is usable, otherwise in an
owner-only file under the app home. The backend is picked once, when the
store is built, and never changes afterwards. Storage failures never reach
callers: a cache that cannot be read is an empty cache, and losing it only
costs a new sign-in.

Writers are serialized with an in-process lock. Separate processes sharing
the same cache are not coordinated.
"""

import base64
import binascii
import contextlib
import json
import os
import threading
import uuid
from pathlib import Path
from typing import Protocol, Sequence

import keyring
from keyring.errors import PasswordDeleteError

from m365_mcp.auth.errors import CacheIOError
from m365_mcp.config import KEYRING_SERVICE, KEYRING_USERNAME, TOKEN_CACHE_PATH
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.token_store")


class StorageBackend(Protocol):
    """A place the cache blob can be kept."""

    name: str

    def verify(self) -> bool:
        """Return True if the backend works on this machine."""
        ...

    def read(self) -> bytes | None:
        """Return the stored blob, None if absent. Raises CacheIOError on failure."""
        ...

    def write(self, data: bytes) -> None:
        """Replace the stored blob. Raises CacheIOError on failure."""
        ...

    def delete(self) -> None:
        """Remove the stored blob if present. Raises CacheIOError on failure."""
        ...


class FileBackend:
    """Plain file with owner-only permissions (0600 on POSIX)."""

    name = "file"

    def __init__(self, path: str | Path = TOKEN_CACHE_PATH):
        self.path = Path(path)

    def verify(self) -> bool:
        return True

    def read(self) -> bytes | None:
        if not self.path.exists():
            return None
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise CacheIOError(f"cannot read {self.path}: {e}") from e

    def write(self, data: bytes) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Create the temp file 0600 up front so the blob is never world-readable
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, self.path)
            if os.name == "posix":
                os.chmod(self.path, 0o600)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise CacheIOError(f"cannot write {self.path}: {e}") from e

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheIOError(f"cannot delete {self.path}: {e}") from e


class KeyringBackend:
    """OS secret storage (macOS Keychain, Windows Credential Locker, Secret Service).

    Keyring values are strings, so the blob is stored base64-encoded. Platform
    backends raise their own errors (D-Bus, Win32) besides ``KeyringError``,
    so every failure is reported as CacheIOError.
    """

    name = "keyring"

    def __init__(
        self,
        service: str = KEYRING_SERVICE,
        username: str = KEYRING_USERNAME,
        backend: "keyring.backend.KeyringBackend | None" = None,
    ):
        self.service = service
        self.username = username
        self._backend = backend

    @property
    def backend(self) -> "keyring.backend.KeyringBackend":
        if self._backend is None:
            self._backend = keyring.get_keyring()
        return self._backend

    def verify(self) -> bool:
        """Round-trip a throwaway secret. Any failure means the keyring is unusable."""
        check_user = f"{self.username}-check"
        check_value = uuid.uuid4().hex
        try:
            self.backend.set_password(self.service, check_user, check_value)
            ok = self.backend.get_password(self.service, check_user) == check_value
            self.backend.delete_password(self.service, check_user)
        except Exception as e:
            logger.debug("token_store.keyring_check_failed", error=str(e), error_type=type(e).__name__)
            return False
        return ok

    def read(self) -> bytes | None:
        try:
            value = self.backend.get_password(self.service, self.username)
        except Exception as e:
            raise CacheIOError(f"keyring read failed: {e}") from e
        if value is None:
            return None
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise CacheIOError(f"keyring entry is not valid base64: {e}") from e

    def write(self, data: bytes) -> None:
        try:
            self.backend.set_password(
                self.service, self.username, base64.b64encode(data).decode("ascii")
            )
        except Exception as e:
            raise CacheIOError(f"keyring write failed: {e}") from e

    def delete(self) -> None:
        try:
            self.backend.delete_password(self.service, self.username)
        except PasswordDeleteError:
            pass
        except Exception as e:
            raise CacheIOError(f"keyring delete failed: {e}") from e


def _is_valid_blob(data: bytes) -> bool:
    """MSAL serializes its cache as a JSON object."""
    try:
        return isinstance(json.loads(data.decode("utf-8")), dict)
    except (UnicodeDecodeError, ValueError):
        return False


class TokenStore:
    """Thread-safe persistence for the token cache blob.

    Candidates are tried in order and the first whose ``verify()`` succeeds is
    used. The last candidate is used unconditionally when none verifies, with a
    warning if it fails its own check.
    """

    def __init__(self, candidates: Sequence[StorageBackend]):
        if not candidates:
            raise ValueError("TokenStore needs at least one storage backend")
        self._lock = threading.Lock()
        self.backend = self._select_backend(candidates)
        logger.info("token_store.backend_selected", backend=self.backend.name)

    @staticmethod
    def _select_backend(candidates: Sequence[StorageBackend]) -> StorageBackend:
        for candidate in candidates[:-1]:
            if candidate.verify():
                return candidate
            logger.debug("token_store.backend_unavailable", backend=candidate.name)
        last = candidates[-1]
        if not last.verify():
            logger.warning("token_store.backend_unverified", backend=last.name)
        return last

    def load(self) -> bytes | None:
        """Return the persisted blob, or None when absent, unreadable or corrupt."""
        with self._lock:
            try:
                data = self.backend.read()
            except CacheIOError as e:
                logger.warning("token_store.load_error", backend=self.backend.name, error=str(e))
                self._discard()
                return None
            if data is None:
                return None
            if not _is_valid_blob(data):
                logger.warning("token_store.corrupt_cache", backend=self.backend.name, size=len(data))
                self._discard()
                return None
            return data

    def save(self, data: bytes) -> None:
        """Persist the blob. Failures are logged, not raised."""
        with self._lock:
            try:
                self.backend.write(data)
            except CacheIOError as e:
                logger.error("token_store.save_error", backend=self.backend.name, error=str(e))
                return
        logger.debug("token_store.saved", backend=self.backend.name, size=len(data))

    def clear(self) -> None:
        """Delete the persisted blob (best effort)."""
        with self._lock:
            self._discard()
        logger.debug("token_store.cleared", backend=self.backend.name)

    def _discard(self) -> None:
        """Delete the artifact, swallowing failures. Caller must hold _lock."""
        try:
            self.backend.delete()
        except CacheIOError as e:
            logger.warning("token_store.delete_error", backend=self.backend.name, error=str(e))


def create_token_store(mode: str = "auto", cache_path: str | Path = TOKEN_CACHE_PATH) -> TokenStore:
    """Build the process token store.

    ``mode`` is "auto" (keyring, else file), "keyring" (keyring only) or "file".
    """
    if mode == "file":
        return TokenStore([FileBackend(cache_path)])
    if mode == "keyring":
        return TokenStore([KeyringBackend()])
    if mode != "auto":
        raise ValueError(f"Unknown token store mode {mode!r}; expected auto, keyring or file")
    return TokenStore([KeyringBackend(), FileBackend(cache_path)])
