"""MSAL public client bound to the persistent token store.

Every cache access reloads the persisted blob first and writes it back
afterwards when MSAL changed it, so the store always reflects the latest
accounts and refresh tokens.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import msal
from azure.core.credentials import AccessToken

from m365_mcp.auth.errors import TokenAcquisitionError
from m365_mcp.auth.token_store import TokenStore
from m365_mcp.cloud import CloudType, get_authority, get_graph_scopes
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.identity")

# Error codes meaning the refresh material is no longer accepted
_REAUTH_ERROR_CODES = frozenset(
    {"interaction_required", "invalid_grant", "login_required", "consent_required"}
)


class SilentStatus(str, Enum):
    FRESH = "fresh"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class SilentResult:
    """Outcome of a silent acquisition.

    FRESH carries a token. EXPIRED means an account is cached but its refresh
    material was rejected or is missing. INVALID means there is no cached
    account to refresh.
    """

    status: SilentStatus
    token: AccessToken | None = None
    username: str | None = None
    reason: str | None = None


def token_from_result(result: dict[str, Any]) -> AccessToken:
    """Build an AccessToken from an MSAL result dict."""
    expires_on = int(time.time()) + int(result.get("expires_in", 0))
    return AccessToken(token=result["access_token"], expires_on=expires_on)


def username_from_result(result: dict[str, Any]) -> str | None:
    claims = result.get("id_token_claims") or {}
    return claims.get("preferred_username") or claims.get("upn") or claims.get("name")


def error_reason(result: dict[str, Any]) -> str:
    return result.get("error_description") or result.get("error") or "unknown error"


class IdentityClient:
    """Thin wrapper over ``msal.PublicClientApplication`` with a persisted cache."""

    def __init__(
        self,
        client_id: str,
        tenant_id: str = "common",
        cloud_type: CloudType = CloudType.GLOBAL,
        store: TokenStore | None = None,
        app: Any = None,
        cache: msal.SerializableTokenCache | None = None,
    ):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.cloud_type = cloud_type
        self.scopes = get_graph_scopes(cloud_type)
        self._store = store
        self._lock = threading.RLock()
        self._cache = cache if cache is not None else msal.SerializableTokenCache()
        self._app = app or msal.PublicClientApplication(
            client_id=client_id,
            authority=get_authority(cloud_type, tenant_id),
            token_cache=self._cache,
        )
        self._reload()

    # -- cache binding --

    def _reload(self) -> None:
        """Replace the in-memory cache with the persisted blob.

        Unsaved in-memory changes win over the persisted copy.
        """
        if self._store is None:
            return
        with self._lock:
            if self._cache.has_state_changed:
                return
            data = self._store.load()
            if data is not None:
                self._cache.deserialize(data.decode("utf-8"))

    def _persist(self) -> None:
        if self._store is None:
            return
        with self._lock:
            if self._cache.has_state_changed:
                # serialize() resets has_state_changed
                self._store.save(self._cache.serialize().encode("utf-8"))

    # -- accounts --

    def get_accounts(self) -> list[dict[str, Any]]:
        self._reload()
        return self._app.get_accounts()

    def remove_account(self, account: dict[str, Any]) -> None:
        self._reload()
        self._app.remove_account(account)
        self._persist()

    def purge(self) -> None:
        """Forget every cached token, in memory and on disk."""
        with self._lock:
            self._cache.deserialize("{}")
            if self._store is not None:
                self._store.clear()

    # -- token acquisition --

    def acquire_token_silent(self, scopes: list[str] | None = None) -> SilentResult:
        """Try the first cached account without user interaction.

        Raises TokenAcquisitionError for provider failures that a new sign-in
        would not fix.
        """
        accounts = self.get_accounts()
        if not accounts:
            return SilentResult(SilentStatus.INVALID, reason="no cached account")
        account = accounts[0]
        username = account.get("username")
        try:
            result = self._app.acquire_token_silent_with_error(
                scopes or self.scopes, account=account
            )
        except Exception as e:
            raise TokenAcquisitionError(str(e) or type(e).__name__) from e
        finally:
            self._persist()

        if not result:
            # MSAL found neither a valid access token nor a refresh token
            return SilentResult(SilentStatus.EXPIRED, username=username, reason="no refresh token cached")
        if "access_token" in result:
            return SilentResult(SilentStatus.FRESH, token=token_from_result(result), username=username)
        if result.get("error") in _REAUTH_ERROR_CODES:
            return SilentResult(SilentStatus.EXPIRED, username=username, reason=error_reason(result))
        raise TokenAcquisitionError(error_reason(result), error_code=result.get("error"))

    def initiate_device_flow(self, scopes: list[str] | None = None) -> dict[str, Any]:
        """Ask the provider for a device code. Returns once the code is issued."""
        try:
            flow = self._app.initiate_device_flow(scopes=scopes or self.scopes)
        except Exception as e:
            raise TokenAcquisitionError(str(e) or type(e).__name__) from e
        if "user_code" not in flow:
            raise TokenAcquisitionError(error_reason(flow), error_code=flow.get("error"))
        return flow

    def acquire_token_by_device_flow(self, flow: dict[str, Any]) -> dict[str, Any]:
        """Block until the user finishes, the code expires, or the flow is abandoned.

        Returns MSAL's result dict. The new account stays in memory until the
        caller decides between ``commit`` and ``discard_unsaved``. Setting
        ``flow["expires_at"] = 0`` from another thread stops MSAL's polling loop.
        """
        return self._app.acquire_token_by_device_flow(flow)

    def commit(self) -> None:
        """Write in-memory cache changes to the store."""
        self._persist()

    def discard_unsaved(self, username: str | None = None) -> None:
        """Undo an unwanted sign-in: drop ``username``'s accounts and restore the persisted state."""
        with self._lock:
            if username:
                for account in self._app.get_accounts(username=username):
                    self._app.remove_account(account)
            if self._store is not None:
                data = self._store.load()
                self._cache.deserialize(data.decode("utf-8") if data is not None else "{}")
