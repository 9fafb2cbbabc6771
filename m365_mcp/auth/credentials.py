"""Credential strategy selection and the matching token credentials.

The strategy is decided once from the settings (first match wins):

1. a static access token,
2. a client secret (app-only, no signed-in user),
3. the cached user account from a previous device-code login.

Each strategy maps to an ``AsyncTokenCredential`` that the Graph client
calls before every request.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Union

import msal
from azure.core.credentials import AccessToken
from azure.core.credentials_async import AsyncTokenCredential

from m365_mcp.auth.errors import (
    AuthConfigurationError,
    NoCachedAccountError,
    ReauthenticationRequiredError,
    TokenAcquisitionError,
)
from m365_mcp.auth.identity import (
    IdentityClient,
    SilentStatus,
    error_reason,
    token_from_result,
)
from m365_mcp.auth.token_store import create_token_store
from m365_mcp.cloud import CloudType, get_authority, get_graph_scopes
from m365_mcp.config import TOKEN_STORE_BACKEND, Settings
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.credentials")

STATIC_TOKEN_LIFETIME_SECONDS = 3600

# Tenant aliases that cannot be used for client-credentials (app-only) auth
_MULTI_TENANT_ALIASES = frozenset({"common", "organizations", "consumers"})

NO_AUTH_CONFIGURED = (
    "No authentication method configured. Either:\n"
    "  - Set M365_ACCESS_TOKEN to use a static access token\n"
    "  - Set M365_CLIENT_ID, M365_TENANT_ID and M365_CLIENT_SECRET for app-only auth\n"
    "  - Set M365_CLIENT_ID and run `m365-mcp login` (or call the 'login' tool) to sign in"
)


@dataclass(frozen=True)
class StaticTokenStrategy:
    token: str = field(repr=False)


@dataclass(frozen=True)
class ClientSecretStrategy:
    client_id: str
    tenant_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class InteractiveStrategy:
    client_id: str
    tenant_id: str


Strategy = Union[StaticTokenStrategy, ClientSecretStrategy, InteractiveStrategy]


def resolve_strategy(settings: Settings) -> Strategy:
    """Pick the credential strategy for these settings. Pure; raises AuthConfigurationError."""
    if settings.access_token:
        return StaticTokenStrategy(token=settings.access_token)

    if settings.client_secret:
        missing = []
        if not settings.client_id:
            missing.append("M365_CLIENT_ID")
        if not settings.tenant_id or settings.tenant_id.lower() in _MULTI_TENANT_ALIASES:
            missing.append("M365_TENANT_ID (a specific tenant, not 'common')")
        if missing:
            raise AuthConfigurationError(
                f"Client-secret auth needs {' and '.join(missing)} to be set."
            )
        return ClientSecretStrategy(
            client_id=settings.client_id,
            tenant_id=settings.tenant_id,
            client_secret=settings.client_secret,
        )

    if settings.client_id:
        return InteractiveStrategy(client_id=settings.client_id, tenant_id=settings.tenant_id)

    raise AuthConfigurationError(NO_AUTH_CONFIGURED)


class _NoCloseCredential(AsyncTokenCredential):
    """Base for credentials that hold no network resources of their own."""

    async def close(self) -> None:
        return None

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class StaticTokenCredential(_NoCloseCredential):
    """Returns the configured token with an artificial one-hour expiry. Never refreshes."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        return AccessToken(self._token, int(time.time()) + STATIC_TOKEN_LIFETIME_SECONDS)

    def __repr__(self) -> str:
        return "StaticTokenCredential(token=***)"


class ClientSecretCredential(_NoCloseCredential):
    """App-only tokens via MSAL's client-credentials grant.

    MSAL keeps the app token in its in-memory cache and only goes to the
    network when it is missing or about to expire.
    """

    def __init__(
        self,
        strategy: ClientSecretStrategy,
        cloud_type: CloudType = CloudType.GLOBAL,
        app: Any = None,
    ):
        self.scopes = get_graph_scopes(cloud_type)
        self._app = app or msal.ConfidentialClientApplication(
            strategy.client_id,
            authority=get_authority(cloud_type, strategy.tenant_id),
            client_credential=strategy.client_secret,
        )

    async def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        try:
            result = await asyncio.to_thread(
                self._app.acquire_token_for_client, scopes=list(scopes) or self.scopes
            )
        except Exception as e:
            raise TokenAcquisitionError(str(e) or type(e).__name__) from e
        if "access_token" not in result:
            logger.error("credentials.client_secret.failed", error=result.get("error"))
            raise TokenAcquisitionError(error_reason(result), error_code=result.get("error"))
        return token_from_result(result)


class CachedUserCredential(_NoCloseCredential):
    """Tokens for the signed-in user, refreshed silently from the persisted cache."""

    def __init__(self, identity: IdentityClient):
        self._identity = identity

    async def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        silent = await asyncio.to_thread(self._identity.acquire_token_silent, list(scopes) or None)
        if silent.status is SilentStatus.FRESH:
            return silent.token
        if silent.status is SilentStatus.EXPIRED:
            logger.warning("credentials.cached_user.reauth_required", username=silent.username)
            raise ReauthenticationRequiredError(silent.reason)
        raise NoCachedAccountError()


def build_identity_client(settings: Settings) -> IdentityClient:
    """The process-wide MSAL public client over the persistent token store."""
    if not settings.client_id:
        raise AuthConfigurationError(
            "M365_CLIENT_ID is required to sign in interactively. "
            "Set it to the application (client) ID of your Entra ID app registration."
        )
    return IdentityClient(
        client_id=settings.client_id,
        tenant_id=settings.tenant_id,
        cloud_type=settings.cloud_type,
        store=create_token_store(TOKEN_STORE_BACKEND),
    )


def resolve_credential(
    settings: Settings,
    identity: IdentityClient | None = None,
) -> AsyncTokenCredential:
    """Build the credential for the strategy these settings select."""
    strategy = resolve_strategy(settings)
    logger.info("credentials.strategy_selected", strategy=type(strategy).__name__)
    if isinstance(strategy, StaticTokenStrategy):
        return StaticTokenCredential(strategy.token)
    if isinstance(strategy, ClientSecretStrategy):
        return ClientSecretCredential(strategy, settings.cloud_type)
    return CachedUserCredential(identity or build_identity_client(settings))
