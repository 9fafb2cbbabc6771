"""Authentication: credential strategies, device-code login and persistent token cache."""

from m365_mcp.auth.client_factory import create_graph_client
from m365_mcp.auth.credentials import (
    build_identity_client,
    resolve_credential,
    resolve_strategy,
)
from m365_mcp.auth.errors import (
    AuthConfigurationError,
    AuthError,
    NoCachedAccountError,
    ReauthenticationRequiredError,
    TokenAcquisitionError,
)
from m365_mcp.auth.service import AuthService
from m365_mcp.auth.session import LoginSessionManager
from m365_mcp.auth.token_store import TokenStore, create_token_store

__all__ = [
    "AuthConfigurationError",
    "AuthError",
    "AuthService",
    "LoginSessionManager",
    "NoCachedAccountError",
    "ReauthenticationRequiredError",
    "TokenAcquisitionError",
    "TokenStore",
    "build_identity_client",
    "create_graph_client",
    "create_token_store",
    "resolve_credential",
    "resolve_strategy",
]
