"""Per-process wiring shared by every tool invocation.

Tool handlers are stateless; anything that must outlive a single call (the
MSAL client, the pending login, the Graph client) hangs off one
``ServerContext`` created at startup and captured by the tool closures.
"""

import threading

from msgraph import GraphServiceClient

from m365_mcp.auth import (
    AuthService,
    LoginSessionManager,
    build_identity_client,
    create_graph_client,
    resolve_strategy,
)
from m365_mcp.auth.credentials import InteractiveStrategy
from m365_mcp.auth.identity import IdentityClient
from m365_mcp.config import Settings


class ServerContext:
    """Lazily built, process-wide auth and Graph objects."""

    def __init__(self, settings: Settings, identity: IdentityClient | None = None):
        self.settings = settings
        self._lock = threading.Lock()
        self._identity = identity
        self._auth: AuthService | None = None
        self._graph: GraphServiceClient | None = None

    @property
    def identity(self) -> IdentityClient:
        """The MSAL public client. Raises AuthConfigurationError without a client id."""
        with self._lock:
            if self._identity is None:
                self._identity = build_identity_client(self.settings)
            return self._identity

    @property
    def auth(self) -> AuthService:
        identity = self.identity
        with self._lock:
            if self._auth is None:
                self._auth = AuthService(LoginSessionManager(identity))
            return self._auth

    def graph_client(self) -> GraphServiceClient:
        """The shared Graph client, created on first use."""
        with self._lock:
            if self._graph is not None:
                return self._graph
        strategy = resolve_strategy(self.settings)
        identity = self.identity if isinstance(strategy, InteractiveStrategy) else None
        client = create_graph_client(self.settings, identity=identity)
        with self._lock:
            if self._graph is None:
                self._graph = client
            return self._graph

    def close(self) -> None:
        with self._lock:
            auth = self._auth
        if auth is not None:
            auth.sessions.shutdown()
