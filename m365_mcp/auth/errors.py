"""Authentication error taxonomy.

Every user-actionable error carries the remedy in its message so the tool
layer can return ``str(exc)`` verbatim.
"""

LOGIN_HINT = "Call the 'login' tool (or run `m365-mcp login`) to sign in."


class AuthError(Exception):
    """Base class for authentication failures surfaced to callers."""


class AuthConfigurationError(AuthError):
    """No usable credential inputs, or an incomplete strategy configuration."""


class NoCachedAccountError(AuthError):
    """Interactive mode selected but nobody has signed in yet."""

    def __init__(self, message: str | None = None):
        super().__init__(message or f"No cached Microsoft 365 account found. {LOGIN_HINT}")


class ReauthenticationRequiredError(AuthError):
    """The cached refresh material was rejected by the identity provider."""

    def __init__(self, reason: str | None = None):
        message = "The cached Microsoft 365 sign-in has expired or was revoked."
        if reason:
            message = f"{message} ({reason})"
        super().__init__(f"{message} {LOGIN_HINT}")
        self.reason = reason


class TokenAcquisitionError(AuthError):
    """The identity provider failed to mint a token."""

    def __init__(self, reason: str, *, error_code: str | None = None):
        super().__init__(f"Failed to acquire an access token: {reason}")
        self.reason = reason
        self.error_code = error_code


class CacheIOError(Exception):
    """Token storage failure. Never escapes the auth package."""
