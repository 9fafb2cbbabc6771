"""User-facing login / login-status / logout operations.

Wraps the session manager and renders every outcome as the text an agent
relays to the user.
"""

from m365_mcp.auth.errors import AuthError
from m365_mcp.auth.session import (
    AlreadyAuthenticated,
    LoginSessionManager,
    LoginState,
)
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.service")


class AuthService:
    def __init__(self, sessions: LoginSessionManager):
        self.sessions = sessions

    async def login(self) -> str:
        try:
            outcome = await self.sessions.start()
        except AuthError as e:
            logger.warning("auth.login.error", error=str(e))
            return f"Could not start sign-in. {e}"
        if isinstance(outcome, AlreadyAuthenticated):
            return (
                f"Already authenticated as {outcome.username or 'the cached account'}. "
                "Use the 'logout' tool first to switch accounts."
            )
        code = outcome.device_code
        return (
            f"Tell the user to open {code.verification_uri} and enter code: {code.user_code}\n\n"
            "Once they complete sign-in, call the 'login-status' tool to confirm authentication."
        )

    def login_status(self) -> str:
        status = self.sessions.poll_status()
        if status.state is LoginState.NOT_STARTED:
            return "No login in progress. Call 'login' first."
        if status.state is LoginState.PENDING:
            return (
                "Still waiting for the user to complete sign-in. Ask them to finish the "
                "browser authentication, then call 'login-status' again."
            )
        if status.state is LoginState.FAILED:
            return f"Authentication failed: {status.reason}. Call 'login' to try again."
        return (
            f"Authenticated as {status.username or 'the signed-in user'}. "
            "Token cached. Microsoft 365 tools are now available."
        )

    def logout(self) -> str:
        removed = self.sessions.logout()
        if removed:
            return f"Logged out. Removed {removed} cached account(s)."
        return "No accounts were cached. Already logged out."
