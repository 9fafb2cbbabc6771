"""Device-code login that spans several independent tool invocations.

``start`` asks the provider for a device code and returns it right away.
The MSAL polling that waits for the user runs on a worker thread, and its
future is parked in the manager until ``poll_status`` sees it finish. One
manager exists per process and is handed to whoever needs it. Its lock
guards the reference swap and the short commit of a finished login's cache
changes, never the wait for the user.

A login that is superseded or logged out is abandoned: its flow is expired
so MSAL stops polling, and anything it still adds to the cache is dropped.
"""

import asyncio
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from m365_mcp.auth.identity import IdentityClient, SilentStatus, error_reason, username_from_result
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.session")


@dataclass(frozen=True)
class DeviceCode:
    verification_uri: str
    user_code: str
    message: str
    expires_at: float


@dataclass(frozen=True)
class LoginChallenge:
    """Instructions for the user: open ``verification_uri`` and enter ``user_code``."""

    device_code: DeviceCode


@dataclass(frozen=True)
class AlreadyAuthenticated:
    username: str | None


LoginStart = Union[LoginChallenge, AlreadyAuthenticated]


class LoginState(str, Enum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class LoginStatus:
    state: LoginState
    username: str | None = None
    reason: str | None = None


@dataclass(eq=False)
class PendingLogin:
    device_code: DeviceCode
    flow: dict[str, Any] = field(repr=False)
    future: Future | None = field(default=None, repr=False)

    def abandon(self) -> None:
        """Make MSAL's polling loop exit at its next check."""
        self.flow["expires_at"] = 0


def _device_code_from_flow(flow: dict[str, Any]) -> DeviceCode:
    return DeviceCode(
        verification_uri=flow.get("verification_uri") or flow.get("verification_url", ""),
        user_code=flow["user_code"],
        message=flow.get("message", ""),
        expires_at=float(flow.get("expires_at") or time.time() + int(flow.get("expires_in", 900))),
    )


def _status_from_future(future: Future) -> LoginStatus:
    """Terminal status of a finished device-flow future."""
    exc = future.exception()
    if exc is not None:
        return LoginStatus(LoginState.FAILED, reason=str(exc) or type(exc).__name__)
    result = future.result()
    if "access_token" not in result:
        return LoginStatus(LoginState.FAILED, reason=error_reason(result))
    return LoginStatus(LoginState.SUCCEEDED, username=username_from_result(result))


class LoginSessionManager:
    """Process-wide holder of the (at most one) in-flight device-code login."""

    def __init__(self, identity: IdentityClient, executor: ThreadPoolExecutor | None = None):
        self._identity = identity
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="device-code"
        )
        self._lock = threading.Lock()
        self._pending: PendingLogin | None = None

    @property
    def identity(self) -> IdentityClient:
        return self._identity

    def _get_pending(self) -> PendingLogin | None:
        with self._lock:
            return self._pending

    def _swap_pending(self, new: PendingLogin | None) -> PendingLogin | None:
        with self._lock:
            old, self._pending = self._pending, new
            return old

    def _begin(self, login: PendingLogin) -> PendingLogin | None:
        """Store ``login`` and start its worker. Returns the login it replaced."""
        with self._lock:
            old, self._pending = self._pending, login
            # Submitted under the lock so the worker never sees itself as stale
            login.future = self._executor.submit(self._run_flow, login)
            return old

    def _run_flow(self, login: PendingLogin) -> dict[str, Any]:
        """Worker body: wait for the user, then keep or drop what MSAL cached."""
        result = self._identity.acquire_token_by_device_flow(login.flow)
        with self._lock:
            if self._pending is login:
                self._identity.commit()
                return result
        if "access_token" in result:
            username = username_from_result(result)
            self._identity.discard_unsaved(username)
            logger.info("auth.login.discarded", username=username)
        return result

    def _clear_if_current(self, observed: PendingLogin) -> bool:
        """Clear the stored login only if it is still ``observed``."""
        with self._lock:
            if self._pending is observed:
                self._pending = None
                return True
            return False

    async def start(self, scopes: list[str] | None = None) -> LoginStart:
        """Begin a device-code login, or report the account that is already signed in.

        Returns as soon as the provider has issued the code; the user finishes
        out of band. A new start always supersedes a pending one.
        """
        silent = await asyncio.to_thread(self._identity.acquire_token_silent, scopes)
        if silent.status is SilentStatus.FRESH:
            logger.info("auth.login.already_authenticated", username=silent.username)
            return AlreadyAuthenticated(username=silent.username)
        if silent.status is SilentStatus.EXPIRED:
            logger.info("auth.login.cached_token_expired", username=silent.username)

        flow = await asyncio.to_thread(self._identity.initiate_device_flow, scopes)
        device_code = _device_code_from_flow(flow)
        previous = self._begin(PendingLogin(device_code=device_code, flow=flow))
        if previous is not None and not previous.future.done():
            previous.abandon()
            logger.info("auth.login.superseded")
        logger.info(
            "auth.login.started",
            verification_uri=device_code.verification_uri,
            expires_in=int(device_code.expires_at - time.time()),
        )
        return LoginChallenge(device_code=device_code)

    def poll_status(self) -> LoginStatus:
        """Non-blocking status of the stored login. Terminal results are reported once."""
        pending = self._get_pending()
        if pending is None:
            return LoginStatus(LoginState.NOT_STARTED)
        if not pending.future.done():
            return LoginStatus(LoginState.PENDING)

        status = _status_from_future(pending.future)
        if not self._clear_if_current(pending):
            # A newer login replaced this one between the read and the clear
            return LoginStatus(LoginState.PENDING)
        if status.state is LoginState.SUCCEEDED:
            logger.info("auth.login.succeeded", username=status.username)
        else:
            logger.warning("auth.login.failed", reason=status.reason)
        return status

    def wait(self, timeout: float | None = None) -> LoginStatus:
        """Block until the stored login finishes, then report it like ``poll_status``.

        Used by the terminal ``login`` command, never by tool handlers.
        """
        pending = self._get_pending()
        if pending is None:
            return LoginStatus(LoginState.NOT_STARTED)
        try:
            pending.future.exception(timeout=timeout)
        except FutureTimeoutError:
            return LoginStatus(LoginState.PENDING)
        return self.poll_status()

    def logout(self) -> int:
        """Drop any pending login, remove every cached account and purge the store.

        Returns how many accounts were removed (zero is fine). Storage problems
        are logged by the token store, never raised.
        """
        previous = self._swap_pending(None)
        if previous is not None:
            previous.abandon()
        removed = 0
        for account in self._identity.get_accounts():
            self._identity.remove_account(account)
            removed += 1
            logger.info("auth.logout.account_removed", username=account.get("username"))
        self._identity.purge()
        logger.info("auth.logout", removed=removed)
        return removed

    def shutdown(self) -> None:
        previous = self._swap_pending(None)
        if previous is not None:
            previous.abandon()
        self._executor.shutdown(wait=False, cancel_futures=True)
