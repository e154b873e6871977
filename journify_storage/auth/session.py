"""
Session manager.

Owns the authenticated session: login, signup, logout, token refresh,
account mutations, restoring a stored session at startup, and following
logins and logouts made by other contexts sharing the store.

Every public operation returns an ``AuthResult``; failures are classified
by ``AuthErrorKind`` and carry a message safe to show to the user.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..config import JournifyConfig
from ..events import AuthChanged, EventBus, StorageChanged
from ..exceptions import AuthenticationError, InvalidCredentialsError, StorageError
from ..logging_utils import StorageLoggerAdapter
from ..storage.keys import StorageKeys
from ..storage.service import StorageService
from ..utils import Clock
from ..validation import ValidationResult, validate_email, validate_name, validate_password
from .tokens import TokenService
from .types import AuthErrorKind, AuthResult, SessionState, TokenPair, User, UserPreferences
from .users import MockUserDirectory

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED_MESSAGE = "Not authenticated"
SESSION_EXPIRED_MESSAGE = "Session expired, please log in again"


class SessionManager:
    """Authentication state machine for one application context.

    States: ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED, and
    AUTHENTICATED -> REFRESHING -> AUTHENTICATED. Any failure that
    invalidates the session returns to ANONYMOUS.

    Example:
        >>> manager = SessionManager(storage, tokens, users, events)
        >>> await manager.initialize()
        >>> result = await manager.login("demo@journify.com", "password123")
        >>> result.success
        True
    """

    def __init__(
        self,
        storage: StorageService,
        tokens: TokenService,
        users: MockUserDirectory,
        events: EventBus | None = None,
        config: JournifyConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.storage = storage
        self.tokens = tokens
        self.users = users
        self.events = events or storage.events
        self.config = config or storage.config
        self.clock = clock or tokens.clock

        self.state = SessionState.ANONYMOUS
        self.current_user: User | None = None
        self.auth_token: str | None = None
        self._refresh_token: str | None = None

        self._session_timer: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Task[AuthResult] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._log = StorageLoggerAdapter(logger, {})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Restore a stored session and start following other contexts."""
        await self.users.initialize()
        await self.load_stored_session()
        if self._unsubscribe is None:
            self._unsubscribe = self.events.storage_changed.subscribe(self._on_storage_changed)

    async def close(self) -> None:
        """Stop the refresh timer and detach from storage notifications."""
        self._cancel_session_timer()
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def load_stored_session(self) -> bool:
        """Adopt the session persisted in storage, if it is still valid.

        An expired stored token clears the stored session. A token this
        manager cannot verify (issued under another token secret) is left
        in storage untouched.

        Returns:
            True if a session was restored
        """
        try:
            token = await self.storage.get(StorageKeys.USER_TOKEN, expect_encrypted=True)
            user_data = await self.storage.get(StorageKeys.USER_DATA)
            refresh = await self.storage.get(StorageKeys.REFRESH_TOKEN, expect_encrypted=True)

            if not isinstance(token, str) or not isinstance(user_data, dict):
                return False

            user = User.from_dict(user_data)
            if self.tokens.decode(token) is None:
                logger.warning("Stored token cannot be verified with this secret, ignoring it")
                return False
            if not self.tokens.is_valid(token):
                logger.info("Stored token expired, clearing session")
                await self.clear_session()
                return False
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load stored session: {e}")
            await self.clear_session()
            return False

        self.current_user = user
        self.auth_token = token
        self._refresh_token = refresh if isinstance(refresh, str) else None
        self.state = SessionState.AUTHENTICATED
        self._log.extra = {"user_id": user.id}
        self._start_session_timer()

        self._log.info("Session restored from storage")
        await self.events.auth_changed.publish(AuthChanged(True, user.to_public_dict()))
        return True

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        A failed attempt leaves the current session untouched.
        """
        previous_state = self.state
        self.state = SessionState.AUTHENTICATING
        try:
            errors = _collect_errors(validate_email(email))
            if not errors:
                errors = _collect_errors(validate_password(password))
            if errors:
                return AuthResult.failure(AuthErrorKind.INVALID_INPUT, ", ".join(errors))

            user = await self.users.verify_credentials(email, password)
            tokens = await self._establish_session(user)

            self._log.info("Login successful")
            return AuthResult.ok("Login successful", user=self.current_user, tokens=tokens)
        except AuthenticationError as e:
            logger.info(f"Login rejected: {e.kind}")
            return AuthResult.failure(AuthErrorKind(e.kind), e.message)
        except StorageError as e:
            logger.error(f"Login could not persist the session: {e}")
            return AuthResult.failure(AuthErrorKind.STORAGE, "Could not save your session")
        except Exception:
            logger.exception("Unexpected login failure")
            return AuthResult.failure(
                AuthErrorKind.UNEXPECTED, "An unexpected error occurred during login"
            )
        finally:
            if self.state == SessionState.AUTHENTICATING:
                self.state = previous_state

    async def signup(self, user_data: dict[str, Any]) -> AuthResult:
        """Register a new account and log it in.

        Args:
            user_data: Mapping with ``name``, ``email`` and ``password``
        """
        previous_state = self.state
        self.state = SessionState.AUTHENTICATING
        try:
            email = user_data.get("email")
            name = user_data.get("name")
            password = user_data.get("password")

            errors = (
                _collect_errors(validate_email(email))
                + _collect_errors(validate_name(name))
                + _collect_errors(validate_password(password))
            )
            if errors:
                return AuthResult.failure(AuthErrorKind.INVALID_INPUT, ", ".join(errors))

            user = await self.users.create(email, name, password)
            tokens = await self._establish_session(user)

            self._log.info("Signup successful")
            return AuthResult.ok(
                "Account created successfully", user=self.current_user, tokens=tokens
            )
        except AuthenticationError as e:
            return AuthResult.failure(AuthErrorKind(e.kind), e.message)
        except StorageError as e:
            logger.error(f"Signup could not persist the session: {e}")
            return AuthResult.failure(AuthErrorKind.STORAGE, "Could not save your session")
        except Exception:
            logger.exception("Unexpected signup failure")
            return AuthResult.failure(
                AuthErrorKind.UNEXPECTED, "An unexpected error occurred during signup"
            )
        finally:
            if self.state == SessionState.AUTHENTICATING:
                self.state = previous_state

    async def logout(self) -> AuthResult:
        """End the session. Always succeeds."""
        try:
            await self.clear_session()
        except Exception:
            logger.exception("Error during logout")
            self._reset_local_state()
        return AuthResult.ok("Logged out successfully")

    async def refresh_token(self) -> AuthResult:
        """Exchange the refresh token for a new token pair.

        A missing, expired or forged refresh token ends the session.
        """
        if not self._refresh_token or self.current_user is None:
            await self.clear_session()
            return AuthResult.failure(AuthErrorKind.NO_REFRESH_TOKEN, SESSION_EXPIRED_MESSAGE)

        claims = self.tokens.decode(self._refresh_token)
        if (
            claims is None
            or claims.type != "refresh"
            or claims.sub != self.current_user.id
            or not self.tokens.is_valid(self._refresh_token)
        ):
            await self.clear_session()
            return AuthResult.failure(AuthErrorKind.SESSION_EXPIRED, SESSION_EXPIRED_MESSAGE)

        self.state = SessionState.REFRESHING
        try:
            pair = self.tokens.issue_pair(self.current_user)
            await self._persist_tokens(pair)
        except StorageError as e:
            logger.error(f"Token refresh could not persist tokens: {e}")
            self.state = SessionState.AUTHENTICATED
            return AuthResult.failure(AuthErrorKind.STORAGE, "Could not save your session")

        self.auth_token = pair.auth_token
        self._refresh_token = pair.refresh_token
        self.state = SessionState.AUTHENTICATED
        self._start_session_timer()

        self._log.info("Token refreshed")
        return AuthResult.ok("Token refreshed", user=self.current_user, tokens=pair)

    def is_authenticated(self) -> bool:
        return (
            self.current_user is not None
            and self.auth_token is not None
            and self.tokens.is_valid(self.auth_token)
        )

    def should_refresh(self) -> bool:
        """True when the auth token has less than the refresh window left.

        An undecodable token also asks for a refresh; no token does not.
        """
        if not self.auth_token:
            return False
        remaining = self.tokens.seconds_until_expiry(self.auth_token)
        if remaining is None:
            return True
        return remaining < self.config.refresh_window_seconds

    async def validate_session(self) -> bool:
        """Check the session when the application becomes visible again."""
        if not self.is_authenticated():
            return False
        if self.should_refresh():
            result = await self.refresh_token()
            return result.success
        return True

    def get_auth_token(self) -> str | None:
        return self.auth_token

    # ------------------------------------------------------------------
    # Account mutations
    # ------------------------------------------------------------------

    async def update_profile(self, updates: dict[str, Any]) -> AuthResult:
        """Change name, preferences or the onboarding flag of the current user."""
        if not self.is_authenticated() or self.current_user is None:
            return AuthResult.failure(AuthErrorKind.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)

        if "name" in updates:
            errors = _collect_errors(validate_name(updates["name"]))
            if errors:
                return AuthResult.failure(AuthErrorKind.INVALID_INPUT, ", ".join(errors))

        user = self.current_user
        changes: dict[str, Any] = {}
        if "name" in updates:
            changes["name"] = updates["name"].strip()
        if "preferences" in updates:
            merged = {**user.preferences.to_dict(), **(updates["preferences"] or {})}
            changes["preferences"] = UserPreferences.from_dict(merged)
        if "hasCompletedOnboarding" in updates:
            changes["has_completed_onboarding"] = bool(updates["hasCompletedOnboarding"])

        updated = replace(user, **changes)
        if not await self.storage.set(StorageKeys.USER_DATA, updated.to_public_dict()):
            return AuthResult.failure(AuthErrorKind.STORAGE, "Failed to update profile")

        if self.users.exists(updated.email):
            self.users.update(updated)
        self.current_user = updated

        self._log.info(f"Profile updated: {sorted(changes)}")
        return AuthResult.ok("Profile updated successfully", user=updated)

    async def change_password(self, current_password: str, new_password: str) -> AuthResult:
        if not self.is_authenticated() or self.current_user is None:
            return AuthResult.failure(AuthErrorKind.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)

        try:
            await self.users.verify_credentials(self.current_user.email, current_password)
        except InvalidCredentialsError:
            return AuthResult.failure(
                AuthErrorKind.INVALID_PASSWORD, "Current password is incorrect"
            )

        errors = _collect_errors(validate_password(new_password))
        if errors:
            return AuthResult.failure(AuthErrorKind.INVALID_INPUT, ", ".join(errors))

        await self.users.set_password(self.current_user.email, new_password)
        self._log.info("Password changed")
        return AuthResult.ok("Password changed successfully", user=self.current_user)

    async def delete_account(self) -> AuthResult:
        """Remove the current user and every stored application key."""
        if not self.is_authenticated() or self.current_user is None:
            return AuthResult.failure(AuthErrorKind.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)

        self.users.remove(self.current_user.email)
        cleared = await self.storage.clear(keep_preferences=False)
        await self.clear_session()

        if not cleared:
            return AuthResult.failure(AuthErrorKind.STORAGE, "Failed to delete account")
        self._log.info("Account deleted")
        return AuthResult.ok("Account deleted successfully")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _establish_session(self, user: User) -> TokenPair:
        public = replace(user, password_hash=None)
        pair = self.tokens.issue_pair(public)

        if not await self.storage.set(StorageKeys.USER_DATA, public.to_public_dict()):
            raise StorageError("persist_session", StorageKeys.USER_DATA)
        await self._persist_tokens(pair)

        self.current_user = public
        self.auth_token = pair.auth_token
        self._refresh_token = pair.refresh_token
        self.state = SessionState.AUTHENTICATED
        self._log.extra = {"user_id": public.id}
        self._start_session_timer()

        await self.events.auth_changed.publish(AuthChanged(True, public.to_public_dict()))
        return pair

    async def _persist_tokens(self, pair: TokenPair) -> None:
        # Auth token last: other contexts reload when it changes
        if not await self.storage.set(StorageKeys.REFRESH_TOKEN, pair.refresh_token, encrypt=True):
            raise StorageError("persist_session", StorageKeys.REFRESH_TOKEN)
        if not await self.storage.set(StorageKeys.USER_TOKEN, pair.auth_token, encrypt=True):
            raise StorageError("persist_session", StorageKeys.USER_TOKEN)

    async def clear_session(self) -> None:
        """Forget the session locally and in storage, then announce it."""
        self._reset_local_state()
        for key in (StorageKeys.USER_TOKEN, StorageKeys.USER_DATA, StorageKeys.REFRESH_TOKEN):
            await self.storage.remove(key)
        await self.events.auth_changed.publish(AuthChanged(False, None))

    def _reset_local_state(self) -> None:
        self._cancel_session_timer()
        self.current_user = None
        self.auth_token = None
        self._refresh_token = None
        self.state = SessionState.ANONYMOUS
        self._log.extra = {}

    def _start_session_timer(self) -> None:
        self._cancel_session_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; refresh timer not armed")
            return
        self._session_timer = loop.call_later(
            self.config.refresh_delay_seconds, self._on_session_timer
        )

    def _cancel_session_timer(self) -> None:
        if self._session_timer is not None:
            self._session_timer.cancel()
            self._session_timer = None

    @property
    def refresh_timer_armed(self) -> bool:
        return self._session_timer is not None and not self._session_timer.cancelled()

    def _on_session_timer(self) -> None:
        self._session_timer = None
        self._refresh_task = asyncio.ensure_future(self.refresh_token())

    async def _on_storage_changed(self, event: StorageChanged) -> None:
        if event.key != StorageKeys.USER_TOKEN:
            return
        if event.new_value:
            logger.info("Session changed in another context, reloading")
            await self.load_stored_session()
        elif self.current_user is not None or self.auth_token is not None:
            logger.info("Logged out in another context")
            await self.clear_session()


def _collect_errors(result: ValidationResult) -> list[str]:
    return [] if result.is_valid else list(result.errors)
