"""
In-process user list.

Stands in for an account backend: users live for the lifetime of the
process, keyed by normalized email, with bcrypt password hashes.

bcrypt is slow on purpose, so every hash and check runs in a worker
thread to keep the event loop (refresh timer, file watcher) responsive.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from ..exceptions import EmailExistsError, InvalidCredentialsError, NotFoundError
from ..utils import Clock, generate_user_id, isoformat_z
from ..validation import normalize_email
from .passwords import hash_password, verify_password
from .types import AuthErrorKind, User, UserPreferences

logger = logging.getLogger(__name__)

DEMO_CREATED_AT = "2025-01-01T00:00:00.000Z"


class MockUserDirectory:
    """Users keyed by normalized email.

    Call ``initialize()`` before use to add the demo accounts.

    Args:
        clock: Source of creation timestamps
        bcrypt_rounds: Cost factor for password hashes
        seed_demo_users: Add the demo and test accounts on initialize
    """

    def __init__(
        self,
        clock: Clock | None = None,
        bcrypt_rounds: int = 12,
        seed_demo_users: bool = True,
    ) -> None:
        self.clock = clock or Clock()
        self.bcrypt_rounds = bcrypt_rounds
        self.seed_demo_users = seed_demo_users
        self._users: dict[str, User] = {}
        self._seeded = False

    async def initialize(self) -> None:
        if self.seed_demo_users and not self._seeded:
            await self._seed()
        self._seeded = True

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)

    async def _seed(self) -> None:
        demo_hash, test_hash = await asyncio.gather(
            self._hash("password123"), self._hash("test123")
        )
        self._users["demo@journify.com"] = User(
            id="user_1",
            email="demo@journify.com",
            name="Demo User",
            password_hash=demo_hash,
            created_at=DEMO_CREATED_AT,
            has_completed_onboarding=True,
            preferences=UserPreferences(theme="light", mood_based_theme=True, notifications=True),
        )
        self._users["test@example.com"] = User(
            id="user_2",
            email="test@example.com",
            name="Test User",
            password_hash=test_hash,
            created_at=DEMO_CREATED_AT,
            has_completed_onboarding=False,
            preferences=UserPreferences(theme="dark", mood_based_theme=False, notifications=False),
        )

    def __len__(self) -> int:
        return len(self._users)

    def find(self, email: str) -> User | None:
        return self._users.get(normalize_email(email))

    def exists(self, email: str) -> bool:
        return normalize_email(email) in self._users

    async def create(self, email: str, name: str, password: str) -> User:
        """Add a user with default preferences.

        Raises:
            EmailExistsError: If the email is already registered
        """
        email = normalize_email(email)
        if email in self._users:
            raise EmailExistsError(email)

        password_hash = await self._hash(password)
        # Another signup may have taken the email while hashing
        if email in self._users:
            raise EmailExistsError(email)

        user = User(
            id=generate_user_id(self.clock),
            email=email,
            name=name.strip(),
            password_hash=password_hash,
            created_at=isoformat_z(self.clock.now()),
            has_completed_onboarding=False,
            preferences=UserPreferences(),
        )
        self._users[email] = user
        logger.info(f"Created user {user.id}")
        return user

    async def verify_credentials(self, email: str, password: str) -> User:
        """Look up a user and check the password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
        """
        user = self.find(email)
        if user is None:
            raise InvalidCredentialsError(
                AuthErrorKind.USER_NOT_FOUND.value, "No account found with this email address"
            )
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise InvalidCredentialsError(AuthErrorKind.INVALID_PASSWORD.value, "Invalid password")
        return user

    async def set_password(self, email: str, password: str) -> None:
        user = self.find(email)
        if user is None:
            raise NotFoundError("user", email)
        user.password_hash = await self._hash(password)

    def update(self, user: User) -> None:
        """Replace the stored record for ``user.email``, keeping its password hash."""
        existing = self.find(user.email)
        if existing is None:
            raise NotFoundError("user", user.email)
        self._users[normalize_email(user.email)] = replace(
            user, password_hash=existing.password_hash
        )

    def remove(self, email: str) -> bool:
        return self._users.pop(normalize_email(email), None) is not None
