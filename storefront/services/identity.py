"""
Identity resolution and the auth provider contract.

A ``Session`` is one browser session: a guest id (the key of the guest cart)
and an optional auth token. ``IdentityProvider`` turns a session into an
``Identity`` and fires the login event that triggers the cart merge.
"""
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from storefront.core.exceptions import ConstraintViolation, DataStoreError, ValidationException
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult
from storefront.core.security import hash_password, new_session_token, validate_credentials, verify_password
from storefront.domain.identity import AuthenticatedUser, Guest, Identity
from storefront.infra.datastore import DataStore
from storefront.integrations.redis_kv import RedisKeyValueStore
from storefront.repositories.user_repository import ProfileRepository, UserRepository


@dataclass(slots=True)
class AuthSession:
    token: str
    user: AuthenticatedUser


class AuthProvider(Protocol):
    """External auth contract.

    ``sign_in``/``sign_up`` raise ``ValidationException`` for bad credentials
    and ``DataStoreError`` when the backing store fails.
    """

    async def get_current_user(self, token: str | None) -> AuthenticatedUser | None:
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    async def sign_up(self, email: str, password: str, name: str) -> AuthSession:
        ...

    async def sign_out(self, token: str | None) -> None:
        ...


def split_name(name: str) -> tuple[str, str]:
    parts = (name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class DataStoreAuthProvider:
    """Users in the ``users`` table, opaque session tokens in the KV store."""

    TOKEN_KEY = "auth_token:{token}"

    def __init__(
        self,
        store: DataStore,
        kv: RedisKeyValueStore,
        *,
        token_ttl_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        self._users = UserRepository(store)
        self._profiles = ProfileRepository(store)
        self._kv = kv
        self._ttl = token_ttl_seconds

    @staticmethod
    def _to_user(row: dict) -> AuthenticatedUser:
        return AuthenticatedUser(id=str(row["id"]), email=row["email"], name=row.get("name"))

    def _issue_token(self, user: AuthenticatedUser) -> AuthSession:
        token = new_session_token()
        self._kv.set(self.TOKEN_KEY.format(token=token), user.id, ttl=self._ttl)
        return AuthSession(token=token, user=user)

    async def get_current_user(self, token: str | None) -> AuthenticatedUser | None:
        if not token:
            return None
        user_id = self._kv.get(self.TOKEN_KEY.format(token=token))
        if not user_id:
            return None
        row = await self._users.get(user_id)
        return self._to_user(row) if row else None

    async def sign_in(self, email: str, password: str) -> AuthSession:
        row = await self._users.get_by_email(email)
        if not row or not verify_password(password, row.get("password_hash")):
            raise ValidationException("Invalid email or password")
        return self._issue_token(self._to_user(row))

    async def sign_up(self, email: str, password: str, name: str) -> AuthSession:
        duplicate = ValidationException(
            "An account with this email already exists",
            {"email": "This email is already registered"},
        )
        if await self._users.get_by_email(email):
            raise duplicate
        try:
            row = await self._users.create(email, hash_password(password), name.strip())
        except ConstraintViolation as e:
            raise duplicate from e
        first_name, last_name = split_name(name)
        await self._profiles.create(str(row["id"]), row["email"], first_name, last_name)
        logger.info("New account registered: %s", row["id"])
        return self._issue_token(self._to_user(row))

    async def sign_out(self, token: str | None) -> None:
        if token:
            self._kv.delete(self.TOKEN_KEY.format(token=token))


@dataclass(slots=True)
class Session:
    guest_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    auth_token: str | None = None

    def rotate_guest(self) -> None:
        self.guest_id = uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class LoginEvent:
    """Guest -> authenticated transition of one session."""

    user: AuthenticatedUser
    guest: Guest
    token: str


LoginListener = Callable[[LoginEvent], Awaitable[None]]


class IdentityProvider:
    """Resolves the acting identity for a session and owns the login edge."""

    def __init__(self, auth: AuthProvider, session: Session | None = None) -> None:
        self._auth = auth
        self.session = session or Session()
        self._listeners: list[LoginListener] = []

    def on_login(self, listener: LoginListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    async def resolve(self) -> Identity:
        """Never raises: an unreachable auth provider means guest."""
        if self.session.auth_token:
            try:
                user = await self._auth.get_current_user(self.session.auth_token)
            except Exception as e:
                logger.warning("Auth provider unavailable, resolving as guest: %s", e)
                user = None
            if user is not None:
                return user
        return Guest(self.session.guest_id)

    async def _fire_login(self, auth_session: AuthSession, guest: Guest) -> None:
        event = LoginEvent(user=auth_session.user, guest=guest, token=auth_session.token)
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(f"Login listener failed for user {event.user.id}: {e}")

    async def _complete_login(self, auth_session: AuthSession) -> None:
        guest = Guest(self.session.guest_id)
        self.session.auth_token = auth_session.token
        await self._fire_login(auth_session, guest)

    async def sign_in(self, email: str, password: str) -> OperationResult[AuthenticatedUser]:
        errors = validate_credentials(email, password)
        if errors:
            return OperationResult.fail("Sign in failed", "Please fix the highlighted fields.", errors)
        try:
            auth_session = await self._auth.sign_in(email.strip(), password)
        except ValidationException as e:
            return OperationResult.fail("Sign in failed", e.message, e.errors)
        except DataStoreError as e:
            logger.error(f"Sign in failed for {email}: {e}")
            return OperationResult.fail("Sign in failed", RETRY_HINT)
        await self._complete_login(auth_session)
        return OperationResult.ok(auth_session.user)

    async def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: str,
        name: str,
    ) -> OperationResult[AuthenticatedUser]:
        errors = validate_credentials(email, password, confirm_password)
        if not (name or "").strip():
            errors["name"] = "Name is required"
        if errors:
            return OperationResult.fail("Sign up failed", "Please fix the highlighted fields.", errors)
        try:
            auth_session = await self._auth.sign_up(email.strip(), password, name)
        except ValidationException as e:
            return OperationResult.fail("Sign up failed", e.message, e.errors)
        except DataStoreError as e:
            logger.error(f"Sign up failed for {email}: {e}")
            return OperationResult.fail("Sign up failed", RETRY_HINT)
        await self._complete_login(auth_session)
        return OperationResult.ok(auth_session.user)

    async def sign_out(self) -> OperationResult[None]:
        """Drops the token and starts a fresh guest; the remote cart is kept."""
        try:
            await self._auth.sign_out(self.session.auth_token)
        except Exception as e:
            logger.warning("Auth provider sign out failed: %s", e)
        self.session.auth_token = None
        self.session.rotate_guest()
        return OperationResult.ok()
