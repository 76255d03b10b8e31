from __future__ import annotations

import pytest

from storefront.core.results import RETRY_HINT
from storefront.domain.identity import AuthenticatedUser, Guest
from storefront.services.identity import IdentityProvider, Session, split_name


class UnreachableAuth:
    async def get_current_user(self, token):
        raise ConnectionError("auth service down")

    async def sign_in(self, email, password):
        raise ConnectionError("auth service down")

    async def sign_up(self, email, password, name):
        raise ConnectionError("auth service down")

    async def sign_out(self, token):
        raise ConnectionError("auth service down")


def test_split_name() -> None:
    assert split_name("Ana Maria Lopez") == ("Ana", "Maria Lopez")
    assert split_name("Ana") == ("Ana", "")
    assert split_name("   ") == ("", "")


@pytest.mark.asyncio
async def test_fresh_session_is_a_guest(container) -> None:
    session = Session()
    identity = await IdentityProvider(container.auth, session).resolve()

    assert identity == Guest(session.guest_id)
    assert identity.owner_key == f"guest:{session.guest_id}"
    assert not identity.is_authenticated


@pytest.mark.asyncio
async def test_valid_token_resolves_to_user(container, register) -> None:
    auth = await register()
    identity = await IdentityProvider(container.auth, Session(auth_token=auth.token)).resolve()

    assert isinstance(identity, AuthenticatedUser)
    assert identity.id == auth.user.id
    assert identity.email == "ana@example.com"


@pytest.mark.asyncio
async def test_unknown_token_resolves_to_guest(container) -> None:
    identity = await IdentityProvider(container.auth, Session(auth_token="forged")).resolve()
    assert isinstance(identity, Guest)


@pytest.mark.asyncio
async def test_unreachable_auth_resolves_to_guest() -> None:
    provider = IdentityProvider(UnreachableAuth(), Session(auth_token="abc"))
    assert isinstance(await provider.resolve(), Guest)


@pytest.mark.asyncio
async def test_sign_in_with_wrong_password(container, register) -> None:
    await register()
    provider = IdentityProvider(container.auth, Session())

    result = await provider.sign_in("ana@example.com", "wrong-password")

    assert not result.success
    assert result.message.description == "Invalid email or password"
    assert provider.session.auth_token is None


@pytest.mark.asyncio
async def test_sign_in_is_case_insensitive_on_email(container, register) -> None:
    await register()
    provider = IdentityProvider(container.auth, Session())

    result = await provider.sign_in("  ANA@example.com ", "secret123")

    assert result.success
    assert provider.session.auth_token


@pytest.mark.asyncio
async def test_sign_in_store_failure_asks_to_retry(container, register, store) -> None:
    await register()
    store.fail("query", "users")

    result = await IdentityProvider(container.auth, Session()).sign_in("ana@example.com", "secret123")

    assert result.message.description == RETRY_HINT


@pytest.mark.asyncio
async def test_sign_up_validation(container) -> None:
    provider = IdentityProvider(container.auth, Session())

    result = await provider.sign_up("bad", "123", "456", " ")

    assert set(result.errors) == {"email", "password", "confirm_password", "name"}


@pytest.mark.asyncio
async def test_duplicate_sign_up_is_rejected(container, register) -> None:
    await register()
    provider = IdentityProvider(container.auth, Session())

    result = await provider.sign_up("Ana@Example.com", "secret123", "secret123", "Ana Again")

    assert not result.success
    assert result.errors == {"email": "This email is already registered"}


@pytest.mark.asyncio
async def test_login_listeners_fire_once_and_failures_are_isolated(container, register) -> None:
    await register()
    session = Session()
    provider = IdentityProvider(container.auth, session)
    seen = []

    async def broken(event) -> None:
        raise RuntimeError("listener bug")

    async def recorder(event) -> None:
        seen.append(event)

    provider.on_login(broken)
    provider.on_login(recorder)
    provider.on_login(recorder)

    result = await provider.sign_in("ana@example.com", "secret123")

    assert result.success
    assert len(seen) == 1
    assert seen[0].guest.guest_id == session.guest_id
    assert seen[0].token == session.auth_token


@pytest.mark.asyncio
async def test_sign_out_revokes_token(container, register) -> None:
    auth = await register()
    session = Session(auth_token=auth.token)
    provider = IdentityProvider(container.auth, session)

    await provider.sign_out()

    assert isinstance(await provider.resolve(), Guest)
    assert await container.auth.get_current_user(auth.token) is None


@pytest.mark.asyncio
async def test_sign_out_survives_unreachable_auth() -> None:
    session = Session(auth_token="abc")
    result = await IdentityProvider(UnreachableAuth(), session).sign_out()

    assert result.success
    assert session.auth_token is None
