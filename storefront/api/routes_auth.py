from __future__ import annotations

from fastapi import APIRouter, Depends

from storefront.core.results import RETRY_HINT

from .deps import RequestContext, get_context, raise_for_result
from .schemas import AuthResponse, SignInRequest, SignUpRequest

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_dict(user) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


@router.post("/sign-in", response_model=AuthResponse)
async def sign_in(payload: SignInRequest, ctx: RequestContext = Depends(get_context)):
    """Sign in; the guest cart of this session is merged into the account cart."""
    result = await ctx.identity.sign_in(payload.email, payload.password)
    if not result.success and not result.errors and result.message.description != RETRY_HINT:
        raise_for_result(result, 401)
    raise_for_result(result)
    return AuthResponse(user=_user_dict(result.value), token=ctx.session.auth_token, guest_id=ctx.session.guest_id)


@router.post("/sign-up", response_model=AuthResponse)
async def sign_up(payload: SignUpRequest, ctx: RequestContext = Depends(get_context)):
    result = await ctx.identity.sign_up(payload.email, payload.password, payload.confirm_password, payload.name)
    raise_for_result(result)
    return AuthResponse(user=_user_dict(result.value), token=ctx.session.auth_token, guest_id=ctx.session.guest_id)


@router.post("/sign-out", response_model=AuthResponse)
async def sign_out(ctx: RequestContext = Depends(get_context)):
    await ctx.identity.sign_out()
    return AuthResponse(user=None, token=None, guest_id=ctx.session.guest_id)


@router.get("/me", response_model=AuthResponse)
async def me(ctx: RequestContext = Depends(get_context)):
    identity = await ctx.identity.resolve()
    user = _user_dict(identity) if identity.is_authenticated else None
    return AuthResponse(user=user, token=ctx.session.auth_token if user else None, guest_id=ctx.session.guest_id)
