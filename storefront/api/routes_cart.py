from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from storefront.core.events import CartCountEvent
from storefront.core.logging_config import logger
from storefront.services import CartService, IdentityProvider

from .deps import RequestContext, get_context, parse_session, raise_for_coupon, raise_for_result
from .schemas import AddToCartRequest, CouponRequest, UpdateQuantityRequest

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(
    coupon: str | None = Query(None, description="Coupon code to price the cart with"),
    shipping_method: str | None = Query(None, description="Checkout shipping method; omit for cart pricing"),
    ctx: RequestContext = Depends(get_context),
):
    """Cart lines joined with current product data plus the pricing breakdown."""
    applied = None
    coupon_message = None
    if coupon:
        lookup = await ctx.container.coupons.apply_coupon(coupon)
        applied = lookup.coupon
        coupon_message = lookup.message.to_dict() if lookup.message else None
    try:
        summary = await ctx.summary_loader().load(coupon=applied, shipping_method=shipping_method)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"title": "Invalid shipping method", "description": str(e)})
    if summary is None:
        raise HTTPException(status_code=409, detail={"title": "Cart changed", "description": "Reload the cart."})
    return {**summary.to_dict(), "coupon_message": coupon_message}


@router.get("/count")
async def get_cart_count(ctx: RequestContext = Depends(get_context)):
    identity = await ctx.identity.resolve()
    return {
        "count": await ctx.cart.get_cart_item_count(),
        "last_known": ctx.container.notifier.last_known(identity.owner_key),
    }


@router.post("/items")
async def add_item(payload: AddToCartRequest, ctx: RequestContext = Depends(get_context)):
    result = await ctx.cart.add_to_cart(payload.product_id, payload.quantity)
    raise_for_result(result)
    return {
        "item": result.value.to_dict(),
        "message": result.message.to_dict() if result.message else None,
        "count": await ctx.cart.get_cart_item_count(),
    }


@router.put("/items/{product_id}")
async def update_item(product_id: str, payload: UpdateQuantityRequest, ctx: RequestContext = Depends(get_context)):
    raise_for_result(await ctx.cart.update_cart_item_quantity(product_id, payload.quantity))
    return {"count": await ctx.cart.get_cart_item_count()}


@router.delete("/items/{product_id}")
async def remove_item(product_id: str, ctx: RequestContext = Depends(get_context)):
    raise_for_result(await ctx.cart.remove_from_cart(product_id))
    return {"count": await ctx.cart.get_cart_item_count()}


@router.delete("")
async def clear_cart(ctx: RequestContext = Depends(get_context)):
    raise_for_result(await ctx.cart.clear_cart())
    return {"count": 0}


@router.post("/coupon")
async def apply_coupon(payload: CouponRequest, ctx: RequestContext = Depends(get_context)):
    """Validate a code; the client keeps a single coupon slot and replaces it on success."""
    lookup = await ctx.container.coupons.apply_coupon(payload.code)
    raise_for_coupon(lookup)
    return {"status": lookup.status.value, "coupon": lookup.coupon.to_dict(), "message": lookup.message.to_dict()}


@router.websocket("/ws")
async def cart_count_socket(
    websocket: WebSocket,
    guest_id: str | None = Query(None),
    token: str | None = Query(None),
):
    """Pushes ``cart_updated`` events for the socket's cart owner."""
    container = websocket.app.state.container
    session = parse_session(guest_id, f"Bearer {token}" if token else None)
    identity = await IdentityProvider(container.auth, session).resolve()
    owner = identity.owner_key

    async def forward(event: CartCountEvent) -> None:
        await websocket.send_json(event.to_dict())

    await websocket.accept()
    cart = CartService(
        IdentityProvider(container.auth, session),
        container.local_carts,
        container.remote_carts,
        container.notifier,
        container.kv,
    )
    await websocket.send_json(
        {"type": "cart_count", "owner": owner, "count": await cart.get_cart_item_count(), "guest_id": session.guest_id}
    )
    await container.notifier.subscribe(owner, forward)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Cart socket closed for %s", owner)
    finally:
        await container.notifier.unsubscribe(owner, forward)
