from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from storefront.services import FailureKind

from .deps import RequestContext, get_context, raise_for_coupon
from .schemas import CheckoutRequest

router = APIRouter(prefix="/checkout", tags=["checkout"])

FAILURE_STATUS = {
    FailureKind.AUTHENTICATION_REQUIRED: 401,
    FailureKind.VALIDATION: 400,
    FailureKind.IN_PROGRESS: 409,
    FailureKind.TRANSPORT: 503,
    FailureKind.PARTIAL_COMMIT: 500,
}


@router.get("/shipping-options")
async def shipping_options(ctx: RequestContext = Depends(get_context)):
    return {"options": ctx.container.pricing.shipping_options()}


@router.post("")
async def place_order(payload: CheckoutRequest, ctx: RequestContext = Depends(get_context)):
    """Prices the current cart server-side and commits it as an order."""
    coupon = None
    if payload.coupon_code:
        lookup = await ctx.container.coupons.apply_coupon(payload.coupon_code)
        raise_for_coupon(lookup)
        coupon = lookup.coupon
    summary = await ctx.summary_loader().load(scope="checkout")
    if summary is None:
        raise HTTPException(status_code=409, detail={"title": "Cart changed", "description": "Reload the cart."})
    result = await ctx.checkout().place_order(
        summary.lines,
        payload.shipping.model_dump(),
        payload.payment_method,
        shipping_method=payload.shipping_method,
        coupon=coupon,
    )
    if not result.success:
        return JSONResponse(status_code=FAILURE_STATUS[result.kind], content=result.to_dict())
    return result.to_dict()
