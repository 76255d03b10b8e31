from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from storefront.core.results import RETRY_HINT
from storefront.domain.identity import AuthenticatedUser

from .deps import Container, get_container, raise_for_result, require_user
from .schemas import ProfileUpdateRequest, ReviewRequest, ReviewUpdateRequest, WishlistRequest

router = APIRouter(tags=["account"])


@router.get("/orders")
async def my_orders(user: AuthenticatedUser = Depends(require_user), container: Container = Depends(get_container)):
    orders = await container.orders.get_user_orders(user.id)
    return {"orders": [order.to_dict() for order in orders]}


@router.get("/orders/{order_id}")
async def my_order(
    order_id: str,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    order = await container.orders.get_order(order_id, user.id)
    if order is None:
        raise HTTPException(status_code=404, detail={"title": "Order not found", "description": ""})
    return order.to_dict()


@router.get("/profile")
async def get_profile(user: AuthenticatedUser = Depends(require_user), container: Container = Depends(get_container)):
    profile = await container.profiles.get_profile(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail={"title": "Profile not found", "description": ""})
    return profile


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    result = await container.profiles.update_profile(user.id, payload.model_dump(exclude_none=True))
    raise_for_result(result)
    return {"success": True}


@router.get("/wishlist")
async def wishlist(user: AuthenticatedUser = Depends(require_user), container: Container = Depends(get_container)):
    return {"items": await container.profiles.get_wishlist(user.id)}


@router.post("/wishlist")
async def add_wishlist(
    payload: WishlistRequest,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    result = await container.profiles.add_to_wishlist(user.id, payload.product_id)
    if not result.success and result.message and result.message.title == "Already saved":
        raise_for_result(result, 409)
    raise_for_result(result)
    return {"success": True}


@router.delete("/wishlist/{product_id}")
async def remove_wishlist(
    product_id: str,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    raise_for_result(await container.profiles.remove_from_wishlist(user.id, product_id))
    return {"success": True}


@router.get("/reviews")
async def my_reviews(user: AuthenticatedUser = Depends(require_user), container: Container = Depends(get_container)):
    return {"reviews": await container.reviews.get_user_reviews(user.id)}


@router.get("/reviews/reviewable")
async def reviewable(user: AuthenticatedUser = Depends(require_user), container: Container = Depends(get_container)):
    return {"items": await container.reviews.get_reviewable_products(user.id)}


@router.post("/reviews")
async def create_review(
    payload: ReviewRequest,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    result = await container.reviews.create_review(user.id, payload.model_dump())
    if not result.success and not result.errors and result.message.description != RETRY_HINT:
        raise_for_result(result, 409)
    raise_for_result(result)
    return result.value


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: str,
    payload: ReviewUpdateRequest,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    raise_for_result(await container.reviews.update_review(review_id, user.id, payload.model_dump(exclude_none=True)))
    return {"success": True}


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: str,
    user: AuthenticatedUser = Depends(require_user),
    container: Container = Depends(get_container),
):
    raise_for_result(await container.reviews.delete_review(review_id, user.id))
    return {"success": True}
