"""Admin panel routes. Access policy is left to the deployment; only a signed-in user is required."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from .deps import Container, get_container, raise_for_result, require_user
from .schemas import (
    BannerRequest,
    CouponCreateRequest,
    CouponToggleRequest,
    OrderStatusRequest,
    ProductRequest,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_user)])


@router.get("/dashboard")
async def dashboard(container: Container = Depends(get_container)):
    stats = await container.admin.stats()
    return {"stats": asdict(stats), **(await container.admin.dashboard())}


@router.get("/users")
async def users(container: Container = Depends(get_container)):
    return {"users": await container.admin.list_users()}


# -- products -------------------------------------------------------------


@router.post("/products")
async def create_product(payload: ProductRequest, container: Container = Depends(get_container)):
    result = await container.admin.create_product(payload.model_dump(exclude_unset=True))
    raise_for_result(result)
    return result.value


@router.put("/products/{product_id}")
async def update_product(product_id: str, payload: ProductRequest, container: Container = Depends(get_container)):
    result = await container.admin.update_product(product_id, payload.model_dump(exclude_unset=True))
    if not result.success and result.message and result.message.title == "Product not found":
        raise_for_result(result, 404)
    raise_for_result(result)
    return {"success": True}


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, container: Container = Depends(get_container)):
    raise_for_result(await container.admin.delete_product(product_id))
    return {"success": True}


# -- banners --------------------------------------------------------------


@router.get("/banners")
async def list_banners(container: Container = Depends(get_container)):
    return {"banners": await container.admin.list_banners()}


@router.post("/banners")
async def create_banner(payload: BannerRequest, container: Container = Depends(get_container)):
    result = await container.admin.create_banner(payload.model_dump(exclude_unset=True))
    raise_for_result(result)
    return result.value


@router.put("/banners/{banner_id}")
async def update_banner(banner_id: str, payload: BannerRequest, container: Container = Depends(get_container)):
    raise_for_result(await container.admin.update_banner(banner_id, payload.model_dump(exclude_unset=True)))
    return {"success": True}


@router.delete("/banners/{banner_id}")
async def delete_banner(banner_id: str, container: Container = Depends(get_container)):
    raise_for_result(await container.admin.delete_banner(banner_id))
    return {"success": True}


# -- coupons --------------------------------------------------------------


@router.get("/coupons")
async def list_coupons(container: Container = Depends(get_container)):
    return {"coupons": [coupon.to_dict() for coupon in await container.coupons.list_coupons()]}


@router.post("/coupons")
async def create_coupon(payload: CouponCreateRequest, container: Container = Depends(get_container)):
    result = await container.coupons.create_coupon(
        payload.code, payload.discount_type, payload.discount_value, payload.active
    )
    raise_for_result(result)
    return result.value.to_dict()


@router.put("/coupons/{coupon_id}")
async def toggle_coupon(coupon_id: str, payload: CouponToggleRequest, container: Container = Depends(get_container)):
    raise_for_result(await container.coupons.set_active(coupon_id, payload.active))
    return {"success": True}


@router.delete("/coupons/{coupon_id}")
async def delete_coupon(coupon_id: str, container: Container = Depends(get_container)):
    raise_for_result(await container.coupons.delete_coupon(coupon_id))
    return {"success": True}


# -- orders ---------------------------------------------------------------


@router.get("/orders")
async def list_orders(container: Container = Depends(get_container)):
    return {"orders": [order.to_dict() for order in await container.orders.list_all_orders()]}


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: str, payload: OrderStatusRequest, container: Container = Depends(get_container)
):
    result = await container.orders.update_order_status(order_id, payload.status)
    if not result.success and result.message:
        status_code = {"Order not found": 404, "Status not changed": 409}.get(result.message.title)
        raise_for_result(result, status_code)
    return {"success": True, "message": result.message.to_dict() if result.message else None}
