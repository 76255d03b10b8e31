"""
Checkout orchestrator: commits a priced cart as one order.

State machine per checkout: DRAFT -> SUBMITTING -> COMMITTED | FAILED.
The order row and its items are written inside ``store.atomic()``; if the
store still fails, compensating deletes remove whatever was written. The cart
loses the ordered lines only after the commit succeeded; lines whose
product no longer exists were not ordered and stay in the cart.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from storefront.core.exceptions import DataStoreError, PartialCommitError
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, SUPPORT_HINT, UserMessage
from storefront.core.security import validator
from storefront.core.sentry_integration import add_breadcrumb, capture_exception
from storefront.domain.cart import EnrichedCartLine
from storefront.domain.coupon import Coupon
from storefront.domain.identity import Guest
from storefront.domain.order import OrderStatus, PaymentMethod, ShippingInfo, ShippingMethod
from storefront.domain.pricing import PricingBreakdown, PricingEngine
from storefront.infra.datastore import DataStore
from storefront.integrations.redis_kv import RedisKeyValueStore
from storefront.repositories.order_repository import OrderRepository

from .cart_service import CartService
from .identity import IdentityProvider

LOGIN_PATH = "/auth/login"
SUBMIT_GUARD_KEY = "checkout_submitting:{user_id}"
SUBMIT_GUARD_TTL = 60


class CheckoutState(str, Enum):
    DRAFT = "draft"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    FAILED = "failed"


class FailureKind(str, Enum):
    AUTHENTICATION_REQUIRED = "authentication_required"
    VALIDATION = "validation"
    IN_PROGRESS = "in_progress"
    TRANSPORT = "transport"
    PARTIAL_COMMIT = "partial_commit"


@dataclass(slots=True)
class CheckoutResult:
    success: bool
    order_id: str | None = None
    breakdown: PricingBreakdown | None = None
    kind: FailureKind | None = None
    message: UserMessage | None = None
    errors: dict[str, str] = field(default_factory=dict)
    redirect_to: str | None = None

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        title: str,
        description: str,
        *,
        errors: dict[str, str] | None = None,
        redirect_to: str | None = None,
        order_id: str | None = None,
    ) -> CheckoutResult:
        return cls(
            False,
            order_id=order_id,
            kind=kind,
            message=UserMessage(title, description),
            errors=dict(errors or {}),
            redirect_to=redirect_to,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "order_id": self.order_id,
            "breakdown": self.breakdown.to_dict() if self.breakdown else None,
            "kind": self.kind.value if self.kind else None,
            "message": self.message.to_dict() if self.message else None,
            "errors": self.errors,
            "redirect_to": self.redirect_to,
        }


def coerce_shipping_info(data: ShippingInfo | dict[str, Any]) -> ShippingInfo:
    if isinstance(data, ShippingInfo):
        return data
    return ShippingInfo(
        email=str(data.get("email") or ""),
        first_name=str(data.get("first_name") or ""),
        last_name=str(data.get("last_name") or ""),
        address=str(data.get("address") or ""),
        city=str(data.get("city") or ""),
        postal_code=str(data.get("postal_code") or ""),
        country=str(data.get("country") or ""),
        state=str(data.get("state") or ""),
        phone=data.get("phone") or None,
    )


def validate_checkout(
    lines: list[EnrichedCartLine],
    info: ShippingInfo,
    payment_method: str,
    shipping_method: str,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not lines:
        errors["cart"] = "Your cart is empty"
    for name in ShippingInfo.REQUIRED_FIELDS:
        if not str(getattr(info, name) or "").strip():
            errors[name] = "This field is required"
    if "email" not in errors and not validator.validate_email(info.email):
        errors["email"] = "Enter a valid email address"
    if "postal_code" not in errors and not validator.validate_postal_code(info.postal_code):
        errors["postal_code"] = "Enter a valid postal code"
    if info.phone and not validator.validate_phone(info.phone):
        errors["phone"] = "Enter a valid phone number"
    if payment_method not in PaymentMethod.ALL:
        errors["payment_method"] = "Choose a payment method"
    if shipping_method not in ShippingMethod.ALL:
        errors["shipping_method"] = "Choose a shipping method"
    return errors


class CheckoutOrchestrator:
    def __init__(
        self,
        identity: IdentityProvider,
        cart: CartService,
        store: DataStore,
        pricing: PricingEngine,
        orders: OrderRepository | None = None,
        kv: RedisKeyValueStore | None = None,
    ) -> None:
        self._identity = identity
        self._cart = cart
        self._store = store
        self._pricing = pricing
        self._orders = orders or OrderRepository(store)
        self._kv = kv
        self.state = CheckoutState.DRAFT

    async def place_order(
        self,
        lines: list[EnrichedCartLine],
        shipping_info: ShippingInfo | dict[str, Any],
        payment_method: str,
        *,
        shipping_method: str = ShippingMethod.STANDARD,
        coupon: Coupon | None = None,
    ) -> CheckoutResult:
        if self.state is CheckoutState.SUBMITTING:
            return CheckoutResult.failure(
                FailureKind.IN_PROGRESS, "Order in progress", "Your order is already being placed."
            )
        if self.state is CheckoutState.COMMITTED:
            return CheckoutResult.failure(
                FailureKind.IN_PROGRESS, "Order already placed", "Start a new checkout to order again."
            )

        identity = await self._identity.resolve()
        if isinstance(identity, Guest):
            return CheckoutResult.failure(
                FailureKind.AUTHENTICATION_REQUIRED,
                "Sign in required",
                "Please sign in to complete your order.",
                redirect_to=LOGIN_PATH,
            )

        info = coerce_shipping_info(shipping_info)
        payment = PaymentMethod.normalize(payment_method)
        method = ShippingMethod.normalize(shipping_method)
        errors = validate_checkout(lines, info, payment, method)
        breakdown = None
        if not errors:
            try:
                breakdown = self._pricing.checkout_breakdown(lines, coupon, method)
            except ValueError:
                errors["shipping_method"] = "This shipping method is not available"
        if errors:
            return CheckoutResult.failure(
                FailureKind.VALIDATION,
                "Check your details",
                "Some required information is missing or invalid.",
                errors=errors,
            )

        guard = SUBMIT_GUARD_KEY.format(user_id=identity.id)
        if self._kv is not None and not self._kv.set_if_absent(guard, "1", ttl=SUBMIT_GUARD_TTL):
            return CheckoutResult.failure(
                FailureKind.IN_PROGRESS, "Order in progress", "Your order is already being placed."
            )
        self.state = CheckoutState.SUBMITTING
        add_breadcrumb("Submitting order", category="checkout", user_id=identity.id, total=breakdown.total)
        try:
            return await self._submit(identity.id, lines, info, payment, method, coupon, breakdown)
        finally:
            if self._kv is not None:
                self._kv.delete(guard)

    async def _submit(
        self,
        user_id: str,
        lines: list[EnrichedCartLine],
        info: ShippingInfo,
        payment: str,
        method: str,
        coupon: Coupon | None,
        breakdown: PricingBreakdown,
    ) -> CheckoutResult:
        order_row = {
            "user_id": user_id,
            "status": OrderStatus.PENDING,
            "subtotal_amount": breakdown.subtotal,
            "shipping_amount": breakdown.shipping,
            "tax_amount": breakdown.tax,
            "discount_amount": breakdown.discount,
            "total_amount": breakdown.total,
            "coupon_code": coupon.code if coupon else None,
            "payment_method": payment,
            "shipping_method": method,
            **info.to_order_fields(),
        }
        try:
            order_id = await self._commit(order_row, lines)
        except PartialCommitError as e:
            self.state = CheckoutState.FAILED
            logger.error(f"PARTIAL COMMIT for order {e.order_id} of user {user_id}: {e}")
            capture_exception(e, order_id=e.order_id, user_id=user_id)
            return CheckoutResult.failure(
                FailureKind.PARTIAL_COMMIT,
                "Order could not be completed",
                f"Your order may have been partially saved. {SUPPORT_HINT}",
                order_id=e.order_id,
            )
        except DataStoreError as e:
            self.state = CheckoutState.FAILED
            logger.error(f"Checkout failed for user {user_id}: {e}")
            return CheckoutResult.failure(
                FailureKind.TRANSPORT, "Could not place order", f"Your cart was kept. {RETRY_HINT}"
            )

        self.state = CheckoutState.COMMITTED
        logger.info("Order %s placed by user %s, total %s", order_id, user_id, breakdown.total)

        cleared = await self._cart.remove_lines([line.product_id for line in lines])
        if not cleared.success:
            logger.warning("Order %s committed but the cart of user %s was not cleared", order_id, user_id)

        return CheckoutResult(
            True,
            order_id=order_id,
            breakdown=breakdown,
            message=UserMessage("Order placed", "Thank you! We have received your order."),
        )

    async def _commit(self, order_row: dict[str, Any], lines: list[EnrichedCartLine]) -> str:
        order_id: str | None = None
        item_ids: list[str] = []
        try:
            async with self._store.atomic() as tx:
                order = await self._orders.create_order(order_row, tx)
                order_id = str(order["id"])
                for line in lines:
                    item = await self._orders.add_item(
                        {
                            "order_id": order_id,
                            "product_id": line.product_id,
                            "quantity": line.quantity,
                            "price_at_purchase": line.unit_price,
                        },
                        tx,
                    )
                    item_ids.append(str(item["id"]))
        except DataStoreError:
            if order_id is not None:
                await self._compensate(order_id, item_ids)
            raise
        return order_id

    async def _compensate(self, order_id: str, item_ids: list[str]) -> None:
        try:
            await self._orders.delete_items(item_ids)
            await self._orders.delete_order(order_id)
        except DataStoreError as e:
            raise PartialCommitError(order_id, f"Compensation failed for order {order_id}: {e}") from e
        logger.warning("Rolled back order %s after a failed commit", order_id)
