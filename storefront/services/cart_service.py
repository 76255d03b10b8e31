"""
Cart service: one cart API for guests and signed-in users.

The identity provider picks the backing ``CartStore`` on every call: guests
use the local (KV) store keyed by their guest id, users use the remote store
keyed by user id. Reads fail open to an empty cart; mutations return an
``OperationResult`` instead of raising.
"""
from __future__ import annotations

from storefront.core.events import CartCountNotifier
from storefront.core.logging_config import logger
from storefront.core.results import RETRY_HINT, OperationResult, UserMessage
from storefront.domain.cart import CartLine, merge_lines
from storefront.domain.identity import AuthenticatedUser, Guest, Identity
from storefront.integrations.redis_kv import RedisKeyValueStore
from storefront.repositories.cart_store import CartStore

from .identity import IdentityProvider, LoginEvent

MERGE_GUARD_KEY = "cart_merge:{token}"


class CartService:
    def __init__(
        self,
        identity: IdentityProvider,
        local: CartStore,
        remote: CartStore,
        notifier: CartCountNotifier,
        kv: RedisKeyValueStore,
        *,
        merge_guard_ttl: int = 7 * 24 * 60 * 60,
    ) -> None:
        self._identity = identity
        self._local = local
        self._remote = remote
        self._notifier = notifier
        self._kv = kv
        self._merge_guard_ttl = merge_guard_ttl
        identity.on_login(self.handle_login)

    @property
    def notifier(self) -> CartCountNotifier:
        return self._notifier

    def _store_for(self, identity: Identity) -> tuple[CartStore, str]:
        if isinstance(identity, AuthenticatedUser):
            return self._remote, identity.id
        return self._local, identity.guest_id

    async def _current(self) -> tuple[Identity, CartStore, str]:
        identity = await self._identity.resolve()
        store, owner = self._store_for(identity)
        return identity, store, owner

    async def _notify(self, identity: Identity, store: CartStore, owner: str) -> None:
        try:
            count = await store.count(owner)
        except Exception as e:
            logger.warning("Could not recount cart for %s: %s", identity.owner_key, e)
            return
        await self._notifier.publish(identity.owner_key, count)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_cart_items(self) -> list[CartLine]:
        identity, store, owner = await self._current()
        try:
            return await store.get_lines(owner)
        except Exception as e:
            logger.error(f"Failed to load cart for {identity.owner_key}: {e}")
            return []

    async def get_cart_item_count(self) -> int:
        return sum(line.quantity for line in await self.get_cart_items())

    async def get_cart_item_quantity(self, product_id: str) -> int:
        for line in await self.get_cart_items():
            if line.product_id == str(product_id):
                return line.quantity
        return 0

    async def is_in_cart(self, product_id: str) -> bool:
        return await self.get_cart_item_quantity(product_id) > 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_to_cart(self, product_id: str, quantity: int = 1) -> OperationResult[CartLine]:
        if not product_id:
            return OperationResult.fail("Could not add to cart", "Choose a product first.", {"product_id": "required"})
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            quantity = 0
        if quantity < 1:
            return OperationResult.fail(
                "Could not add to cart",
                "Quantity must be at least 1.",
                {"quantity": "Quantity must be at least 1"},
            )
        identity, store, owner = await self._current()
        try:
            line = await store.add(owner, str(product_id), quantity)
        except Exception as e:
            logger.error(f"Add to cart failed for {identity.owner_key}, product {product_id}: {e}")
            return OperationResult.fail("Could not add to cart", RETRY_HINT)
        await self._notify(identity, store, owner)
        return OperationResult.ok(line, UserMessage("Added to cart", f"Quantity in cart: {line.quantity}."))

    async def update_cart_item_quantity(self, product_id: str, quantity: int) -> OperationResult[None]:
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            return OperationResult.fail(
                "Could not update cart", "Enter a whole number.", {"quantity": "Quantity must be a number"}
            )
        if quantity <= 0:
            return await self.remove_from_cart(product_id)
        identity, store, owner = await self._current()
        try:
            found = await store.set_quantity(owner, str(product_id), max(1, quantity))
        except Exception as e:
            logger.error(f"Update cart quantity failed for {identity.owner_key}, product {product_id}: {e}")
            return OperationResult.fail("Could not update cart", RETRY_HINT)
        if found:
            await self._notify(identity, store, owner)
        return OperationResult.ok()

    async def remove_from_cart(self, product_id: str) -> OperationResult[None]:
        identity, store, owner = await self._current()
        try:
            removed = await store.remove(owner, str(product_id))
        except Exception as e:
            logger.error(f"Remove from cart failed for {identity.owner_key}, product {product_id}: {e}")
            return OperationResult.fail("Could not remove item", RETRY_HINT)
        if removed:
            await self._notify(identity, store, owner)
        return OperationResult.ok()

    async def remove_lines(self, product_ids: list[str]) -> OperationResult[None]:
        """Drop the given products and keep every other line, e.g. after they were ordered."""
        identity, store, owner = await self._current()
        try:
            for product_id in product_ids:
                await store.remove(owner, str(product_id))
        except Exception as e:
            logger.error(f"Removing ordered lines failed for {identity.owner_key}: {e}")
            return OperationResult.fail("Could not update cart", RETRY_HINT)
        await self._notify(identity, store, owner)
        return OperationResult.ok()

    async def clear_cart(self) -> OperationResult[None]:
        identity, store, owner = await self._current()
        try:
            await store.clear(owner)
        except Exception as e:
            logger.error(f"Clear cart failed for {identity.owner_key}: {e}")
            return OperationResult.fail("Could not clear cart", RETRY_HINT)
        await self._notifier.publish(identity.owner_key, 0)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Merge on login
    # ------------------------------------------------------------------

    async def merge_guest_cart_with_user_cart(
        self, user_id: str, guest_id: str | None = None
    ) -> OperationResult[list[CartLine]]:
        """Fold the guest cart into the user's remote cart, then clear the guest cart.

        Quantities of products present in both carts are summed. Any read or
        write failure before the remote write completes leaves the guest cart
        untouched.
        """
        guest_owner = guest_id or self._identity.session.guest_id
        try:
            guest_lines = await self._local.get_lines(guest_owner)
        except Exception as e:
            logger.error(f"Merge aborted, guest cart unreadable for {guest_owner}: {e}")
            return OperationResult.fail("Could not restore your cart", RETRY_HINT)
        if not guest_lines:
            return OperationResult.ok([])

        try:
            user_lines = await self._remote.get_lines(user_id)
            merged = merge_lines(guest_lines, user_lines)
            await self._remote.replace(user_id, merged)
        except Exception as e:
            logger.error(f"Merge aborted for user {user_id}, guest cart kept: {e}")
            return OperationResult.fail("Could not restore your cart", RETRY_HINT)

        try:
            await self._local.clear(guest_owner)
        except Exception as e:
            logger.error(f"Merged cart for user {user_id} but could not clear guest {guest_owner}: {e}")

        logger.info(
            "Merged %s guest lines into cart of user %s (%s lines)", len(guest_lines), user_id, len(merged)
        )
        await self._notifier.publish(Guest(guest_owner).owner_key, 0)
        await self._notifier.publish(
            AuthenticatedUser(user_id, "").owner_key, sum(line.quantity for line in merged)
        )
        return OperationResult.ok(merged)

    async def handle_login(self, event: LoginEvent) -> None:
        """Login listener: merges at most once per auth token."""
        guard = MERGE_GUARD_KEY.format(token=event.token)
        if not self._kv.set_if_absent(guard, event.user.id, ttl=self._merge_guard_ttl):
            logger.info("Cart merge already done for this login of user %s", event.user.id)
            return
        result = await self.merge_guest_cart_with_user_cart(event.user.id, event.guest.guest_id)
        if not result.success:
            self._kv.delete(guard)
