"""Pending → paid transition across the order and paid-records stores.

The transition is two remote writes with no transaction between them:

1. append a paid record (not idempotent, never retried automatically);
2. delete the pending order (safe to repeat until it succeeds).

If step 2 fails the order exists in both stores. That state is reported as
``PartialTransitionError`` and remembered, so the next attempt for the same
order only repeats step 2.

Calls for the same order are serialized by a per-order lock, so a second
``mark_paid`` issued while the first is still in flight waits for it and then
sees the resulting state instead of writing another paid record.
"""

import asyncio
from enum import StrEnum

from loguru import logger

from pedidos.application.cache import LocalOrderCache
from pedidos.domain.errors import NotFoundError, PartialTransitionError
from pedidos.domain.interfaces import IOrderGateway, IPaymentGateway
from pedidos.domain.order import Order


class TransitionState(StrEnum):
    pending = "pending"
    appending = "appending"
    awaiting_removal = "awaiting_removal"
    paid = "paid"
    inconsistent = "inconsistent"


class PaymentTransitionCoordinator:
    def __init__(
        self,
        order_gateway: IOrderGateway,
        payment_gateway: IPaymentGateway,
        cache: LocalOrderCache | None = None,
    ) -> None:
        self._orders = order_gateway
        self._payments = payment_gateway
        self._cache = cache
        self._states: dict[str, TransitionState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def state(self, order_id: str) -> TransitionState:
        return self._states.get(order_id, TransitionState.pending)

    async def mark_paid(self, order: Order) -> None:
        """Record ``order`` as paid and remove it from the pending store.

        Raises:
            TransportError, RemoteRejection: step 1 failed; the order is still
                pending and nothing was written.
            PartialTransitionError: step 1 succeeded but the pending order
                could not be removed. Call :meth:`retry_removal` (or this
                method again) to finish.
        """
        async with self._lock(order.id):
            state = self.state(order.id)
            if state is TransitionState.paid:
                logger.debug(f"Order {order.id} already paid — nothing to do")
                return
            if state is not TransitionState.pending:
                logger.info(f"Order {order.id} already has a paid record — retrying removal only")
                await self._remove(order.id)
                return

            self._states[order.id] = TransitionState.appending
            try:
                await self._payments.append(order)
            except BaseException:
                self._states[order.id] = TransitionState.pending
                raise
            self._states[order.id] = TransitionState.awaiting_removal
            await self._remove(order.id)

    async def retry_removal(self, order_id: str) -> None:
        """Repeat step 2 alone for an order whose paid record already exists."""
        async with self._lock(order_id):
            if self.state(order_id) is TransitionState.paid:
                return
            await self._remove(order_id)

    def _lock(self, order_id: str) -> asyncio.Lock:
        return self._locks.setdefault(order_id, asyncio.Lock())

    async def _remove(self, order_id: str) -> None:
        try:
            await self._orders.delete(order_id)
        except NotFoundError:
            # Already gone, e.g. an earlier delete succeeded but its response was lost
            logger.info(f"Order {order_id} was already removed")
        except Exception as exc:
            self._states[order_id] = TransitionState.inconsistent
            logger.warning(
                f"Order {order_id} has a paid record but is still pending: "
                f"{type(exc).__name__}: {exc}"
            )
            raise PartialTransitionError(order_id, exc) from exc

        self._states[order_id] = TransitionState.paid
        logger.info(f"Order {order_id} paid")
        if self._cache is not None:
            self._cache.remove_local(order_id)
            self._cache.refresh_in_background()
