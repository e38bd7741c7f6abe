import asyncio
from collections.abc import Iterable

from loguru import logger

from pedidos.domain.interfaces import IOrderGateway
from pedidos.domain.order import Order


class LocalOrderCache:
    """Last fetched order list, guarded by a monotonic refresh token.

    Each refresh takes a new token before it suspends on the network. Its
    response is applied only if no newer refresh was requested meanwhile, so a
    slow older response can never overwrite a newer one. The snapshot is an
    immutable tuple replaced in one assignment; readers never observe a
    half-applied update.
    """

    def __init__(self, gateway: IOrderGateway) -> None:
        self._gateway = gateway
        self._token = 0
        self._applied_token = 0
        self._orders: tuple[Order, ...] = ()
        self._background: set[asyncio.Task] = set()
        self.last_error: Exception | None = None

    @property
    def token(self) -> int:
        """The most recently issued refresh token."""
        return self._token

    @property
    def applied_token(self) -> int:
        """Token of the response the current snapshot came from (0 before any)."""
        return self._applied_token

    @property
    def orders(self) -> tuple[Order, ...]:
        return self._orders

    async def request_refresh(self) -> bool:
        """Fetch the order list; return whether the response was applied.

        Transport and protocol errors propagate to the caller.
        """
        return await self._refresh(self._next_token())

    def refresh_in_background(self) -> "asyncio.Task[bool]":
        """Schedule a refresh without waiting for it.

        The token is taken immediately, so responses to refreshes issued before
        this call are already stale. Failures are logged and kept in
        ``last_error``.
        """
        task = asyncio.create_task(self._refresh(self._next_token()))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def apply(self, token: int, orders: Iterable[Order]) -> bool:
        """Install ``orders`` as the snapshot if ``token`` is still current."""
        if token != self._token:
            logger.warning(
                f"Discarding stale order list for refresh {token} "
                f"(current refresh is {self._token})"
            )
            return False
        self._orders = tuple(orders)
        self._applied_token = token
        self.last_error = None
        logger.debug(f"Refresh {token} applied — {len(self._orders)} order(s)")
        return True

    def remove_local(self, order_id: str) -> bool:
        """Drop an order from the snapshot ahead of the next refresh."""
        remaining = tuple(order for order in self._orders if order.id != order_id)
        removed = len(remaining) != len(self._orders)
        self._orders = remaining
        return removed

    async def delete(self, order_id: str) -> None:
        """Delete an order remotely, then drop it locally and refresh in the background."""
        await self._gateway.delete(order_id)
        self.remove_local(order_id)
        self.refresh_in_background()

    async def drain(self) -> None:
        """Wait for every scheduled background refresh to finish."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _next_token(self) -> int:
        self._token += 1
        return self._token

    async def _refresh(self, token: int) -> bool:
        orders = await self._gateway.list()
        return self.apply(token, orders)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            self.last_error = exc
            logger.error(f"Background refresh failed: {type(exc).__name__}: {exc}")
