"""Running totals over pending orders.

Two paths produce the same ``AggregateStatistics``: the server summary
(preferred, constant cost) and a manual pass over the order list, used when
the summary is unavailable.
"""

from collections.abc import Callable, Sequence
from datetime import date

from loguru import logger

from pedidos.domain.errors import TransportError
from pedidos.domain.interfaces import IOrderGateway
from pedidos.domain.order import AggregateStatistics, Order
from pedidos.shared.amounts import ZERO
from pedidos.shared.dates import DEFAULT_TIMEZONE, date_prefix, today_in

statistics_from_summary = AggregateStatistics.from_summary


def compute_statistics(orders: Sequence[Order], today: date) -> AggregateStatistics:
    """Sum order amounts, bucketing those dated ``today`` by their date prefix.

    Orders with malformed amounts already carry 0 and are still counted.
    """
    today_iso = today.isoformat()
    value_total = ZERO
    value_today = ZERO
    for order in orders:
        value_total += order.amount
        if date_prefix(order.date) == today_iso:
            value_today += order.amount

    return AggregateStatistics(
        order_count=len(orders),
        value_today=value_today,
        value_total=value_total,
    )


class StatisticsService:
    """Application service for the dashboard totals."""

    def __init__(
        self,
        gateway: IOrderGateway,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[str], date] = today_in,
    ) -> None:
        self._gateway = gateway
        self._timezone = timezone
        self._clock = clock

    def today(self) -> date:
        return self._clock(self._timezone)

    async def statistics(self, orders: Sequence[Order] | None = None) -> AggregateStatistics:
        """Return the server summary, or compute totals locally if it is unavailable.

        ``orders`` is used for the local computation when given (normally the
        cache snapshot); otherwise the order list is fetched. Only errors from
        that fetch reach the caller.
        """
        try:
            summary = await self._gateway.fetch_summary()
        except TransportError as exc:
            logger.warning(f"Summary request failed, computing locally: {exc}")
            summary = None

        if summary is not None:
            return summary

        if orders is None:
            orders = await self._gateway.list()
        # Evaluated once so every order is compared against the same day
        today = self.today()
        return compute_statistics(orders, today)
