from pathlib import Path

from loguru import logger

from pedidos.application.aggregation import StatisticsService
from pedidos.application.cache import LocalOrderCache
from pedidos.domain.interfaces import IPaymentGateway
from pedidos.domain.order import AggregateStatistics


class Executor:
    """Refreshes the pending orders, reports the totals and optionally exports paid records."""

    def __init__(
        self,
        cache: LocalOrderCache,
        statistics_service: StatisticsService,
        payment_gateway: IPaymentGateway,
    ) -> None:
        self._cache = cache
        self._statistics_service = statistics_service
        self._payment_gateway = payment_gateway

    async def run(self, export_path: Path | None = None) -> AggregateStatistics:
        logger.info("Fetching pending orders…")
        await self._cache.request_refresh()
        orders = self._cache.orders
        logger.info(f"Found {len(orders)} pending order(s).")

        for order in orders:
            flag = " (amount unreadable, counted as 0)" if order.amount_malformed else ""
            logger.debug(f"{order.id} | {order.distributor} | {order.date} | {order.amount}{flag}")

        statistics = await self._statistics_service.statistics(orders)
        logger.info(
            f"Pedidos: {statistics.order_count} | "
            f"Valor hoy: {statistics.value_today} | "
            f"Valor total: {statistics.value_total}"
        )

        if export_path is not None:
            path = await self._payment_gateway.export(export_path)
            logger.info(f"Paid records exported to: {path}")

        return statistics
