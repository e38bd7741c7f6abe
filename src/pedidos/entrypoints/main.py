import asyncio
import sys

from loguru import logger

from pedidos.application.aggregation import StatisticsService
from pedidos.application.cache import LocalOrderCache
from pedidos.entrypoints.executor import Executor
from pedidos.entrypoints.settings import config
from pedidos.infrastructure.api_client import PedidosApiClient, build_async_client
from pedidos.infrastructure.order_gateway import RemoteOrderGateway
from pedidos.infrastructure.payment_gateway import RemotePaymentGateway


async def run() -> None:
    async with build_async_client(
        config.PEDIDOS_API_BASE_URL, config.PEDIDOS_HTTP_TIMEOUT
    ) as http_client:
        api_client = PedidosApiClient(http_client)
        order_gateway = RemoteOrderGateway(api_client)

        executor = Executor(
            cache=LocalOrderCache(order_gateway),
            statistics_service=StatisticsService(
                order_gateway, timezone=config.PEDIDOS_TIMEZONE
            ),
            payment_gateway=RemotePaymentGateway(api_client),
        )
        await executor.run(
            export_path=config.PEDIDOS_EXPORT_PATH if config.PEDIDOS_EXPORT_ON_RUN else None
        )


def main() -> None:
    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)
    asyncio.run(run())


if __name__ == "__main__":
    main()
