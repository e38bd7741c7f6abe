from pathlib import Path

from loguru import logger

from pedidos.domain.order import Order, PaidRecord
from pedidos.infrastructure.api_client import PedidosApiClient
from pedidos.shared.decorators import log_errors


class RemotePaymentGateway:
    """Writes paid records and exports them as a spreadsheet."""

    APPEND_PATH = "/pagados/agregar"
    EXPORT_PATH = "/pagados/exportar"

    def __init__(self, client: PedidosApiClient) -> None:
        self._client = client

    @log_errors
    async def append(self, order: Order) -> PaidRecord:
        """POST ``order`` to the paid-records store.

        Not idempotent: every successful call writes one more paid record.

        Raises:
            TransportError: when the backend cannot be reached.
            RemoteRejection: on non-2xx responses.
        """
        await self._client.request("POST", self.APPEND_PATH, json=order.to_wire())
        record = PaidRecord.from_order(order)
        logger.info(f"[Pagados] Order {order.id} recorded as paid — {order.amount}")
        return record

    @log_errors
    async def export(self, destination: Path) -> Path:
        """Stream the paid-records spreadsheet to ``destination``."""
        path = await self._client.download(self.EXPORT_PATH, destination)
        logger.info(f"[Pagados] Export written to {path}")
        return path
