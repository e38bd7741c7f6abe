from loguru import logger

from pedidos.domain.errors import ProtocolError, RemoteRejection
from pedidos.domain.order import AggregateStatistics, Order, OrderDraft
from pedidos.infrastructure.api_client import PedidosApiClient
from pedidos.shared.amounts import ZERO, try_parse_amount
from pedidos.shared.decorators import log_errors


class RemoteOrderGateway:
    """Reads and writes pending orders on the remote order store."""

    ORDERS_PATH = "/pedidos"
    SUMMARY_PATH = "/pedidos/resumen-general"

    def __init__(self, client: PedidosApiClient) -> None:
        self._client = client

    @log_errors
    async def list(self) -> list[Order]:
        """Return every pending order.

        The backend has answered both with a bare array and with an object
        wrapping the array under ``"pedidos"``; both are accepted.
        """
        response = await self._client.request("GET", self.ORDERS_PATH)
        body = self._client.json(response)

        if isinstance(body, dict) and isinstance(body.get("pedidos"), list):
            body = body["pedidos"]
        if not isinstance(body, list):
            raise ProtocolError(
                f"GET {self.ORDERS_PATH}: expected a list of orders, "
                f"got {type(body).__name__}"
            )

        orders = [self._map(node) for node in body]
        logger.debug(f"Fetched {len(orders)} order(s)")
        return orders

    @log_errors
    async def create(self, draft: OrderDraft | dict) -> Order:
        draft = OrderDraft.parse(draft)
        response = await self._client.request(
            "POST", self.ORDERS_PATH, json=draft.to_create_payload()
        )
        order = self._map(self._client.json(response))
        logger.info(f"Order {order.id} created for {order.distributor}")
        return order

    @log_errors
    async def update(self, order_id: str, draft: OrderDraft | dict) -> Order:
        draft = OrderDraft.parse(draft)
        response = await self._client.request(
            "PUT", f"{self.ORDERS_PATH}/{order_id}", json=draft.to_update_payload()
        )
        body = self._client.json(response)
        if isinstance(body, dict):
            # Some backend versions omit the id from the update response
            body = {"id": order_id, **body}
        order = self._map(body)
        logger.info(f"Order {order_id} updated")
        return order

    @log_errors
    async def delete(self, order_id: str) -> None:
        """Delete a pending order. A repeated delete raises ``NotFoundError``."""
        await self._client.request("DELETE", f"{self.ORDERS_PATH}/{order_id}")
        logger.info(f"Order {order_id} deleted")

    async def fetch_summary(self) -> AggregateStatistics | None:
        """Return the server-side totals, or ``None`` when they are unavailable.

        A rejected request (e.g. the endpoint does not exist) or a malformed
        body both mean "unavailable". ``TransportError`` is raised as usual.
        """
        try:
            response = await self._client.request("GET", self.SUMMARY_PATH)
            body = self._client.json(response)
        except (RemoteRejection, ProtocolError) as exc:
            logger.warning(f"Summary unavailable: {exc}")
            return None

        statistics = AggregateStatistics.from_summary(body)
        if statistics is None:
            logger.warning(f"Summary unavailable: unexpected body {body!r}")
        return statistics

    @staticmethod
    def _map(node: object) -> Order:
        """Map a raw order object to an ``Order`` domain object.

        Create/list responses use ``valor``/``fecha`` while the update endpoint
        uses ``valor_pedido``/``fecha_pedido``; either is accepted.
        """
        if not isinstance(node, dict):
            raise ProtocolError(f"expected an order object, got {type(node).__name__}")

        order_id = node.get("id")
        distributor = node.get("distribuidor")
        date = node.get("fecha", node.get("fecha_pedido"))
        if order_id is None or not isinstance(distributor, str) or not isinstance(date, str):
            raise ProtocolError(f"order object missing id/distribuidor/fecha: {node!r}")

        raw_amount = node.get("valor", node.get("valor_pedido"))
        amount = try_parse_amount(raw_amount)
        if amount is None:
            logger.warning(f"Order {order_id} has a non-numeric amount {raw_amount!r}")

        return Order(
            id=str(order_id),
            distributor=distributor,
            amount=ZERO if amount is None else amount,
            date=date,
            description=node.get("descripcion") or None,
            amount_malformed=amount is None,
            raw_amount=raw_amount if isinstance(raw_amount, (str, int, float)) else None,
        )
