"""Tests for the pending → paid transition and the paid-records gateway."""

import asyncio
import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from pedidos.application.cache import LocalOrderCache
from pedidos.application.payment import PaymentTransitionCoordinator, TransitionState
from pedidos.domain.errors import (
    NotFoundError,
    PartialTransitionError,
    RemoteRejection,
    TransportError,
)
from pedidos.domain.order import Order, PaidRecord
from pedidos.infrastructure.api_client import PedidosApiClient
from pedidos.infrastructure.order_gateway import RemoteOrderGateway
from pedidos.infrastructure.payment_gateway import RemotePaymentGateway


def _make_order(order_id: str = "1", amount: str = "150.50") -> Order:
    return Order(
        id=order_id,
        distributor="Distribuidora Andina",
        amount=Decimal(amount),
        date="2024-05-01",
        description="Caja",
    )


def _coordinator(
    cache: LocalOrderCache | None = None,
) -> tuple[PaymentTransitionCoordinator, MagicMock, MagicMock]:
    orders = MagicMock(spec=RemoteOrderGateway)
    payments = MagicMock(spec=RemotePaymentGateway)
    return PaymentTransitionCoordinator(orders, payments, cache), orders, payments


class _FakeBackend:
    """In-memory stand-in for the pedidos backend, served through httpx.MockTransport."""

    def __init__(self, orders: list[dict]) -> None:
        self.orders = {str(o["id"]): o for o in orders}
        self.paid: list[dict] = []
        self.failing_deletes = 0

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/pedidos":
            return httpx.Response(200, json=list(self.orders.values()))
        if request.method == "POST" and path == "/pagados/agregar":
            self.paid.append(json.loads(request.content))
            return httpx.Response(201, json={"ok": True})
        if request.method == "DELETE" and path.startswith("/pedidos/"):
            if self.failing_deletes:
                self.failing_deletes -= 1
                return httpx.Response(503, text="Service Unavailable")
            order_id = path.rsplit("/", 1)[-1]
            if self.orders.pop(order_id, None) is None:
                return httpx.Response(404, text="Pedido no encontrado")
            return httpx.Response(204)
        return httpx.Response(404)

    def gateways(self) -> tuple[RemoteOrderGateway, RemotePaymentGateway]:
        client = PedidosApiClient(
            httpx.AsyncClient(
                base_url="https://pedidos.test", transport=httpx.MockTransport(self.handle)
            )
        )
        return RemoteOrderGateway(client), RemotePaymentGateway(client)


# ---------------------------------------------------------------------------
# Coordinator with mocked gateways
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mark_paid_appends_then_deletes() -> None:
    coordinator, orders, payments = _coordinator()
    order = _make_order()

    await coordinator.mark_paid(order)

    payments.append.assert_awaited_once_with(order)
    orders.delete.assert_awaited_once_with("1")
    assert coordinator.state("1") is TransitionState.paid


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [TransportError("unreachable"), RemoteRejection(400, "payload invalido")]
)
async def test_failed_append_leaves_order_pending(error: Exception) -> None:
    coordinator, orders, payments = _coordinator()
    payments.append.side_effect = error

    with pytest.raises(type(error)):
        await coordinator.mark_paid(_make_order())

    orders.delete.assert_not_awaited()
    assert coordinator.state("1") is TransitionState.pending


@pytest.mark.asyncio
async def test_failed_delete_reports_partial_transition() -> None:
    coordinator, orders, payments = _coordinator()
    orders.delete.side_effect = TransportError("unreachable")

    with pytest.raises(PartialTransitionError) as excinfo:
        await coordinator.mark_paid(_make_order())

    assert excinfo.value.order_id == "1"
    assert isinstance(excinfo.value.cause, TransportError)
    assert coordinator.state("1") is TransitionState.inconsistent


@pytest.mark.asyncio
async def test_retry_removal_does_not_append_again() -> None:
    coordinator, orders, payments = _coordinator()
    orders.delete.side_effect = [TransportError("unreachable"), None]

    with pytest.raises(PartialTransitionError):
        await coordinator.mark_paid(_make_order())
    await coordinator.retry_removal("1")

    payments.append.assert_awaited_once()
    assert orders.delete.await_count == 2
    assert coordinator.state("1") is TransitionState.paid


@pytest.mark.asyncio
async def test_mark_paid_again_after_partial_only_retries_removal() -> None:
    coordinator, orders, payments = _coordinator()
    orders.delete.side_effect = [RemoteRejection(500, "boom"), None]
    order = _make_order()

    with pytest.raises(PartialTransitionError):
        await coordinator.mark_paid(order)
    await coordinator.mark_paid(order)

    payments.append.assert_awaited_once()
    assert coordinator.state("1") is TransitionState.paid


@pytest.mark.asyncio
async def test_not_found_on_retry_completes_transition() -> None:
    """The order was already gone (e.g. the earlier delete landed but its response was lost)."""
    coordinator, orders, payments = _coordinator()
    orders.delete.side_effect = [
        TransportError("read timeout"),
        NotFoundError(404, "Pedido no encontrado"),
    ]

    with pytest.raises(PartialTransitionError):
        await coordinator.mark_paid(_make_order())
    await coordinator.retry_removal("1")

    assert coordinator.state("1") is TransitionState.paid


@pytest.mark.asyncio
async def test_mark_paid_on_paid_order_is_a_no_op() -> None:
    coordinator, orders, payments = _coordinator()
    order = _make_order()

    await coordinator.mark_paid(order)
    await coordinator.mark_paid(order)

    payments.append.assert_awaited_once()
    orders.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_overlapping_mark_paid_calls_append_once() -> None:
    """A double-submitted payment waits for the first one instead of appending again."""
    coordinator, orders, payments = _coordinator()

    async def slow_append(order: Order) -> None:
        assert coordinator.state(order.id) is TransitionState.appending
        await asyncio.sleep(0.01)

    payments.append.side_effect = slow_append
    order = _make_order()

    await asyncio.gather(coordinator.mark_paid(order), coordinator.mark_paid(order))

    payments.append.assert_awaited_once_with(order)
    orders.delete.assert_awaited_once_with("1")
    assert coordinator.state("1") is TransitionState.paid


@pytest.mark.asyncio
async def test_waiting_mark_paid_appends_after_first_append_failed() -> None:
    coordinator, orders, payments = _coordinator()
    payments.append.side_effect = [TransportError("unreachable"), None]
    order = _make_order()

    results = await asyncio.gather(
        coordinator.mark_paid(order), coordinator.mark_paid(order), return_exceptions=True
    )

    assert isinstance(results[0], TransportError)
    assert results[1] is None
    assert payments.append.await_count == 2
    orders.delete.assert_awaited_once_with("1")
    assert coordinator.state("1") is TransitionState.paid


# ---------------------------------------------------------------------------
# End to end against the in-memory backend
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_paid_order_leaves_pending_list_and_cache() -> None:
    backend = _FakeBackend(
        [
            {"id": 1, "distribuidor": "A", "fecha": "2024-05-01", "valor": "1,500"},
            {"id": 2, "distribuidor": "B", "fecha": "2024-05-01", "valor": 300},
        ]
    )
    order_gateway, payment_gateway = backend.gateways()
    cache = LocalOrderCache(order_gateway)
    coordinator = PaymentTransitionCoordinator(order_gateway, payment_gateway, cache)
    await cache.request_refresh()
    target = cache.orders[0]

    await coordinator.mark_paid(target)

    assert [o.id for o in cache.orders] == ["2"]
    await cache.drain()
    assert [o.id for o in cache.orders] == ["2"]
    assert cache.applied_token == 2
    assert [o.id for o in await order_gateway.list()] == ["2"]
    assert backend.paid == [
        {"id": "1", "distribuidor": "A", "valor": 1500, "fecha": "2024-05-01"}
    ]


@pytest.mark.asyncio
async def test_partial_transition_retry_does_not_duplicate_paid_record() -> None:
    backend = _FakeBackend([{"id": 7, "distribuidor": "A", "fecha": "2024-05-01", "valor": 10}])
    backend.failing_deletes = 1
    order_gateway, payment_gateway = backend.gateways()
    cache = LocalOrderCache(order_gateway)
    coordinator = PaymentTransitionCoordinator(order_gateway, payment_gateway, cache)
    await cache.request_refresh()
    order = cache.orders[0]

    with pytest.raises(PartialTransitionError):
        await coordinator.mark_paid(order)
    # Inconsistent: paid record written, order still pending
    assert len(backend.paid) == 1
    assert [o.id for o in cache.orders] == ["7"]

    await coordinator.retry_removal(order.id)
    await cache.drain()

    assert len(backend.paid) == 1
    assert backend.orders == {}
    assert cache.orders == ()


# ---------------------------------------------------------------------------
# RemotePaymentGateway
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_append_posts_full_order() -> None:
    backend = _FakeBackend([])
    _, payment_gateway = backend.gateways()

    record = await payment_gateway.append(_make_order())

    assert isinstance(record, PaidRecord)
    assert record.order_id == "1"
    assert record.amount == Decimal("150.50")
    assert backend.paid == [
        {
            "id": "1",
            "distribuidor": "Distribuidora Andina",
            "valor": 150.5,
            "fecha": "2024-05-01",
            "descripcion": "Caja",
        }
    ]


@pytest.mark.asyncio
async def test_append_echoes_unreadable_amount_verbatim() -> None:
    """A paid record keeps what the order store held, not the 0 used for totals."""
    backend = _FakeBackend([])
    _, payment_gateway = backend.gateways()
    order = RemoteOrderGateway._map(
        {"id": 4, "distribuidor": "D", "fecha": "2024-05-01", "valor": "12.500,00 COP"}
    )

    record = await payment_gateway.append(order)

    assert order.amount == Decimal("0")
    assert record.amount_malformed
    assert backend.paid == [
        {"id": "4", "distribuidor": "D", "valor": "12.500,00 COP", "fecha": "2024-05-01"}
    ]


def _export_gateway(handler) -> RemotePaymentGateway:
    client = httpx.AsyncClient(
        base_url="https://pedidos.test", transport=httpx.MockTransport(handler)
    )
    return RemotePaymentGateway(PedidosApiClient(client))


@pytest.mark.asyncio
async def test_export_streams_spreadsheet_to_disk(tmp_path: Path) -> None:
    content = b"PK\x03\x04" + b"\x00" * 2048
    gateway = _export_gateway(lambda request: httpx.Response(200, content=content))
    destination = tmp_path / "exports" / "pagados.xlsx"

    path = await gateway.export(destination)

    assert path == destination
    assert destination.read_bytes() == content
    assert not (tmp_path / "exports" / "pagados.xlsx.part").exists()


@pytest.mark.asyncio
async def test_export_rejection_writes_nothing(tmp_path: Path) -> None:
    gateway = _export_gateway(lambda request: httpx.Response(500, text="export failed"))
    destination = tmp_path / "pagados.xlsx"

    with pytest.raises(RemoteRejection):
        await gateway.export(destination)

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_export_transport_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _export_gateway(handler)

    with pytest.raises(TransportError):
        await gateway.export(tmp_path / "pagados.xlsx")

    assert list(tmp_path.iterdir()) == []
