from pathlib import Path
from typing import Protocol

from .order import AggregateStatistics, Order, OrderDraft, PaidRecord


class IOrderGateway(Protocol):
    async def list(self) -> list[Order]: ...

    async def create(self, draft: OrderDraft | dict) -> Order: ...

    async def update(self, order_id: str, draft: OrderDraft | dict) -> Order: ...

    async def delete(self, order_id: str) -> None: ...

    async def fetch_summary(self) -> AggregateStatistics | None:
        """Server-side totals, or ``None`` when the summary is unavailable."""
        ...


class IPaymentGateway(Protocol):
    async def append(self, order: Order) -> PaidRecord: ...

    async def export(self, destination: Path) -> Path:
        """Download the paid-records spreadsheet and return where it was written."""
        ...
