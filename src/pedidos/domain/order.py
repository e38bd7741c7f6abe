import re
from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from pedidos.domain.errors import ValidationError
from pedidos.shared.amounts import parse_amount, try_parse_amount

DESCRIPTION_MAX_LENGTH = 500

# Extended calendar form only; "20240501" is valid ISO but never matches a YYYY-MM-DD prefix
_EXTENDED_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _wire_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


class Order(BaseModel):
    """A pending order ("pedido") as held by the remote order store."""

    id: str  # assigned by the store; numeric ids are kept as text
    distributor: str
    amount: Decimal
    date: str  # ISO date or datetime, e.g. "2024-05-01" or "2024-05-01T23:59:59"
    description: str | None = None
    # True when the wire amount could not be parsed and ``amount`` was set to 0
    amount_malformed: bool = False
    # Wire value exactly as the store sent it; echoed back when ``amount_malformed``
    raw_amount: str | int | float | None = None

    @property
    def day(self) -> str:
        """The ``YYYY-MM-DD`` prefix of ``date``."""
        return self.date[:10]

    def to_wire(self) -> dict:
        """Full order object in the backend's field names."""
        payload: dict = {
            "id": self.id,
            "distribuidor": self.distributor,
            "valor": self.raw_amount if self.amount_malformed else _wire_number(self.amount),
            "fecha": self.date,
        }
        if self.description is not None:
            payload["descripcion"] = self.description
        return payload


class OrderDraft(BaseModel):
    """User input for creating or updating an order.

    Construct through :meth:`parse` to get the package's ``ValidationError``
    instead of pydantic's.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    distributor: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    date: str
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_amount(cls, value: object) -> object:
        parsed = try_parse_amount(value)
        return value if parsed is None else parsed

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_text(cls, value: object) -> object:
        # date and datetime objects both expose isoformat()
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if not value:
            raise ValueError("date is required")
        if not _EXTENDED_DATE.fullmatch(value[:10]):
            raise ValueError(f"not a YYYY-MM-DD date: {value!r}")
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"not an ISO date: {value!r}") from None
        return value

    @classmethod
    def parse(cls, data: "OrderDraft | dict") -> "OrderDraft":
        """Validate ``data`` and return a draft, raising ``ValidationError`` on bad input.

        Already-built drafts are re-validated, so instances created with
        ``model_construct`` cannot slip through unchecked.
        """
        if isinstance(data, OrderDraft):
            data = data.model_dump()
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(
                [
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ]
            ) from exc

    def to_create_payload(self) -> dict:
        return {
            "distribuidor": self.distributor,
            "valor": _wire_number(self.amount),
            "fecha": self.date,
            "descripcion": self.description or "",
        }

    def to_update_payload(self) -> dict:
        # The update endpoint uses different field names than create
        return {
            "distribuidor": self.distributor,
            "valor_pedido": _wire_number(self.amount),
            "fecha_pedido": self.date,
            "descripcion": self.description or "",
        }


class PaidRecord(BaseModel):
    """Copy of an order written to the paid-records store."""

    order_id: str
    distributor: str
    amount: Decimal
    date: str
    description: str | None = None
    amount_malformed: bool = False
    created_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "PaidRecord":
        return cls(
            order_id=order.id,
            distributor=order.distributor,
            amount=order.amount,
            date=order.date,
            description=order.description,
            amount_malformed=order.amount_malformed,
            created_at=datetime.now(UTC),
        )


class AggregateStatistics(BaseModel):
    """Derived totals for display; never persisted."""

    order_count: int = Field(ge=0)
    value_today: Decimal
    value_total: Decimal

    # Field names of GET /pedidos/resumen-general
    SUMMARY_KEYS: ClassVar[tuple[str, str, str]] = (
        "total_pedidos",
        "total_hoy",
        "total_general",
    )

    @classmethod
    def from_summary(cls, payload: object) -> "AggregateStatistics | None":
        """Build statistics from a server summary body.

        Returns ``None`` when ``payload`` is not an object carrying all three
        summary keys. Values that are present but not numeric count as 0.
        """
        if not isinstance(payload, dict) or any(
            key not in payload for key in cls.SUMMARY_KEYS
        ):
            return None
        count = parse_amount(payload["total_pedidos"])
        return cls(
            order_count=max(int(count), 0),
            value_today=parse_amount(payload["total_hoy"]),
            value_total=parse_amount(payload["total_general"]),
        )
