"""Error taxonomy shared by the gateways and the application services."""


class PedidosError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(PedidosError):
    """Raised client-side for bad order input, before any network call."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class TransportError(PedidosError):
    """Raised when the backend cannot be reached."""


class RemoteRejection(PedidosError):
    """Raised when the backend answers a well-formed request with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


class NotFoundError(RemoteRejection):
    """Raised when the referenced order no longer exists server-side."""


class ProtocolError(PedidosError):
    """Raised when a response body does not have the expected shape."""


class PartialTransitionError(PedidosError):
    """The paid record was written but the pending order could not be removed.

    Only the removal step may be retried; writing the paid record again would
    duplicate it.
    """

    def __init__(self, order_id: str, cause: Exception) -> None:
        self.order_id = order_id
        self.cause = cause
        super().__init__(
            f"Order {order_id} was recorded as paid but is still pending: {cause}"
        )
