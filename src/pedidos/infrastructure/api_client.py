from pathlib import Path

import httpx
from loguru import logger

from pedidos.domain.errors import (
    NotFoundError,
    ProtocolError,
    RemoteRejection,
    TransportError,
)


def build_async_client(base_url: str, timeout_seconds: float = 30.0) -> httpx.AsyncClient:
    """Create the ``httpx.AsyncClient`` every gateway shares."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"Content-Type": "application/json", "Accept": "application/json"},
    )


class PedidosApiClient:
    """Thin httpx wrapper that maps transport and HTTP failures onto our errors."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def request(
        self, method: str, path: str, json: dict | None = None
    ) -> httpx.Response:
        """Send a request and return the response if it is 2xx.

        Raises:
            TransportError: when the backend cannot be reached.
            NotFoundError: on 404.
            RemoteRejection: on any other non-2xx response, body kept verbatim.
        """
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path}: {exc}") from exc

        logger.debug(f"{method} {path} -> {response.status_code}")
        self._raise_for_status(response)
        return response

    async def download(self, path: str, destination: Path) -> Path:
        """Stream a GET response body into ``destination``.

        The body is written to a ``.part`` sibling first, so a failed download
        never leaves a truncated file at ``destination``.
        """
        partial = destination.with_name(destination.name + ".part")
        try:
            async with self._client.stream("GET", path) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response)
                destination.parent.mkdir(parents=True, exist_ok=True)
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.TransportError as exc:
            partial.unlink(missing_ok=True)
            raise TransportError(f"GET {path}: {exc}") from exc

        partial.replace(destination)
        return destination

    @staticmethod
    def json(response: httpx.Response) -> object:
        """Decode a JSON body, raising ``ProtocolError`` if it is not JSON."""
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(
                f"{response.request.method} {response.request.url.path}: "
                f"response is not JSON"
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        if response.status_code == 404:
            raise NotFoundError(response.status_code, response.text)
        raise RemoteRejection(response.status_code, response.text)
