"""
Transport protocol for node JSON-RPC calls.

Defines the seam where concrete HTTP implementations plug in. Channels
depend on this protocol, not on httpx directly, so the transport can be
swapped for a fake without touching the execution engine.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

Failure contract:
    A transport either returns the parsed JSON object or raises
    ``TransportError`` with a ``TransportCode``. The engine decides what
    to retry based on that code alone.

    httpx failure                          TransportCode
    -------------------------------------  ------------------
    ConnectTimeout, network errors,
    RemoteProtocolError                    UNAVAILABLE
    HTTP 502 / 503 / 504                   UNAVAILABLE
    HTTP 429                               RESOURCE_EXHAUSTED
    Read/Write/Pool timeout                DEADLINE_EXCEEDED
    HTTP 400                               INVALID_ARGUMENT
    HTTP 404                               UNIMPLEMENTED
    other HTTP errors, non-object JSON     INTERNAL
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ledger_exec.errors import TransportError
from ledger_exec.status import TransportCode

_STATUS_CODE_MAP: dict[int, TransportCode] = {
    400: TransportCode.INVALID_ARGUMENT,
    404: TransportCode.UNIMPLEMENTED,
    429: TransportCode.RESOURCE_EXHAUSTED,
    502: TransportCode.UNAVAILABLE,
    503: TransportCode.UNAVAILABLE,
    504: TransportCode.UNAVAILABLE,
}


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Args:
            url: The node's JSON-RPC endpoint URL.
            payload: The JSON-RPC request body (jsonrpc, method, params, id).

        Returns:
            Parsed JSON response as a dict.

        Raises:
            TransportError: On transport-level failures (connection refused,
                timeout, HTTP error status, unparsable body).
        """
        ...


def transport_code_for_status(status_code: int) -> TransportCode:
    """Map an HTTP error status to a TransportCode."""
    return _STATUS_CODE_MAP.get(status_code, TransportCode.INTERNAL)


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Lazily imports httpx so the package can be imported (and tested with
    fake transports) without it.

    Args:
        timeout: Per-request timeout in seconds.
        headers: Extra headers sent with every request.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._headers = headers or {}

    @property
    def timeout(self) -> float:
        return self._timeout

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send JSON-RPC request via httpx."""
        import httpx

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                        **self._headers,
                    },
                )
        except (httpx.NetworkError, httpx.RemoteProtocolError, httpx.ConnectTimeout) as e:
            raise TransportError(
                TransportCode.UNAVAILABLE, f"node unreachable at {url}: {e}"
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(
                TransportCode.DEADLINE_EXCEEDED,
                f"request to {url} timed out after {self._timeout}s",
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(TransportCode.UNKNOWN, f"HTTP error: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                transport_code_for_status(response.status_code),
                f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        try:
            result = response.json()
        except ValueError as e:
            raise TransportError(
                TransportCode.INTERNAL, "response was not valid JSON"
            ) from e

        if not isinstance(result, dict):
            raise TransportError(
                TransportCode.INTERNAL,
                f"response JSON was not an object (got {type(result).__name__})",
            )
        return result
