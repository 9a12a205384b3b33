"""
Node table and per-node JSON-RPC channels.

``Network`` maps node account IDs to JSON-RPC endpoint URLs and owns the
default node-selection policy (round-robin). ``Channel`` binds one node's
URL to a transport and speaks the JSON-RPC 2.0 envelope:

    request:  {"jsonrpc": "2.0", "method": ..., "params": {...}, "id": n}
    response: {"jsonrpc": "2.0", "result": {...}, "id": n}
          or: {"jsonrpc": "2.0", "error": {"code": c, "message": m}, "id": n}

An ``error`` member means the node could not dispatch the call at all, so
it surfaces as a ``TransportError``. Application statuses live inside
``result`` and are the operation's business to extract.
"""

from __future__ import annotations

import threading
from typing import Any

import jsonschema  # type: ignore[import-untyped]

from ledger_exec.errors import TransportError
from ledger_exec.ids import AccountId
from ledger_exec.status import TransportCode
from ledger_exec.transport import JsonRpcTransport

NETWORK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["nodes"],
    "properties": {
        "nodes": {
            "type": "object",
            "minProperties": 1,
            "propertyNames": {"pattern": r"^\d+\.\d+\.\d+$"},
            "additionalProperties": {"type": "string", "minLength": 1},
        },
    },
    "additionalProperties": False,
}

# JSON-RPC error code → TransportCode
_JSONRPC_ERROR_MAP: dict[int, TransportCode] = {
    -32600: TransportCode.INVALID_ARGUMENT,  # invalid request
    -32601: TransportCode.UNIMPLEMENTED,     # method not found
    -32602: TransportCode.INVALID_ARGUMENT,  # invalid params
}

# JSON-RPC request ID counter, shared by every loop in the process
_REQUEST_ID = 0
_REQUEST_ID_LOCK = threading.Lock()


def _next_request_id() -> int:
    global _REQUEST_ID
    with _REQUEST_ID_LOCK:
        _REQUEST_ID += 1
        return _REQUEST_ID


# =========================================================================
# Network
# =========================================================================


class Network:
    """The set of addressable nodes.

    Args:
        nodes: Mapping of node account ID to JSON-RPC endpoint URL.

    Raises:
        ValueError: If nodes is empty.
    """

    def __init__(self, nodes: dict[AccountId, str]) -> None:
        if not nodes:
            raise ValueError("network must contain at least one node")
        self._nodes = dict(nodes)
        self._order = sorted(self._nodes)
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Network:
        """Build a network from ``{"nodes": {"0.0.3": "https://..."}}``.

        Raises:
            jsonschema.ValidationError: If data does not match NETWORK_SCHEMA.
        """
        jsonschema.validate(instance=data, schema=NETWORK_SCHEMA)
        return cls(
            {AccountId.from_string(key): url for key, url in data["nodes"].items()}
        )

    @property
    def node_ids(self) -> list[AccountId]:
        return list(self._order)

    def url_for(self, node_id: AccountId) -> str:
        """Endpoint URL for a node.

        Raises:
            KeyError: If the node is not part of this network.
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise KeyError(f"node {node_id} is not part of this network") from None

    def select_node(self) -> AccountId:
        """Next node in round-robin order."""
        with self._lock:
            node_id = self._order[self._cursor % len(self._order)]
            self._cursor += 1
        return node_id


# =========================================================================
# Channel
# =========================================================================


class Channel:
    """A node's JSON-RPC endpoint bound to a transport."""

    def __init__(
        self,
        node_id: AccountId,
        url: str,
        transport: JsonRpcTransport,
    ) -> None:
        self._node_id = node_id
        self._url = url
        self._transport = transport

    @property
    def node_id(self) -> AccountId:
        return self._node_id

    @property
    def url(self) -> str:
        return self._url

    async def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Invoke a remote method and return its ``result`` object.

        Raises:
            TransportError: If the transport fails or the node answers with a
                JSON-RPC error or a malformed envelope.
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": _next_request_id(),
        }
        response = await self._transport.post_json(self._url, payload)
        return _parse_envelope(response)


def _parse_envelope(response: dict[str, Any]) -> dict[str, Any]:
    error = response.get("error")
    if error is not None:
        if not isinstance(error, dict):
            raise TransportError(TransportCode.INTERNAL, f"malformed error: {error!r}")
        code = _JSONRPC_ERROR_MAP.get(error.get("code"), TransportCode.INTERNAL)
        raise TransportError(code, error.get("message") or "unknown JSON-RPC error")

    result = response.get("result")
    if not isinstance(result, dict):
        raise TransportError(TransportCode.INTERNAL, "no result object in response")
    return result
