"""
Client — the network handle operations execute against.

Bundles everything the execution engine is handed rather than owns:
node table, transport, backoff policy, the sleep used between attempts,
and configuration. The engine only reads from the client.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from ledger_exec.backoff import BackoffPolicy
from ledger_exec.config import ClientConfig
from ledger_exec.ids import AccountId
from ledger_exec.network import Channel, Network
from ledger_exec.transport import HttpxTransport, JsonRpcTransport

SleepFn = Callable[[float], Awaitable[None]]


class Client:
    """Network handle.

    Args:
        network: Nodes to talk to.
        operator: Default payer account for generated transaction IDs.
        config: Client configuration. Defaults to ``ClientConfig()``.
        transport: Injectable JSON-RPC transport. Defaults to
            HttpxTransport using ``config.request_timeout``.
        backoff: Retry delay policy. Defaults to ``config.backoff()``.
        sleep: Awaitable sleep used between attempts. Inject for tests.
    """

    def __init__(
        self,
        network: Network,
        *,
        operator: AccountId | None = None,
        config: ClientConfig | None = None,
        transport: JsonRpcTransport | None = None,
        backoff: BackoffPolicy | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._network = network
        self._operator = operator
        self._config = config or ClientConfig()
        self._transport = transport or HttpxTransport(timeout=self._config.request_timeout)
        self._backoff = backoff or self._config.backoff()
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def for_network(
        cls,
        data: dict[str, Any],
        **kwargs: Any,
    ) -> Client:
        """Build a client from a ``{"nodes": {...}}`` dict.

        Keyword arguments are passed through to the constructor.
        """
        return cls(Network.from_dict(data), **kwargs)

    @property
    def network(self) -> Network:
        return self._network

    @property
    def operator(self) -> AccountId | None:
        return self._operator

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    def channel_for(self, node_id: AccountId) -> Channel:
        """Channel to a node in this client's network.

        Raises:
            KeyError: If the node is not part of the network.
        """
        return Channel(node_id, self._network.url_for(node_id), self._transport)
