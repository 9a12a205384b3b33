"""
Execution engine — drives one logical call to a terminal outcome.

An operation (query or transaction submission) subclasses ``Executable``
and supplies the capability hooks:

    make_request()              → JSON-RPC params for one attempt
    get_method()                → remote method name
    map_response_status(resp)   → application Status
    map_response(resp)          → caller-visible result
    get_node_id(client)         → node for this attempt (may rotate)
    get_transaction_id()        → correlation ID for errors (None for queries)

The engine never branches on operation identity. Per attempt:

    PREPARING    pick node, build request
    IN_FLIGHT    await channel.call()
    CLASSIFYING  exactly one of:
        transport error, retryable      → RETRYING
        transport error, other          → FAILED (error re-raised unchanged)
        status retryable (BUSY)         → RETRYING
        status OK                       → SUCCEEDED (map_response)
        any other status                → FAILED (PrecheckStatusError)
    RETRYING     await client.sleep(backoff.delay_for(attempt)); attempt += 1

Attempts of one call are strictly sequential. There is no attempt cap;
callers bound a call with ``timeout`` (or ``ClientConfig.execute_timeout``),
which cancels the in-flight attempt and raises ``ExecutionTimeoutError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ledger_exec.errors import (
    ExecutionTimeoutError,
    PrecheckStatusError,
    is_retryable_transport_error,
)
from ledger_exec.status import Status, is_retryable_status

if TYPE_CHECKING:
    from ledger_exec.client import Client
    from ledger_exec.ids import AccountId, TransactionId

logger = logging.getLogger(__name__)

O = TypeVar("O")


class AttemptOutcome(StrEnum):
    """Classification of a single attempt."""

    RETRY = "RETRY"
    FAIL = "FAIL"
    SUCCEED = "SUCCEED"


class Executable(ABC, Generic[O]):
    """Base class for everything that can be executed against a Client."""

    # -----------------------------------------------------------------
    # Capability hooks
    # -----------------------------------------------------------------

    @abstractmethod
    def make_request(self) -> dict[str, Any]:
        """Build the request params. Called once per attempt."""

    @abstractmethod
    def get_method(self) -> str:
        """Name of the remote method to invoke."""

    @abstractmethod
    def map_response_status(self, response: dict[str, Any]) -> Status:
        """Extract the application status from a raw response."""

    @abstractmethod
    def map_response(self, response: dict[str, Any]) -> O:
        """Decode a successful response into the result type."""

    def get_node_id(self, client: Client) -> AccountId:
        """Node for the next attempt. Defaults to the network's round-robin."""
        return client.network.select_node()

    def get_transaction_id(self) -> TransactionId | None:
        return None

    async def on_execute(self, client: Client) -> None:
        """Runs once before the first attempt."""

    def should_retry(self, status: Status, response: dict[str, Any]) -> bool:
        return is_retryable_status(status)

    def should_retry_exceptionally(self, error: BaseException | None) -> bool:
        return is_retryable_transport_error(error)

    def debug_to_string(self, request: dict[str, Any]) -> str:
        return json.dumps(request, sort_keys=True, default=str)

    # -----------------------------------------------------------------
    # Classification (pure)
    # -----------------------------------------------------------------

    def classify_attempt(
        self,
        response: dict[str, Any] | None,
        error: BaseException | None = None,
    ) -> tuple[AttemptOutcome, Status | None]:
        """Classify one attempt's outcome.

        The status extractor is only consulted when the call produced a
        response.

        Returns:
            (outcome, status). status is None for transport failures.
        """
        if error is not None:
            if self.should_retry_exceptionally(error):
                return AttemptOutcome.RETRY, None
            return AttemptOutcome.FAIL, None

        if response is None:
            raise TypeError("classify_attempt needs a response or an error")
        status = self.map_response_status(response)
        if self.should_retry(status, response):
            return AttemptOutcome.RETRY, status
        if status is Status.OK:
            return AttemptOutcome.SUCCEED, status
        return AttemptOutcome.FAIL, status

    # -----------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------

    async def execute(self, client: Client, *, timeout: float | None = None) -> O:
        """Run this operation to a terminal outcome.

        Args:
            client: Network handle.
            timeout: Overall deadline in seconds. Defaults to
                ``client.config.execute_timeout`` (None = no deadline).

        Raises:
            PrecheckStatusError: A node answered with a non-retryable status.
            TransportError: A non-retryable transport failure (unchanged).
            ExecutionTimeoutError: The deadline expired first.
        """
        if timeout is None:
            timeout = client.config.execute_timeout
        if timeout is None:
            return await self._execute(client)

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await self._execute(client)
        except TimeoutError as e:
            # A TimeoutError raised by the transport itself passes through.
            if not deadline.expired():
                raise
            raise ExecutionTimeoutError(timeout, self.get_transaction_id()) from e

    def execute_sync(self, client: Client, *, timeout: float | None = None) -> O:
        """Blocking wrapper around ``execute()`` for non-async callers."""
        return asyncio.run(self.execute(client, timeout=timeout))

    async def _execute(self, client: Client) -> O:
        await self.on_execute(client)

        attempt = 1
        while True:
            node_id = self.get_node_id(client)
            channel = client.channel_for(node_id)
            method = self.get_method()
            request = self.make_request()

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "sending request node=%s attempt=%d method=%s\n%s",
                    node_id, attempt, method, self.debug_to_string(request),
                )

            started = time.monotonic()
            try:
                response = await channel.call(method, request)
            except Exception as exc:
                outcome, _ = self.classify_attempt(None, exc)
                if outcome is AttemptOutcome.FAIL:
                    logger.debug(
                        "request failed node=%s attempt=%d: %s", node_id, attempt, exc
                    )
                    raise
                delay = client.backoff.delay_for(attempt)
                logger.warning(
                    "caught transport error, retrying node=%s attempt=%d delay=%.3fs: %s",
                    node_id, attempt, delay, exc,
                )
                await client.sleep(delay)
                attempt += 1
                continue

            latency = time.monotonic() - started
            outcome, status = self.classify_attempt(response)
            logger.debug(
                "received response in %.3fs node=%s attempt=%d status=%s",
                latency, node_id, attempt, status,
            )

            if outcome is AttemptOutcome.SUCCEED:
                return self.map_response(response)

            if outcome is AttemptOutcome.FAIL:
                if status is None:
                    raise RuntimeError("failed response attempt carried no status")
                logger.debug(
                    "response status failed node=%s attempt=%d status=%s",
                    node_id, attempt, status,
                )
                raise PrecheckStatusError(status, self.get_transaction_id())

            delay = client.backoff.delay_for(attempt)
            logger.info(
                "node busy, retrying node=%s attempt=%d status=%s delay=%.3fs",
                node_id, attempt, status, delay,
            )
            await client.sleep(delay)
            attempt += 1
