"""
Tests for the execution engine (Executable).

All tests use a scripted FakeTransport and a recording sleep — no network,
no real waiting.

Test plan:
- Transport UNAVAILABLE/RESOURCE_EXHAUSTED retried with backoff, then success
- Status BUSY retried, then OK
- Non-retryable status → PrecheckStatusError, no delay, carries tx id
- Non-retryable transport error → re-raised unchanged, status extractor
  never called
- JSON-RPC error member → TransportError, not retried
- Node rotation across attempts; one request built per attempt
- on_execute runs once; should_retry hook overrides
- classify_attempt decision table (pure)
- Deadlines: timeout → ExecutionTimeoutError; config default deadline
- execute_sync wrapper; many concurrent calls
"""

import asyncio
from typing import Any

import pytest

from ledger_exec.backoff import ExponentialBackoff
from ledger_exec.client import Client
from ledger_exec.config import ClientConfig
from ledger_exec.errors import (
    ExecutionTimeoutError,
    PrecheckStatusError,
    TransportError,
)
from ledger_exec.executable import AttemptOutcome, Executable
from ledger_exec.ids import AccountId, Timestamp, TransactionId
from ledger_exec.network import Network
from ledger_exec.query import Query
from ledger_exec.status import Status, TransportCode

NODE_3 = AccountId(0, 0, 3)
NODE_4 = AccountId(0, 0, 4)
NODES = {NODE_3: "http://node3.test/rpc", NODE_4: "http://node4.test/rpc"}
SAMPLE_TX_ID = TransactionId(AccountId(0, 0, 1001), Timestamp(1_700_000_000, 7))


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def ok_envelope(status: str = "OK", **fields: Any) -> dict[str, Any]:
    result = {"header": {"nodeTransactionPrecheckCode": status}}
    result.update(fields)
    return {"jsonrpc": "2.0", "result": result, "id": 1}


class FakeTransport:
    """Replays scripted outcomes: dicts are returned, exceptions raised."""

    def __init__(self, *outcomes: dict[str, Any] | BaseException) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((url, payload))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class HangingTransport:
    """Never answers."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(3600)
        raise AssertionError("unreachable")


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class EchoQuery(Query[str]):
    """Minimal operation: returns the 'answer' field."""

    def __init__(self, transaction_id: TransactionId | None = None) -> None:
        self.transaction_id = transaction_id
        self.make_request_calls = 0
        self.status_calls = 0
        self.on_execute_calls = 0

    def on_make_request(self) -> dict[str, Any]:
        self.make_request_calls += 1
        return {"echo": "ping"}

    def get_method(self) -> str:
        return "TestService/echo"

    def get_transaction_id(self) -> TransactionId | None:
        return self.transaction_id

    def map_response_status(self, response: dict[str, Any]) -> Status:
        self.status_calls += 1
        return super().map_response_status(response)

    def map_response(self, response: dict[str, Any]) -> str:
        return response["answer"]

    async def on_execute(self, client: Client) -> None:
        self.on_execute_calls += 1


class PinnedNodeQuery(EchoQuery):
    def get_node_id(self, client: Client) -> AccountId:
        return NODE_4


def make_client(
    transport: Any,
    sleep: RecordingSleep | None = None,
    config: ClientConfig | None = None,
) -> Client:
    return Client(
        Network(NODES),
        transport=transport,
        backoff=ExponentialBackoff(initial=0.25, factor=2.0, maximum=8.0),
        sleep=sleep or RecordingSleep(),
        config=config,
    )


# ---------------------------------------------------------------------------
# Retry paths
# ---------------------------------------------------------------------------


class TestTransportRetry:
    @pytest.mark.asyncio
    async def test_two_unavailable_then_success(self) -> None:
        transport = FakeTransport(
            TransportError(TransportCode.UNAVAILABLE, "down"),
            TransportError(TransportCode.UNAVAILABLE, "down"),
            ok_envelope(answer="pong"),
        )
        sleep = RecordingSleep()
        result = await EchoQuery().execute(make_client(transport, sleep))
        assert result == "pong"
        assert len(transport.calls) == 3
        assert sleep.delays == [0.25, 0.5]

    @pytest.mark.asyncio
    async def test_resource_exhausted_is_retried(self) -> None:
        transport = FakeTransport(
            TransportError(TransportCode.RESOURCE_EXHAUSTED),
            ok_envelope(answer="pong"),
        )
        sleep = RecordingSleep()
        assert await EchoQuery().execute(make_client(transport, sleep)) == "pong"
        assert sleep.delays == [0.25]

    @pytest.mark.asyncio
    async def test_status_not_extracted_for_transport_failures(self) -> None:
        transport = FakeTransport(
            TransportError(TransportCode.UNAVAILABLE),
            ok_envelope(answer="pong"),
        )
        query = EchoQuery()
        await query.execute(make_client(transport))
        assert query.status_calls == 1


class TestBusyRetry:
    @pytest.mark.asyncio
    async def test_busy_then_ok(self) -> None:
        transport = FakeTransport(ok_envelope("BUSY"), ok_envelope(answer="pong"))
        sleep = RecordingSleep()
        result = await EchoQuery().execute(make_client(transport, sleep))
        assert result == "pong"
        assert len(transport.calls) == 2
        assert sleep.delays == [0.25]

    @pytest.mark.asyncio
    async def test_mixed_failures_grow_delay(self) -> None:
        transport = FakeTransport(
            ok_envelope("BUSY"),
            TransportError(TransportCode.UNAVAILABLE),
            ok_envelope("BUSY"),
            ok_envelope(answer="pong"),
        )
        sleep = RecordingSleep()
        await EchoQuery().execute(make_client(transport, sleep))
        assert sleep.delays == [0.25, 0.5, 1.0]


# ---------------------------------------------------------------------------
# Terminal failures
# ---------------------------------------------------------------------------


class TestPrecheckFailure:
    @pytest.mark.asyncio
    async def test_non_retryable_status_fails_immediately(self) -> None:
        transport = FakeTransport(ok_envelope("INVALID_SIGNATURE"))
        sleep = RecordingSleep()
        with pytest.raises(PrecheckStatusError) as exc_info:
            await EchoQuery(SAMPLE_TX_ID).execute(make_client(transport, sleep))
        assert exc_info.value.status is Status.INVALID_SIGNATURE
        assert exc_info.value.transaction_id == SAMPLE_TX_ID
        assert sleep.delays == []
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_query_error_has_no_transaction_id(self) -> None:
        transport = FakeTransport(ok_envelope("INVALID_FILE_ID"))
        with pytest.raises(PrecheckStatusError) as exc_info:
            await EchoQuery().execute(make_client(transport))
        assert exc_info.value.transaction_id is None
        assert "INVALID_FILE_ID" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unrecognized_status_is_terminal(self) -> None:
        transport = FakeTransport(ok_envelope("SOMETHING_NEW"))
        with pytest.raises(PrecheckStatusError) as exc_info:
            await EchoQuery().execute(make_client(transport))
        assert exc_info.value.status is Status.UNKNOWN


class TestTransportFailure:
    @pytest.mark.asyncio
    async def test_non_retryable_transport_error_reraised_unchanged(self) -> None:
        error = TransportError(TransportCode.INVALID_ARGUMENT, "bad request")
        transport = FakeTransport(error)
        sleep = RecordingSleep()
        query = EchoQuery()
        with pytest.raises(TransportError) as exc_info:
            await query.execute(make_client(transport, sleep))
        assert exc_info.value is error
        assert query.status_calls == 0
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_foreign_exception_reraised_unchanged(self) -> None:
        error = RuntimeError("client defect")
        transport = FakeTransport(error)
        query = EchoQuery()
        with pytest.raises(RuntimeError) as exc_info:
            await query.execute(make_client(transport))
        assert exc_info.value is error
        assert query.status_calls == 0

    @pytest.mark.asyncio
    async def test_deadline_exceeded_not_retried(self) -> None:
        transport = FakeTransport(TransportError(TransportCode.DEADLINE_EXCEEDED))
        with pytest.raises(TransportError) as exc_info:
            await EchoQuery().execute(make_client(transport))
        assert exc_info.value.code is TransportCode.DEADLINE_EXCEEDED
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_jsonrpc_error_member_not_retried(self) -> None:
        transport = FakeTransport(
            {"jsonrpc": "2.0", "error": {"code": -32601, "message": "no such method"}, "id": 1}
        )
        with pytest.raises(TransportError) as exc_info:
            await EchoQuery().execute(make_client(transport))
        assert exc_info.value.code is TransportCode.UNIMPLEMENTED
        assert len(transport.calls) == 1


# ---------------------------------------------------------------------------
# Attempt mechanics
# ---------------------------------------------------------------------------


class TestAttempts:
    @pytest.mark.asyncio
    async def test_nodes_rotate_across_attempts(self) -> None:
        transport = FakeTransport(
            TransportError(TransportCode.UNAVAILABLE),
            ok_envelope("BUSY"),
            ok_envelope(answer="pong"),
        )
        await EchoQuery().execute(make_client(transport))
        urls = [url for url, _ in transport.calls]
        assert urls == [NODES[NODE_3], NODES[NODE_4], NODES[NODE_3]]

    @pytest.mark.asyncio
    async def test_operation_can_pin_node(self) -> None:
        transport = FakeTransport(ok_envelope("BUSY"), ok_envelope(answer="pong"))
        await PinnedNodeQuery().execute(make_client(transport))
        assert {url for url, _ in transport.calls} == {NODES[NODE_4]}

    @pytest.mark.asyncio
    async def test_request_rebuilt_each_attempt(self) -> None:
        transport = FakeTransport(ok_envelope("BUSY"), ok_envelope(answer="pong"))
        query = EchoQuery()
        await query.execute(make_client(transport))
        assert query.make_request_calls == 2
        first, second = (payload for _, payload in transport.calls)
        assert first["params"] == second["params"]
        assert first["method"] == "TestService/echo"
        assert second["id"] > first["id"]

    @pytest.mark.asyncio
    async def test_on_execute_runs_once(self) -> None:
        transport = FakeTransport(ok_envelope("BUSY"), ok_envelope(answer="pong"))
        query = EchoQuery()
        await query.execute(make_client(transport))
        assert query.on_execute_calls == 1

    @pytest.mark.asyncio
    async def test_should_retry_override(self) -> None:
        class PatientQuery(EchoQuery):
            def should_retry(self, status: Status, response: dict[str, Any]) -> bool:
                return status in (Status.BUSY, Status.PLATFORM_NOT_ACTIVE)

        transport = FakeTransport(
            ok_envelope("PLATFORM_NOT_ACTIVE"), ok_envelope(answer="pong")
        )
        assert await PatientQuery().execute(make_client(transport)) == "pong"

    @pytest.mark.asyncio
    async def test_concurrent_calls_progress_independently(self) -> None:
        transports = [
            FakeTransport(ok_envelope("BUSY"), ok_envelope(answer=f"pong-{i}"))
            for i in range(20)
        ]
        results = await asyncio.gather(
            *(EchoQuery().execute(make_client(t)) for t in transports)
        )
        assert results == [f"pong-{i}" for i in range(20)]


# ---------------------------------------------------------------------------
# Classification (pure)
# ---------------------------------------------------------------------------


class TestClassifyAttempt:
    def test_retryable_transport(self) -> None:
        outcome, status = EchoQuery().classify_attempt(
            None, TransportError(TransportCode.UNAVAILABLE)
        )
        assert outcome is AttemptOutcome.RETRY
        assert status is None

    def test_other_transport(self) -> None:
        outcome, status = EchoQuery().classify_attempt(
            None, TransportError(TransportCode.INTERNAL)
        )
        assert outcome is AttemptOutcome.FAIL
        assert status is None

    def test_busy(self) -> None:
        outcome, status = EchoQuery().classify_attempt(ok_envelope("BUSY")["result"])
        assert (outcome, status) == (AttemptOutcome.RETRY, Status.BUSY)

    def test_ok(self) -> None:
        outcome, status = EchoQuery().classify_attempt(ok_envelope()["result"])
        assert (outcome, status) == (AttemptOutcome.SUCCEED, Status.OK)

    def test_rejected(self) -> None:
        result = ok_envelope("DUPLICATE_TRANSACTION")["result"]
        outcome, status = EchoQuery().classify_attempt(result)
        assert (outcome, status) == (AttemptOutcome.FAIL, Status.DUPLICATE_TRANSACTION)

    def test_missing_header_is_unknown_and_terminal(self) -> None:
        outcome, status = EchoQuery().classify_attempt({"answer": "x"})
        assert (outcome, status) == (AttemptOutcome.FAIL, Status.UNKNOWN)

    def test_requires_response_or_error(self) -> None:
        with pytest.raises(TypeError, match="response or an error"):
            EchoQuery().classify_attempt(None)


# ---------------------------------------------------------------------------
# Deadlines and sync wrapper
# ---------------------------------------------------------------------------


class TestDeadline:
    @pytest.mark.asyncio
    async def test_timeout_cancels_hanging_attempt(self) -> None:
        client = make_client(HangingTransport())
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await EchoQuery(SAMPLE_TX_ID).execute(client, timeout=0.05)
        assert exc_info.value.timeout == 0.05
        assert exc_info.value.transaction_id == SAMPLE_TX_ID

    @pytest.mark.asyncio
    async def test_config_timeout_bounds_endless_busy(self) -> None:
        class EndlessBusy:
            async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
                return ok_envelope("BUSY")

        async def short_sleep(seconds: float) -> None:
            await asyncio.sleep(0.001)

        client = Client(
            Network(NODES),
            transport=EndlessBusy(),
            sleep=short_sleep,
            config=ClientConfig(execute_timeout=0.05),
        )
        with pytest.raises(ExecutionTimeoutError):
            await EchoQuery().execute(client)

    @pytest.mark.asyncio
    async def test_transport_timeout_error_passes_through(self) -> None:
        original = TimeoutError("socket read timed out")

        class SocketTimeout:
            async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
                raise original

        client = make_client(SocketTimeout())
        with pytest.raises(TimeoutError) as exc_info:
            await EchoQuery().execute(client, timeout=5.0)
        assert exc_info.value is original
        assert not isinstance(exc_info.value, ExecutionTimeoutError)

    @pytest.mark.asyncio
    async def test_finishes_within_timeout(self) -> None:
        transport = FakeTransport(ok_envelope(answer="pong"))
        assert await EchoQuery().execute(make_client(transport), timeout=5.0) == "pong"


def test_execute_sync() -> None:
    transport = FakeTransport(ok_envelope("BUSY"), ok_envelope(answer="pong"))
    assert EchoQuery().execute_sync(make_client(transport)) == "pong"


def test_executable_is_abstract() -> None:
    with pytest.raises(TypeError):
        Executable()  # type: ignore[abstract]
