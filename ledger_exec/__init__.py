"""
ledger-exec — request execution core for a multi-node ledger network.

Public API:

    Identifiers:
        - ``TransactionId`` — payer account + valid start; ``generate()``
          hands out strictly increasing IDs process-wide.
        - ``TransactionIdGenerator`` — the generator itself (inject a clock
          for tests).
        - ``AccountId``, ``Timestamp`` — value types.

    Execution engine:
        - ``Executable`` — base class; subclass it to describe an operation.
        - ``Query`` — base for header-carrying read-only operations.
        - ``AttemptOutcome`` — RETRY / FAIL / SUCCEED.

    Network handle:
        - ``Client`` — node table, transport, backoff, config.
        - ``Network``, ``Channel`` — node selection and per-node calls.
        - ``ClientConfig`` — configuration (``from_env()``).

    Transport:
        - ``JsonRpcTransport`` — injectable transport protocol.
        - ``HttpxTransport`` — default httpx-based transport.

    Backoff:
        - ``BackoffPolicy``, ``ExponentialBackoff``, ``ConstantBackoff``.

    Post-consensus:
        - ``TransactionReceiptQuery``, ``TransactionRecordQuery``,
          ``TransactionReceipt``, ``TransactionRecord``.

    Status and errors:
        - ``Status``, ``TransportCode``.
        - ``LedgerError``, ``TransportError``, ``PrecheckStatusError``,
          ``ReceiptStatusError``, ``ExecutionTimeoutError``.
"""

from ledger_exec.backoff import BackoffPolicy, ConstantBackoff, ExponentialBackoff
from ledger_exec.client import Client
from ledger_exec.config import ClientConfig
from ledger_exec.errors import (
    ExecutionTimeoutError,
    LedgerError,
    PrecheckStatusError,
    ReceiptStatusError,
    TransportError,
    is_retryable_transport_error,
)
from ledger_exec.executable import AttemptOutcome, Executable
from ledger_exec.ids import AccountId, Timestamp, TransactionId, TransactionIdGenerator
from ledger_exec.network import Channel, Network
from ledger_exec.query import Query
from ledger_exec.receipt import (
    TransactionReceipt,
    TransactionReceiptQuery,
    TransactionRecord,
    TransactionRecordQuery,
)
from ledger_exec.status import Status, TransportCode, is_retryable_status
from ledger_exec.transport import HttpxTransport, JsonRpcTransport

__version__ = "0.1.0"

__all__ = [
    "AccountId",
    "AttemptOutcome",
    "BackoffPolicy",
    "Channel",
    "Client",
    "ClientConfig",
    "ConstantBackoff",
    "Executable",
    "ExecutionTimeoutError",
    "ExponentialBackoff",
    "HttpxTransport",
    "JsonRpcTransport",
    "LedgerError",
    "Network",
    "PrecheckStatusError",
    "Query",
    "ReceiptStatusError",
    "Status",
    "Timestamp",
    "TransactionId",
    "TransactionIdGenerator",
    "TransactionReceipt",
    "TransactionReceiptQuery",
    "TransactionRecord",
    "TransactionRecordQuery",
    "TransportCode",
    "TransportError",
    "is_retryable_status",
    "is_retryable_transport_error",
]
