"""
Status vocabularies and retry classification.

Two vocabularies, never mixed:

    - ``Status``: application-level precheck/receipt codes returned inside
      a response that did arrive (OK, BUSY, INVALID_SIGNATURE, ...).
    - ``TransportCode``: why the call itself did not complete
      (UNAVAILABLE, RESOURCE_EXHAUSTED, ...).

Retry rules are deliberately small:

    - transport UNAVAILABLE / RESOURCE_EXHAUSTED → retry
    - any other transport failure → fail fast
    - status BUSY → retry
    - status OK → success
    - anything else → terminal
"""

from __future__ import annotations

from enum import StrEnum


class Status(StrEnum):
    """Application status codes reported by a node."""

    OK = "OK"
    BUSY = "BUSY"
    SUCCESS = "SUCCESS"
    UNKNOWN = "UNKNOWN"
    INVALID_TRANSACTION = "INVALID_TRANSACTION"
    PAYER_ACCOUNT_NOT_FOUND = "PAYER_ACCOUNT_NOT_FOUND"
    INVALID_NODE_ACCOUNT = "INVALID_NODE_ACCOUNT"
    TRANSACTION_EXPIRED = "TRANSACTION_EXPIRED"
    INVALID_TRANSACTION_START = "INVALID_TRANSACTION_START"
    INVALID_TRANSACTION_DURATION = "INVALID_TRANSACTION_DURATION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    INSUFFICIENT_TX_FEE = "INSUFFICIENT_TX_FEE"
    INSUFFICIENT_PAYER_BALANCE = "INSUFFICIENT_PAYER_BALANCE"
    PLATFORM_NOT_ACTIVE = "PLATFORM_NOT_ACTIVE"
    PLATFORM_TRANSACTION_NOT_CREATED = "PLATFORM_TRANSACTION_NOT_CREATED"
    INVALID_TRANSACTION_ID = "INVALID_TRANSACTION_ID"
    RECEIPT_NOT_FOUND = "RECEIPT_NOT_FOUND"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    INVALID_ACCOUNT_ID = "INVALID_ACCOUNT_ID"
    INVALID_FILE_ID = "INVALID_FILE_ID"
    FILE_DELETED = "FILE_DELETED"
    INVALID_CONTRACT_ID = "INVALID_CONTRACT_ID"
    NOT_SUPPORTED = "NOT_SUPPORTED"

    @classmethod
    def parse(cls, value: str | None) -> Status:
        """Map a wire string to a Status. Unrecognized values become UNKNOWN."""
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class TransportCode(StrEnum):
    """Transport-level failure categories (gRPC-style names)."""

    UNAVAILABLE = "UNAVAILABLE"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNIMPLEMENTED = "UNIMPLEMENTED"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


_RETRYABLE_TRANSPORT_CODES = frozenset(
    {TransportCode.UNAVAILABLE, TransportCode.RESOURCE_EXHAUSTED}
)


def is_retryable_transport_code(code: TransportCode) -> bool:
    return code in _RETRYABLE_TRANSPORT_CODES


def is_retryable_status(status: Status) -> bool:
    """True if the node reported transient congestion."""
    return status is Status.BUSY
