"""
Error taxonomy for ledger calls.

Every terminal failure surfaces as exactly one of these:

    - ``TransportError`` — the call did not complete. ``retryable`` is True
      for UNAVAILABLE / RESOURCE_EXHAUSTED; the engine retries those and
      re-raises anything else unchanged.
    - ``PrecheckStatusError`` — a node answered with a non-OK, non-BUSY
      status. Carries the status and the transaction ID (if any).
    - ``ReceiptStatusError`` — consensus was reached but the receipt
      status is not SUCCESS.
    - ``ExecutionTimeoutError`` — a caller deadline expired before the
      call reached a terminal outcome.

Errors carry only the outcome detail. Attempt counts and backoff state
stay inside the engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ledger_exec.status import Status, TransportCode, is_retryable_transport_code

if TYPE_CHECKING:
    from ledger_exec.ids import TransactionId
    from ledger_exec.receipt import TransactionReceipt


class LedgerError(Exception):
    """Base class for all errors raised by ledger_exec."""


class TransportError(LedgerError):
    """The remote call failed before a response was produced.

    Attributes:
        code: Transport failure category.
        detail: Human-readable detail for diagnostics.
    """

    def __init__(self, code: TransportCode, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail
        message = str(code) if detail is None else f"{code}: {detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable_transport_code(self.code)


class PrecheckStatusError(LedgerError):
    """A node rejected the request with a non-retryable status."""

    def __init__(
        self,
        status: Status,
        transaction_id: TransactionId | None = None,
    ) -> None:
        self.status = status
        self.transaction_id = transaction_id
        if transaction_id is None:
            message = f"request failed precheck with status {status}"
        else:
            message = (
                f"transaction {transaction_id} failed precheck with status {status}"
            )
        super().__init__(message)


class ReceiptStatusError(LedgerError):
    """A transaction reached consensus but did not succeed."""

    def __init__(
        self,
        transaction_id: TransactionId,
        receipt: TransactionReceipt,
    ) -> None:
        self.transaction_id = transaction_id
        self.receipt = receipt
        super().__init__(
            f"receipt for transaction {transaction_id} contained error status "
            f"{receipt.status}"
        )


class ExecutionTimeoutError(LedgerError):
    """The caller's deadline expired before the call finished."""

    def __init__(
        self,
        timeout: float,
        transaction_id: TransactionId | None = None,
    ) -> None:
        self.timeout = timeout
        self.transaction_id = transaction_id
        subject = "request" if transaction_id is None else f"transaction {transaction_id}"
        super().__init__(f"{subject} did not complete within {timeout}s")


def is_retryable_transport_error(error: BaseException | None) -> bool:
    """True if the call failed for a transient infrastructure reason.

    Only ``TransportError`` carries a code. Anything else a transport
    raises (a client bug, a bad payload) is never retried.
    """
    if isinstance(error, TransportError):
        return error.retryable
    return False
