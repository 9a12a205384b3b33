"""
Receipts and records — post-consensus artifacts looked up by TransactionId.

Both are fetched through the same execution engine as any other query.
The receipt query additionally keeps retrying while the network has not
reached consensus on the transaction yet:

    precheck BUSY / UNKNOWN / RECEIPT_NOT_FOUND         → retry
    precheck OK, receipt status UNKNOWN / OK / BUSY /
        RECEIPT_NOT_FOUND                               → retry
    precheck OK, any other receipt status               → done

A receipt that reached consensus is returned whatever its status; it is
``TransactionId.get_receipt`` that turns a non-SUCCESS status into a
``ReceiptStatusError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ledger_exec.ids import AccountId, Timestamp, TransactionId
from ledger_exec.query import Query
from ledger_exec.status import Status

RECEIPT_METHOD = "CryptoService/getTransactionReceipts"
RECORD_METHOD = "CryptoService/getTxRecordByTxID"

_RETRY_PRECHECK = frozenset({Status.BUSY, Status.UNKNOWN, Status.RECEIPT_NOT_FOUND})
_PENDING_RECEIPT = frozenset(
    {Status.UNKNOWN, Status.OK, Status.BUSY, Status.RECEIPT_NOT_FOUND}
)


@dataclass(frozen=True)
class TransactionReceipt:
    """Consensus outcome of a transaction.

    Attributes:
        status: Receipt status (SUCCESS, or the reason it failed).
        account_id: Account created by the transaction, if any.
        file_id: File created by the transaction, if any.
        contract_id: Contract created by the transaction, if any.
        topic_sequence_number: Sequence number for topic messages, if any.
    """

    status: Status
    account_id: AccountId | None = None
    file_id: str | None = None
    contract_id: str | None = None
    topic_sequence_number: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionReceipt:
        account_id = data.get("accountID")
        sequence = data.get("topicSequenceNumber")
        return cls(
            status=Status.parse(data.get("status")),
            account_id=AccountId.from_string(account_id) if account_id else None,
            file_id=data.get("fileID"),
            contract_id=data.get("contractID"),
            topic_sequence_number=int(sequence) if sequence is not None else None,
        )


@dataclass(frozen=True)
class TransactionRecord:
    """Full record of a transaction after consensus."""

    transaction_id: TransactionId
    receipt: TransactionReceipt
    consensus_timestamp: Timestamp | None = None
    transaction_hash: str | None = None
    memo: str = ""
    transaction_fee: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionRecord:
        consensus = data.get("consensusTimestamp")
        return cls(
            transaction_id=TransactionId.from_dict(data["transactionID"]),
            receipt=TransactionReceipt.from_dict(data.get("receipt", {})),
            consensus_timestamp=Timestamp.from_dict(consensus) if consensus else None,
            transaction_hash=data.get("transactionHash"),
            memo=data.get("memo", ""),
            transaction_fee=int(data.get("transactionFee", 0)),
        )


class TransactionReceiptQuery(Query[TransactionReceipt]):
    """Fetch the receipt of a transaction, waiting out consensus."""

    def __init__(self, transaction_id: TransactionId) -> None:
        self._transaction_id = transaction_id

    def on_make_request(self) -> dict[str, Any]:
        return {"transactionID": self._transaction_id.to_dict()}

    def get_method(self) -> str:
        return RECEIPT_METHOD

    def get_transaction_id(self) -> TransactionId:
        return self._transaction_id

    def map_response(self, response: dict[str, Any]) -> TransactionReceipt:
        return TransactionReceipt.from_dict(response.get("receipt", {}))

    def should_retry(self, status: Status, response: dict[str, Any]) -> bool:
        if status in _RETRY_PRECHECK:
            return True
        if status is not Status.OK:
            return False
        return self.map_response(response).status in _PENDING_RECEIPT


class TransactionRecordQuery(Query[TransactionRecord]):
    """Fetch the record of a transaction."""

    def __init__(self, transaction_id: TransactionId) -> None:
        self._transaction_id = transaction_id

    def on_make_request(self) -> dict[str, Any]:
        return {"transactionID": self._transaction_id.to_dict()}

    def get_method(self) -> str:
        return RECORD_METHOD

    def get_transaction_id(self) -> TransactionId:
        return self._transaction_id

    def map_response(self, response: dict[str, Any]) -> TransactionRecord:
        return TransactionRecord.from_dict(response["transactionRecord"])

    def should_retry(self, status: Status, response: dict[str, Any]) -> bool:
        return status in _RETRY_PRECHECK or status is Status.RECORD_NOT_FOUND
