"""
Identifiers — account references, timestamps, and transaction IDs.

A TransactionId is the client-generated correlation key for a transaction:
the payer account plus the instant the transaction becomes valid. The
network uses it to deduplicate submissions and to look up receipts and
records after consensus.

Generation rule:
    valid_start = now - 10s, bumped to (last issued + 1ns) whenever that
    would not be strictly greater than the previous identifier.

    The 10s skew lets a transaction be accepted even when the node's
    clock lags ours. The bump keeps identifiers strictly increasing
    within the process, even if the wall clock stalls or steps back.

Wire forms:
    - binary: big-endian (shard, realm, num, seconds, nanos), 36 bytes
    - dict: {"accountId": "0.0.3", "validStart": {"seconds": s, "nanos": n}}
    - text: "0.0.3@1700000000.123456789" (informational, for logs only)
"""

from __future__ import annotations

import re
import struct
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from ledger_exec.client import Client
    from ledger_exec.receipt import TransactionReceipt, TransactionRecord

NANOS_PER_SECOND = 1_000_000_000

# How far behind our clock a generated valid_start is placed.
VALID_START_SKEW_NANOS = 10 * NANOS_PER_SECOND

# shard, realm, num, seconds (int64 each), nanos (int32)
_TRANSACTION_ID_LAYOUT = struct.Struct(">qqqqi")

_ACCOUNT_ID_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


# =========================================================================
# AccountId
# =========================================================================


@dataclass(frozen=True, order=True)
class AccountId:
    """Network account reference in ``shard.realm.num`` form."""

    shard: int
    realm: int
    num: int

    def __post_init__(self) -> None:
        for name in ("shard", "realm", "num"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got: {value}")

    @classmethod
    def from_string(cls, text: str) -> AccountId:
        """Parse ``"0.0.3"``.

        Raises:
            ValueError: If text is not three dot-separated integers.
        """
        match = _ACCOUNT_ID_RE.match(text)
        if match is None:
            raise ValueError(
                f"account id must look like 'shard.realm.num', got: {text!r}"
            )
        shard, realm, num = (int(part) for part in match.groups())
        return cls(shard, realm, num)

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"


# =========================================================================
# Timestamp
# =========================================================================


@dataclass(frozen=True, order=True)
class Timestamp:
    """Instant with nanosecond precision (seconds + nanos since the epoch)."""

    seconds: int
    nanos: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanos < NANOS_PER_SECOND:
            raise ValueError(
                f"nanos must be in [0, {NANOS_PER_SECOND}), got: {self.nanos}"
            )

    @classmethod
    def from_nanos(cls, total: int) -> Timestamp:
        seconds, nanos = divmod(total, NANOS_PER_SECOND)
        return cls(seconds, nanos)

    def to_nanos(self) -> int:
        return self.seconds * NANOS_PER_SECOND + self.nanos

    def plus_nanos(self, delta: int) -> Timestamp:
        return Timestamp.from_nanos(self.to_nanos() + delta)

    def to_dict(self) -> dict[str, int]:
        return {"seconds": self.seconds, "nanos": self.nanos}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Timestamp:
        return cls(seconds=int(data["seconds"]), nanos=int(data.get("nanos", 0)))


# =========================================================================
# TransactionId
# =========================================================================


@dataclass(frozen=True)
class TransactionId:
    """The client-generated ID for a transaction.

    Attributes:
        account_id: Account that pays for the transaction.
        valid_start: Instant from which the transaction is valid. Together
            with the transaction's valid duration it bounds the window in
            which the network will process it.
    """

    account_id: AccountId
    valid_start: Timestamp

    @classmethod
    def generate(cls, account_id: AccountId) -> TransactionId:
        """Generate a fresh, process-wide strictly increasing ID."""
        return _DEFAULT_GENERATOR.generate(account_id)

    # -----------------------------------------------------------------
    # Wire forms
    # -----------------------------------------------------------------

    def to_bytes(self) -> bytes:
        return _TRANSACTION_ID_LAYOUT.pack(
            self.account_id.shard,
            self.account_id.realm,
            self.account_id.num,
            self.valid_start.seconds,
            self.valid_start.nanos,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> TransactionId:
        """Decode the fixed binary layout produced by ``to_bytes()``.

        Raises:
            ValueError: If data has the wrong length or out-of-range fields.
        """
        if len(data) != _TRANSACTION_ID_LAYOUT.size:
            raise ValueError(
                f"transaction id must be {_TRANSACTION_ID_LAYOUT.size} bytes, "
                f"got {len(data)}"
            )
        shard, realm, num, seconds, nanos = _TRANSACTION_ID_LAYOUT.unpack(data)
        return cls(AccountId(shard, realm, num), Timestamp(seconds, nanos))

    def to_dict(self) -> dict[str, object]:
        return {
            "accountId": str(self.account_id),
            "validStart": self.valid_start.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionId:
        return cls(
            account_id=AccountId.from_string(data["accountId"]),
            valid_start=Timestamp.from_dict(data["validStart"]),
        )

    def __str__(self) -> str:
        return (
            f"{self.account_id}@{self.valid_start.seconds}.{self.valid_start.nanos}"
        )

    # -----------------------------------------------------------------
    # Post-consensus lookups
    # -----------------------------------------------------------------

    async def get_receipt(self, client: Client) -> TransactionReceipt:
        """Fetch the receipt for this transaction once consensus is reached.

        Raises:
            ReceiptStatusError: If the receipt status is not SUCCESS.
        """
        from ledger_exec.errors import ReceiptStatusError
        from ledger_exec.receipt import TransactionReceiptQuery
        from ledger_exec.status import Status

        receipt = await TransactionReceiptQuery(self).execute(client)
        if receipt.status is not Status.SUCCESS:
            raise ReceiptStatusError(self, receipt)
        return receipt

    async def get_record(self, client: Client) -> TransactionRecord:
        """Fetch the record for this transaction.

        The receipt is fetched first so the record query only runs after
        consensus has been reached.
        """
        from ledger_exec.receipt import TransactionRecordQuery

        await self.get_receipt(client)
        return await TransactionRecordQuery(self).execute(client)


# =========================================================================
# Generator
# =========================================================================


class TransactionIdGenerator:
    """Hands out strictly increasing transaction IDs.

    The watermark (last issued instant) is read, compared, and written
    under one lock, so concurrent callers on any thread never observe
    the same or a smaller valid_start.

    Args:
        now_ns: Callable returning wall-clock epoch nanoseconds. Inject
            for tests.
    """

    def __init__(self, now_ns: Callable[[], int] | None = None) -> None:
        self._now_ns = now_ns or time.time_ns
        self._lock = threading.Lock()
        self._last: int | None = None

    def generate(self, account_id: AccountId) -> TransactionId:
        return TransactionId(account_id, self._next_valid_start())

    def _next_valid_start(self) -> Timestamp:
        with self._lock:
            candidate = self._now_ns() - VALID_START_SKEW_NANOS
            if self._last is not None and candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
        return Timestamp.from_nanos(candidate)


_DEFAULT_GENERATOR = TransactionIdGenerator()
