"""
Query base — read-only operations answered by a single node.

Every query request and response carries a header:

    request:  {"header": {"responseType": "ANSWER_ONLY"}, ...query fields}
    response: {"header": {"nodeTransactionPrecheckCode": "OK"}, ...answer}

Subclasses fill in the query fields and decode the answer; the header
handling and status extraction live here.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, TypeVar

from ledger_exec.executable import Executable
from ledger_exec.status import Status

O = TypeVar("O")

RESPONSE_TYPE_ANSWER_ONLY = "ANSWER_ONLY"


def precheck_status(response: dict[str, Any]) -> Status:
    """Status from ``response["header"]["nodeTransactionPrecheckCode"]``.

    A missing header or code reads as UNKNOWN.
    """
    header = response.get("header")
    if not isinstance(header, dict):
        return Status.UNKNOWN
    return Status.parse(header.get("nodeTransactionPrecheckCode"))


class Query(Executable[O]):
    @abstractmethod
    def on_make_request(self) -> dict[str, Any]:
        """Query-specific request fields (everything except the header)."""

    def make_request(self) -> dict[str, Any]:
        request: dict[str, Any] = {"header": {"responseType": RESPONSE_TYPE_ANSWER_ONLY}}
        request.update(self.on_make_request())
        return request

    def map_response_status(self, response: dict[str, Any]) -> Status:
        return precheck_status(response)
