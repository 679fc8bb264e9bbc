"""
Append-only audit trail of handle-only records.
"""

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, field_serializer

from shared.errors import ValidationError
from shared.logging import get_logger
from ..fhe.handles import CiphertextHandle


class AuditRecord(BaseModel):
    """Base audit record. Records carry handles and principals, never cleartext."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sequence: int


class RulesUpdated(AuditRecord):
    kind: Literal["RulesUpdated"] = "RulesUpdated"
    min_age_handle: CiphertextHandle
    max_claims_handle: CiphertextHandle
    min_score_handle: CiphertextHandle

    @field_serializer("min_age_handle", "max_claims_handle", "min_score_handle")
    def _serialize_handle(self, handle: CiphertextHandle) -> str:
        return handle.hex()


class ApplicationChecked(AuditRecord):
    kind: Literal["ApplicationChecked"] = "ApplicationChecked"
    applicant: str
    verdict_handle: CiphertextHandle

    @field_serializer("verdict_handle")
    def _serialize_handle(self, handle: CiphertextHandle) -> str:
        return handle.hex()


class OwnershipTransferred(AuditRecord):
    kind: Literal["OwnershipTransferred"] = "OwnershipTransferred"
    previous_owner: Optional[str] = None
    new_owner: str


RecordT = TypeVar("RecordT", bound=AuditRecord)

RECORD_KINDS: Dict[str, Type[AuditRecord]] = {
    "RulesUpdated": RulesUpdated,
    "ApplicationChecked": ApplicationChecked,
    "OwnershipTransferred": OwnershipTransferred,
}


class EventLog:
    """Append-only event log.

    Records emitted during a ledger call are discarded if the call aborts.
    """

    def __init__(self):
        self.logger = get_logger("eligibility.events")
        self._records: List[AuditRecord] = []
        self._mark: Optional[int] = None

    def emit(self, record_type: Type[RecordT], **fields: Any) -> RecordT:
        record = record_type(sequence=len(self._records) + 1, **fields)
        self._records.append(record)
        self.logger.info("Audit record emitted", **record.model_dump(mode="json"))
        return record

    def records(self, kind: Optional[str] = None, since: int = 0) -> List[AuditRecord]:
        """Records with sequence greater than ``since``, optionally of one kind."""
        if since < 0:
            raise ValidationError("since must be non-negative", details={"since": since})
        if kind is not None and kind not in RECORD_KINDS:
            raise ValidationError("Unknown audit record kind", details={"kind": kind})
        mark = self._mark if self._mark is not None else len(self._records)
        return [
            record for record in self._records[since:mark]
            if kind is None or record.kind == kind
        ]

    def __len__(self) -> int:
        return len(self._records)

    def begin(self) -> None:
        self._mark = len(self._records)

    def commit(self) -> None:
        self._mark = None

    def rollback(self) -> None:
        if self._mark is not None:
            del self._records[self._mark:]
        self._mark = None
