from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

from signoff.extraction.models import ExtractionResult, Provenance


class SourceTag(StrEnum):
    UPLOAD = "upload"
    MAILBOX_IMPORT = "mailbox_import"


class Outcome(StrEnum):
    APPLIED = "applied"
    NEEDS_REVIEW = "needs_review"
    ALREADY_PROCESSED = "already_processed"


class ReasonCode(StrEnum):
    CAPTURE_ZONE_NOT_CONFIGURED = "capture_zone_not_configured"
    ALREADY_MATCHED = "already_matched"
    ALREADY_MATCHED_CONCURRENT = "already_matched_concurrent"
    NO_IDENTIFIER = "no_identifier"
    LOW_CONFIDENCE = "low_confidence"
    WORK_ORDER_NOT_FOUND = "work_order_not_found"


class ConfidenceLabel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    BLOCKED = "blocked"


class RecordStore(StrEnum):
    AUTHORITATIVE = "authoritative"
    LEGACY = "legacy"


@dataclass(frozen=True)
class SourceMetadata:
    """Transport provenance. Never used for matching."""

    message_id: str | None = None
    sender_address: str | None = None
    subject: str | None = None
    date: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SourceMetadata":
        data = data or {}
        return cls(
            message_id=data.get("message_id"),
            sender_address=data.get("sender_address"),
            subject=data.get("subject"),
            date=data.get("date"),
        )


@dataclass(frozen=True)
class PipelineInput:
    document_bytes: bytes = field(repr=False)
    filename: str
    page_index: int
    sender_key: str
    manual_identifier: str | None = None
    manual_reason: str | None = None
    source_tag: SourceTag = SourceTag.UPLOAD
    source_metadata: SourceMetadata = field(default_factory=SourceMetadata)


@dataclass(frozen=True)
class RecordRef:
    """Pointer to the work order record an identifier resolved to."""

    store: RecordStore
    record_id: int
    identifier: str
    sender_key: str | None = None
    job_reference: str | None = None
    status: str = "open"


@dataclass(frozen=True)
class IdentityMatch:
    exists: bool
    already_matched: bool
    record_ref: RecordRef | None = None


@dataclass(frozen=True)
class Decision:
    """What the decision engine concluded for one document."""

    outcome: Outcome
    identifier: str | None
    confidence: float
    confidence_label: ConfidenceLabel
    reason_code: ReasonCode | None = None
    message: str | None = None
    manual_override: bool = False


@dataclass(frozen=True)
class PipelineOutcome:
    identifier: str | None
    confidence: float
    confidence_label: ConfidenceLabel
    outcome: Outcome
    reason_code: ReasonCode | None
    message: str | None
    extraction: ExtractionResult
    document_ref: str | None = None
    snippet_ref: str | None = None
    review_item_id: int | None = None

    @property
    def provenance(self) -> Provenance | None:
        return self.extraction.provenance

    def to_dict(self) -> dict[str, Any]:
        extraction = self.extraction.to_dict()
        return {
            "identifier": self.identifier,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label.value,
            "outcome": self.outcome.value,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "message": self.message,
            "document_ref": self.document_ref,
            "snippet_ref": self.snippet_ref,
            "review_item_id": self.review_item_id,
            "provenance": extraction.get("provenance"),
            "extraction": extraction,
        }


@dataclass(frozen=True)
class ReviewResolution:
    review_item_id: int
    sender_key: str
    identifier: str
    note: str | None = None


@dataclass(frozen=True)
class WriteResult:
    """Refs produced by the persistence writer."""

    document_ref: str | None = None
    snippet_ref: str | None = None
    signed_document_id: int | None = None
    review_item_id: int | None = None
