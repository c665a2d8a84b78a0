from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class WorkOrderRecord:
    """Represents a row from the work_orders (or legacy_work_orders) table."""

    id: int
    sender_key: str | None
    identifier: str
    status: str
    job_reference: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    signed_document_ref: str | None = None
    signed_snippet_ref: str | None = None
    signed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_signed(self) -> bool:
        return self.status.lower() == "signed"


@dataclass
class SignedDocumentRecord:
    """Represents a row from the signed_documents table."""

    id: int
    file_hash: str
    sender_key: str
    filename: str
    document_ref: str
    source_tag: str
    extraction_method: str
    extraction_confidence: float
    snippet_ref: str | None = None
    source_metadata: dict[str, Any] = field(default_factory=dict)
    extracted_identifier: str | None = None
    extraction_rationale: str | None = None
    created_at: datetime | None = None


@dataclass
class ReviewItemRecord:
    """Represents a row from the review_items table."""

    id: int
    sender_key: str
    confidence_label: str
    reason_code: str
    extraction: dict[str, Any]
    source_tag: str
    signed_document_id: int | None = None
    document_ref: str | None = None
    snippet_ref: str | None = None
    raw_text: str | None = None
    extracted_identifier: str | None = None
    confidence: float = 0.0
    source_metadata: dict[str, Any] = field(default_factory=dict)
    resolved: bool = False
    resolution_note: str | None = None
    resolved_identifier: str | None = None
    resolved_at: datetime | None = None
    last_attempt_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
