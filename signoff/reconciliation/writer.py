"""Dual-store persistence of reconciliation outcomes."""

from typing import Any

import psycopg

from signoff.database.connection import get_connection
from signoff.database.models import ReviewItemRecord
from signoff.database.repositories.legacy_export_repository import LegacyExportRepository
from signoff.database.repositories.review_items_repository import ReviewItemsRepository
from signoff.database.repositories.signed_documents_repository import SignedDocumentsRepository
from signoff.database.repositories.work_orders_repository import WorkOrdersRepository
from signoff.extraction.models import ExtractionMethod, ExtractionResult
from signoff.logging.logger import Log
from signoff.reconciliation.exceptions import ReconciliationError
from signoff.reconciliation.models import (
    Decision,
    IdentityMatch,
    Outcome,
    PipelineInput,
    RecordRef,
    RecordStore,
    WriteResult,
)
from signoff.storage.document_storage import DocumentStorage, file_hash
from signoff.storage.exceptions import StorageError


class PersistenceWriter:
    """Writes an outcome to durable storage, the authoritative store, then the legacy mirror.

    Authoritative failures propagate. Legacy failures are logged and never
    change the result.
    """

    def __init__(
        self,
        *,
        storage: DocumentStorage,
        work_orders_repo: WorkOrdersRepository,
        signed_documents_repo: SignedDocumentsRepository,
        review_items_repo: ReviewItemsRepository,
        legacy_repo: LegacyExportRepository | None = None,
    ) -> None:
        self._storage = storage
        self._work_orders_repo = work_orders_repo
        self._signed_documents_repo = signed_documents_repo
        self._review_items_repo = review_items_repo
        self._legacy_repo = legacy_repo

    def write(
        self,
        pipeline_input: PipelineInput,
        extraction: ExtractionResult,
        decision: Decision,
        match: IdentityMatch | None,
    ) -> WriteResult:
        """Persist a freshly decided outcome.

        Raises:
            AlreadyMatchedError: when an Applied write loses the signed-match race.
        """
        if decision.outcome is Outcome.APPLIED:
            if match is None or match.record_ref is None:
                raise ReconciliationError("Applied outcome requires a resolved work order")
            return self.apply(pipeline_input, extraction, decision, match.record_ref)
        if decision.outcome is Outcome.NEEDS_REVIEW:
            return self.queue_for_review(pipeline_input, extraction, decision)
        return self.record_already_processed(pipeline_input, extraction, decision)

    def apply(
        self,
        pipeline_input: PipelineInput,
        extraction: ExtractionResult,
        decision: Decision,
        record_ref: RecordRef,
    ) -> WriteResult:
        identifier = self._require_identifier(decision)
        content_hash = file_hash(pipeline_input.document_bytes)
        document_ref = self._storage.save_document(pipeline_input.document_bytes)
        snippet_ref = self._save_snippet(extraction, pipeline_input.sender_key, content_hash, identifier)

        with get_connection() as conn:
            with conn.transaction():
                work_order_id = self._work_order_id(conn, record_ref, pipeline_input.sender_key)
                signed_document_id = self._signed_documents_repo.upsert(
                    conn,
                    file_hash=content_hash,
                    sender_key=pipeline_input.sender_key,
                    filename=pipeline_input.filename,
                    document_ref=document_ref,
                    snippet_ref=snippet_ref,
                    source_tag=pipeline_input.source_tag.value,
                    source_metadata=pipeline_input.source_metadata.to_dict(),
                    extracted_identifier=identifier,
                    extraction_method=_method(extraction, decision).value,
                    extraction_confidence=decision.confidence,
                    extraction_rationale=extraction.rationale,
                )
                self._signed_documents_repo.insert_match(
                    conn,
                    work_order_id=work_order_id,
                    signed_document_id=signed_document_id,
                    identifier=identifier,
                    confidence=decision.confidence,
                    method=_method(extraction, decision).value,
                )
                self._work_orders_repo.apply_signed_status(
                    conn, work_order_id, document_ref=document_ref, snippet_ref=snippet_ref
                )

        Log.info(
            "Signed document applied",
            identifier=identifier,
            work_order_id=work_order_id,
            signed_document_id=signed_document_id,
        )
        self._mirror_signed(record_ref, identifier, pipeline_input.sender_key, document_ref, snippet_ref)
        return WriteResult(
            document_ref=document_ref,
            snippet_ref=snippet_ref,
            signed_document_id=signed_document_id,
        )

    def apply_resolution(
        self,
        item: ReviewItemRecord,
        decision: Decision,
        record_ref: RecordRef,
        note: str | None = None,
    ) -> WriteResult:
        """Apply a reviewer's identifier using the document the review item already stored.

        The item is claimed in the same transaction as the signed match, so a
        second resolver of the same item rolls back without leaving a match.

        Raises:
            ReviewItemAlreadyResolvedError: if another resolver claimed the item first.
            AlreadyMatchedError: if the work order already has a signed match.
        """
        identifier = self._require_identifier(decision)
        if item.signed_document_id is None or item.document_ref is None:
            raise ReconciliationError(f"Review item {item.id} has no stored document to apply")

        with get_connection() as conn:
            with conn.transaction():
                self._review_items_repo.claim(conn, item.id, identifier=identifier, note=note)
                work_order_id = self._work_order_id(conn, record_ref, item.sender_key)
                self._signed_documents_repo.insert_match(
                    conn,
                    work_order_id=work_order_id,
                    signed_document_id=item.signed_document_id,
                    identifier=identifier,
                    confidence=decision.confidence,
                    method=ExtractionMethod.MANUAL.value,
                )
                self._work_orders_repo.apply_signed_status(
                    conn, work_order_id, document_ref=item.document_ref, snippet_ref=item.snippet_ref
                )

        Log.info("Review item applied", review_item_id=item.id, identifier=identifier)
        self._mirror_signed(record_ref, identifier, item.sender_key, item.document_ref, item.snippet_ref)
        return WriteResult(
            document_ref=item.document_ref,
            snippet_ref=item.snippet_ref,
            signed_document_id=item.signed_document_id,
            review_item_id=item.id,
        )

    def queue_for_review(
        self,
        pipeline_input: PipelineInput,
        extraction: ExtractionResult,
        decision: Decision,
    ) -> WriteResult:
        content_hash = file_hash(pipeline_input.document_bytes)
        document_ref = self._storage.save_document(pipeline_input.document_bytes)
        snippet_ref = self._save_snippet(
            extraction, pipeline_input.sender_key, content_hash, decision.identifier
        )
        reason = decision.reason_code.value if decision.reason_code else "unknown"

        with get_connection() as conn:
            with conn.transaction():
                signed_document_id = self._signed_documents_repo.upsert(
                    conn,
                    file_hash=content_hash,
                    sender_key=pipeline_input.sender_key,
                    filename=pipeline_input.filename,
                    document_ref=document_ref,
                    snippet_ref=snippet_ref,
                    source_tag=pipeline_input.source_tag.value,
                    source_metadata=pipeline_input.source_metadata.to_dict(),
                    extracted_identifier=decision.identifier,
                    extraction_method=_method(extraction, decision).value,
                    extraction_confidence=decision.confidence,
                    extraction_rationale=extraction.rationale,
                )
                review_item_id = self._review_items_repo.create(
                    conn,
                    sender_key=pipeline_input.sender_key,
                    signed_document_id=signed_document_id,
                    document_ref=document_ref,
                    snippet_ref=snippet_ref,
                    raw_text=_raw_text(extraction),
                    extracted_identifier=decision.identifier,
                    confidence=decision.confidence,
                    confidence_label=decision.confidence_label.value,
                    reason_code=reason,
                    extraction=extraction.to_dict(),
                    source_tag=pipeline_input.source_tag.value,
                    source_metadata=pipeline_input.source_metadata.to_dict(),
                )

        Log.info("Queued for review", review_item_id=review_item_id, reason=reason)
        if self._legacy_repo is not None:
            try:
                self._legacy_repo.append_review_row(
                    review_item_id=review_item_id,
                    sender_key=pipeline_input.sender_key,
                    identifier=decision.identifier,
                    confidence_label=decision.confidence_label.value,
                    reason_code=reason,
                    document_ref=document_ref,
                    snippet_ref=snippet_ref,
                )
            except Exception as exc:
                Log.warning("Legacy review mirror failed", review_item_id=review_item_id, error=str(exc))

        return WriteResult(
            document_ref=document_ref,
            snippet_ref=snippet_ref,
            signed_document_id=signed_document_id,
            review_item_id=review_item_id,
        )

    def record_already_processed(
        self,
        pipeline_input: PipelineInput,
        extraction: ExtractionResult,
        decision: Decision,
    ) -> WriteResult:
        """Audit-only record; the document itself is not stored again."""
        reason = decision.reason_code.value if decision.reason_code else "already_matched"
        with get_connection() as conn:
            with conn.transaction():
                review_item_id = self._review_items_repo.create(
                    conn,
                    sender_key=pipeline_input.sender_key,
                    signed_document_id=None,
                    document_ref=None,
                    snippet_ref=None,
                    raw_text=_raw_text(extraction),
                    extracted_identifier=decision.identifier,
                    confidence=decision.confidence,
                    confidence_label=decision.confidence_label.value,
                    reason_code=reason,
                    extraction=extraction.to_dict(),
                    source_tag=pipeline_input.source_tag.value,
                    source_metadata=pipeline_input.source_metadata.to_dict(),
                    resolved=True,
                    resolution_note=Outcome.ALREADY_PROCESSED.value,
                )
        Log.info("Already processed, audit recorded", review_item_id=review_item_id, reason=reason)
        return WriteResult(review_item_id=review_item_id)

    def mirror_review_resolved(self, review_item_id: int) -> None:
        if self._legacy_repo is None:
            return
        try:
            self._legacy_repo.mark_review_resolved(review_item_id)
        except Exception as exc:
            Log.warning("Legacy review resolution mirror failed", review_item_id=review_item_id, error=str(exc))

    def _work_order_id(self, conn: psycopg.Connection[Any], record_ref: RecordRef, sender_key: str) -> int:
        if record_ref.store is RecordStore.AUTHORITATIVE:
            return record_ref.record_id
        Log.info("Adopting legacy work order", identifier=record_ref.identifier)
        return self._work_orders_repo.adopt(
            conn,
            sender_key=record_ref.sender_key or sender_key,
            identifier=record_ref.identifier,
            job_reference=record_ref.job_reference,
            status="open",
        )

    def _save_snippet(
        self,
        extraction: ExtractionResult,
        sender_key: str,
        content_hash: str,
        identifier: str | None,
    ) -> str | None:
        if not extraction.snippet_png:
            return None
        try:
            return self._storage.save_snippet(
                extraction.snippet_png,
                sender_key=sender_key,
                content_hash=content_hash,
                identifier=identifier,
            )
        except StorageError as exc:
            Log.warning("Snippet upload failed", sender_key=sender_key, error=str(exc))
            return None

    def _mirror_signed(
        self,
        record_ref: RecordRef,
        identifier: str,
        sender_key: str,
        document_ref: str,
        snippet_ref: str | None,
    ) -> None:
        if self._legacy_repo is None:
            return
        try:
            self._legacy_repo.mirror_signed(
                identifier=identifier,
                sender_key=record_ref.sender_key or sender_key,
                job_reference=record_ref.job_reference,
                document_ref=document_ref,
                snippet_ref=snippet_ref,
            )
        except Exception as exc:
            Log.warning("Legacy signed mirror failed", identifier=identifier, error=str(exc))

    @staticmethod
    def _require_identifier(decision: Decision) -> str:
        if decision.identifier is None:
            raise ReconciliationError("Applied outcome requires an identifier")
        return decision.identifier


def _method(extraction: ExtractionResult, decision: Decision) -> ExtractionMethod:
    return ExtractionMethod.MANUAL if decision.manual_override else extraction.method


def _raw_text(extraction: ExtractionResult) -> str | None:
    provenance = extraction.provenance
    return provenance.cropped_text_snippet if provenance is not None else None
