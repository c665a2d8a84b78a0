from signoff.database.models import ReviewItemRecord
from signoff.database.repositories.review_items_repository import ReviewItemsRepository
from signoff.extraction.models import ExtractionResult, extraction_from_dict
from signoff.logging.logger import Log
from signoff.reconciliation.decision_engine import DecisionEngine
from signoff.reconciliation.exceptions import (
    AlreadyMatchedError,
    ReviewItemAlreadyResolvedError,
    ValidationError,
)
from signoff.reconciliation.identity_resolver import IdentityResolver
from signoff.reconciliation.models import (
    Decision,
    Outcome,
    PipelineOutcome,
    ReviewResolution,
    WriteResult,
)
from signoff.reconciliation.validation import normalize_manual_identifier
from signoff.reconciliation.writer import PersistenceWriter


class ReviewQueue:
    """Lists open review items and resolves them with a reviewer's identifier."""

    def __init__(
        self,
        *,
        review_items_repo: ReviewItemsRepository,
        resolver: IdentityResolver,
        engine: DecisionEngine,
        writer: PersistenceWriter,
    ) -> None:
        self._review_items_repo = review_items_repo
        self._resolver = resolver
        self._engine = engine
        self._writer = writer

    def list_unresolved(
        self,
        sender_key: str | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ReviewItemRecord]:
        return self._review_items_repo.list_unresolved(sender_key, limit=limit, offset=offset)

    def resolve(self, resolution: ReviewResolution) -> PipelineOutcome:
        """Re-run identity resolution and the decision engine with a manual identifier.

        Raises:
            ValidationError: blank/malformed identifier or sender mismatch.
            ReviewItemNotFoundError: unknown review item.
            ReviewItemAlreadyResolvedError: item was resolved before.
        """
        identifier = normalize_manual_identifier(resolution.identifier)
        if not resolution.sender_key or not resolution.sender_key.strip():
            raise ValidationError("Sender key must not be blank")

        item = self._review_items_repo.find_by_id(resolution.review_item_id)
        if item.resolved:
            raise ReviewItemAlreadyResolvedError(f"Review item {item.id} is already resolved")
        if item.sender_key != resolution.sender_key:
            raise ValidationError(
                f"Review item {item.id} belongs to sender '{item.sender_key}', "
                f"not '{resolution.sender_key}'"
            )

        extraction = extraction_from_dict(item.extraction)
        match = self._resolver.resolve(identifier, item.sender_key, confidence=1.0)
        decision = self._engine.decide(
            extraction=extraction,
            match=match,
            template_configured=True,
            manual_identifier=identifier,
        )
        Log.info(
            "Resolving review item",
            review_item_id=item.id,
            identifier=identifier,
            outcome=decision.outcome.value,
        )

        if decision.outcome is Outcome.APPLIED and match.record_ref is not None:
            try:
                written = self._writer.apply_resolution(item, decision, match.record_ref, resolution.note)
            except AlreadyMatchedError as exc:
                Log.warning("Signed match already exists", work_order_id=exc.work_order_id)
                decision = self._engine.concurrent_conflict(decision)
            else:
                self._writer.mirror_review_resolved(item.id)
                Log.info("Review item resolved", review_item_id=item.id, note=resolution.note)
                return _outcome(decision, extraction, written)

        if decision.outcome is Outcome.ALREADY_PROCESSED:
            self._close(item, identifier, Outcome.ALREADY_PROCESSED.value)
        else:
            reason = decision.reason_code.value if decision.reason_code else "unknown"
            self._review_items_repo.record_failed_attempt(item.id, reason)
            Log.info("Review item stays unresolved", review_item_id=item.id, reason=reason)

        return _outcome(
            decision,
            extraction,
            WriteResult(document_ref=item.document_ref, snippet_ref=item.snippet_ref, review_item_id=item.id),
        )

    def _close(self, item: ReviewItemRecord, identifier: str, note: str | None) -> None:
        self._review_items_repo.mark_resolved(item.id, identifier=identifier, note=note)
        self._writer.mirror_review_resolved(item.id)
        Log.info("Review item resolved", review_item_id=item.id, note=note)


def _outcome(decision: Decision, extraction: ExtractionResult, written: WriteResult) -> PipelineOutcome:
    return PipelineOutcome(
        identifier=decision.identifier,
        confidence=decision.confidence,
        confidence_label=decision.confidence_label,
        outcome=decision.outcome,
        reason_code=decision.reason_code,
        message=decision.message,
        extraction=extraction,
        document_ref=written.document_ref,
        snippet_ref=written.snippet_ref,
        review_item_id=written.review_item_id,
    )
