from signoff.extraction.models import ExtractionResult
from signoff.logging.logger import Log
from signoff.reconciliation.models import (
    ConfidenceLabel,
    Decision,
    IdentityMatch,
    Outcome,
    ReasonCode,
)
from signoff.reconciliation.review_messages import review_message


class DecisionEngine:
    """Routes an extraction to Applied, NeedsReview or AlreadyProcessed.

    Rules are evaluated in order and the first match wins:
      1. no capture zone -> NeedsReview, even with a manual override
      2. already matched -> AlreadyProcessed
      3. no identifier, or low confidence without override -> NeedsReview
      4. identifier not found -> NeedsReview, label forced to blocked
      5. otherwise -> Applied
    """

    def __init__(
        self,
        *,
        high_confidence_threshold: float = 0.90,
        auto_apply_threshold: float = 0.80,
    ) -> None:
        self._high = high_confidence_threshold
        self._auto_apply = auto_apply_threshold

    def label_for(self, confidence: float) -> ConfidenceLabel:
        if confidence >= self._high:
            return ConfidenceLabel.HIGH
        if confidence >= self._auto_apply:
            return ConfidenceLabel.MEDIUM
        return ConfidenceLabel.LOW

    def decide(
        self,
        *,
        extraction: ExtractionResult,
        match: IdentityMatch | None,
        template_configured: bool,
        manual_identifier: str | None = None,
    ) -> Decision:
        manual = manual_identifier is not None
        identifier = manual_identifier if manual else extraction.identifier
        confidence = 1.0 if manual else extraction.confidence
        label = self.label_for(confidence)

        if not template_configured:
            decision = self._review(identifier, confidence, label, ReasonCode.CAPTURE_ZONE_NOT_CONFIGURED, manual)
        elif match is not None and match.already_matched:
            decision = Decision(
                outcome=Outcome.ALREADY_PROCESSED,
                identifier=identifier,
                confidence=confidence,
                confidence_label=label,
                reason_code=ReasonCode.ALREADY_MATCHED,
                message=review_message(ReasonCode.ALREADY_MATCHED).message,
                manual_override=manual,
            )
        elif identifier is None:
            decision = self._review(None, confidence, label, ReasonCode.NO_IDENTIFIER, manual)
        elif label is ConfidenceLabel.LOW and not manual:
            decision = self._review(identifier, confidence, label, ReasonCode.LOW_CONFIDENCE, manual)
        elif match is None or not match.exists:
            decision = self._review(
                identifier, confidence, ConfidenceLabel.BLOCKED, ReasonCode.WORK_ORDER_NOT_FOUND, manual
            )
        else:
            decision = Decision(
                outcome=Outcome.APPLIED,
                identifier=identifier,
                confidence=confidence,
                confidence_label=label,
                manual_override=manual,
            )

        Log.info(
            "Outcome decided",
            outcome=decision.outcome.value,
            reason=decision.reason_code.value if decision.reason_code else None,
            identifier=decision.identifier,
            label=decision.confidence_label.value,
        )
        return decision

    @staticmethod
    def concurrent_conflict(decision: Decision) -> Decision:
        """Turn an Applied decision that lost the signed-match race into AlreadyProcessed."""
        return Decision(
            outcome=Outcome.ALREADY_PROCESSED,
            identifier=decision.identifier,
            confidence=decision.confidence,
            confidence_label=decision.confidence_label,
            reason_code=ReasonCode.ALREADY_MATCHED_CONCURRENT,
            message=review_message(ReasonCode.ALREADY_MATCHED_CONCURRENT).message,
            manual_override=decision.manual_override,
        )

    @staticmethod
    def _review(
        identifier: str | None,
        confidence: float,
        label: ConfidenceLabel,
        reason: ReasonCode,
        manual: bool,
    ) -> Decision:
        return Decision(
            outcome=Outcome.NEEDS_REVIEW,
            identifier=identifier,
            confidence=confidence,
            confidence_label=label,
            reason_code=reason,
            message=review_message(reason).message,
            manual_override=manual,
        )
