from abc import ABC, abstractmethod
from dataclasses import dataclass

from signoff.extraction.models import CaptureTemplate, ExtractionResult
from signoff.reconciliation.models import (
    Decision,
    IdentityMatch,
    PipelineInput,
    PipelineOutcome,
    WriteResult,
)


@dataclass(slots=True)
class PipelineContext:
    pipeline_input: PipelineInput
    manual_identifier: str | None = None
    template: CaptureTemplate | None = None
    extraction: ExtractionResult | None = None
    match: IdentityMatch | None = None
    decision: Decision | None = None
    write_result: WriteResult | None = None

    def to_outcome(self) -> PipelineOutcome:
        if self.extraction is None or self.decision is None:
            raise ValueError("PipelineContext must have extraction and decision before building an outcome")
        written = self.write_result or WriteResult()
        return PipelineOutcome(
            identifier=self.decision.identifier,
            confidence=self.decision.confidence,
            confidence_label=self.decision.confidence_label,
            outcome=self.decision.outcome,
            reason_code=self.decision.reason_code,
            message=self.decision.message,
            extraction=self.extraction,
            document_ref=written.document_ref,
            snippet_ref=written.snippet_ref,
            review_item_id=written.review_item_id,
        )


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
