from signoff.extraction.base import BaseCaptureZoneProvider
from signoff.extraction.models import manual_extraction
from signoff.extraction.orchestrator import ExtractionOrchestrator
from signoff.logging.logger import Log
from signoff.reconciliation.decision_engine import DecisionEngine
from signoff.reconciliation.exceptions import AlreadyMatchedError
from signoff.reconciliation.identity_resolver import IdentityResolver
from signoff.reconciliation.pipeline import PipelineContext, PipelineStep
from signoff.reconciliation.validation import normalize_manual_identifier, validate_pipeline_input
from signoff.reconciliation.writer import PersistenceWriter


class ValidateInputStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        validate_pipeline_input(context.pipeline_input)
        if context.pipeline_input.manual_identifier is not None:
            context.manual_identifier = normalize_manual_identifier(
                context.pipeline_input.manual_identifier
            )
        return context


class LoadTemplateStep(PipelineStep):
    def __init__(self, provider: BaseCaptureZoneProvider) -> None:
        self._provider = provider

    def run(self, context: PipelineContext) -> PipelineContext:
        sender_key = context.pipeline_input.sender_key
        context.template = self._provider.get_template(sender_key)
        if context.template is None:
            Log.warning("No capture zone configured", sender_key=sender_key)
        return context


class ExtractIdentifierStep(PipelineStep):
    def __init__(self, orchestrator: ExtractionOrchestrator) -> None:
        self._orchestrator = orchestrator

    def run(self, context: PipelineContext) -> PipelineContext:
        pipeline_input = context.pipeline_input
        if context.manual_identifier is not None:
            Log.info("Manual identifier supplied, skipping extraction", identifier=context.manual_identifier)
            context.extraction = manual_extraction(context.manual_identifier, pipeline_input.manual_reason)
            return context
        context.extraction = self._orchestrator.extract(
            pipeline_input.document_bytes,
            pipeline_input.page_index,
            pipeline_input.sender_key,
            context.template,
        )
        return context


class ResolveIdentityStep(PipelineStep):
    def __init__(self, resolver: IdentityResolver) -> None:
        self._resolver = resolver

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.extraction is None:
            raise ValueError("PipelineContext.extraction must be set before identity resolution")
        if context.template is None:
            return context
        manual = context.manual_identifier is not None
        identifier = context.manual_identifier if manual else context.extraction.identifier
        if identifier is None:
            return context
        context.match = self._resolver.resolve(
            identifier,
            context.pipeline_input.sender_key,
            confidence=1.0 if manual else context.extraction.confidence,
        )
        return context


class DecideOutcomeStep(PipelineStep):
    def __init__(self, engine: DecisionEngine) -> None:
        self._engine = engine

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.extraction is None:
            raise ValueError("PipelineContext.extraction must be set before deciding")
        context.decision = self._engine.decide(
            extraction=context.extraction,
            match=context.match,
            template_configured=context.template is not None,
            manual_identifier=context.manual_identifier,
        )
        return context


class PersistOutcomeStep(PipelineStep):
    def __init__(self, writer: PersistenceWriter, engine: DecisionEngine) -> None:
        self._writer = writer
        self._engine = engine

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.extraction is None or context.decision is None:
            raise ValueError("PipelineContext.decision must be set before persist")
        try:
            context.write_result = self._writer.write(
                context.pipeline_input, context.extraction, context.decision, context.match
            )
        except AlreadyMatchedError as exc:
            Log.warning("Signed match already exists", work_order_id=exc.work_order_id)
            context.decision = self._engine.concurrent_conflict(context.decision)
            context.write_result = self._writer.record_already_processed(
                context.pipeline_input, context.extraction, context.decision
            )
        return context
