from pathlib import Path

from signoff.config.settings import Settings
from signoff.database.repositories.capture_templates_repository import CaptureTemplatesRepository
from signoff.database.repositories.legacy_export_repository import LegacyExportRepository
from signoff.database.repositories.review_items_repository import ReviewItemsRepository
from signoff.database.repositories.signed_documents_repository import SignedDocumentsRepository
from signoff.database.repositories.work_orders_repository import WorkOrdersRepository
from signoff.extraction.base import BaseCaptureZoneProvider
from signoff.extraction.orchestrator import ExtractionOrchestrator
from signoff.generative.factory import RescuerFactory
from signoff.logging.logger import Log
from signoff.pdf.factory import PdfExtractorFactory
from signoff.reconciliation.decision_engine import DecisionEngine
from signoff.reconciliation.identity_resolver import IdentityResolver
from signoff.reconciliation.models import PipelineInput, PipelineOutcome
from signoff.reconciliation.pipeline import PipelineContext, PipelineStep
from signoff.reconciliation.review_queue import ReviewQueue
from signoff.reconciliation.steps import (
    DecideOutcomeStep,
    ExtractIdentifierStep,
    LoadTemplateStep,
    PersistOutcomeStep,
    ResolveIdentityStep,
    ValidateInputStep,
)
from signoff.reconciliation.writer import PersistenceWriter
from signoff.recognition.factory import RecognizerFactory
from signoff.storage.document_storage import DocumentStorage


class Processor:
    """Runs one signed document through the reconciliation pipeline.

    Pipeline: validate -> template -> extract -> resolve -> decide -> persist.
    """

    def __init__(self, steps: list[PipelineStep]) -> None:
        self._steps = steps

    @classmethod
    def from_components(
        cls,
        *,
        provider: BaseCaptureZoneProvider,
        orchestrator: ExtractionOrchestrator,
        resolver: IdentityResolver,
        engine: DecisionEngine,
        writer: PersistenceWriter,
    ) -> "Processor":
        return cls(
            [
                ValidateInputStep(),
                LoadTemplateStep(provider),
                ExtractIdentifierStep(orchestrator),
                ResolveIdentityStep(resolver),
                DecideOutcomeStep(engine),
                PersistOutcomeStep(writer, engine),
            ]
        )

    def process(self, pipeline_input: PipelineInput) -> PipelineOutcome:
        Log.info(
            "Processing signed document",
            filename=pipeline_input.filename,
            sender_key=pipeline_input.sender_key,
            source=pipeline_input.source_tag.value,
        )
        context = PipelineContext(pipeline_input=pipeline_input)
        for step in self._steps:
            context = step.run(context)
        outcome = context.to_outcome()
        Log.info(
            "Signed document processed",
            filename=pipeline_input.filename,
            outcome=outcome.outcome.value,
            reason=outcome.reason_code.value if outcome.reason_code else None,
            identifier=outcome.identifier,
        )
        return outcome


def _build_shared(settings: Settings, files_root: Path | None) -> tuple[IdentityResolver, DecisionEngine, PersistenceWriter]:
    work_orders_repo = WorkOrdersRepository()
    resolver = IdentityResolver(
        work_orders_repo=work_orders_repo,
        legacy_repo=LegacyExportRepository() if settings.legacy_lookup_enabled else None,
        authoritative_lookup_enabled=settings.authoritative_lookup_enabled,
        duplicate_confidence_threshold=settings.duplicate_confidence_threshold,
    )
    engine = DecisionEngine(
        high_confidence_threshold=settings.high_confidence_threshold,
        auto_apply_threshold=settings.auto_apply_threshold,
    )
    writer = PersistenceWriter(
        storage=DocumentStorage(files_root if files_root is not None else settings.files_root),
        work_orders_repo=work_orders_repo,
        signed_documents_repo=SignedDocumentsRepository(),
        review_items_repo=ReviewItemsRepository(),
        legacy_repo=LegacyExportRepository() if settings.legacy_mirror_enabled else None,
    )
    return resolver, engine, writer


def build_processor(settings: Settings, files_root: Path | None = None) -> Processor:
    """Build a Processor with all required adapters."""
    resolver, engine, writer = _build_shared(settings, files_root)
    orchestrator = ExtractionOrchestrator(
        pdf_extractor=PdfExtractorFactory.create(settings),
        renderer=PdfExtractorFactory.create_renderer(settings),
        recognizer=RecognizerFactory.create(settings),
        rescuer=RescuerFactory.create(settings),
        default_expected_digits=settings.default_expected_digits,
        recognition_accept_threshold=settings.recognition_accept_threshold,
    )
    return Processor.from_components(
        provider=CaptureTemplatesRepository(),
        orchestrator=orchestrator,
        resolver=resolver,
        engine=engine,
        writer=writer,
    )


def build_review_queue(settings: Settings, files_root: Path | None = None) -> ReviewQueue:
    resolver, engine, writer = _build_shared(settings, files_root)
    return ReviewQueue(
        review_items_repo=ReviewItemsRepository(),
        resolver=resolver,
        engine=engine,
        writer=writer,
    )
