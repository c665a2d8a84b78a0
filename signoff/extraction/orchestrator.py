"""Cascading identifier extraction: text layer, zone OCR, generative rescue."""

import hashlib
from dataclasses import dataclass, field

from signoff.extraction.candidates import TextCandidate, find_candidates, within_tolerance
from signoff.extraction.models import (
    CaptureTemplate,
    ExtractionCandidate,
    ExtractionMethod,
    ExtractionReason,
    ExtractionResult,
    InputScope,
    PipelinePath,
    Provenance,
)
from signoff.generative.exceptions import RescueError
from signoff.generative.rescuer import IdentifierRescuer
from signoff.logging.logger import Log
from signoff.pdf.base import BasePdfExtractor
from signoff.pdf.exceptions import PdfExtractionError
from signoff.pdf.pymupdf_adapter import RegionRenderer
from signoff.recognition.base import BaseRecognizer
from signoff.recognition.exceptions import RecognitionError

SINGLE_MATCH_CONFIDENCE = 0.98
MULTIPLE_MATCH_CONFIDENCE = 0.85
RECOGNITION_CONFIDENCE_CAP = 0.94
RESCUE_CONFIDENCE_CAP = 0.85
FALLBACK_CONFIDENCE = 0.70
MAX_ALTERNATES = 5
MAX_FALLBACK_CANDIDATES = 3
CROPPED_SNIPPET_CHARS = 200


@dataclass
class _Attempt:
    """Mutable state threaded through the layers of one extract() call."""

    template: CaptureTemplate | None
    expected_digits: int
    reasons: list[ExtractionReason] = field(default_factory=list)
    text_candidates: list[TextCandidate] = field(default_factory=list)
    cropped_text: str = ""
    snippet_png: bytes | None = None
    recognition_ran: bool = False
    recognition_failed: bool = False
    recognition_candidate: ExtractionCandidate | None = None
    rescue_ran: bool = False


class ExtractionOrchestrator:
    """Runs the extraction layers cheapest first and stops at the first acceptance.

    Layer A reads the PDF text layer (clipped to the capture zone when the
    sender has a template). Layer B renders only the zone and asks the
    recognizer, at most once. Layer C prompts the rescuer with cropped text
    only and is skipped when there is none.
    """

    def __init__(
        self,
        *,
        pdf_extractor: BasePdfExtractor,
        renderer: RegionRenderer,
        recognizer: BaseRecognizer | None = None,
        rescuer: IdentifierRescuer | None = None,
        default_expected_digits: int = 7,
        recognition_accept_threshold: float = 0.80,
    ) -> None:
        self._pdf_extractor = pdf_extractor
        self._renderer = renderer
        self._recognizer = recognizer
        self._rescuer = rescuer
        self._default_expected_digits = default_expected_digits
        self._recognition_accept_threshold = recognition_accept_threshold

    def extract(
        self,
        document_bytes: bytes,
        page_index: int,
        sender_key: str,
        template: CaptureTemplate | None = None,
    ) -> ExtractionResult:
        """Extract the work order identifier from one page.

        With a template the zone's own page is read and every layer works on
        the calibrated rectangle only; without one, Layer A scans the whole
        requested page and Layers B and C are skipped.
        """
        attempt = _Attempt(
            template=template,
            expected_digits=template.expected_digits if template else self._default_expected_digits,
        )
        attempt.reasons.append(
            ExtractionReason.REGION_FOUND if template else ExtractionReason.REGION_NOT_FOUND
        )
        page = template.page_index if template else page_index
        Log.info(
            "Extraction started",
            sender_key=sender_key,
            page=page,
            region=template.template_key if template else None,
            expected_digits=attempt.expected_digits,
        )

        if template is not None:
            attempt.snippet_png = self._render_zone(document_bytes, page, template, attempt)

        result = (
            self._structural_layer(document_bytes, page, attempt)
            or self._recognition_layer(attempt)
            or self._rescue_layer(attempt)
            or self._terminate(attempt)
        )
        Log.info(
            "Extraction finished",
            sender_key=sender_key,
            identifier=result.identifier,
            method=result.method.value,
            confidence=result.confidence,
        )
        return result

    # Layer A

    def _structural_layer(self, document_bytes: bytes, page: int, attempt: _Attempt) -> ExtractionResult | None:
        try:
            text = self._pdf_extractor.extract_text(document_bytes, page, attempt.template)
        except PdfExtractionError as exc:
            Log.warning("Structural text extraction failed", error=str(exc))
            attempt.reasons.append(ExtractionReason.STRUCTURAL_EXTRACTION_FAILED)
            text = ""

        if attempt.template is not None:
            attempt.cropped_text = text
        candidates = find_candidates(text, attempt.expected_digits)
        attempt.text_candidates = candidates
        Log.debug("Layer A candidates", count=len(candidates), values=[c.digits for c in candidates])

        if not candidates or not candidates[0].matches_length(attempt.expected_digits):
            return None

        best = candidates[0]
        where = "capture zone" if attempt.template else "full page text"
        if len(candidates) == 1:
            return self._accept(
                attempt,
                identifier=best.digits,
                method=ExtractionMethod.STRUCTURAL_TEXT,
                confidence=SINGLE_MATCH_CONFIDENCE,
                rationale=f"Found single work order number in {where}",
                candidates=[
                    ExtractionCandidate(
                        value=best.digits,
                        score=SINGLE_MATCH_CONFIDENCE,
                        source_layer=ExtractionMethod.STRUCTURAL_TEXT,
                        snippet=best.line,
                    )
                ],
            )

        attempt.reasons.append(ExtractionReason.MULTIPLE_CANDIDATES)
        return self._accept(
            attempt,
            identifier=best.digits,
            method=ExtractionMethod.STRUCTURAL_TEXT,
            confidence=MULTIPLE_MATCH_CONFIDENCE,
            rationale=f"Found {len(candidates)} candidates in {where}; using best match",
            candidates=self._scored(candidates[:MAX_ALTERNATES], MULTIPLE_MATCH_CONFIDENCE),
        )

    # Layer B

    def _recognition_layer(self, attempt: _Attempt) -> ExtractionResult | None:
        if attempt.template is None or self._recognizer is None or attempt.snippet_png is None:
            return None

        attempt.recognition_ran = True
        try:
            reading = self._recognizer.recognize(
                attempt.snippet_png,
                expected_digits=attempt.expected_digits,
                template_key=attempt.template.template_key,
            )
        except RecognitionError as exc:
            Log.warning("Optical recognition failed", error=str(exc))
            attempt.recognition_failed = True
            attempt.reasons.append(ExtractionReason.OCR_EXTRACTION_FAILED)
            return None

        if reading.raw_text.strip() and not attempt.cropped_text.strip():
            attempt.cropped_text = reading.raw_text

        identifier = reading.identifier
        if identifier and within_tolerance(identifier, attempt.expected_digits):
            digits = "".join(ch for ch in identifier if ch.isdigit())
            if reading.confidence >= self._recognition_accept_threshold:
                confidence = min(reading.confidence, RECOGNITION_CONFIDENCE_CAP)
                return self._accept(
                    attempt,
                    identifier=digits,
                    method=ExtractionMethod.OPTICAL_RECOGNITION,
                    confidence=confidence,
                    rationale=(
                        "Optical recognition read the capture zone with "
                        f"{round(reading.confidence * 100)}% confidence"
                    ),
                    candidates=[
                        ExtractionCandidate(
                            value=digits,
                            score=reading.confidence,
                            source_layer=ExtractionMethod.OPTICAL_RECOGNITION,
                            snippet=reading.raw_text[:100] or None,
                        )
                    ],
                )
            attempt.recognition_candidate = ExtractionCandidate(
                value=digits,
                score=reading.confidence,
                source_layer=ExtractionMethod.OPTICAL_RECOGNITION,
                snippet=reading.raw_text[:100] or None,
            )

        Log.info(
            "Optical recognition below threshold",
            identifier=identifier,
            confidence=reading.confidence,
        )
        attempt.reasons.append(ExtractionReason.OCR_BELOW_THRESHOLD)
        return None

    # Layer C

    def _rescue_layer(self, attempt: _Attempt) -> ExtractionResult | None:
        if self._rescuer is None:
            return None
        if not attempt.cropped_text.strip():
            Log.info("Generative rescue skipped: no cropped region text")
            attempt.reasons.append(ExtractionReason.AI_SKIPPED_NO_REGION_TEXT)
            return None

        attempt.rescue_ran = True
        try:
            answer = self._rescuer.rescue(attempt.cropped_text, expected_digits=attempt.expected_digits)
        except RescueError as exc:
            Log.warning("Generative rescue failed", error=str(exc))
            attempt.reasons.append(ExtractionReason.AI_EXTRACTION_FAILED)
            return None

        if not answer.identifier or not within_tolerance(answer.identifier, attempt.expected_digits):
            Log.info("Generative rescue found no usable identifier", identifier=answer.identifier)
            return None

        confidence = min(answer.confidence, RESCUE_CONFIDENCE_CAP)
        return self._accept(
            attempt,
            identifier=answer.identifier,
            method=ExtractionMethod.GENERATIVE_RESCUE,
            confidence=confidence,
            rationale=answer.rationale,
            candidates=[
                ExtractionCandidate(
                    value=answer.identifier,
                    score=confidence,
                    source_layer=ExtractionMethod.GENERATIVE_RESCUE,
                )
            ],
        )

    # Termination

    def _terminate(self, attempt: _Attempt) -> ExtractionResult:
        candidates = self._scored(attempt.text_candidates[:MAX_FALLBACK_CANDIDATES], FALLBACK_CONFIDENCE)
        if attempt.recognition_candidate is not None and all(
            c.value != attempt.recognition_candidate.value for c in candidates
        ):
            candidates.append(attempt.recognition_candidate)

        if not candidates:
            if attempt.recognition_ran:
                attempt.reasons.append(ExtractionReason.SCAN_QUALITY)
                rationale = "No readable work order number in the capture zone; likely scan quality"
            else:
                attempt.reasons.append(ExtractionReason.NO_CANDIDATES)
                rationale = "No work order number candidates found"
            return self._result(
                attempt,
                identifier=None,
                method=ExtractionMethod.NONE,
                confidence=0.0,
                rationale=rationale,
                candidates=[],
            )

        best = candidates[0]
        attempt.reasons.append(ExtractionReason.LOW_CONFIDENCE)
        if len(attempt.text_candidates) > 1:
            attempt.reasons.append(ExtractionReason.MULTIPLE_CANDIDATES)
            rationale = f"Ambiguous: {len(attempt.text_candidates)} candidates, none with the expected length"
        else:
            attempt.reasons.append(ExtractionReason.SCAN_QUALITY)
            rationale = "Only a partial read was found; confidence too low for automatic processing"
        return self._result(
            attempt,
            identifier=best.value,
            method=best.source_layer,
            confidence=min(best.score, FALLBACK_CONFIDENCE),
            rationale=rationale,
            candidates=candidates,
        )

    def _render_zone(
        self, document_bytes: bytes, page: int, template: CaptureTemplate, attempt: _Attempt
    ) -> bytes | None:
        try:
            return self._renderer.render(document_bytes, page, template)
        except PdfExtractionError as exc:
            Log.warning("Capture zone render failed", template=template.template_key, error=str(exc))
            attempt.reasons.append(ExtractionReason.REGION_RENDER_FAILED)
            return None

    def _accept(self, attempt: _Attempt, **fields: object) -> ExtractionResult:
        Log.info("Extraction layer accepted", method=str(fields["method"]), confidence=fields["confidence"])
        return self._result(attempt, **fields)

    def _result(
        self,
        attempt: _Attempt,
        *,
        identifier: str | None,
        method: ExtractionMethod,
        confidence: float,
        rationale: str,
        candidates: list[ExtractionCandidate],
    ) -> ExtractionResult:
        return ExtractionResult(
            identifier=identifier,
            method=method,
            confidence=confidence,
            rationale=rationale,
            candidates=candidates,
            provenance=self._provenance(attempt, method),
            snippet_png=attempt.snippet_png,
        )

    @staticmethod
    def _provenance(attempt: _Attempt, method: ExtractionMethod) -> Provenance:
        cropped = attempt.cropped_text if attempt.cropped_text.strip() else None
        return Provenance(
            method=method,
            region_used=attempt.template is not None,
            region_key=attempt.template.template_key if attempt.template else None,
            pipeline_path=_pipeline_path(attempt),
            reasons=list(attempt.reasons),
            input_scope=InputScope.CROPPED_REGION if cropped else InputScope.FULL_TEXT,
            cropped_text_snippet=cropped[:CROPPED_SNIPPET_CHARS] if cropped else None,
            cropped_text_hash=(
                hashlib.sha256(cropped.encode("utf-8")).hexdigest()[:16] if cropped else None
            ),
        )

    @staticmethod
    def _scored(candidates: list[TextCandidate], top_score: float) -> list[ExtractionCandidate]:
        return [
            ExtractionCandidate(
                value=candidate.digits,
                score=round(top_score - 0.1 * index, 2),
                source_layer=ExtractionMethod.STRUCTURAL_TEXT,
                snippet=candidate.line,
            )
            for index, candidate in enumerate(candidates)
        ]


def _pipeline_path(attempt: _Attempt) -> PipelinePath:
    if attempt.recognition_ran and attempt.rescue_ran:
        return PipelinePath.STRUCTURAL_OCR_AI
    if attempt.recognition_ran:
        return PipelinePath.STRUCTURAL_OCR
    if attempt.rescue_ran:
        return PipelinePath.STRUCTURAL_AI
    return PipelinePath.STRUCTURAL_ONLY
