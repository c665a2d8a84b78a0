from dataclasses import asdict, dataclass, field
from enum import StrEnum


class ExtractionMethod(StrEnum):
    STRUCTURAL_TEXT = "structural_text"
    OPTICAL_RECOGNITION = "optical_recognition"
    GENERATIVE_RESCUE = "generative_rescue"
    MANUAL = "manual"
    NONE = "none"


class PipelinePath(StrEnum):
    STRUCTURAL_ONLY = "structural_only"
    STRUCTURAL_OCR = "structural_ocr"
    STRUCTURAL_OCR_AI = "structural_ocr_ai"
    STRUCTURAL_AI = "structural_ai"
    MANUAL = "manual"
    UNKNOWN = "unknown"


class InputScope(StrEnum):
    CROPPED_REGION = "cropped_region"
    FULL_TEXT = "full_text"


class ExtractionReason(StrEnum):
    REGION_FOUND = "region_found"
    REGION_NOT_FOUND = "region_not_found"
    MULTIPLE_CANDIDATES = "multiple_candidates"
    NO_CANDIDATES = "no_candidates"
    LOW_CONFIDENCE = "low_confidence"
    SCAN_QUALITY = "scan_quality"
    STRUCTURAL_EXTRACTION_FAILED = "structural_extraction_failed"
    REGION_RENDER_FAILED = "region_render_failed"
    OCR_EXTRACTION_FAILED = "ocr_extraction_failed"
    OCR_BELOW_THRESHOLD = "ocr_below_threshold"
    AI_EXTRACTION_FAILED = "ai_extraction_failed"
    AI_SKIPPED_NO_REGION_TEXT = "ai_skipped_no_region_text"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True)
class CaptureTemplate:
    """Calibrated capture rectangle for one sender, in page points (top-left origin)."""

    template_key: str
    sender_key: str
    page_index: int
    x: float
    y: float
    width: float
    height: float
    page_width_pt: float
    page_height_pt: float
    expected_digits: int = 7


@dataclass(frozen=True)
class ExtractionCandidate:
    """A single identifier hypothesis."""

    value: str
    score: float
    source_layer: ExtractionMethod
    snippet: str | None = None


@dataclass(frozen=True)
class Provenance:
    """Audit record of how much of the document and which layers produced the answer."""

    method: ExtractionMethod
    region_used: bool
    region_key: str | None
    pipeline_path: PipelinePath
    reasons: list[ExtractionReason] = field(default_factory=list)
    input_scope: InputScope = InputScope.FULL_TEXT
    cropped_text_snippet: str | None = None
    cropped_text_hash: str | None = None


@dataclass(frozen=True)
class ExtractionResult:
    """Final answer of the extraction cascade plus its reasoning trail."""

    identifier: str | None
    method: ExtractionMethod
    confidence: float
    rationale: str
    candidates: list[ExtractionCandidate] = field(default_factory=list)
    provenance: Provenance | None = None
    # Rendered capture zone; kept out of to_dict().
    snippet_png: bytes | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, object]:
        """JSON-ready view for storage and reviewers."""
        data = asdict(self)
        data.pop("snippet_png", None)
        return data


def manual_extraction(identifier: str, reason: str | None = None) -> ExtractionResult:
    """Build the ExtractionResult recorded for a manually supplied identifier."""
    return ExtractionResult(
        identifier=identifier,
        method=ExtractionMethod.MANUAL,
        confidence=1.0,
        rationale=reason or "Identifier supplied manually",
        candidates=[
            ExtractionCandidate(
                value=identifier, score=1.0, source_layer=ExtractionMethod.MANUAL
            )
        ],
        provenance=Provenance(
            method=ExtractionMethod.MANUAL,
            region_used=False,
            region_key=None,
            pipeline_path=PipelinePath.MANUAL,
            reasons=[ExtractionReason.MANUAL_OVERRIDE],
        ),
    )


def extraction_from_dict(data: dict[str, object]) -> ExtractionResult:
    """Rebuild an ExtractionResult stored by to_dict()."""
    raw_provenance = data.get("provenance")
    provenance = None
    if isinstance(raw_provenance, dict):
        provenance = Provenance(
            method=ExtractionMethod(raw_provenance["method"]),
            region_used=bool(raw_provenance["region_used"]),
            region_key=raw_provenance.get("region_key"),
            pipeline_path=PipelinePath(raw_provenance["pipeline_path"]),
            reasons=[ExtractionReason(r) for r in raw_provenance.get("reasons", [])],
            input_scope=InputScope(raw_provenance.get("input_scope", "full_text")),
            cropped_text_snippet=raw_provenance.get("cropped_text_snippet"),
            cropped_text_hash=raw_provenance.get("cropped_text_hash"),
        )
    raw_candidates = data.get("candidates") or []
    candidates = [
        ExtractionCandidate(
            value=str(c["value"]),
            score=float(c["score"]),
            source_layer=ExtractionMethod(c["source_layer"]),
            snippet=c.get("snippet"),
        )
        for c in raw_candidates  # type: ignore[union-attr]
    ]
    identifier = data.get("identifier")
    return ExtractionResult(
        identifier=str(identifier) if identifier is not None else None,
        method=ExtractionMethod(str(data.get("method", "none"))),
        confidence=float(data.get("confidence", 0.0)),  # type: ignore[arg-type]
        rationale=str(data.get("rationale", "")),
        candidates=candidates,
        provenance=provenance,
    )
