import re

from signoff.reconciliation.exceptions import ValidationError
from signoff.reconciliation.models import PipelineInput

_PREFIX = re.compile(r"^(?:WO|W/O|work\s*order)\s*(?:no\.?|number)?\s*#?\s*[:\-]?\s*", re.I)
_IDENTIFIER = re.compile(r"^\d{3,20}$")


def normalize_manual_identifier(value: str | None) -> str:
    """Validate a manually supplied identifier and return its digits.

    "WO #4521983", " 4521983 " and "4521983" all normalize to "4521983".

    Raises:
        ValidationError: if the value is blank or not a plain number.
    """
    if value is None or not value.strip():
        raise ValidationError("Manual identifier must not be blank")
    stripped = _PREFIX.sub("", value.strip())
    compact = re.sub(r"[\s-]", "", stripped)
    if not _IDENTIFIER.match(compact):
        raise ValidationError(f"Manual identifier '{value}' is not a work order number")
    return compact


def validate_pipeline_input(pipeline_input: PipelineInput) -> None:
    """Reject malformed input before any extraction or storage happens.

    Raises:
        ValidationError
    """
    if not pipeline_input.document_bytes:
        raise ValidationError("Document is empty")
    if pipeline_input.page_index < 1:
        raise ValidationError(f"Page index must be >= 1, got {pipeline_input.page_index}")
    if not pipeline_input.sender_key or not pipeline_input.sender_key.strip():
        raise ValidationError("Sender key must not be blank")
    if pipeline_input.manual_identifier is not None:
        normalize_manual_identifier(pipeline_input.manual_identifier)
