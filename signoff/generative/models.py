from dataclasses import dataclass


@dataclass(frozen=True)
class RescueResult:
    """Model answer for a cropped region, before any confidence capping."""

    identifier: str | None
    confidence: float
    rationale: str
