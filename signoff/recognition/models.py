from dataclasses import dataclass


@dataclass(frozen=True)
class RecognitionResult:
    """What the recognizer read inside the capture zone."""

    identifier: str | None
    raw_text: str
    confidence: float
    engine: str = ""


def coerce_confidence(value: object) -> float:
    """Normalize a service-reported confidence to a float in [0, 1].

    Accepts numbers, numeric strings and percentages (values above 1).
    Anything unparseable becomes 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return 0.0
    else:
        return 0.0
    if number != number:  # NaN
        return 0.0
    if number > 1.0:
        number = number / 100.0
    return max(0.0, min(1.0, number))
