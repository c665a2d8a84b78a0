"""Identifier candidate discovery in plain text."""

import re
from dataclasses import dataclass

_PREFIXED_PATTERN = re.compile(r"\b(?:WO|W/O|work\s*order)\s*(?:no\.?|number)?\s*#?\s*[:\-]?\s*(\d{3,})\b", re.I)
_DIGITS_PATTERN = re.compile(r"(?<![\d-])(\d{3,})(?![\d-])")
_SNIPPET_MAX_CHARS = 100


@dataclass(frozen=True)
class TextCandidate:
    """A digits-only identifier found in text."""

    digits: str
    prefixed: bool
    position: int
    line: str

    def matches_length(self, expected_digits: int) -> bool:
        return len(self.digits) == expected_digits


def digits_only(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())


def within_tolerance(value: str, expected_digits: int, tolerance: int = 1) -> bool:
    """True if the digit count of value is expected_digits +/- tolerance."""
    count = len(digits_only(value))
    return count > 0 and abs(count - expected_digits) <= tolerance


def find_candidates(text: str, expected_digits: int) -> list[TextCandidate]:
    """Return ranked, de-duplicated candidates within expected_digits +/- 1.

    Ranking: exact digit count first, then prefixed ("WO 1234567"), then
    order of appearance.
    """
    if not text or not text.strip():
        return []

    found: dict[str, TextCandidate] = {}
    for pattern, prefixed in ((_PREFIXED_PATTERN, True), (_DIGITS_PATTERN, False)):
        for match in pattern.finditer(text):
            digits = match.group(1)
            if not within_tolerance(digits, expected_digits):
                continue
            existing = found.get(digits)
            if existing is not None and (existing.prefixed or not prefixed):
                continue
            position = existing.position if existing is not None else match.start(1)
            found[digits] = TextCandidate(
                digits=digits,
                prefixed=prefixed,
                position=position,
                line=_line_at(text, match.start(1)),
            )

    return sorted(
        found.values(),
        key=lambda c: (not c.matches_length(expected_digits), not c.prefixed, c.position),
    )


def _line_at(text: str, index: int) -> str:
    start = text.rfind("\n", 0, index) + 1
    end = text.find("\n", index)
    if end == -1:
        end = len(text)
    return text[start:end].strip()[:_SNIPPET_MAX_CHARS]
