"""Local Tesseract recognizer for deployments without the OCR service."""

import io

import pytesseract
from PIL import Image

from signoff.extraction.candidates import find_candidates
from signoff.recognition.base import BaseRecognizer
from signoff.recognition.exceptions import RecognitionError, RecognitionNetworkError
from signoff.recognition.models import RecognitionResult


class TesseractRecognizerAdapter(BaseRecognizer):
    """Runs pytesseract on the zone image; confidence is the token's own score."""

    def __init__(self, *, lang: str = "eng", psm: int = 7, timeout_seconds: float = 20.0) -> None:
        self._lang = lang
        self._psm = psm
        self._timeout = timeout_seconds

    def recognize(
        self,
        image_png: bytes,
        *,
        expected_digits: int,
        template_key: str,
    ) -> RecognitionResult:
        _ = template_key
        try:
            image = Image.open(io.BytesIO(image_png))
            data = pytesseract.image_to_data(
                image,
                lang=self._lang,
                config=f"--psm {self._psm}",
                output_type=pytesseract.Output.DICT,
                timeout=self._timeout,
            )
        except RuntimeError as exc:
            # pytesseract signals its timeout with a bare RuntimeError
            raise RecognitionNetworkError(f"Tesseract timed out: {exc}") from exc
        except Exception as exc:
            raise RecognitionError(f"Tesseract failed: {exc}") from exc

        words: list[tuple[str, float]] = []
        for text, conf in zip(data["text"], data["conf"]):
            text = str(text).strip()
            score = float(conf)
            if text and score >= 0:
                words.append((text, score / 100.0))

        raw_text = " ".join(text for text, _ in words)
        candidates = find_candidates(raw_text, expected_digits)
        if not candidates:
            return RecognitionResult(identifier=None, raw_text=raw_text, confidence=0.0, engine="tesseract")

        best = candidates[0]
        scores = [score for text, score in words if best.digits in text.replace(" ", "")]
        confidence = max(scores) if scores else 0.0
        return RecognitionResult(
            identifier=best.digits,
            raw_text=raw_text,
            confidence=confidence,
            engine="tesseract",
        )
