import httpx

from signoff.recognition.base import BaseRecognizer
from signoff.recognition.exceptions import RecognitionError, RecognitionNetworkError
from signoff.recognition.models import RecognitionResult, coerce_confidence


class HttpRecognizerAdapter(BaseRecognizer):
    """Calls an external OCR microservice with the cropped zone image."""

    ENDPOINT = "/v1/ocr/workorder-number/upload"

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + self.ENDPOINT
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def recognize(
        self,
        image_png: bytes,
        *,
        expected_digits: int,
        template_key: str,
    ) -> RecognitionResult:
        try:
            response = self._client.post(
                self._url,
                data={"templateId": template_key, "expectedDigits": str(expected_digits)},
                files={"file": ("zone.png", image_png, "image/png")},
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise RecognitionNetworkError(f"Recognition service timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise RecognitionError(
                f"Recognition service returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RecognitionNetworkError(f"Recognition service network error: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise RecognitionError(f"Invalid JSON from recognition service: {exc}") from exc
        if not isinstance(data, dict):
            raise RecognitionError("Recognition response must be an object")

        identifier = data.get("workOrderNumber")
        return RecognitionResult(
            identifier=str(identifier) if identifier not in (None, "") else None,
            raw_text=str(data.get("rawText") or ""),
            confidence=coerce_confidence(data.get("confidence")),
            engine=str(data.get("method") or "http"),
        )
