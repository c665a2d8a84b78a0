from signoff.config.settings import Settings
from signoff.recognition.base import BaseRecognizer
from signoff.recognition.http_adapter import HttpRecognizerAdapter
from signoff.recognition.tesseract_adapter import TesseractRecognizerAdapter


class RecognizerFactory:
    """Creates the configured recognizer, or None when the layer is disabled."""

    PROVIDERS = ("http", "tesseract", "none")

    @classmethod
    def create(cls, settings: Settings) -> BaseRecognizer | None:
        provider = settings.recognition_provider.lower()
        if provider == "none":
            return None
        if provider == "http":
            return HttpRecognizerAdapter(
                base_url=settings.recognition_service_url,
                timeout_seconds=settings.recognition_timeout_seconds,
            )
        if provider == "tesseract":
            return TesseractRecognizerAdapter(
                lang=settings.tesseract_lang,
                timeout_seconds=settings.recognition_timeout_seconds,
            )
        raise ValueError(
            f"Unknown recognition provider '{provider}'. Choose from: {list(cls.PROVIDERS)}"
        )
