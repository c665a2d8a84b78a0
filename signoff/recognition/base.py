from abc import ABC, abstractmethod

from signoff.recognition.models import RecognitionResult


class BaseRecognizer(ABC):
    """Contract for region-constrained optical recognition adapters."""

    @abstractmethod
    def recognize(
        self,
        image_png: bytes,
        *,
        expected_digits: int,
        template_key: str,
    ) -> RecognitionResult:
        """Read the identifier from a rendered capture zone.

        Args:
            image_png: PNG of the calibrated rectangle only.
            expected_digits: Digit-count hint for the identifier.
            template_key: Key of the capture template, for service-side logs.

        Raises:
            RecognitionError: on any failure, including timeouts.
        """
