from abc import ABC, abstractmethod

from signoff.extraction.models import CaptureTemplate


class BaseCaptureZoneProvider(ABC):
    """Source of calibrated capture templates, keyed by sender."""

    @abstractmethod
    def get_template(self, sender_key: str) -> CaptureTemplate | None:
        """Return the sender's capture template, or None when not calibrated."""
