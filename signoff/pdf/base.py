from abc import ABC, abstractmethod

from signoff.extraction.models import CaptureTemplate


class BasePdfExtractor(ABC):
    """Contract for all PDF text-layer adapters."""

    @abstractmethod
    def extract_text(
        self,
        pdf_bytes: bytes,
        page_index: int,
        region: CaptureTemplate | None = None,
    ) -> str:
        """Read the embedded text of one page.

        Args:
            pdf_bytes: Raw PDF file content.
            page_index: 1-based page number.
            region: When given, only text inside the calibrated rectangle is returned.

        Returns:
            Extracted text, stripped. Empty for scanned pages without a text layer.

        Raises:
            PdfExtractionError: if the PDF cannot be opened or the page does not exist.
        """
