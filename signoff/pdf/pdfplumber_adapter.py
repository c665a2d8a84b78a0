import io

import pdfplumber

from signoff.extraction.models import CaptureTemplate
from signoff.pdf.base import BasePdfExtractor
from signoff.pdf.exceptions import PdfExtractionError
from signoff.pdf.geometry import region_bbox


class PdfPlumberAdapter(BasePdfExtractor):
    """Reads the text layer using pdfplumber."""

    def extract_text(
        self,
        pdf_bytes: bytes,
        page_index: int,
        region: CaptureTemplate | None = None,
    ) -> str:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                if page_index < 1 or page_index > len(pdf.pages):
                    raise PdfExtractionError(
                        f"Page {page_index} out of range (document has {len(pdf.pages)})"
                    )
                page = pdf.pages[page_index - 1]
                if region is not None:
                    page = page.crop(region_bbox(region, float(page.width), float(page.height)))
                return (page.extract_text() or "").strip()
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber extraction failed: {exc}") from exc
