import pymupdf

from signoff.extraction.models import CaptureTemplate
from signoff.pdf.base import BasePdfExtractor
from signoff.pdf.exceptions import PdfExtractionError
from signoff.pdf.geometry import region_bbox


def _open_page(doc: pymupdf.Document, page_index: int) -> pymupdf.Page:
    if page_index < 1 or page_index > doc.page_count:
        raise PdfExtractionError(
            f"Page {page_index} out of range (document has {doc.page_count})"
        )
    return doc[page_index - 1]


class PyMuPdfAdapter(BasePdfExtractor):
    """Reads the text layer using PyMuPDF."""

    def extract_text(
        self,
        pdf_bytes: bytes,
        page_index: int,
        region: CaptureTemplate | None = None,
    ) -> str:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                page = _open_page(doc, page_index)
                clip = None
                if region is not None:
                    clip = pymupdf.Rect(region_bbox(region, page.rect.width, page.rect.height))
                return page.get_text(clip=clip).strip()
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"pymupdf extraction failed: {exc}") from exc


class RegionRenderer:
    """Rasterizes only the calibrated rectangle of a page to PNG."""

    def __init__(self, dpi: int = 200) -> None:
        self._dpi = dpi

    def render(self, pdf_bytes: bytes, page_index: int, region: CaptureTemplate) -> bytes:
        """Return PNG bytes of the capture zone.

        Raises:
            PdfExtractionError: if the page is missing or the zone is off-page.
        """
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                page = _open_page(doc, page_index)
                clip = pymupdf.Rect(region_bbox(region, page.rect.width, page.rect.height))
                pixmap = page.get_pixmap(clip=clip, dpi=self._dpi)
                return pixmap.tobytes("png")
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"region render failed: {exc}") from exc
