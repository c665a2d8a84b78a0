from signoff.config.settings import Settings
from signoff.pdf.base import BasePdfExtractor
from signoff.pdf.pdfplumber_adapter import PdfPlumberAdapter
from signoff.pdf.pymupdf_adapter import PyMuPdfAdapter, RegionRenderer

MIN_RENDER_DPI = 72
MAX_RENDER_DPI = 600


class PdfExtractorFactory:
    """Builds the text-layer adapter and the zone renderer from settings."""

    ADAPTERS: dict[str, type[BasePdfExtractor]] = {
        "pdfplumber": PdfPlumberAdapter,
        "pymupdf": PyMuPdfAdapter,
    }

    @classmethod
    def create(cls, settings: Settings) -> BasePdfExtractor:
        engine = settings.pdf_engine.strip().lower()
        if engine not in cls.ADAPTERS:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {sorted(cls.ADAPTERS)}"
            )
        return cls.ADAPTERS[engine]()

    @staticmethod
    def create_renderer(settings: Settings) -> RegionRenderer:
        """Zone renderer for the recognition layer; dpi is clamped to 72..600."""
        dpi = max(MIN_RENDER_DPI, min(MAX_RENDER_DPI, settings.recognition_dpi))
        return RegionRenderer(dpi=dpi)
