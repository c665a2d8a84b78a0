
import pytest

from signoff.extraction.models import CaptureTemplate
from tests.factories import build_pdf, make_template


@pytest.fixture()
def capture_template() -> CaptureTemplate:
    return make_template()


@pytest.fixture()
def signed_pdf_bytes() -> bytes:
    """Work order number printed once, inside the capture zone."""
    return build_pdf(
        [
            (400, 720, "WO 4521983"),
            (72, 600, "Customer: ACME Facilities"),
            (72, 560, "Technician signature: J. Doe"),
        ]
    )


@pytest.fixture()
def ambiguous_pdf_bytes() -> bytes:
    """Two full-length numbers inside the capture zone."""
    return build_pdf([(400, 720, "WO 4521983"), (400, 700, "PO 7730012")])


@pytest.fixture()
def partial_pdf_bytes() -> bytes:
    """Only a six-digit number where seven are expected."""
    return build_pdf([(400, 720, "WO 452198")])


@pytest.fixture()
def invoice_pdf_bytes() -> bytes:
    """Zone text 'invoice 881' with nothing that looks like a work order."""
    return build_pdf([(400, 720, "invoice 881")])


@pytest.fixture()
def outside_zone_pdf_bytes() -> bytes:
    """Work order number printed away from the capture zone."""
    return build_pdf([(72, 300, "WO 4521983")])


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    return build_pdf([(72, 720, "Cover sheet")], [(400, 720, "WO 9988776")])


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Valid PDF with a blank page (no text layer, like a scan)."""
    return build_pdf([])
