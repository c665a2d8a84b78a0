from signoff.extraction.models import CaptureTemplate
from signoff.pdf.exceptions import InvalidRegionError

BBox = tuple[float, float, float, float]

_MIN_SIDE_PT = 2.0


def region_bbox(template: CaptureTemplate, page_width: float, page_height: float) -> BBox:
    """Map a template rectangle onto an actual page, in top-left-origin points.

    Templates are calibrated against a reference page size; when the document
    page differs the rectangle is scaled proportionally, then clamped to the page.

    Raises:
        InvalidRegionError: if the clamped rectangle is degenerate.
    """
    sx = page_width / template.page_width_pt if template.page_width_pt > 0 else 1.0
    sy = page_height / template.page_height_pt if template.page_height_pt > 0 else 1.0

    x0 = max(0.0, template.x * sx)
    top = max(0.0, template.y * sy)
    x1 = min(page_width, (template.x + template.width) * sx)
    bottom = min(page_height, (template.y + template.height) * sy)

    if x1 - x0 < _MIN_SIDE_PT or bottom - top < _MIN_SIDE_PT:
        raise InvalidRegionError(
            f"Capture zone '{template.template_key}' falls outside the page "
            f"({page_width:.0f}x{page_height:.0f}pt)"
        )
    return (x0, top, x1, bottom)
