from psycopg.rows import dict_row

from signoff.database.connection import get_connection
from signoff.extraction.base import BaseCaptureZoneProvider
from signoff.extraction.models import CaptureTemplate


class CaptureTemplatesRepository(BaseCaptureZoneProvider):
    """Reads calibrated capture zones saved by the calibration tool."""

    def get_template(self, sender_key: str) -> CaptureTemplate | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT template_key, sender_key, page_index, x, y, width, height,
                           page_width_pt, page_height_pt, expected_digits
                    FROM capture_templates
                    WHERE sender_key = %s
                    """,
                    (sender_key,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return CaptureTemplate(
            template_key=row["template_key"],
            sender_key=row["sender_key"],
            page_index=row["page_index"],
            x=row["x"],
            y=row["y"],
            width=row["width"],
            height=row["height"],
            page_width_pt=row["page_width_pt"],
            page_height_pt=row["page_height_pt"],
            expected_digits=row["expected_digits"],
        )
