from psycopg.rows import dict_row

from signoff.database.connection import get_legacy_connection
from signoff.database.models import WorkOrderRecord


class LegacyExportRepository:
    """Reads and mirrors to the advisory legacy export store.

    Every method may raise psycopg errors; callers treat them as non-fatal.
    """

    def find_by_identifier(self, identifier: str, sender_key: str | None = None) -> WorkOrderRecord | None:
        with get_legacy_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, sender_key, identifier, job_reference, status,
                           signed_pdf_url, signed_preview_url, signed_at, updated_at
                    FROM legacy_work_orders
                    WHERE identifier = %(identifier)s
                      AND (%(sender_key)s::text IS NULL
                           OR sender_key IS NULL
                           OR sender_key = %(sender_key)s)
                    """,
                    {"identifier": identifier, "sender_key": sender_key},
                )
                row = cur.fetchone()

        if row is None:
            return None
        return WorkOrderRecord(
            id=row["id"],
            sender_key=row["sender_key"],
            identifier=row["identifier"],
            job_reference=row["job_reference"],
            status=row["status"],
            signed_document_ref=row["signed_pdf_url"],
            signed_snippet_ref=row["signed_preview_url"],
            signed_at=row["signed_at"],
            updated_at=row["updated_at"],
        )

    def mirror_signed(
        self,
        *,
        identifier: str,
        sender_key: str,
        job_reference: str | None,
        document_ref: str,
        snippet_ref: str | None,
    ) -> None:
        """Record the signed transition for an identifier, creating the row if absent."""
        with get_legacy_connection() as conn:
            conn.execute(
                """
                INSERT INTO legacy_work_orders (
                    sender_key, identifier, job_reference, status,
                    signed_pdf_url, signed_preview_url, signed_at
                )
                VALUES (%s, %s, %s, 'signed', %s, %s, NOW())
                ON CONFLICT (identifier) DO UPDATE
                SET status = 'signed',
                    signed_pdf_url = EXCLUDED.signed_pdf_url,
                    signed_preview_url = COALESCE(EXCLUDED.signed_preview_url,
                                                  legacy_work_orders.signed_preview_url),
                    signed_at = EXCLUDED.signed_at,
                    updated_at = NOW()
                """,
                (sender_key, identifier, job_reference, document_ref, snippet_ref),
            )
            conn.commit()

    def append_review_row(
        self,
        *,
        review_item_id: int,
        sender_key: str,
        identifier: str | None,
        confidence_label: str,
        reason_code: str,
        document_ref: str | None,
        snippet_ref: str | None,
        resolved: bool = False,
    ) -> None:
        with get_legacy_connection() as conn:
            conn.execute(
                """
                INSERT INTO legacy_review_rows (
                    review_item_id, sender_key, identifier, confidence_label,
                    reason_code, document_ref, snippet_ref, resolved, resolved_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, CASE WHEN %s THEN NOW() END)
                ON CONFLICT (review_item_id) DO NOTHING
                """,
                (
                    review_item_id,
                    sender_key,
                    identifier,
                    confidence_label,
                    reason_code,
                    document_ref,
                    snippet_ref,
                    resolved,
                    resolved,
                ),
            )
            conn.commit()

    def mark_review_resolved(self, review_item_id: int) -> None:
        with get_legacy_connection() as conn:
            conn.execute(
                """
                UPDATE legacy_review_rows
                SET resolved = TRUE, resolved_at = NOW()
                WHERE review_item_id = %s
                """,
                (review_item_id,),
            )
            conn.commit()
