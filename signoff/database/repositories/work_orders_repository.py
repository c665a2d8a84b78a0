from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from signoff.database.connection import get_connection
from signoff.database.models import WorkOrderRecord

_COLUMNS = """
    id, sender_key, identifier, job_reference, status, payload,
    signed_document_ref, signed_snippet_ref, signed_at, created_at, updated_at
"""


def _to_record(row: dict[str, Any]) -> WorkOrderRecord:
    return WorkOrderRecord(
        id=row["id"],
        sender_key=row["sender_key"],
        identifier=row["identifier"],
        job_reference=row["job_reference"],
        status=row["status"],
        payload=row["payload"] or {},
        signed_document_ref=row["signed_document_ref"],
        signed_snippet_ref=row["signed_snippet_ref"],
        signed_at=row["signed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class WorkOrdersRepository:
    """Database operations for the authoritative work_orders table."""

    def find_by_identifier(self, identifier: str, sender_key: str | None = None) -> WorkOrderRecord | None:
        """Find a work order by identifier, preferring the given sender's record."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM work_orders
                    WHERE identifier = %(identifier)s
                      AND (%(sender_key)s::text IS NULL OR sender_key = %(sender_key)s)
                    ORDER BY id
                    LIMIT 1
                    """,
                    {"identifier": identifier, "sender_key": sender_key},
                )
                row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def has_signed_match(self, work_order_id: int) -> bool:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM signed_matches WHERE work_order_id = %s",
                (work_order_id,),
            ).fetchone()
        return row is not None

    def adopt(
        self,
        conn: psycopg.Connection[Any],
        *,
        sender_key: str,
        identifier: str,
        job_reference: str | None,
        status: str,
    ) -> int:
        """Copy a legacy-only work order into work_orders; returns its ID.

        Idempotent: an existing (sender_key, identifier) row is reused.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO work_orders (sender_key, identifier, job_reference, status, payload)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (sender_key, identifier) DO NOTHING
                RETURNING id
                """,
                (sender_key, identifier, job_reference, status, Jsonb({"adopted_from": "legacy"})),
            )
            row = cur.fetchone()
            if row is not None:
                return int(row[0])
            cur.execute(
                "SELECT id FROM work_orders WHERE sender_key = %s AND identifier = %s",
                (sender_key, identifier),
            )
            existing = cur.fetchone()
        if existing is None:
            raise RuntimeError(f"Work order {identifier} vanished during adoption")
        return int(existing[0])

    def apply_signed_status(
        self,
        conn: psycopg.Connection[Any],
        work_order_id: int,
        *,
        document_ref: str,
        snippet_ref: str | None,
    ) -> None:
        """Mark a work order signed. Touches only the signed-state columns."""
        conn.execute(
            """
            UPDATE work_orders
            SET status = 'signed',
                signed_document_ref = %s,
                signed_snippet_ref = COALESCE(%s, signed_snippet_ref),
                signed_at = NOW(),
                updated_at = NOW()
            WHERE id = %s
            """,
            (document_ref, snippet_ref, work_order_id),
        )
