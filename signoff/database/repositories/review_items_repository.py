from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from signoff.database.connection import get_connection
from signoff.database.models import ReviewItemRecord
from signoff.reconciliation.exceptions import (
    ReviewItemAlreadyResolvedError,
    ReviewItemNotFoundError,
)

_COLUMNS = """
    id, sender_key, signed_document_id, document_ref, snippet_ref, raw_text,
    extracted_identifier, confidence, confidence_label, reason_code, extraction,
    source_tag, source_metadata, resolved, resolution_note, resolved_identifier,
    resolved_at, last_attempt_reason, created_at, updated_at
"""


def _to_record(row: dict[str, Any]) -> ReviewItemRecord:
    return ReviewItemRecord(
        id=row["id"],
        sender_key=row["sender_key"],
        signed_document_id=row["signed_document_id"],
        document_ref=row["document_ref"],
        snippet_ref=row["snippet_ref"],
        raw_text=row["raw_text"],
        extracted_identifier=row["extracted_identifier"],
        confidence=row["confidence"],
        confidence_label=row["confidence_label"],
        reason_code=row["reason_code"],
        extraction=row["extraction"] or {},
        source_tag=row["source_tag"],
        source_metadata=row["source_metadata"] or {},
        resolved=row["resolved"],
        resolution_note=row["resolution_note"],
        resolved_identifier=row["resolved_identifier"],
        resolved_at=row["resolved_at"],
        last_attempt_reason=row["last_attempt_reason"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ReviewItemsRepository:
    """Database operations for the review_items table."""

    def create(
        self,
        conn: psycopg.Connection[Any],
        *,
        sender_key: str,
        signed_document_id: int | None,
        document_ref: str | None,
        snippet_ref: str | None,
        raw_text: str | None,
        extracted_identifier: str | None,
        confidence: float,
        confidence_label: str,
        reason_code: str,
        extraction: dict[str, Any],
        source_tag: str,
        source_metadata: dict[str, Any],
        resolved: bool = False,
        resolution_note: str | None = None,
    ) -> int:
        """Insert a review item and return its ID.

        Items created resolved (audit only) get resolved_at set immediately.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO review_items (
                    sender_key, signed_document_id, document_ref, snippet_ref, raw_text,
                    extracted_identifier, confidence, confidence_label, reason_code,
                    extraction, source_tag, source_metadata, resolved, resolution_note,
                    resolved_at
                )
                VALUES (
                    %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                    CASE WHEN %s THEN NOW() END
                )
                RETURNING id
                """,
                (
                    sender_key,
                    signed_document_id,
                    document_ref,
                    snippet_ref,
                    raw_text,
                    extracted_identifier,
                    confidence,
                    confidence_label,
                    reason_code,
                    Jsonb(extraction),
                    source_tag,
                    Jsonb(source_metadata),
                    resolved,
                    resolution_note,
                    resolved,
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError("Review item insert returned no row")
        return int(row[0])

    def find_by_id(self, item_id: int) -> ReviewItemRecord:
        """Find a review item by ID.

        Raises:
            ReviewItemNotFoundError: if no item with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM review_items WHERE id = %s",
                    (item_id,),
                )
                row = cur.fetchone()
        if row is None:
            raise ReviewItemNotFoundError(f"Review item {item_id} not found")
        return _to_record(row)

    def list_unresolved(
        self,
        sender_key: str | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ReviewItemRecord]:
        """Unresolved items, oldest first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM review_items
                    WHERE NOT resolved
                      AND (%(sender_key)s::text IS NULL OR sender_key = %(sender_key)s)
                    ORDER BY created_at, id
                    LIMIT %(limit)s OFFSET %(offset)s
                    """,
                    {"sender_key": sender_key, "limit": limit, "offset": offset},
                )
                rows = cur.fetchall()
        return [_to_record(row) for row in rows]

    def mark_resolved(self, item_id: int, *, identifier: str | None, note: str | None) -> None:
        """Resolve an item exactly once in its own transaction."""
        with get_connection() as conn:
            self.claim(conn, item_id, identifier=identifier, note=note)
            conn.commit()

    def claim(
        self,
        conn: psycopg.Connection[Any],
        item_id: int,
        *,
        identifier: str | None,
        note: str | None,
    ) -> None:
        """Mark an unresolved item resolved inside the caller's transaction.

        The row lock taken here serializes concurrent resolvers of the same item.

        Raises:
            ReviewItemAlreadyResolvedError: if the item is missing or already resolved.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE review_items
                SET resolved = TRUE,
                    resolved_identifier = %s,
                    resolution_note = %s,
                    resolved_at = NOW(),
                    updated_at = NOW()
                WHERE id = %s AND NOT resolved
                RETURNING id
                """,
                (identifier, note, item_id),
            )
            row = cur.fetchone()
        if row is None:
            raise ReviewItemAlreadyResolvedError(f"Review item {item_id} is already resolved")

    def record_failed_attempt(self, item_id: int, reason: str) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE review_items
                SET last_attempt_reason = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (reason, item_id),
            )
            conn.commit()
