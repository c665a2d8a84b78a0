from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from signoff.database.connection import get_connection
from signoff.database.models import SignedDocumentRecord
from signoff.reconciliation.exceptions import AlreadyMatchedError


class SignedDocumentsRepository:
    """Database operations for signed_documents and signed_matches."""

    def upsert(
        self,
        conn: psycopg.Connection[Any],
        *,
        file_hash: str,
        sender_key: str,
        filename: str,
        document_ref: str,
        snippet_ref: str | None,
        source_tag: str,
        source_metadata: dict[str, Any],
        extracted_identifier: str | None,
        extraction_method: str,
        extraction_confidence: float,
        extraction_rationale: str | None,
    ) -> int:
        """Insert a signed document or return the existing row with the same hash."""
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO signed_documents (
                    file_hash, sender_key, filename, document_ref, snippet_ref,
                    source_tag, source_metadata, extracted_identifier,
                    extraction_method, extraction_confidence, extraction_rationale
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (file_hash) DO UPDATE
                SET snippet_ref = COALESCE(signed_documents.snippet_ref, EXCLUDED.snippet_ref)
                RETURNING id
                """,
                (
                    file_hash,
                    sender_key,
                    filename,
                    document_ref,
                    snippet_ref,
                    source_tag,
                    Jsonb(source_metadata),
                    extracted_identifier,
                    extraction_method,
                    extraction_confidence,
                    extraction_rationale,
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError(f"Upsert of signed document {file_hash} returned no row")
        return int(row[0])

    def insert_match(
        self,
        conn: psycopg.Connection[Any],
        *,
        work_order_id: int,
        signed_document_id: int,
        identifier: str,
        confidence: float,
        method: str,
    ) -> int:
        """Atomically attach a signed document to a work order.

        Raises:
            AlreadyMatchedError: if the work order already has a match.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO signed_matches (
                    work_order_id, signed_document_id, identifier, confidence, method
                )
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (work_order_id) DO NOTHING
                RETURNING id
                """,
                (work_order_id, signed_document_id, identifier, confidence, method),
            )
            row = cur.fetchone()
        if row is None:
            raise AlreadyMatchedError(work_order_id)
        return int(row[0])

    def find_by_hash(self, file_hash: str) -> SignedDocumentRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, file_hash, sender_key, filename, document_ref, snippet_ref,
                           source_tag, source_metadata, extracted_identifier,
                           extraction_method, extraction_confidence, extraction_rationale,
                           created_at
                    FROM signed_documents
                    WHERE file_hash = %s
                    """,
                    (file_hash,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return SignedDocumentRecord(
            id=row["id"],
            file_hash=row["file_hash"],
            sender_key=row["sender_key"],
            filename=row["filename"],
            document_ref=row["document_ref"],
            snippet_ref=row["snippet_ref"],
            source_tag=row["source_tag"],
            source_metadata=row["source_metadata"] or {},
            extracted_identifier=row["extracted_identifier"],
            extraction_method=row["extraction_method"],
            extraction_confidence=row["extraction_confidence"],
            extraction_rationale=row["extraction_rationale"],
            created_at=row["created_at"],
        )

    def count_matches(self, work_order_id: int) -> int:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM signed_matches WHERE work_order_id = %s",
                (work_order_id,),
            ).fetchone()
        return int(row[0]) if row else 0
