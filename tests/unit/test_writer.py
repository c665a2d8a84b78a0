from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from signoff.database.models import ReviewItemRecord
from signoff.database.repositories.legacy_export_repository import LegacyExportRepository
from signoff.database.repositories.review_items_repository import ReviewItemsRepository
from signoff.database.repositories.signed_documents_repository import SignedDocumentsRepository
from signoff.database.repositories.work_orders_repository import WorkOrdersRepository
from signoff.reconciliation.exceptions import (
    AlreadyMatchedError,
    ReconciliationError,
    ReviewItemAlreadyResolvedError,
)
from signoff.reconciliation.models import (
    ConfidenceLabel,
    Decision,
    IdentityMatch,
    Outcome,
    ReasonCode,
    RecordRef,
    RecordStore,
)
from signoff.reconciliation.writer import PersistenceWriter
from signoff.storage.document_storage import DocumentStorage, file_hash
from signoff.storage.exceptions import StorageError
from tests.factories import make_extraction, make_input

PDF = b"%PDF-1.4 signed work order"
PNG = b"\x89PNG\r\n\x1a\nzone"

AUTHORITATIVE_REF = RecordRef(
    store=RecordStore.AUTHORITATIVE, record_id=7, identifier="4521983", sender_key="acme", job_reference="JOB-17"
)
LEGACY_REF = RecordRef(store=RecordStore.LEGACY, record_id=55, identifier="4521983", sender_key="acme")

APPLIED = Decision(
    outcome=Outcome.APPLIED,
    identifier="4521983",
    confidence=0.98,
    confidence_label=ConfidenceLabel.HIGH,
)
LOW = Decision(
    outcome=Outcome.NEEDS_REVIEW,
    identifier="452198",
    confidence=0.70,
    confidence_label=ConfidenceLabel.LOW,
    reason_code=ReasonCode.LOW_CONFIDENCE,
)
DUPLICATE = Decision(
    outcome=Outcome.ALREADY_PROCESSED,
    identifier="4521983",
    confidence=0.98,
    confidence_label=ConfidenceLabel.HIGH,
    reason_code=ReasonCode.ALREADY_MATCHED,
)


def _mock_connection(mock_get_conn: MagicMock) -> MagicMock:
    """Wire up a mock connection whose transaction() is a no-op context."""
    mock_conn = MagicMock()
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn


class _Repos:
    def __init__(self) -> None:
        self.work_orders = MagicMock(spec=WorkOrdersRepository)
        self.signed_documents = MagicMock(spec=SignedDocumentsRepository)
        self.review_items = MagicMock(spec=ReviewItemsRepository)
        self.legacy = MagicMock(spec=LegacyExportRepository)
        self.signed_documents.upsert.return_value = 31
        self.signed_documents.insert_match.return_value = 41
        self.review_items.create.return_value = 51
        self.work_orders.adopt.return_value = 77


@pytest.fixture()
def repos() -> _Repos:
    return _Repos()


@pytest.fixture()
def storage(tmp_path: Path) -> DocumentStorage:
    return DocumentStorage(files_root=tmp_path)


def _writer(storage: DocumentStorage | MagicMock, repos: _Repos, legacy: bool = True) -> PersistenceWriter:
    return PersistenceWriter(
        storage=storage,
        work_orders_repo=repos.work_orders,
        signed_documents_repo=repos.signed_documents,
        review_items_repo=repos.review_items,
        legacy_repo=repos.legacy if legacy else None,
    )


class TestApply:
    @patch("signoff.reconciliation.writer.get_connection")
    def test_stores_document_and_writes_authoritative_rows(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        conn = _mock_connection(mock_get_conn)

        result = _writer(storage, repos).apply(
            make_input(PDF), make_extraction(snippet_png=PNG), APPLIED, AUTHORITATIVE_REF
        )

        content_hash = file_hash(PDF)
        assert result.document_ref == f"signed/{content_hash}.pdf"
        assert result.snippet_ref is not None
        assert result.signed_document_id == 31
        assert storage.load(result.document_ref) == PDF
        assert storage.load(result.snippet_ref) == PNG

        conn.transaction.assert_called_once()
        upsert_kwargs = repos.signed_documents.upsert.call_args.kwargs
        assert upsert_kwargs["file_hash"] == content_hash
        assert upsert_kwargs["extracted_identifier"] == "4521983"
        assert upsert_kwargs["extraction_method"] == "structural_text"
        assert upsert_kwargs["source_tag"] == "mailbox_import"
        assert upsert_kwargs["source_metadata"] == {"message_id": "<m1@mail>", "sender_address": "fm@acme.test"}
        repos.signed_documents.insert_match.assert_called_once_with(
            conn,
            work_order_id=7,
            signed_document_id=31,
            identifier="4521983",
            confidence=0.98,
            method="structural_text",
        )
        repos.work_orders.apply_signed_status.assert_called_once_with(
            conn, 7, document_ref=result.document_ref, snippet_ref=result.snippet_ref
        )
        repos.work_orders.adopt.assert_not_called()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_mirrors_to_legacy_after_commit(
        self, mock_get_conn: MagicMock, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        storage = MagicMock(spec=DocumentStorage)
        storage.save_document.return_value = "signed/abc.pdf"
        storage.save_snippet.return_value = "snippets/acme/abc-4521983.png"
        manager = MagicMock()
        manager.attach_mock(storage.save_document, "save_document")
        manager.attach_mock(repos.signed_documents.insert_match, "insert_match")
        manager.attach_mock(repos.work_orders.apply_signed_status, "apply_signed_status")
        manager.attach_mock(repos.legacy.mirror_signed, "mirror_signed")

        _writer(storage, repos).apply(make_input(PDF), make_extraction(snippet_png=PNG), APPLIED, AUTHORITATIVE_REF)

        order = [name for name, _args, _kwargs in manager.mock_calls]
        assert order == ["save_document", "insert_match", "apply_signed_status", "mirror_signed"]
        repos.legacy.mirror_signed.assert_called_once_with(
            identifier="4521983",
            sender_key="acme",
            job_reference="JOB-17",
            document_ref="signed/abc.pdf",
            snippet_ref="snippets/acme/abc-4521983.png",
        )

    @patch("signoff.reconciliation.writer.get_connection")
    def test_legacy_failure_does_not_change_result(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        repos.legacy.mirror_signed.side_effect = psycopg.OperationalError("legacy down")

        result = _writer(storage, repos).apply(make_input(PDF), make_extraction(), APPLIED, AUTHORITATIVE_REF)

        assert result.signed_document_id == 31
        repos.work_orders.apply_signed_status.assert_called_once()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_snippet_failure_is_not_fatal(self, mock_get_conn: MagicMock, repos: _Repos) -> None:
        _mock_connection(mock_get_conn)
        storage = MagicMock(spec=DocumentStorage)
        storage.save_document.return_value = "signed/abc.pdf"
        storage.save_snippet.side_effect = StorageError("disk full")

        result = _writer(storage, repos).apply(
            make_input(PDF), make_extraction(snippet_png=PNG), APPLIED, AUTHORITATIVE_REF
        )

        assert result.snippet_ref is None
        assert repos.signed_documents.upsert.call_args.kwargs["snippet_ref"] is None

    @patch("signoff.reconciliation.writer.get_connection")
    def test_document_storage_failure_aborts_before_database(
        self, mock_get_conn: MagicMock, repos: _Repos
    ) -> None:
        storage = MagicMock(spec=DocumentStorage)
        storage.save_document.side_effect = StorageError("read-only filesystem")

        with pytest.raises(StorageError):
            _writer(storage, repos).apply(make_input(PDF), make_extraction(), APPLIED, AUTHORITATIVE_REF)

        mock_get_conn.assert_not_called()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_lost_race_propagates_and_skips_mirror(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        repos.signed_documents.insert_match.side_effect = AlreadyMatchedError(7)

        with pytest.raises(AlreadyMatchedError):
            _writer(storage, repos).apply(make_input(PDF), make_extraction(), APPLIED, AUTHORITATIVE_REF)

        repos.work_orders.apply_signed_status.assert_not_called()
        repos.legacy.mirror_signed.assert_not_called()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_legacy_only_work_order_is_adopted(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        conn = _mock_connection(mock_get_conn)

        _writer(storage, repos).apply(make_input(PDF), make_extraction(), APPLIED, LEGACY_REF)

        repos.work_orders.adopt.assert_called_once_with(
            conn, sender_key="acme", identifier="4521983", job_reference=None, status="open"
        )
        assert repos.signed_documents.insert_match.call_args.kwargs["work_order_id"] == 77

    @patch("signoff.reconciliation.writer.get_connection")
    def test_manual_override_recorded_as_manual(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        decision = Decision(
            outcome=Outcome.APPLIED,
            identifier="4521983",
            confidence=1.0,
            confidence_label=ConfidenceLabel.HIGH,
            manual_override=True,
        )

        _writer(storage, repos).apply(make_input(PDF), make_extraction(), decision, AUTHORITATIVE_REF)

        assert repos.signed_documents.insert_match.call_args.kwargs["method"] == "manual"


class TestWriteDispatch:
    @patch("signoff.reconciliation.writer.get_connection")
    def test_applied_without_match_is_rejected(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        with pytest.raises(ReconciliationError, match="requires a resolved work order"):
            _writer(storage, repos).write(make_input(PDF), make_extraction(), APPLIED, None)

        mock_get_conn.assert_not_called()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_applied_routes_to_apply(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        match = IdentityMatch(exists=True, already_matched=False, record_ref=AUTHORITATIVE_REF)

        result = _writer(storage, repos).write(make_input(PDF), make_extraction(), APPLIED, match)

        assert result.signed_document_id == 31
        repos.review_items.create.assert_not_called()


class TestQueueForReview:
    @patch("signoff.reconciliation.writer.get_connection")
    def test_creates_review_item_with_stored_document(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        conn = _mock_connection(mock_get_conn)
        extraction = make_extraction(identifier="452198", confidence=0.70, snippet_png=PNG)

        result = _writer(storage, repos).queue_for_review(make_input(PDF), extraction, LOW)

        assert result.review_item_id == 51
        assert result.signed_document_id == 31
        assert result.document_ref is not None and storage.exists(result.document_ref)
        kwargs = repos.review_items.create.call_args.kwargs
        assert repos.review_items.create.call_args.args == (conn,)
        assert kwargs["reason_code"] == "low_confidence"
        assert kwargs["confidence_label"] == "low"
        assert kwargs["extracted_identifier"] == "452198"
        assert kwargs["raw_text"] == "WO 452198"
        assert kwargs["signed_document_id"] == 31
        assert "snippet_png" not in kwargs["extraction"]
        repos.signed_documents.insert_match.assert_not_called()
        repos.work_orders.apply_signed_status.assert_not_called()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_mirrors_review_row(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)

        _writer(storage, repos).queue_for_review(make_input(PDF), make_extraction(confidence=0.7), LOW)

        kwargs = repos.legacy.append_review_row.call_args.kwargs
        assert kwargs["review_item_id"] == 51
        assert kwargs["reason_code"] == "low_confidence"

    @patch("signoff.reconciliation.writer.get_connection")
    def test_review_mirror_failure_is_swallowed(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)
        repos.legacy.append_review_row.side_effect = RuntimeError("Legacy pool not initialized")

        result = _writer(storage, repos).queue_for_review(make_input(PDF), make_extraction(confidence=0.7), LOW)

        assert result.review_item_id == 51

    @patch("signoff.reconciliation.writer.get_connection")
    def test_without_legacy_store(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        _mock_connection(mock_get_conn)

        result = _writer(storage, repos, legacy=False).queue_for_review(
            make_input(PDF), make_extraction(confidence=0.7), LOW
        )

        assert result.review_item_id == 51
        repos.legacy.append_review_row.assert_not_called()


class TestAlreadyProcessed:
    @patch("signoff.reconciliation.writer.get_connection")
    def test_audit_only(self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos) -> None:
        _mock_connection(mock_get_conn)

        result = _writer(storage, repos).write(make_input(PDF), make_extraction(snippet_png=PNG), DUPLICATE, None)

        assert result.review_item_id == 51
        assert result.document_ref is None
        assert result.snippet_ref is None
        assert not storage.exists(f"signed/{file_hash(PDF)}.pdf")
        kwargs = repos.review_items.create.call_args.kwargs
        assert kwargs["resolved"] is True
        assert kwargs["resolution_note"] == "already_processed"
        assert kwargs["reason_code"] == "already_matched"
        assert kwargs["document_ref"] is None
        repos.signed_documents.upsert.assert_not_called()
        repos.work_orders.apply_signed_status.assert_not_called()
        repos.legacy.mirror_signed.assert_not_called()


class TestApplyResolution:
    def _item(self, **overrides: object) -> ReviewItemRecord:
        fields: dict = {
            "id": 51,
            "sender_key": "acme",
            "confidence_label": "low",
            "reason_code": "low_confidence",
            "extraction": {},
            "source_tag": "upload",
            "signed_document_id": 31,
            "document_ref": "signed/abc.pdf",
            "snippet_ref": None,
        }
        fields.update(overrides)
        return ReviewItemRecord(**fields)

    @patch("signoff.reconciliation.writer.get_connection")
    def test_reuses_stored_document(self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos) -> None:
        conn = _mock_connection(mock_get_conn)
        decision = Decision(
            outcome=Outcome.APPLIED,
            identifier="4521983",
            confidence=1.0,
            confidence_label=ConfidenceLabel.HIGH,
            manual_override=True,
        )

        result = _writer(storage, repos).apply_resolution(self._item(), decision, AUTHORITATIVE_REF, note="checked")

        assert result.review_item_id == 51
        assert result.document_ref == "signed/abc.pdf"
        repos.signed_documents.upsert.assert_not_called()
        repos.review_items.claim.assert_called_once_with(conn, 51, identifier="4521983", note="checked")
        repos.signed_documents.insert_match.assert_called_once_with(
            conn, work_order_id=7, signed_document_id=31, identifier="4521983", confidence=1.0, method="manual"
        )
        repos.legacy.mirror_signed.assert_called_once()

    @patch("signoff.reconciliation.writer.get_connection")
    def test_second_resolver_leaves_no_match(
        self, mock_get_conn: MagicMock, storage: DocumentStorage, repos: _Repos
    ) -> None:
        conn = _mock_connection(mock_get_conn)
        repos.review_items.claim.side_effect = ReviewItemAlreadyResolvedError("Review item 51 is already resolved")

        with pytest.raises(ReviewItemAlreadyResolvedError):
            _writer(storage, repos).apply_resolution(self._item(), APPLIED, AUTHORITATIVE_REF)

        conn.transaction.assert_called_once()
        repos.signed_documents.insert_match.assert_not_called()
        repos.work_orders.apply_signed_status.assert_not_called()
        repos.legacy.mirror_signed.assert_not_called()

    def test_item_without_document_is_rejected(self, storage: DocumentStorage, repos: _Repos) -> None:
        with pytest.raises(ReconciliationError, match="has no stored document"):
            _writer(storage, repos).apply_resolution(
                self._item(signed_document_id=None, document_ref=None), APPLIED, AUTHORITATIVE_REF
            )


class TestMirrorReviewResolved:
    def test_failure_is_logged_only(self, storage: DocumentStorage, repos: _Repos) -> None:
        repos.legacy.mark_review_resolved.side_effect = psycopg.OperationalError("down")

        _writer(storage, repos).mirror_review_resolved(51)

        repos.legacy.mark_review_resolved.assert_called_once_with(51)

    def test_noop_without_legacy(self, storage: DocumentStorage, repos: _Repos) -> None:
        _writer(storage, repos, legacy=False).mirror_review_resolved(51)

        repos.legacy.mark_review_resolved.assert_not_called()
