import psycopg

from signoff.database.models import WorkOrderRecord
from signoff.database.repositories.legacy_export_repository import LegacyExportRepository
from signoff.database.repositories.work_orders_repository import WorkOrdersRepository
from signoff.logging.logger import Log
from signoff.reconciliation.models import IdentityMatch, RecordRef, RecordStore

_NO_MATCH = IdentityMatch(exists=False, already_matched=False)


class IdentityResolver:
    """Looks an identifier up in the authoritative store, then the legacy one.

    Authoritative errors fall back to the legacy store; legacy errors count
    as "not found". Neither is raised to the caller.
    """

    def __init__(
        self,
        *,
        work_orders_repo: WorkOrdersRepository,
        legacy_repo: LegacyExportRepository | None,
        authoritative_lookup_enabled: bool,
        duplicate_confidence_threshold: float = 0.80,
    ) -> None:
        self._work_orders_repo = work_orders_repo
        self._legacy_repo = legacy_repo
        self._authoritative_lookup_enabled = authoritative_lookup_enabled
        self._duplicate_confidence_threshold = duplicate_confidence_threshold

    def resolve(
        self,
        identifier: str,
        sender_key: str | None = None,
        confidence: float = 0.0,
    ) -> IdentityMatch:
        if self._authoritative_lookup_enabled:
            match = self._resolve_authoritative(identifier, sender_key, confidence)
            if match is not None:
                return match
        return self._resolve_legacy(identifier, sender_key, confidence)

    def _resolve_authoritative(
        self, identifier: str, sender_key: str | None, confidence: float
    ) -> IdentityMatch | None:
        try:
            record = self._work_orders_repo.find_by_identifier(identifier, sender_key)
            if record is None:
                Log.info("Work order not in authoritative store", identifier=identifier)
                return None
            has_match = self._work_orders_repo.has_signed_match(record.id)
        except psycopg.Error as exc:
            Log.warning(
                "Authoritative lookup failed, falling back to legacy store",
                identifier=identifier,
                error=str(exc),
            )
            return None

        already_matched = has_match or self._signed_with_confidence(record, confidence)
        return IdentityMatch(
            exists=True,
            already_matched=already_matched,
            record_ref=_ref(RecordStore.AUTHORITATIVE, record),
        )

    def _resolve_legacy(self, identifier: str, sender_key: str | None, confidence: float) -> IdentityMatch:
        if self._legacy_repo is None:
            return _NO_MATCH
        try:
            record = self._legacy_repo.find_by_identifier(identifier, sender_key)
        except psycopg.Error as exc:
            Log.warning("Legacy lookup failed, treating as not found", identifier=identifier, error=str(exc))
            return _NO_MATCH
        if record is None:
            Log.info("Work order not in legacy store", identifier=identifier)
            return _NO_MATCH
        return IdentityMatch(
            exists=True,
            already_matched=self._signed_with_confidence(record, confidence),
            record_ref=_ref(RecordStore.LEGACY, record),
        )

    def _signed_with_confidence(self, record: WorkOrderRecord, confidence: float) -> bool:
        return record.is_signed and confidence >= self._duplicate_confidence_threshold


def _ref(store: RecordStore, record: WorkOrderRecord) -> RecordRef:
    return RecordRef(
        store=store,
        record_id=record.id,
        identifier=record.identifier,
        sender_key=record.sender_key,
        job_reference=record.job_reference,
        status=record.status,
    )
