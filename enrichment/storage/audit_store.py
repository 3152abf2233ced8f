"""Durable audit trail: one record per enrichment request.

Records are created PENDING before any provider work and move exactly once
to SUCCESS or FAILED. Each request_id has a single writer, so transitions
are a plain read-modify-write.
"""

import time
from typing import List, Optional

from pydantic import ValidationError

from enrichment.constants import AUDIT_KEY_PREFIX, EnrichmentStatus, SCHEMA_ENRICHMENT_REQUEST, SCHEMA_PROVIDER_RESPONSE
from enrichment.models.audit_log import AuditRecord
from enrichment.models.provider import ProviderEnrichResponse
from enrichment.models.transaction import EnrichmentRequest
from enrichment.storage import codec
from enrichment.storage.backends import KeyValueBackend
from enrichment.utils.errors import SerializationError, StorageError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import audit_write_latency

logger = get_logger(__name__)


class AuditStore:
    """Keyed store of AuditRecord by request_id"""

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def create(self, request_id: str, request: EnrichmentRequest) -> AuditRecord:
        """
        Persist a new PENDING record.

        Raises:
            StorageError: If a record with this request_id already exists
        """
        record = AuditRecord(
            request_id=request_id,
            original_request=codec.encode(SCHEMA_ENRICHMENT_REQUEST, request),
        )
        start = time.time()
        created = self._backend.set_if_absent(self._key(request_id), record.model_dump_json())
        audit_write_latency.observe(time.time() - start)

        if not created:
            raise StorageError(f"Audit record already exists: {request_id}")

        logger.debug("Persisted request", request_id=request_id)
        return record

    def get(self, request_id: str) -> Optional[AuditRecord]:
        """
        Read a record.

        Raises:
            SerializationError: If the stored record is corrupt
        """
        return self._read(self._key(request_id))

    def mark_success(
        self,
        request_id: str,
        provider_response: Optional[ProviderEnrichResponse] = None,
    ) -> AuditRecord:
        """Transition PENDING -> SUCCESS, optionally keeping the raw provider response"""
        encoded = codec.encode(SCHEMA_PROVIDER_RESPONSE, provider_response) if provider_response else None
        return self._transition(request_id, EnrichmentStatus.SUCCESS, None, encoded)

    def mark_failed(self, request_id: str, error_message: str) -> AuditRecord:
        """Transition PENDING -> FAILED with the error message"""
        return self._transition(request_id, EnrichmentStatus.FAILED, error_message or "Unknown error", None)

    def find_by_status(self, status: EnrichmentStatus) -> List[AuditRecord]:
        """All records currently in the given status, oldest first"""
        records = []
        for key in self._backend.scan(AUDIT_KEY_PREFIX):
            record = self._read(key)
            if record is not None and record.status == status:
                records.append(record)
        return sorted(records, key=lambda r: r.created_at)

    def count_by_status(self, status: EnrichmentStatus) -> int:
        return len(self.find_by_status(status))

    @staticmethod
    def original_request(record: AuditRecord) -> EnrichmentRequest:
        """
        Decode the request stored with a record.

        Raises:
            SerializationError: If the stored request is corrupt
        """
        return codec.decode_or_raise(record.original_request, SCHEMA_ENRICHMENT_REQUEST, EnrichmentRequest)

    def _transition(
        self,
        request_id: str,
        status: EnrichmentStatus,
        error_message: Optional[str],
        provider_response: Optional[str],
    ) -> AuditRecord:
        record = self.get(request_id)
        if record is None:
            raise StorageError(f"No audit record for {request_id}")
        if record.status != EnrichmentStatus.PENDING:
            raise StorageError(
                f"Audit record {request_id} already terminal ({record.status.value}); "
                f"refusing transition to {status.value}"
            )

        # created_at is left as written at creation
        updated = record.model_copy(update={
            "status": status,
            "error_message": error_message,
            "provider_response": provider_response,
        })
        start = time.time()
        self._backend.set(self._key(request_id), updated.model_dump_json())
        audit_write_latency.observe(time.time() - start)

        logger.debug("Updated enrichment record", request_id=request_id, status=status.value)
        return updated

    def _read(self, key: str) -> Optional[AuditRecord]:
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            return AuditRecord.model_validate_json(raw)
        except ValidationError as e:
            raise SerializationError(f"Corrupt audit record at {key}: {e}")

    @staticmethod
    def _key(request_id: str) -> str:
        return AUDIT_KEY_PREFIX + request_id
