"""Enrichment orchestrator - cache-aside enrichment with a per-request audit trail"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from enrichment.constants import EnrichmentStatus
from enrichment.models.merchant import MerchantCacheEntry
from enrichment.models.result import EnrichedTransaction, EnrichmentResult
from enrichment.models.transaction import EnrichmentRequest, Transaction
from enrichment.provider.resilient_client import ResilientProviderClient
from enrichment.storage.audit_store import AuditStore
from enrichment.storage.backends import KeyValueBackend, get_backend
from enrichment.storage.merchant_cache import MerchantCache, normalize_merchant_name, read_enrichment
from enrichment.utils.config_loader import EnrichmentConfig
from enrichment.utils.errors import EnrichmentSystemError, StorageError
from enrichment.utils.identifiers import IdentifierGenerator
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import batch_size, enrichment_request_duration, enrichment_requests
from enrichment.utils.result import Err

logger = get_logger(__name__)

CacheKey = Tuple[str, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _key(transaction: Transaction) -> CacheKey:
    return (transaction.description, normalize_merchant_name(transaction.merchant_name))


class EnrichmentOrchestrator:
    """Coordinates cache lookups, provider calls and audit writes"""

    def __init__(
        self,
        provider: ResilientProviderClient,
        merchant_cache: MerchantCache,
        audit_store: AuditStore,
        ids: IdentifierGenerator,
        max_workers: int = 10,
    ):
        self.provider = provider
        self.merchant_cache = merchant_cache
        self.audit_store = audit_store
        self.ids = ids
        self.max_workers = max_workers

    @classmethod
    def from_config(
        cls,
        config: EnrichmentConfig,
        backend: Optional[KeyValueBackend] = None,
        provider: Optional[ResilientProviderClient] = None,
    ) -> "EnrichmentOrchestrator":
        """Wire the orchestrator and its collaborators from configuration"""
        ids = IdentifierGenerator()
        backend = backend or get_backend(config.storage)
        return cls(
            provider=provider or ResilientProviderClient.from_config(config),
            merchant_cache=MerchantCache(backend, ids),
            audit_store=AuditStore(backend),
            ids=ids,
            max_workers=config.batch.max_workers,
        )

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def enrich_one(self, request: EnrichmentRequest) -> EnrichmentResult:
        """
        Enrich one request.

        Provider and storage failures never raise; they come back as a FAILED
        result with an error message.

        Args:
            request: Account and ordered transactions

        Returns:
            EnrichmentResult with one enriched transaction per input on success
        """
        request_id = self.ids.generate()
        logger.info("Starting enrichment", request_id=request_id)

        failure = self._create_pending(request_id, request)
        if failure is not None:
            return failure

        return self._process_isolated(request_id, request)

    def enrich_many(self, requests: List[EnrichmentRequest]) -> List[EnrichmentResult]:
        """
        Enrich several independent requests concurrently.

        Every item gets its own request_id and PENDING record before any
        concurrent work starts. One item's failure never affects another.

        Returns:
            Results positioned like the input list
        """
        logger.info(f"Starting batch enrichment for {len(requests)} requests")
        batch_size.observe(len(requests))
        if not requests:
            return []

        results: List[Optional[EnrichmentResult]] = [None] * len(requests)
        pending: List[Tuple[int, str, EnrichmentRequest]] = []

        for index, request in enumerate(requests):
            request_id = self.ids.generate()
            failure = self._create_pending(request_id, request)
            if failure is not None:
                results[index] = failure
            else:
                pending.append((index, request_id, request))

        if pending:
            workers = min(self.max_workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enrich") as pool:
                futures = [
                    (index, pool.submit(self._process_isolated, request_id, request))
                    for index, request_id, request in pending
                ]
                for index, future in futures:
                    results[index] = future.result()

        successful = sum(1 for r in results if r.status == EnrichmentStatus.SUCCESS)
        logger.info(f"Completed batch enrichment: {successful}/{len(results)} successful")
        return results

    def get_by_id(self, request_id: str) -> Optional[EnrichmentResult]:
        """
        Retrieve a previously processed request.

        SUCCESS results are rebuilt from the current merchant cache; a
        transaction whose entry is no longer cached is left out. The provider
        is never called.

        Args:
            request_id: Request identifier

        Returns:
            EnrichmentResult, or None if the id is unknown

        Raises:
            InvalidIdentifierError: If request_id is not a valid identifier
            SerializationError: If the stored record or request is corrupt
        """
        request_id = self.ids.normalize(request_id)
        record = self.audit_store.get(request_id)
        if record is None:
            logger.debug("Enrichment record not found", request_id=request_id)
            return None

        if record.status != EnrichmentStatus.SUCCESS:
            return EnrichmentResult(
                request_id=request_id,
                enriched_transactions=[],
                processed_at=record.created_at,
                status=record.status,
                error_message=record.error_message,
            )

        original = self.audit_store.original_request(record)
        enriched = []
        for transaction in original.transactions:
            entry = self.merchant_cache.lookup(transaction.description, transaction.merchant_name)
            if entry is not None:
                enriched.append(self._to_enriched(entry))

        return EnrichmentResult(
            request_id=request_id,
            enriched_transactions=enriched,
            processed_at=record.created_at,
            status=EnrichmentStatus.SUCCESS,
        )

    # -------------------------------------------------------------------------
    # Request lifecycle
    # -------------------------------------------------------------------------

    def _create_pending(self, request_id: str, request: EnrichmentRequest) -> Optional[EnrichmentResult]:
        """Persist the PENDING record; returns a FAILED result if that is impossible"""
        try:
            self.audit_store.create(request_id, request)
            return None
        except EnrichmentSystemError as e:
            logger.error("Could not persist enrichment request", request_id=request_id, error=str(e))
            enrichment_requests.labels(status=EnrichmentStatus.FAILED.value).inc()
            return self._failed_result(request_id, f"Could not record request: {e}")

    def _process_isolated(self, request_id: str, request: EnrichmentRequest) -> EnrichmentResult:
        """Any unexpected error ends the request as FAILED instead of leaving it PENDING"""
        try:
            return self._process(request_id, request)
        except Exception as e:
            logger.error("Enrichment failed unexpectedly", request_id=request_id, error=str(e), exc_info=True)
            return self._fail(request_id, str(e) or type(e).__name__)

    def _process(self, request_id: str, request: EnrichmentRequest) -> EnrichmentResult:
        start_time = time.time()
        try:
            result = self._enrich_core(request_id, request)
        except EnrichmentSystemError as e:
            logger.error("Error enriching request", request_id=request_id, error=str(e))
            result = self._fail(request_id, str(e))
        enrichment_request_duration.observe(time.time() - start_time)
        return result

    def _enrich_core(self, request_id: str, request: EnrichmentRequest) -> EnrichmentResult:
        hits: Dict[CacheKey, MerchantCacheEntry] = {}
        misses: List[Transaction] = []

        for transaction in request.transactions:
            entry = self.merchant_cache.lookup(transaction.description, transaction.merchant_name)
            if entry is not None:
                hits[_key(transaction)] = entry
            else:
                misses.append(transaction)

        logger.info(
            "Partitioned transactions",
            request_id=request_id,
            cache_hits=len(request.transactions) - len(misses),
            cache_misses=len(misses),
        )

        resolved: Dict[CacheKey, MerchantCacheEntry] = {}
        provider_response = None

        if misses:
            outcome = self.provider.enrich(request.account_id, misses)
            if isinstance(outcome, Err):
                return self._fail(request_id, outcome.error.message)

            provider_response = outcome.value
            for transaction, enriched in zip(misses, provider_response.enriched_transactions):
                resolved[_key(transaction)] = self._insert_or_reread(transaction, enriched)

        enriched_transactions = []
        for transaction in request.transactions:
            key = _key(transaction)
            entry = hits.get(key) or resolved.get(key)
            enriched_transactions.append(self._to_enriched(entry))

        self.audit_store.mark_success(request_id, provider_response)
        enrichment_requests.labels(status=EnrichmentStatus.SUCCESS.value).inc()
        logger.info("Successfully enriched request", request_id=request_id)

        return EnrichmentResult(
            request_id=request_id,
            enriched_transactions=enriched_transactions,
            processed_at=_now(),
            status=EnrichmentStatus.SUCCESS,
        )

    def _insert_or_reread(self, transaction: Transaction, enriched) -> MerchantCacheEntry:
        """Insert a miss; if another writer won the key, converge on its entry"""
        outcome = self.merchant_cache.insert(transaction.description, transaction.merchant_name, enriched)
        if not isinstance(outcome, Err):
            return outcome.value

        logger.debug(
            "Cache insert race detected; re-querying",
            description=transaction.description,
            merchant_name=outcome.error.merchant_name,
        )
        winner = self.merchant_cache.lookup(transaction.description, transaction.merchant_name)
        if winner is None:
            raise StorageError("Cache entry disappeared after concurrent insert race")
        return winner

    def _fail(self, request_id: str, message: str) -> EnrichmentResult:
        """Persist FAILED and build the matching result"""
        try:
            self.audit_store.mark_failed(request_id, message)
        except EnrichmentSystemError as e:
            logger.error("Could not persist failure", request_id=request_id, error=str(e))
        enrichment_requests.labels(status=EnrichmentStatus.FAILED.value).inc()
        return self._failed_result(request_id, message)

    @staticmethod
    def _failed_result(request_id: str, message: str) -> EnrichmentResult:
        return EnrichmentResult(
            request_id=request_id,
            enriched_transactions=[],
            processed_at=_now(),
            status=EnrichmentStatus.FAILED,
            error_message=message or "Unknown error",
        )

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_enriched(entry: MerchantCacheEntry) -> EnrichedTransaction:
        payload = read_enrichment(entry)
        metadata: Dict[str, Any] = {
            "category_id": payload.category_id,
            "website": payload.website,
            "confidence_level": payload.confidence_level,
        }
        if payload.enrichment_metadata:
            metadata.update(payload.enrichment_metadata)

        return EnrichedTransaction(
            transaction_id=payload.id,
            merchant_id=entry.merchant_id,
            category=payload.category,
            merchant_name=payload.merchant_name,
            logo_url=payload.logo_url,
            metadata=metadata,
        )
