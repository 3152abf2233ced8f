"""Merchant-level cache of provider enrichment results.

Entries are keyed by (description, normalized merchant name), written once
and never updated or evicted. There is no lookup-then-insert lock: inserts
are an atomic set-if-absent on the natural key, and a caller that loses the
race gets a DuplicateKey outcome and is expected to re-read the winner.
"""

import hashlib
import json
from typing import Optional

from pydantic import ValidationError

from enrichment.constants import MERCHANT_ID_PREFIX, MERCHANT_KEY_PREFIX, SCHEMA_PROVIDER_TRANSACTION
from enrichment.models.merchant import MerchantCacheEntry
from enrichment.models.provider import ProviderEnrichedTransaction
from enrichment.storage import codec
from enrichment.storage.backends import KeyValueBackend
from enrichment.utils.errors import DuplicateKey, SerializationError
from enrichment.utils.identifiers import IdentifierGenerator
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import cache_lookups, cache_insert_races
from enrichment.utils.result import Err, Ok, Result

logger = get_logger(__name__)


def normalize_merchant_name(merchant_name: Optional[str]) -> str:
    """Missing merchant-name hints key the same as an explicit empty string"""
    return merchant_name or ""


def cache_key(description: str, merchant_name: Optional[str]) -> str:
    """Storage key for a (description, merchant_name) pair"""
    parts = json.dumps([description, normalize_merchant_name(merchant_name)], ensure_ascii=False)
    return MERCHANT_KEY_PREFIX + hashlib.sha256(parts.encode("utf-8")).hexdigest()


def read_enrichment(entry: MerchantCacheEntry) -> ProviderEnrichedTransaction:
    """
    Decode the provider result stored in an entry.

    Raises:
        SerializationError: If the stored payload is corrupt
    """
    return codec.decode_or_raise(
        entry.provider_enrichment, SCHEMA_PROVIDER_TRANSACTION, ProviderEnrichedTransaction
    )


class MerchantCache:
    """Cache-aside store for single-transaction enrichments"""

    def __init__(self, backend: KeyValueBackend, ids: IdentifierGenerator):
        self._backend = backend
        self._ids = ids

    def lookup(self, description: str, merchant_name: Optional[str]) -> Optional[MerchantCacheEntry]:
        """
        Find the entry for a key.

        Returns:
            Entry if cached, None otherwise

        Raises:
            SerializationError: If the stored entry is corrupt
        """
        entry = self._read(cache_key(description, merchant_name))
        cache_lookups.labels(result="hit" if entry else "miss").inc()
        return entry

    def insert(
        self,
        description: str,
        merchant_name: Optional[str],
        payload: ProviderEnrichedTransaction,
    ) -> Result[MerchantCacheEntry, DuplicateKey]:
        """
        Insert a new entry unless the key already exists.

        Args:
            description: Transaction description
            merchant_name: Merchant-name hint (normalized here)
            payload: Provider result for this single transaction

        Returns:
            Ok(new entry), or Err(DuplicateKey) if another writer got there first
        """
        normalized = normalize_merchant_name(merchant_name)
        entry = MerchantCacheEntry(
            merchant_id=self._ids.generate(),
            description=description,
            merchant_name=normalized,
            provider_enrichment=codec.encode(SCHEMA_PROVIDER_TRANSACTION, payload),
        )
        key = cache_key(description, normalized)

        if not self._backend.set_if_absent(key, entry.model_dump_json()):
            cache_insert_races.inc()
            logger.debug("Cache insert lost race", description=description, merchant_name=normalized)
            return Err(DuplicateKey(description=description, merchant_name=normalized))

        self._backend.set(MERCHANT_ID_PREFIX + entry.merchant_id, key)
        logger.debug("Cached merchant enrichment", merchant_id=entry.merchant_id)
        return Ok(entry)

    def get(self, merchant_id: str) -> Optional[MerchantCacheEntry]:
        """Primary-key read by merchant_id"""
        key = self._backend.get(MERCHANT_ID_PREFIX + merchant_id)
        if key is None:
            return None
        return self._read(key)

    def _read(self, key: str) -> Optional[MerchantCacheEntry]:
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            return MerchantCacheEntry.model_validate_json(raw)
        except ValidationError as e:
            raise SerializationError(f"Corrupt merchant cache entry at {key}: {e}")
