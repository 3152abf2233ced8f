"""Provider client wrapped in bulkhead, retry and circuit breaker policies."""

import time
from typing import Callable, List, Optional

import requests

from enrichment.models.provider import ProviderEnrichRequest, ProviderEnrichResponse, ProviderTransaction
from enrichment.models.transaction import Transaction
from enrichment.provider.client import ProviderHttpClient
from enrichment.resilience.bulkhead import Bulkhead
from enrichment.resilience.circuit_breaker import CircuitBreaker
from enrichment.resilience.retry import RetryPolicy
from enrichment.utils.config_loader import EnrichmentConfig
from enrichment.utils.errors import ProviderError
from enrichment.utils.result import Result


class ResilientProviderClient:
    """
    Calls the provider through, outermost first:

        Bulkhead -> RetryPolicy -> CircuitBreaker -> ProviderHttpClient

    so a bulkhead slot is held across all retry attempts and every attempt is
    individually admitted and recorded by the breaker.
    """

    def __init__(
        self,
        http_client: ProviderHttpClient,
        bulkhead: Bulkhead,
        retry: RetryPolicy,
        circuit_breaker: CircuitBreaker,
    ):
        self.http_client = http_client
        self.bulkhead = bulkhead
        self.retry = retry
        self.circuit_breaker = circuit_breaker

    @classmethod
    def from_config(
        cls,
        config: EnrichmentConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ResilientProviderClient":
        return cls(
            http_client=ProviderHttpClient(config.provider, session=session),
            bulkhead=Bulkhead(config.bulkhead),
            retry=RetryPolicy(config.retry, sleep=sleep),
            circuit_breaker=CircuitBreaker(config.circuit_breaker, clock=clock),
        )

    def enrich(
        self,
        account_id: str,
        transactions: List[Transaction],
    ) -> Result[ProviderEnrichResponse, ProviderError]:
        """
        Enrich transactions, one result per input in the same order.

        Args:
            account_id: Account the transactions belong to
            transactions: Ordered transactions to send

        Returns:
            Ok(ProviderEnrichResponse) or Err(ProviderError)
        """
        provider_config = self.http_client.config
        request = ProviderEnrichRequest(
            client_id=provider_config.client_id,
            secret=provider_config.secret,
            account_id=account_id,
            transactions=[
                ProviderTransaction(
                    description=t.description,
                    amount=t.amount,
                    date=t.date,
                    merchant_name=t.merchant_name,
                )
                for t in transactions
            ],
        )

        def attempt():
            return self.circuit_breaker.call(lambda: self.http_client.enrich(request))

        return self.bulkhead.call(lambda: self.retry.call(attempt))

    def health_check(self) -> bool:
        return self.http_client.health_check()

    def close(self) -> None:
        self.http_client.close()
