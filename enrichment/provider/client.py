"""HTTP client for the external enrichment provider."""

import time
from typing import Optional

import requests
from pydantic import ValidationError

from enrichment.constants import ProviderErrorKind
from enrichment.models.provider import ProviderEnrichRequest, ProviderEnrichResponse
from enrichment.utils.config_loader import ProviderConfig
from enrichment.utils.errors import ProviderError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import provider_call_latency, provider_calls
from enrichment.utils.result import Err, Ok, Result

logger = get_logger(__name__)


class ProviderHttpClient:
    """
    Single, unprotected call to the provider's enrich endpoint.

    Never raises for transport or HTTP failures: every failure comes back as
    Err(ProviderError) with a kind the resilience policies can act on.
    """

    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or requests.Session()

    @property
    def enrich_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}{self.config.enrich_endpoint}"

    @property
    def timeout(self):
        return (self.config.connect_timeout_seconds, self.config.read_timeout_seconds)

    def enrich(self, request: ProviderEnrichRequest) -> Result[ProviderEnrichResponse, ProviderError]:
        """
        POST the request and parse the response.

        Args:
            request: Wire request including credentials

        Returns:
            Ok(response) whose enriched_transactions match the request one-to-one,
            or Err(ProviderError)
        """
        logger.info(
            "Calling provider enrich API",
            account_id=request.account_id,
            transaction_count=len(request.transactions),
        )
        start_time = time.time()
        try:
            response = self._session.post(
                self.enrich_url,
                data=request.model_dump_json(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            return self._failure(ProviderErrorKind.TIMEOUT, f"Provider request timed out: {e}")
        except requests.ConnectionError as e:
            return self._failure(ProviderErrorKind.CONNECTION, f"Provider connection failed: {e}")
        except requests.RequestException as e:
            return self._failure(ProviderErrorKind.CONNECTION, f"Provider request failed: {e}")
        finally:
            provider_call_latency.observe(time.time() - start_time)

        status = response.status_code
        if 400 <= status < 500:
            return self._failure(
                ProviderErrorKind.CLIENT_ERROR,
                f"Client error from provider (HTTP {status}): {self._body_excerpt(response)}",
                status_code=status,
                error_code=self._error_code(response),
            )
        if status >= 500:
            return self._failure(
                ProviderErrorKind.SERVER_ERROR,
                f"Server error from provider (HTTP {status}): {self._body_excerpt(response)}",
                status_code=status,
                error_code=self._error_code(response),
            )
        if not 200 <= status < 300:
            return self._failure(
                ProviderErrorKind.MALFORMED_RESPONSE,
                f"Unexpected provider status (HTTP {status})",
                status_code=status,
            )

        try:
            parsed = ProviderEnrichResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            return self._failure(
                ProviderErrorKind.MALFORMED_RESPONSE,
                f"Malformed provider response: {e}",
                status_code=status,
            )

        if len(parsed.enriched_transactions) != len(request.transactions):
            return self._failure(
                ProviderErrorKind.MALFORMED_RESPONSE,
                (
                    f"Malformed provider response: {len(parsed.enriched_transactions)} results "
                    f"for {len(request.transactions)} transactions"
                ),
                status_code=status,
            )

        provider_calls.labels(outcome="success").inc()
        logger.info(
            "Successfully enriched transactions",
            count=len(parsed.enriched_transactions),
            provider_request_id=parsed.request_id,
        )
        return Ok(parsed)

    def health_check(self) -> bool:
        """Check if the provider is reachable"""
        try:
            response = self._session.get(
                f"{self.config.base_url.rstrip('/')}/health",
                timeout=self.timeout,
            )
            return 200 <= response.status_code < 300
        except requests.RequestException as e:
            logger.warning(f"Provider health check failed: {e}")
            return False

    def close(self) -> None:
        self._session.close()

    def _failure(
        self,
        kind: ProviderErrorKind,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> Err:
        provider_calls.labels(outcome=kind.value).inc()
        logger.error(message, kind=kind.value, status_code=status_code, error_code=error_code)
        return Err(ProviderError(message=message, kind=kind, status_code=status_code, error_code=error_code))

    @staticmethod
    def _body_excerpt(response) -> str:
        text = response.text or ""
        return text[:200] if text else "no body"

    @staticmethod
    def _error_code(response) -> Optional[str]:
        """Provider error code from a JSON error body, if present"""
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("error_code") is not None:
            return str(body["error_code"])
        return None
