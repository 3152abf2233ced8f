"""Tests for the provider HTTP client and the resilient call pipeline"""

import threading
from datetime import date
from decimal import Decimal

import pytest
import requests

from enrichment.constants import CircuitState, ProviderErrorKind
from enrichment.models.provider import ProviderEnrichRequest, ProviderTransaction
from enrichment.models.transaction import Transaction
from enrichment.provider.client import ProviderHttpClient
from enrichment.provider.resilient_client import ResilientProviderClient
from enrichment.utils.config_loader import EnrichmentConfig, ProviderConfig
from enrichment.utils.result import Err, Ok


def wire_request(*descriptions):
    return ProviderEnrichRequest(
        client_id="client_abc",
        secret="s3cret",
        account_id="acc_12345",
        transactions=[
            ProviderTransaction(description=d, amount=Decimal("12.50"), date=date(2026, 2, 1))
            for d in descriptions
        ],
    )


def transactions(*descriptions):
    return [
        Transaction(description=d, amount=Decimal("12.50"), date=date(2026, 2, 1))
        for d in descriptions
    ]


@pytest.fixture
def http_client(fake_session):
    config = ProviderConfig(base_url="http://provider.test/", client_id="client_abc", secret="s3cret")
    return ProviderHttpClient(config, session=fake_session)


@pytest.fixture
def resilient(fake_session, sleeps, fake_clock):
    config = EnrichmentConfig()
    config.provider.client_id = "client_abc"
    config.provider.secret = "s3cret"
    return ResilientProviderClient.from_config(config, session=fake_session, sleep=sleeps.append, clock=fake_clock)


# ---------------------------------------------------------------------------
# ProviderHttpClient
# ---------------------------------------------------------------------------

def test_enrich_success(http_client, fake_session):
    """Wire body carries credentials and exact amounts; results parse in order"""
    outcome = http_client.enrich(wire_request("STARBUCKS 1234", "AMAZON MKTP"))

    assert isinstance(outcome, Ok)
    results = outcome.value.enriched_transactions
    assert [r.merchant_name for r in results] == ["Starbucks 1234", "Amazon Mktp"]

    call = fake_session.calls[0]
    assert call["url"] == "http://provider.test/enrich/transactions"
    assert call["timeout"] == (5, 10)
    assert call["body"]["client_id"] == "client_abc"
    assert call["body"]["secret"] == "s3cret"
    assert Decimal(call["body"]["transactions"][0]["amount"]) == Decimal("12.50")
    assert call["body"]["transactions"][0]["date"] == "2026-02-01"


def test_amount_sent_without_rounding(resilient, fake_session):
    """Large, high-precision amounts reach the provider unchanged"""
    amount = Decimal("12345678901234567.89")
    transaction = Transaction(description="WIRE TRANSFER", amount=amount, date=date(2026, 2, 1))

    resilient.enrich("acc_12345", [transaction])

    sent = fake_session.calls[-1]["body"]["transactions"][0]["amount"]
    assert Decimal(str(sent)) == amount
    assert str(sent) == "12345678901234567.89"


def test_client_error_mapping(http_client, fake_session, fake_response):
    fake_session.script = [fake_response(400, {"error_code": "INVALID_ACCOUNT", "error_message": "bad"})]

    outcome = http_client.enrich(wire_request("X"))

    assert isinstance(outcome, Err)
    assert outcome.error.kind == ProviderErrorKind.CLIENT_ERROR
    assert outcome.error.status_code == 400
    assert outcome.error.error_code == "INVALID_ACCOUNT"
    assert "HTTP 400" in outcome.error.message
    assert not outcome.error.counts_as_breaker_failure


def test_server_error_mapping(http_client, fake_session, fake_response):
    fake_session.script = [fake_response(503, text="Service Unavailable")]

    outcome = http_client.enrich(wire_request("X"))

    assert outcome.error.kind == ProviderErrorKind.SERVER_ERROR
    assert outcome.error.status_code == 503
    assert outcome.error.error_code is None
    assert "503" in outcome.error.message
    assert "Service Unavailable" in outcome.error.message
    assert outcome.error.counts_as_breaker_failure


@pytest.mark.parametrize("exc, kind", [
    (requests.Timeout("read timed out"), ProviderErrorKind.TIMEOUT),
    (requests.ConnectionError("refused"), ProviderErrorKind.CONNECTION),
])
def test_transport_failures(http_client, fake_session, exc, kind):
    fake_session.script = [exc]

    outcome = http_client.enrich(wire_request("X"))

    assert outcome.error.kind == kind
    assert outcome.error.status_code is None


def test_malformed_json(http_client, fake_session, fake_response):
    fake_session.script = [fake_response(200, text="<html>oops</html>")]

    outcome = http_client.enrich(wire_request("X"))

    assert outcome.error.kind == ProviderErrorKind.MALFORMED_RESPONSE
    assert not outcome.error.counts_as_breaker_failure


def test_result_count_mismatch(http_client, fake_session, fake_response):
    """One result for two transactions is a malformed response"""
    fake_session.script = [fake_response(200, {"enriched_transactions": [{"id": "txn_0"}]})]

    outcome = http_client.enrich(wire_request("A", "B"))

    assert outcome.error.kind == ProviderErrorKind.MALFORMED_RESPONSE
    assert "1 results for 2 transactions" in outcome.error.message


def test_health_check(http_client, fake_session):
    assert http_client.health_check() is True
    fake_session.health_status = 503
    assert http_client.health_check() is False


# ---------------------------------------------------------------------------
# ResilientProviderClient
# ---------------------------------------------------------------------------

def test_pipeline_success(resilient, fake_session):
    outcome = resilient.enrich("acc_12345", transactions("STARBUCKS 1234"))

    assert isinstance(outcome, Ok)
    assert fake_session.call_count == 1
    assert fake_session.calls[0]["body"]["account_id"] == "acc_12345"


def test_pipeline_retries_server_errors(resilient, fake_session, sleeps):
    """Persistent 500s are attempted three times, then surface"""
    fake_session.script = [500, 500, 500]

    outcome = resilient.enrich("acc_12345", transactions("X"))

    assert isinstance(outcome, Err)
    assert outcome.error.status_code == 500
    assert fake_session.call_count == 3
    assert sleeps == [1.0, 2.0]


def test_pipeline_recovers_on_third_attempt(resilient, fake_session):
    fake_session.script = [502, requests.Timeout("slow")]

    outcome = resilient.enrich("acc_12345", transactions("X"))

    assert isinstance(outcome, Ok)
    assert fake_session.call_count == 3


def test_pipeline_does_not_retry_client_error(resilient, fake_session, sleeps):
    fake_session.script = [400]

    outcome = resilient.enrich("acc_12345", transactions("X"))

    assert outcome.error.kind == ProviderErrorKind.CLIENT_ERROR
    assert fake_session.call_count == 1
    assert sleeps == []


def test_pipeline_opens_breaker(resilient, fake_session):
    """Every attempt counts toward the breaker; once open, nothing reaches the provider"""
    fake_session.script = [503] * 10

    resilient.enrich("acc_12345", transactions("A"))  # 3 failures
    second = resilient.enrich("acc_12345", transactions("B"))  # opens on the 5th failure

    assert fake_session.call_count == 5
    assert second.error.kind == ProviderErrorKind.CIRCUIT_OPEN
    assert resilient.circuit_breaker.state == CircuitState.OPEN

    third = resilient.enrich("acc_12345", transactions("C"))
    assert third.error.kind == ProviderErrorKind.CIRCUIT_OPEN
    assert fake_session.call_count == 5


def test_pipeline_bulkhead_rejection(fake_session_class, sleeps, fake_clock):
    """A call beyond the bulkhead limit is rejected and never counted by the breaker"""
    config = EnrichmentConfig()
    config.bulkhead.max_concurrent_calls = 1
    config.bulkhead.max_wait_seconds = 0.05
    session = fake_session_class()
    release = threading.Event()
    entered = threading.Event()

    def block(body):
        entered.set()
        release.wait(timeout=5)

    session.on_post = block
    client = ResilientProviderClient.from_config(config, session=session, sleep=sleeps.append, clock=fake_clock)

    holder = threading.Thread(target=client.enrich, args=("acc_12345", transactions("A")))
    holder.start()
    assert entered.wait(timeout=5)

    rejected = client.enrich("acc_12345", transactions("B"))
    release.set()
    holder.join(timeout=5)

    assert rejected.error.kind == ProviderErrorKind.CAPACITY_EXCEEDED
    assert session.call_count == 1
    assert client.circuit_breaker.metrics()["buffered_calls"] == 1
