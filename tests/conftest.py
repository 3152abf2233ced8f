"""Shared fixtures: a scriptable provider session, fake clock and orchestrator factory"""

import json
import threading
from datetime import date
from decimal import Decimal

import pytest

from enrichment.models.transaction import EnrichmentRequest, Transaction
from enrichment.orchestrator.enrichment_orchestrator import EnrichmentOrchestrator
from enrichment.provider.resilient_client import ResilientProviderClient
from enrichment.storage.backends import MemoryBackend
from enrichment.utils.config_loader import EnrichmentConfig


class FakeResponse:
    """Just enough of requests.Response for the provider client"""

    def __init__(self, status_code, body=None, text=None):
        self.status_code = status_code
        self._body = body
        if text is not None:
            self.text = text
        elif body is not None:
            self.text = json.dumps(body)
        else:
            self.text = ""

    def json(self):
        if self._body is None:
            return json.loads(self.text)
        return self._body


class FakeProviderSession:
    """
    Stands in for requests.Session.

    Successful responses echo one enriched result per submitted transaction.
    ``script`` holds responses/exceptions to use, in order, before falling
    back to success; ``fail_accounts`` maps account_id -> status code.
    """

    def __init__(self):
        self.calls = []
        self.script = []
        self.fail_accounts = {}
        self.barrier = None
        self.on_post = None
        self.health_status = 200
        self._lock = threading.Lock()

    @property
    def call_count(self):
        with self._lock:
            return len(self.calls)

    def post(self, url, data=None, headers=None, timeout=None):
        body = json.loads(data)
        with self._lock:
            self.calls.append({"url": url, "body": body, "timeout": timeout})
            scripted = self.script.pop(0) if self.script else None

        if self.on_post is not None:
            self.on_post(body)
        if self.barrier is not None:
            self.barrier.wait(timeout=5)

        if isinstance(scripted, Exception):
            raise scripted
        if isinstance(scripted, FakeResponse):
            return scripted
        if isinstance(scripted, int):
            return FakeResponse(scripted, {"error_code": f"E{scripted}", "error_message": "scripted"})

        status = self.fail_accounts.get(body["account_id"])
        if status is not None:
            return FakeResponse(status, {"error_code": "INVALID_ACCOUNT", "error_message": "bad account"})

        return FakeResponse(200, {
            "enriched_transactions": [
                {
                    "id": f"txn_{index}",
                    "category": f"Category of {tx['description']}",
                    "category_id": "13005000",
                    "merchant_name": (tx.get("merchant_name") or tx["description"]).title(),
                    "logo_url": f"https://logo.example.com/{index}.png",
                    "website": "https://www.example.com",
                    "confidence_level": "HIGH",
                    "enrichment_metadata": {"source": "fake", "position": index},
                }
                for index, tx in enumerate(body["transactions"])
            ],
            "request_id": f"provider_{len(self.calls)}",
        })

    def get(self, url, timeout=None):
        return FakeResponse(self.health_status, {})

    def close(self):
        pass


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_session():
    return FakeProviderSession()


@pytest.fixture
def fake_session_class():
    return FakeProviderSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping"""
    return []


@pytest.fixture
def config():
    return EnrichmentConfig()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def build_orchestrator(fake_session, backend, sleeps, fake_clock):
    """Factory for an orchestrator wired to the fake provider and memory backend"""

    def _build(config=None, session=None, storage=None):
        config = config or EnrichmentConfig()
        provider = ResilientProviderClient.from_config(
            config,
            session=session or fake_session,
            sleep=sleeps.append,
            clock=fake_clock,
        )
        return EnrichmentOrchestrator.from_config(config, backend=storage or backend, provider=provider)

    return _build


@pytest.fixture
def make_request():
    """Build an EnrichmentRequest from (description, merchant_name) pairs"""

    def _make(*pairs, account_id="acc_12345"):
        return EnrichmentRequest(
            account_id=account_id,
            transactions=[
                Transaction(
                    description=description,
                    amount=Decimal("5.75"),
                    date=date(2026, 1, 30),
                    merchant_name=merchant_name,
                )
                for description, merchant_name in pairs
            ],
        )

    return _make
