"""Shared test fixtures for Stash."""

import json
import os

import httpx
import pytest

from stash_gateway.common.schemas import ProviderSecrets

OZOW_PRIVATE_KEY = "private-key"
PAYFAST_PASSPHRASE = "test-pass"
PAYSTACK_SECRET = "sk_test_secret"


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Keep STASH_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.startswith("STASH_"):
            monkeypatch.delenv(name, raising=False)

    from stash_gateway.common.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ozow_secrets():
    return ProviderSecrets(site_code="TSTSTE0001", api_key="API", private_key=OZOW_PRIVATE_KEY)


@pytest.fixture
def payfast_secrets():
    return ProviderSecrets(merchant_id="10000100", merchant_key="46f0cd694581a", passphrase=PAYFAST_PASSPHRASE)


@pytest.fixture
def paystack_secrets():
    return ProviderSecrets(paystack_secret_key=PAYSTACK_SECRET)


class RecordingTransport:
    """httpx MockTransport wrapper that keeps every request it served."""

    def __init__(self, body=None, status_code: int = 200, text: str = None):
        self.requests: list[httpx.Request] = []
        self.body = body
        self.status_code = status_code
        self.text = text

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def transport():
    """Factory for a recording mock transport."""
    return RecordingTransport
