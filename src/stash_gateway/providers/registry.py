"""
Adapter registry and provider-agnostic entry points.

The registry maps a provider identifier to its adapter; every top-level
operation resolves the adapter once and checks the capability table
before delegating.
"""

from types import MappingProxyType
from typing import Mapping, Optional

import httpx

from stash_gateway.common.exceptions import UnsupportedProviderError
from stash_gateway.common.schemas import (
    OzowTransactionQuery,
    OzowTransactionResult,
    PayfastValidationInput,
    PayfastValidationResult,
    PaymentRequest,
    PaymentResponse,
    VerificationResult,
    VerifyPaymentInput,
    WebhookParseInput,
    WebhookVerifyInput,
    WebhookVerifyResult,
)
from stash_gateway.providers.base import ProviderAdapter
from stash_gateway.providers.capabilities import require_verify_support
from stash_gateway.providers.ozow import (
    OzowAdapter,
    get_ozow_transaction,
    get_ozow_transaction_by_reference,
)
from stash_gateway.providers.payfast import PayfastAdapter, validate_payfast_webhook
from stash_gateway.providers.paystack import PaystackAdapter
from stash_gateway.webhooks.schemas import ProviderWebhookResult

PROVIDER_ADAPTERS: Mapping[str, ProviderAdapter] = MappingProxyType({
    "ozow": OzowAdapter(),
    "payfast": PayfastAdapter(),
    "paystack": PaystackAdapter(),
})


def get_adapter(provider: str) -> ProviderAdapter:
    adapter = PROVIDER_ADAPTERS.get(provider)
    if adapter is None:
        raise UnsupportedProviderError(provider, PROVIDER_ADAPTERS)
    return adapter


def make_payment(request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
    """Build a signed payment request for ``request.provider``."""
    return get_adapter(request.provider).create_payment(request, http)


def verify_webhook_signature(data: WebhookVerifyInput) -> WebhookVerifyResult:
    """Check a notification signature; never raises on a mismatch."""
    return get_adapter(data.provider).verify_webhook(data)


def parse_webhook(provider: str, data: WebhookParseInput) -> ProviderWebhookResult:
    return get_adapter(provider).parse_webhook(data)


def verify_payment(
    provider: str,
    data: VerifyPaymentInput,
    http: Optional[httpx.Client] = None,
) -> VerificationResult:
    """Look a payment up by merchant reference on the provider's API."""
    adapter = get_adapter(provider)
    require_verify_support(provider)
    return adapter.verify_payment(data, http)


def validate_payfast_webhook_signature(
    data: PayfastValidationInput,
    http: Optional[httpx.Client] = None,
) -> PayfastValidationResult:
    return validate_payfast_webhook(data, http)


def get_ozow_transaction_status_by_reference(
    query: OzowTransactionQuery,
    http: Optional[httpx.Client] = None,
) -> OzowTransactionResult:
    return get_ozow_transaction_by_reference(query, http)


def get_ozow_transaction_status(
    query: OzowTransactionQuery,
    http: Optional[httpx.Client] = None,
) -> OzowTransactionResult:
    return get_ozow_transaction(query, http)
