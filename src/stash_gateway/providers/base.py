"""
Provider adapter contract.

Every provider implements ``create_payment``, ``verify_webhook`` and
``parse_webhook``. Verify-by-reference and plan/subscription management
are optional: the base implementations raise ``UnsupportedCapabilityError``
and callers are expected to consult the capability table first.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Collection, Mapping, Optional, Union

import httpx

from stash_gateway.codec.form import to_form_string
from stash_gateway.common.exceptions import InvalidProviderDataError, UnsupportedCapabilityError
from stash_gateway.common.schemas import (
    PaymentRequest,
    PaymentResponse,
    PlanCreateInput,
    Subscription,
    SubscriptionCreateInput,
    SubscriptionPlan,
    VerificationResult,
    VerifyPaymentInput,
    WebhookParseInput,
    WebhookVerifyInput,
    WebhookVerifyResult,
)
from stash_gateway.providers.capabilities import ProviderCapabilities, get_capabilities
from stash_gateway.webhooks.schemas import ProviderWebhookResult

PROVIDER_LABELS = {"ozow": "Ozow", "payfast": "Payfast", "paystack": "Paystack"}


class ProviderAdapter(ABC):
    """Per-provider implementation of the shared payment/webhook contract."""

    id: str

    @property
    def capabilities(self) -> ProviderCapabilities:
        return get_capabilities(self.id)

    @abstractmethod
    def create_payment(
        self, request: PaymentRequest, http: Optional[httpx.Client] = None
    ) -> PaymentResponse:
        """Build (and, where the provider requires it, submit) a signed payment request."""

    @abstractmethod
    def verify_webhook(self, data: WebhookVerifyInput) -> WebhookVerifyResult:
        """Check a notification's signature without raising on mismatch."""

    @abstractmethod
    def parse_webhook(self, data: WebhookParseInput) -> ProviderWebhookResult:
        """Verify a notification and map it to a canonical event."""

    def verify_payment(
        self, data: VerifyPaymentInput, http: Optional[httpx.Client] = None
    ) -> VerificationResult:
        raise UnsupportedCapabilityError(f"payment verification is not supported for {self.id}")

    def create_plan(
        self, data: PlanCreateInput, http: Optional[httpx.Client] = None
    ) -> SubscriptionPlan:
        raise UnsupportedCapabilityError(f"subscription plans are not supported for {self.id}")

    def create_subscription(
        self, data: SubscriptionCreateInput, http: Optional[httpx.Client] = None
    ) -> Subscription:
        raise UnsupportedCapabilityError(f"subscriptions are not supported for {self.id}")


# ── Shared helpers ──


def decode_body(raw_body: Union[bytes, str, None]) -> Optional[str]:
    """Return the body as text, or None when it is absent or empty."""
    if not raw_body:
        return None
    if isinstance(raw_body, bytes):
        return raw_body.decode("utf-8")
    return raw_body


def resolve_header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup; list values yield their first entry."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value
    return None


def merge_provider_data(
    target: dict[str, Any],
    provider_data: Optional[Mapping[str, Any]],
    *,
    provider: str,
    allowed: Optional[Collection[str]] = None,
    option_fields: Collection[str] = (),
    consumed: Collection[str] = (),
    computed: Collection[str] = (),
    convert: Callable[[Any], Any] = to_form_string,
) -> None:
    """Merge raw provider fields into ``target``, refusing ambiguous overlaps.

    ``option_fields`` are the fields already set from typed provider
    options; ``consumed`` fields were read from provider data while
    building the payload (fallbacks) and are not merged a second time.
    """
    if not provider_data:
        return

    label = PROVIDER_LABELS.get(provider, provider)
    for key, value in provider_data.items():
        if allowed is not None and key not in allowed:
            raise InvalidProviderDataError(f"Unsupported {label} field: {key}")
        if value is None:
            continue
        if key in computed:
            raise InvalidProviderDataError(f"provider_data cannot set computed field: {key}")
        if key in option_fields:
            raise InvalidProviderDataError(f"provider_data overlaps provider_options: {key}")
        if key in consumed:
            continue
        if key in target:
            raise InvalidProviderDataError(f"provider_data overlaps core fields: {key}")
        target[key] = convert(value)
