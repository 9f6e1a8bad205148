"""
Paystack hosted-checkout adapter.

Payments are initialized server-side with a JSON call; amounts travel as
integer minor units. Webhooks are authenticated by the
``x-paystack-signature`` header: HMAC-SHA512 of the raw, unparsed body,
keyed with the secret key, compared exactly.
"""

import hmac
import json
import logging
from typing import Any, Optional, Union
from urllib.parse import quote

import httpx

from stash_gateway.codec.amount import from_minor_units, parse_minor_units, to_minor_units
from stash_gateway.codec.hashing import hmac_sha512_hex
from stash_gateway.common.exceptions import InvalidPayloadError, ProviderRequestError
from stash_gateway.common.http import reason_phrase, send_json
from stash_gateway.common.schemas import (
    PaymentRequest,
    PaymentResponse,
    PaystackOptions,
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
from stash_gateway.providers.base import ProviderAdapter, merge_provider_data, resolve_header
from stash_gateway.providers.capabilities import (
    normalize_currency,
    require_customer_email,
    require_supported_currency,
    require_value,
)
from stash_gateway.webhooks.normalizer import map_paystack_event
from stash_gateway.webhooks.schemas import ProviderWebhookResult

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = "https://api.paystack.co"
SIGNATURE_HEADER = "x-paystack-signature"

PAYSTACK_STATUS_MAP = {
    "success": "paid",
    "failed": "failed",
    "abandoned": "pending",
}


def _request(
    method: str,
    path: str,
    secret_key: str,
    action: str,
    http: Optional[httpx.Client] = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """Call the Paystack API and return the envelope, raising on failure.

    Paystack wraps every response as ``{"status": bool, "message": str, "data": ...}``.
    """
    response, body = send_json(
        method,
        f"{PAYSTACK_BASE_URL}{path}",
        http,
        headers={"Authorization": f"Bearer {secret_key}", "Accept": "application/json"},
        **kwargs,
    )
    envelope = body if isinstance(body, dict) else {}
    if not response.is_success or not envelope.get("status"):
        message = envelope.get("message") or reason_phrase(response)
        raise ProviderRequestError(
            f"Paystack {action} failed: {message}", status_code=response.status_code, body=body
        )
    return envelope


def _data(envelope: dict[str, Any]) -> dict[str, Any]:
    data = envelope.get("data")
    return data if isinstance(data, dict) else {}


def resolve_paystack_amount(request: Union[PaymentRequest, PlanCreateInput]) -> int:
    """Amount in minor units, honouring the caller's declared unit."""
    if request.amount_unit == "minor":
        return parse_minor_units(request.amount)
    return to_minor_units(request.amount, request.currency)


def build_paystack_payload(request: PaymentRequest) -> dict[str, Any]:
    """Assemble the ``/transaction/initialize`` JSON body."""
    email = require_customer_email("paystack", request.customer.email if request.customer else None)
    currency = normalize_currency(request.currency)
    require_supported_currency("paystack", currency)
    options = request.provider_options if isinstance(request.provider_options, PaystackOptions) else None

    payload: dict[str, Any] = {
        "email": email,
        "amount": resolve_paystack_amount(request),
        "currency": currency,
        "reference": request.reference,
    }
    if request.urls is not None and request.urls.return_url:
        payload["callback_url"] = request.urls.return_url

    option_fields = set()
    if options is not None and options.channels:
        payload["channels"] = list(options.channels)
        option_fields.add("channels")

    if request.metadata:
        payload["metadata"] = dict(request.metadata)

    merge_provider_data(
        payload,
        request.provider_data,
        provider="paystack",
        option_fields=option_fields,
        convert=lambda value: value,
    )
    return payload


def make_paystack_payment(request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
    """Initialize a Paystack transaction and return its hosted checkout URL."""
    secret_key = require_value(request.secrets.paystack_secret_key, "secrets.paystack_secret_key")
    payload = build_paystack_payload(request)

    envelope = _request("POST", "/transaction/initialize", secret_key, "initialize", http, json=payload)
    data = _data(envelope)
    authorization_url = data.get("authorization_url")
    reference = data.get("reference")
    if not authorization_url or not reference:
        raise ProviderRequestError("Paystack response missing authorization_url or reference", body=envelope)

    logger.info("Paystack transaction initialized for %s", reference)
    return PaymentResponse(
        provider="paystack",
        redirect_url=authorization_url,
        method="GET",
        payment_request_id=str(reference),
        raw=envelope,
    )


def verify_paystack_signature(
    raw_body: Union[bytes, str],
    signature: Optional[str],
    secret_key: str,
) -> bool:
    """Exact, case-sensitive comparison of the HMAC-SHA512 hex digest."""
    if not signature or not secret_key:
        return False
    computed = hmac_sha512_hex(secret_key, raw_body)
    return hmac.compare_digest(computed.encode("utf-8"), signature.encode("utf-8"))


def verify_paystack_webhook(data: WebhookVerifyInput) -> WebhookVerifyResult:
    secret_key = data.secrets.paystack_secret_key
    if not secret_key:
        return WebhookVerifyResult(provider="paystack", is_valid=False, reason="missing_secret_key")
    if not data.raw_body:
        return WebhookVerifyResult(provider="paystack", is_valid=False, reason="raw_body_required")

    signature = resolve_header(data.headers, SIGNATURE_HEADER)
    if not signature:
        return WebhookVerifyResult(provider="paystack", is_valid=False, reason="missing_signature")

    if verify_paystack_signature(data.raw_body, signature, secret_key):
        return WebhookVerifyResult(provider="paystack", is_valid=True)
    return WebhookVerifyResult(provider="paystack", is_valid=False, reason="invalid_signature")


def verify_paystack_payment(
    reference: str,
    secret_key: str,
    http: Optional[httpx.Client] = None,
) -> VerificationResult:
    envelope = _request("GET", f"/transaction/verify/{quote(reference, safe='')}", secret_key, "verify", http)
    data = _data(envelope)
    status = str(data.get("status") or "").lower()
    provider_ref = data.get("id")
    return VerificationResult(
        provider="paystack",
        status=PAYSTACK_STATUS_MAP.get(status, "unknown"),
        provider_ref=str(provider_ref) if provider_ref else None,
        raw=envelope,
    )


def create_paystack_plan(data: PlanCreateInput, http: Optional[httpx.Client] = None) -> SubscriptionPlan:
    secret_key = require_value(data.secrets.paystack_secret_key, "secrets.paystack_secret_key")
    currency = normalize_currency(data.currency)
    payload: dict[str, Any] = {
        "name": data.name,
        "amount": resolve_paystack_amount(data),
        "interval": data.interval,
        "currency": currency,
    }
    if data.description:
        payload["description"] = data.description

    envelope = _request("POST", "/plan", secret_key, "plan create", http, json=payload)
    plan = _data(envelope)
    plan_code = plan.get("plan_code")
    if not plan_code:
        raise ProviderRequestError("Paystack response missing plan_code", body=envelope)

    plan_currency = plan.get("currency") or currency
    return SubscriptionPlan(
        provider="paystack",
        plan_code=str(plan_code),
        name=str(plan.get("name") or data.name),
        amount=from_minor_units(plan.get("amount", payload["amount"]), plan_currency),
        interval=str(plan.get("interval") or data.interval),
        currency=plan_currency,
        raw=envelope,
    )


def create_paystack_subscription(
    data: SubscriptionCreateInput, http: Optional[httpx.Client] = None
) -> Subscription:
    secret_key = require_value(data.secrets.paystack_secret_key, "secrets.paystack_secret_key")
    payload = {"customer": require_value(data.customer, "customer"), "plan": require_value(data.plan, "plan")}
    if data.authorization:
        payload["authorization"] = data.authorization
    if data.start_date:
        payload["start_date"] = data.start_date

    envelope = _request("POST", "/subscription", secret_key, "subscription create", http, json=payload)
    subscription = _data(envelope)
    subscription_code = subscription.get("subscription_code")
    if not subscription_code:
        raise ProviderRequestError("Paystack response missing subscription_code", body=envelope)

    return Subscription(
        provider="paystack",
        subscription_code=str(subscription_code),
        status=subscription.get("status"),
        email_token=subscription.get("email_token"),
        raw=envelope,
    )


def parse_paystack_body(raw_body: Union[bytes, str]) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidPayloadError("Paystack webhook body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Paystack webhook body must be a JSON object")
    return payload


class PaystackAdapter(ProviderAdapter):
    id = "paystack"

    def create_payment(self, request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
        return make_paystack_payment(request, http)

    def verify_webhook(self, data: WebhookVerifyInput) -> WebhookVerifyResult:
        return verify_paystack_webhook(data)

    def parse_webhook(self, data: WebhookParseInput) -> ProviderWebhookResult:
        signature = resolve_header(data.headers, SIGNATURE_HEADER)
        is_valid = verify_paystack_signature(data.raw_body, signature, data.secrets.paystack_secret_key or "")
        payload = parse_paystack_body(data.raw_body)
        return ProviderWebhookResult(is_valid=is_valid, event=map_paystack_event(payload), raw=payload)

    def verify_payment(self, data: VerifyPaymentInput, http: Optional[httpx.Client] = None) -> VerificationResult:
        secret_key = require_value(data.secrets.paystack_secret_key, "secrets.paystack_secret_key")
        return verify_paystack_payment(data.reference, secret_key, http)

    def create_plan(self, data: PlanCreateInput, http: Optional[httpx.Client] = None) -> SubscriptionPlan:
        return create_paystack_plan(data, http)

    def create_subscription(
        self, data: SubscriptionCreateInput, http: Optional[httpx.Client] = None
    ) -> Subscription:
        return create_paystack_subscription(data, http)
