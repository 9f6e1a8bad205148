"""
Payfast card/EFT form adapter.

The merchant's page auto-submits a form to Payfast; nothing is sent from
the server. The form carries a ``signature``: MD5 over ``key=value``
pairs in Payfast's fixed field order, values form-encoded, empty values
skipped, with ``&passphrase=...`` appended when one is configured.

ITN (instant transaction notification) bodies are signed over the pairs
in the order they were received, up to the ``signature`` field.
"""

import hmac
import logging
import socket
from typing import Callable, Iterable, Mapping, Optional

import httpx

from stash_gateway.codec.amount import format_major_amount, resolve_major_amount
from stash_gateway.codec.form import (
    FormPair,
    encode_form_value,
    pairs_to_dict,
    parse_form_body,
    to_form_string,
)
from stash_gateway.codec.hashing import md5_hex
from stash_gateway.common.config import get_settings
from stash_gateway.common.exceptions import InvalidPayloadError
from stash_gateway.common.http import open_client
from stash_gateway.common.schemas import (
    PayfastOptions,
    PayfastValidationInput,
    PayfastValidationResult,
    PaymentRequest,
    PaymentResponse,
    ProviderSecrets,
    WebhookParseInput,
    WebhookVerifyInput,
    WebhookVerifyResult,
)
from stash_gateway.providers.base import ProviderAdapter, decode_body, merge_provider_data
from stash_gateway.providers.capabilities import (
    normalize_currency,
    require_supported_currency,
    require_value,
)
from stash_gateway.webhooks.normalizer import map_payfast_event
from stash_gateway.webhooks.schemas import ProviderWebhookResult

logger = logging.getLogger(__name__)

PAYFAST_ORDER = (
    "merchant_id",
    "merchant_key",
    "return_url",
    "cancel_url",
    "notify_url",
    "fica_id_number",
    "name_first",
    "name_last",
    "email_address",
    "cell_number",
    "m_payment_id",
    "amount",
    "item_name",
    "item_description",
    "custom_int1",
    "custom_int2",
    "custom_int3",
    "custom_int4",
    "custom_int5",
    "custom_str1",
    "custom_str2",
    "custom_str3",
    "custom_str4",
    "custom_str5",
    "email_confirmation",
    "confirmation_address",
    "payment_method",
    "subscription_type",
    "billing_date",
    "recurring_amount",
    "frequency",
    "cycles",
    "subscription_notify_email",
    "subscription_notify_webhook",
    "subscription_notify_buyer",
    "setup",
    "token",
    "return",
)

PAYFAST_ALLOWED_FIELDS = frozenset(PAYFAST_ORDER) | {"signature"}
PAYFAST_SIGNATURE_EXCLUSIONS = frozenset({"signature", "setup"})

# Option attribute -> form field.
PAYFAST_OPTION_FIELDS = {
    "payment_method": "payment_method",
    "email_confirmation": "email_confirmation",
    "confirmation_address": "confirmation_address",
    "m_payment_id": "m_payment_id",
    "item_name": "item_name",
    "item_description": "item_description",
}

PAYFAST_HOSTS = {
    "live": "https://www.payfast.co.za",
    "sandbox": "https://sandbox.payfast.co.za",
}

# Hosts Payfast sends ITNs from.
PAYFAST_VALID_HOSTS = (
    "www.payfast.co.za",
    "sandbox.payfast.co.za",
    "w1w.payfast.co.za",
    "w2w.payfast.co.za",
)

MAX_CUSTOM_FIELDS = 5


def _host(test_mode: bool) -> str:
    return PAYFAST_HOSTS["sandbox" if test_mode else "live"]


def _option_value(options: PayfastOptions, attr: str) -> Optional[str]:
    value = getattr(options, attr)
    if value is None or value == "":
        return None
    if attr == "email_confirmation":
        return "1" if value else "0"
    return str(value)


def build_payfast_fields(request: PaymentRequest) -> dict[str, str]:
    """Assemble the unsigned Payfast form fields."""
    merchant_id = require_value(request.secrets.merchant_id, "secrets.merchant_id")
    merchant_key = require_value(request.secrets.merchant_key, "secrets.merchant_key")
    currency = normalize_currency(request.currency)
    require_supported_currency("payfast", currency)

    provider_data = request.provider_data or {}
    options = request.provider_options if isinstance(request.provider_options, PayfastOptions) else None

    fields: dict[str, str] = {"merchant_id": merchant_id, "merchant_key": merchant_key}

    urls = request.urls
    if urls is not None:
        if urls.return_url:
            fields["return_url"] = urls.return_url
        if urls.cancel_url:
            fields["cancel_url"] = urls.cancel_url
        if urls.notify_url:
            fields["notify_url"] = urls.notify_url

    customer = request.customer
    if customer is not None:
        if customer.first_name:
            fields["name_first"] = customer.first_name
        if customer.last_name:
            fields["name_last"] = customer.last_name
        if customer.email:
            fields["email_address"] = customer.email
        if customer.phone:
            fields["cell_number"] = customer.phone

    fields["m_payment_id"] = request.reference
    amount = resolve_major_amount(request.amount, request.amount_unit, currency)
    fields["amount"] = format_major_amount(amount)

    item_name = provider_data.get("item_name")
    if item_name is not None:
        fields["item_name"] = to_form_string(item_name)
    else:
        fields["item_name"] = request.description or request.reference

    item_description = provider_data.get("item_description")
    if item_description is not None:
        fields["item_description"] = to_form_string(item_description)

    if request.metadata:
        for index, value in enumerate(list(request.metadata.values())[:MAX_CUSTOM_FIELDS], start=1):
            fields[f"custom_str{index}"] = value

    option_fields = set()
    if options is not None:
        for attr, field in PAYFAST_OPTION_FIELDS.items():
            value = _option_value(options, attr)
            if value is None:
                continue
            fields[field] = value
            option_fields.add(field)

    merge_provider_data(
        fields,
        request.provider_data,
        provider="payfast",
        allowed=PAYFAST_ALLOWED_FIELDS,
        option_fields=option_fields,
        consumed=("item_name", "item_description"),
        computed=("signature",),
    )
    return fields


def build_payfast_signature(fields: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    """MD5 signature over the fixed field order."""
    pairs = []
    for key in PAYFAST_ORDER:
        if key in PAYFAST_SIGNATURE_EXCLUSIONS:
            continue
        value = fields.get(key)
        if value is None or value == "":
            continue
        pairs.append(f"{key}={encode_form_value(str(value).strip())}")

    param_string = "&".join(pairs)
    if passphrase:
        param_string += f"&passphrase={encode_form_value(passphrase.strip())}"
    return md5_hex(param_string)


def make_payfast_payment(request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
    """Build the signed form the customer's browser must POST to Payfast."""
    fields = build_payfast_fields(request)
    fields["signature"] = build_payfast_signature(fields, request.secrets.passphrase)

    return PaymentResponse(
        provider="payfast",
        redirect_url=f"{_host(request.test_mode)}/eng/process",
        method="POST",
        form_fields=fields,
    )


def itn_param_string(pairs: Iterable[FormPair]) -> str:
    """Rebuild the signed ITN parameter string: received order, up to ``signature``."""
    params = []
    for key, value in pairs:
        if key == "signature":
            break
        params.append(f"{key}={encode_form_value(value)}")
    return "&".join(params)


def verify_payfast_webhook(data: WebhookVerifyInput) -> WebhookVerifyResult:
    """Check an ITN signature against the raw received body."""
    try:
        raw = decode_body(data.raw_body)
    except UnicodeDecodeError:
        return WebhookVerifyResult(provider="payfast", is_valid=False, reason="invalid_encoding")
    if raw is None:
        return WebhookVerifyResult(provider="payfast", is_valid=False, reason="raw_body_required")

    pairs = parse_form_body(raw)
    signature = pairs_to_dict(pairs).get("signature")
    if not signature:
        return WebhookVerifyResult(provider="payfast", is_valid=False, reason="missing_signature")

    param_string = itn_param_string(pairs)
    if data.secrets.passphrase:
        param_string += f"&passphrase={encode_form_value(data.secrets.passphrase)}"

    computed = md5_hex(param_string)
    if hmac.compare_digest(signature.lower().encode("utf-8"), computed.encode("utf-8")):
        return WebhookVerifyResult(provider="payfast", is_valid=True)
    return WebhookVerifyResult(provider="payfast", is_valid=False, reason="invalid_signature")


# ── ITN hardening ──


def resolve_payfast_ips(hosts: Iterable[str] = PAYFAST_VALID_HOSTS) -> set[str]:
    """Resolve Payfast's published ITN hosts to their current IP addresses."""
    addresses: set[str] = set()
    for host in hosts:
        try:
            _, _, host_ips = socket.gethostbyname_ex(host)
        except OSError as exc:
            logger.warning("Could not resolve Payfast host %s: %s", host, exc)
            continue
        addresses.update(host_ips)
    return addresses


def confirm_with_payfast(
    param_string: str,
    mode: str = "live",
    http: Optional[httpx.Client] = None,
) -> bool:
    """Post the ITN parameter string back to Payfast; valid only on ``VALID``."""
    with open_client(http) as client:
        response = client.post(
            f"{PAYFAST_HOSTS[mode]}/eng/query/validate",
            content=param_string,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    if not response.is_success:
        logger.warning("Payfast server validation returned HTTP %s", response.status_code)
        return False
    return response.text.strip() == "VALID"


def validate_payfast_webhook(
    data: PayfastValidationInput,
    http: Optional[httpx.Client] = None,
    resolver: Callable[[], set[str]] = resolve_payfast_ips,
) -> PayfastValidationResult:
    """Run the enabled ITN checks in order: signature, source IP, server.

    Stops at the first failing check and names it in ``reason``.
    """
    checks: dict[str, bool] = {}

    if data.validate_signature:
        verified = verify_payfast_webhook(
            WebhookVerifyInput(
                provider="payfast",
                raw_body=data.raw_body,
                secrets=ProviderSecrets(passphrase=data.passphrase),
            )
        )
        checks["signature"] = verified.is_valid
        if not verified.is_valid:
            return PayfastValidationResult(is_valid=False, reason=verified.reason, checks=checks)

    if data.validate_ip:
        if not data.source_ip:
            checks["ip"] = False
            return PayfastValidationResult(is_valid=False, reason="missing_source_ip", checks=checks)
        allowed = data.allowed_ips or get_settings().payfast_allowed_ips or resolver()
        checks["ip"] = data.source_ip in set(allowed)
        if not checks["ip"]:
            logger.warning("Rejected Payfast ITN from unexpected source %s", data.source_ip)
            return PayfastValidationResult(is_valid=False, reason="invalid_source_ip", checks=checks)

    if data.validate_server:
        try:
            pairs = parse_form_body(data.raw_body)
        except UnicodeDecodeError:
            checks["server"] = False
            return PayfastValidationResult(is_valid=False, reason="invalid_encoding", checks=checks)
        param_string = itn_param_string(pairs)
        checks["server"] = confirm_with_payfast(param_string, data.mode, http)
        if not checks["server"]:
            return PayfastValidationResult(is_valid=False, reason="server_validation_failed", checks=checks)

    return PayfastValidationResult(is_valid=True, checks=checks)


class PayfastAdapter(ProviderAdapter):
    id = "payfast"

    def create_payment(self, request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
        return make_payfast_payment(request, http)

    def verify_webhook(self, data: WebhookVerifyInput) -> WebhookVerifyResult:
        return verify_payfast_webhook(data)

    def parse_webhook(self, data: WebhookParseInput) -> ProviderWebhookResult:
        verified = verify_payfast_webhook(
            WebhookVerifyInput(
                provider="payfast",
                raw_body=data.raw_body,
                headers=data.headers,
                secrets=ProviderSecrets(passphrase=data.secrets.passphrase),
            )
        )
        try:
            payload = pairs_to_dict(parse_form_body(data.raw_body))
        except UnicodeDecodeError as exc:
            raise InvalidPayloadError("Payfast ITN body is not valid UTF-8") from exc
        return ProviderWebhookResult(is_valid=verified.is_valid, event=map_payfast_event(payload), raw=payload)
