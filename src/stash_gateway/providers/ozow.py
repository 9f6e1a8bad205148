"""
Ozow bank-redirect adapter.

Outgoing requests carry a ``HashCheck``: the values (not keys) of a fixed
field order are concatenated, the private key appended, the whole string
lowercased and SHA-512 hashed. Notifications use a different, shorter
field order but the same construction.

The request is POSTed as JSON to Ozow, which answers with a ``PaymentUrl``
the customer is redirected to with a GET.
"""

import hmac
import logging
from typing import Any, Mapping, Optional

import httpx

from stash_gateway.codec.amount import format_major_amount, resolve_major_amount
from stash_gateway.codec.form import pairs_to_dict, parse_form_body, parse_form_encoded, to_form_string
from stash_gateway.codec.hashing import sha512_hex
from stash_gateway.common.exceptions import (
    InvalidPayloadError,
    MissingRequiredFieldError,
    ProviderRequestError,
)
from stash_gateway.common.http import reason_phrase, send_json
from stash_gateway.common.schemas import (
    OzowOptions,
    OzowTransactionQuery,
    OzowTransactionResult,
    PaymentRequest,
    PaymentResponse,
    ProviderSecrets,
    VerificationResult,
    VerifyPaymentInput,
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
from stash_gateway.webhooks.normalizer import map_ozow_event
from stash_gateway.webhooks.schemas import ProviderWebhookResult

logger = logging.getLogger(__name__)

# Canonical request field order; also the provider-data allow-list.
OZOW_REQUEST_ORDER = (
    "SiteCode",
    "CountryCode",
    "CurrencyCode",
    "Amount",
    "TransactionReference",
    "BankReference",
    "Optional1",
    "Optional2",
    "Optional3",
    "Optional4",
    "Optional5",
    "Customer",
    "CancelUrl",
    "ErrorUrl",
    "SuccessUrl",
    "NotifyUrl",
    "IsTest",
    "SelectedBankId",
    "BankAccountNumber",
    "BankAccountBranchCode",
    "BankAccountName",
    "BankName",
    "ExpiryDateUtc",
    "AllowVariableAmount",
    "VariableAmountMin",
    "VariableAmountMax",
    "CustomerIdentityNumber",
    "CustomerCellphoneNumber",
    "HashCheck",
    "Token",
    "GenerateShortUrl",
)

# Canonical notification field order.
OZOW_RESPONSE_ORDER = (
    "SiteCode",
    "TransactionId",
    "TransactionReference",
    "Amount",
    "Status",
    "Optional1",
    "Optional2",
    "Optional3",
    "Optional4",
    "Optional5",
    "CurrencyCode",
    "IsTest",
    "StatusMessage",
)

OZOW_ALLOWED_FIELDS = frozenset(OZOW_REQUEST_ORDER)
OZOW_HASH_EXCLUSIONS = frozenset({"HashCheck", "Token", "CustomerCellphoneNumber", "GenerateShortUrl"})

OZOW_OPTION_FIELDS = {
    "selected_bank_id": "SelectedBankId",
    "customer_identity_number": "CustomerIdentityNumber",
    "allow_variable_amount": "AllowVariableAmount",
    "variable_amount_min": "VariableAmountMin",
    "variable_amount_max": "VariableAmountMax",
}

OZOW_API_BASE = {
    "live": "https://api.ozow.com",
    "sandbox": "https://stagingapi.ozow.com",
}

OZOW_COUNTRY_CODE = "ZA"
MAX_OPTIONAL_FIELDS = 5


def _api_base(test_mode: bool) -> str:
    return OZOW_API_BASE["sandbox" if test_mode else "live"]


def _apply_options(payload: dict[str, str], options: Optional[OzowOptions]) -> set[str]:
    """Write typed options into the payload; return the fields they set."""
    if options is None:
        return set()

    if options.allow_variable_amount:
        if options.variable_amount_min is None:
            raise MissingRequiredFieldError("provider_options.variable_amount_min")
        if options.variable_amount_max is None:
            raise MissingRequiredFieldError("provider_options.variable_amount_max")

    applied = set()
    for attr, field in OZOW_OPTION_FIELDS.items():
        value = getattr(options, attr)
        if value is None or value == "":
            continue
        if attr.startswith("variable_amount_") and not options.allow_variable_amount:
            continue
        payload[field] = to_form_string(value)
        applied.add(field)
    return applied


def build_ozow_payload(request: PaymentRequest) -> dict[str, str]:
    """Assemble the unsigned Ozow request fields."""
    site_code = require_value(request.secrets.site_code, "secrets.site_code")
    currency = normalize_currency(request.currency)
    require_supported_currency("ozow", currency)

    provider_data = request.provider_data or {}
    amount = resolve_major_amount(request.amount, request.amount_unit, currency)

    payload: dict[str, str] = {
        "SiteCode": site_code,
        "CountryCode": OZOW_COUNTRY_CODE,
        "CurrencyCode": currency,
        "Amount": format_major_amount(amount),
        "TransactionReference": request.reference,
    }

    bank_reference = provider_data.get("BankReference")
    if bank_reference is None:
        bank_reference = request.description if request.description is not None else request.reference
    payload["BankReference"] = to_form_string(bank_reference)

    if request.metadata:
        for index, value in enumerate(list(request.metadata.values())[:MAX_OPTIONAL_FIELDS], start=1):
            payload[f"Optional{index}"] = value

    customer = request.customer
    if customer is not None:
        if customer.full_name:
            payload["Customer"] = customer.full_name
        if customer.phone:
            payload["CustomerCellphoneNumber"] = customer.phone

    urls = request.urls
    if urls is not None:
        if urls.cancel_url:
            payload["CancelUrl"] = urls.cancel_url
        if urls.error_url:
            payload["ErrorUrl"] = urls.error_url
        if urls.return_url:
            payload["SuccessUrl"] = urls.return_url
        if urls.notify_url:
            payload["NotifyUrl"] = urls.notify_url

    payload["IsTest"] = "true" if request.test_mode else "false"

    options = request.provider_options if isinstance(request.provider_options, OzowOptions) else None
    option_fields = _apply_options(payload, options)

    merge_provider_data(
        payload,
        request.provider_data,
        provider="ozow",
        allowed=OZOW_ALLOWED_FIELDS,
        option_fields=option_fields,
        consumed=("BankReference",),
        computed=("HashCheck",),
    )
    return payload


def build_ozow_hash_check(payload: Mapping[str, Any], private_key: str) -> str:
    """Compute the request ``HashCheck`` over the canonical field order."""
    parts = []
    for key in OZOW_REQUEST_ORDER:
        if key in OZOW_HASH_EXCLUSIONS:
            continue
        value = payload.get(key)
        if value is None or value == "":
            continue
        value = to_form_string(value)
        if key == "AllowVariableAmount" and value.lower() == "false":
            continue
        parts.append(value)

    return sha512_hex(f"{''.join(parts)}{private_key}".lower())


def build_ozow_response_hash(payload: Mapping[str, Any], private_key: str) -> str:
    """Compute the notification hash over the response field order."""
    parts = [to_form_string(payload.get(key) or "") for key in OZOW_RESPONSE_ORDER]
    return sha512_hex(f"{''.join(parts)}{private_key}".lower())


def _strip_hash(value: str) -> bytes:
    # Ozow may render the hash as a number-like string with leading zeros dropped.
    return value.lstrip("0").lower().encode("utf-8")


def verify_ozow_webhook(data: WebhookVerifyInput) -> WebhookVerifyResult:
    """Recompute and compare the notification ``HashCheck``."""
    private_key = data.secrets.private_key
    if not private_key:
        return WebhookVerifyResult(provider="ozow", is_valid=False, reason="missing_private_key")

    try:
        raw = decode_body(data.raw_body)
    except UnicodeDecodeError:
        return WebhookVerifyResult(provider="ozow", is_valid=False, reason="invalid_encoding")
    if raw is not None:
        payload = pairs_to_dict(parse_form_encoded(raw))
    elif data.payload is not None:
        payload = {key: to_form_string(value) for key, value in data.payload.items() if value is not None}
    else:
        return WebhookVerifyResult(provider="ozow", is_valid=False, reason="missing_payload")

    received = payload.get("HashCheck") or payload.get("hashCheck")
    if not received:
        return WebhookVerifyResult(provider="ozow", is_valid=False, reason="missing_hash_check")

    computed = build_ozow_response_hash(payload, private_key)
    if hmac.compare_digest(_strip_hash(received), _strip_hash(computed)):
        return WebhookVerifyResult(provider="ozow", is_valid=True)
    return WebhookVerifyResult(provider="ozow", is_valid=False, reason="invalid_signature")


def make_ozow_payment(request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
    """Sign and submit an Ozow payment request; return the redirect URL."""
    api_key = require_value(request.secrets.api_key, "secrets.api_key")
    private_key = require_value(request.secrets.private_key, "secrets.private_key")

    payload = build_ozow_payload(request)
    payload["HashCheck"] = build_ozow_hash_check(payload, private_key)

    response, body = send_json(
        "POST",
        f"{_api_base(request.test_mode)}/PostPaymentRequest",
        http,
        json=payload,
        headers={"ApiKey": api_key, "Accept": "application/json"},
    )
    body_map = body if isinstance(body, dict) else {}

    if not response.is_success:
        message = body_map.get("ErrorMessage") or body_map.get("errorMessage") or reason_phrase(response)
        raise ProviderRequestError(
            f"Ozow payment request failed: {message}", status_code=response.status_code, body=body
        )

    payment_url = body_map.get("PaymentUrl") or body_map.get("paymentUrl")
    if not payment_url:
        raise ProviderRequestError(
            "Ozow payment response missing PaymentUrl", status_code=response.status_code, body=body
        )

    request_id = body_map.get("PaymentRequestId") or body_map.get("paymentRequestId")
    logger.info("Ozow payment request created for %s", request.reference)
    return PaymentResponse(
        provider="ozow",
        redirect_url=payment_url,
        method="GET",
        payment_request_id=str(request_id) if request_id else None,
        raw=body,
    )


# ── Transaction lookups ──


def _get_transactions(
    path: str,
    query: OzowTransactionQuery,
    lookup: dict[str, str],
    http: Optional[httpx.Client],
) -> OzowTransactionResult:
    params = {"siteCode": require_value(query.site_code, "site_code"), **lookup}
    if query.test_mode:
        params["isTest"] = "true"

    response, body = send_json(
        "GET",
        f"{_api_base(query.test_mode)}/{path}",
        http,
        params=params,
        headers={"ApiKey": require_value(query.api_key, "api_key"), "Accept": "application/json"},
    )
    if not response.is_success:
        raise ProviderRequestError(
            f"Ozow transaction lookup failed: {reason_phrase(response)}",
            status_code=response.status_code,
            body=body,
        )

    if isinstance(body, list):
        transactions = [item for item in body if isinstance(item, dict)]
    elif isinstance(body, dict):
        transactions = [body]
    else:
        transactions = []
    return OzowTransactionResult(transactions=transactions, raw=body)


def get_ozow_transaction_by_reference(
    query: OzowTransactionQuery, http: Optional[httpx.Client] = None
) -> OzowTransactionResult:
    reference = require_value(query.transaction_reference, "transaction_reference")
    return _get_transactions("GetTransactionByReference", query, {"transactionReference": reference}, http)


def get_ozow_transaction(
    query: OzowTransactionQuery, http: Optional[httpx.Client] = None
) -> OzowTransactionResult:
    transaction_id = require_value(query.transaction_id, "transaction_id")
    return _get_transactions("GetTransaction", query, {"transactionId": transaction_id}, http)


def map_ozow_status(status: Optional[str]) -> str:
    normalized = str(status or "").lower()
    if normalized == "complete":
        return "paid"
    if normalized in ("cancelled", "error"):
        return "failed"
    return "pending" if normalized else "unknown"


class OzowAdapter(ProviderAdapter):
    id = "ozow"

    def create_payment(self, request: PaymentRequest, http: Optional[httpx.Client] = None) -> PaymentResponse:
        return make_ozow_payment(request, http)

    def verify_webhook(self, data: WebhookVerifyInput) -> WebhookVerifyResult:
        return verify_ozow_webhook(data)

    def parse_webhook(self, data: WebhookParseInput) -> ProviderWebhookResult:
        verified = verify_ozow_webhook(
            WebhookVerifyInput(
                provider="ozow",
                raw_body=data.raw_body,
                headers=data.headers,
                secrets=ProviderSecrets(private_key=data.secrets.private_key),
            )
        )
        try:
            payload = pairs_to_dict(parse_form_body(data.raw_body))
        except UnicodeDecodeError as exc:
            raise InvalidPayloadError("Ozow webhook body is not valid UTF-8") from exc
        return ProviderWebhookResult(is_valid=verified.is_valid, event=map_ozow_event(payload), raw=payload)

    def verify_payment(self, data: VerifyPaymentInput, http: Optional[httpx.Client] = None) -> VerificationResult:
        site_code = require_value(data.secrets.site_code, "secrets.site_code")
        api_key = require_value(data.secrets.api_key, "secrets.api_key")

        result = get_ozow_transaction_by_reference(
            OzowTransactionQuery(
                site_code=site_code,
                api_key=api_key,
                transaction_reference=data.reference,
                test_mode=data.test_mode,
            ),
            http,
        )
        transaction = result.transactions[0] if result.transactions else {}
        provider_ref = transaction.get("TransactionId")
        return VerificationResult(
            provider="ozow",
            status=map_ozow_status(transaction.get("Status")),
            provider_ref=str(provider_ref) if provider_ref else None,
            raw=result.raw,
        )
