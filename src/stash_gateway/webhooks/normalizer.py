"""
Map provider notification payloads onto the canonical event taxonomy.

Payfast and Ozow deliver form-encoded bodies with flat string fields;
Paystack delivers JSON with an ``event`` name and a nested ``data`` object
whose amounts are in minor units. Every mapper emits major-unit amounts.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from stash_gateway.codec.amount import from_minor_units, parse_major_units
from stash_gateway.common.exceptions import UnsupportedProviderError
from stash_gateway.webhooks.schemas import (
    PaymentEvent,
    PaymentEventData,
    SubscriptionEvent,
    SubscriptionEventData,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

PAYSTACK_SUBSCRIPTION_EVENTS: dict[str, str] = {
    "subscription.create": "subscription.created",
    "subscription.disable": "subscription.disabled",
    "subscription.not_renew": "subscription.not_renewing",
    "invoice.create": "invoice.created",
    "invoice.update": "invoice.updated",
    "invoice.payment_failed": "invoice.payment_failed",
}


def map_payfast_event(payload: Mapping[str, str]) -> PaymentEvent:
    status = (payload.get("payment_status") or "").upper()
    if status == "COMPLETE":
        event_type = "payment.completed"
    elif status == "CANCELLED":
        event_type = "payment.cancelled"
    else:
        event_type = "payment.failed"

    amount_gross = payload.get("amount_gross")
    return PaymentEvent(
        type=event_type,
        data=PaymentEventData(
            provider="payfast",
            reference=payload.get("m_payment_id") or "",
            provider_ref=payload.get("pf_payment_id"),
            amount=parse_major_units(amount_gross) if amount_gross else None,
            # Payfast only settles in rand and does not echo a currency.
            currency="ZAR" if amount_gross else None,
            raw=dict(payload),
        ),
    )


def map_ozow_event(payload: Mapping[str, str]) -> PaymentEvent:
    status = (payload.get("Status") or "").lower()
    if status == "complete":
        event_type = "payment.completed"
    elif status == "cancelled":
        event_type = "payment.cancelled"
    else:
        event_type = "payment.failed"

    amount = payload.get("Amount")
    return PaymentEvent(
        type=event_type,
        data=PaymentEventData(
            provider="ozow",
            reference=payload.get("TransactionReference") or "",
            provider_ref=payload.get("TransactionId"),
            amount=parse_major_units(amount) if amount else None,
            currency=payload.get("CurrencyCode"),
            raw=dict(payload),
        ),
    )


def _nested_code(data: Mapping[str, Any], parent: str, key: str) -> Optional[str]:
    """Read ``data[parent][key]``, falling back to a flat ``data[key]``."""
    nested = data.get(parent)
    if isinstance(nested, Mapping) and nested.get(key) is not None:
        return str(nested[key])
    value = data.get(key)
    return str(value) if value is not None else None


def map_paystack_event(payload: Mapping[str, Any]) -> WebhookEvent:
    event_name = str(payload.get("event") or "").lower()
    data = payload.get("data")
    if not isinstance(data, Mapping):
        data = {}

    currency = str(data["currency"]) if data.get("currency") else None
    amount_raw = data.get("amount")
    amount = from_minor_units(amount_raw, currency) if amount_raw is not None else None

    if event_name in PAYSTACK_SUBSCRIPTION_EVENTS:
        return SubscriptionEvent(
            type=PAYSTACK_SUBSCRIPTION_EVENTS[event_name],
            data=SubscriptionEventData(
                provider="paystack",
                subscription_code=_nested_code(data, "subscription", "subscription_code"),
                customer_code=_nested_code(data, "customer", "customer_code"),
                plan_code=_nested_code(data, "plan", "plan_code"),
                invoice_code=_nested_code(data, "invoice", "invoice_code"),
                status=str(data["status"]) if data.get("status") is not None else None,
                amount=amount,
                currency=currency,
                raw=dict(payload),
            ),
        )

    if event_name != "charge.success":
        logger.debug("Mapping Paystack event %r to payment.failed", event_name)

    provider_ref = data.get("id")
    return PaymentEvent(
        type="payment.completed" if event_name == "charge.success" else "payment.failed",
        data=PaymentEventData(
            provider="paystack",
            reference=str(data.get("reference") or ""),
            provider_ref=str(provider_ref) if provider_ref else None,
            amount=amount,
            currency=currency,
            raw=dict(payload),
        ),
    )


EVENT_MAPPERS: dict[str, Callable[[Mapping[str, Any]], WebhookEvent]] = {
    "ozow": map_ozow_event,
    "payfast": map_payfast_event,
    "paystack": map_paystack_event,
}


def normalize_event(provider: str, payload: Mapping[str, Any]) -> WebhookEvent:
    """Dispatch a decoded notification payload to its provider's mapper."""
    mapper = EVENT_MAPPERS.get(provider)
    if mapper is None:
        raise UnsupportedProviderError(provider, EVENT_MAPPERS)
    return mapper(payload)
