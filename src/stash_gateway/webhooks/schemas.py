"""Pydantic schemas for canonical webhook events."""

from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from stash_gateway.common.schemas import PaymentProvider

PaymentEventType = Literal["payment.completed", "payment.failed", "payment.cancelled"]
SubscriptionEventType = Literal[
    "subscription.created",
    "subscription.disabled",
    "subscription.not_renewing",
    "invoice.created",
    "invoice.updated",
    "invoice.payment_failed",
]


class PaymentEventData(BaseModel):
    provider: PaymentProvider
    reference: str = ""
    provider_ref: Optional[str] = None
    amount: Optional[Decimal] = None  # always major units
    currency: Optional[str] = None
    raw: Any = None


class PaymentEvent(BaseModel):
    type: PaymentEventType
    data: PaymentEventData


class SubscriptionEventData(BaseModel):
    provider: PaymentProvider
    subscription_code: Optional[str] = None
    customer_code: Optional[str] = None
    plan_code: Optional[str] = None
    invoice_code: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[Decimal] = None  # always major units
    currency: Optional[str] = None
    raw: Any = None


class SubscriptionEvent(BaseModel):
    type: SubscriptionEventType
    data: SubscriptionEventData


WebhookEvent = Annotated[Union[PaymentEvent, SubscriptionEvent], Field(discriminator="type")]


class ProviderWebhookResult(BaseModel):
    """Adapter-level parse result: validity is reported, never raised."""

    is_valid: bool
    event: WebhookEvent
    raw: dict[str, Any]


class ParsedWebhook(BaseModel):
    """Client-level parse result, only produced for authentic notifications."""

    event: WebhookEvent
    provider: PaymentProvider
    raw: dict[str, Any]
