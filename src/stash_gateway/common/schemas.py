"""Shared Pydantic schemas for Stash payment requests and results."""

from decimal import Decimal
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

PaymentProvider = Literal["ozow", "payfast", "paystack"]
AmountInput = Union[str, int, float, Decimal]
ProviderDataValue = Union[str, bool, int, float, None]


class ProviderSecrets(BaseModel):
    """Credential bag; each adapter reads only the fields it needs."""

    # Ozow
    site_code: Optional[str] = None
    api_key: Optional[str] = None
    private_key: Optional[str] = None
    # Payfast
    merchant_id: Optional[str] = None
    merchant_key: Optional[str] = None
    passphrase: Optional[str] = None
    # Paystack
    paystack_secret_key: Optional[str] = None


class Customer(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class RedirectUrls(BaseModel):
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    notify_url: Optional[str] = None
    error_url: Optional[str] = None


# ── Provider options ──


class OzowOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    selected_bank_id: Optional[str] = None
    customer_identity_number: Optional[str] = None
    allow_variable_amount: Optional[bool] = None
    variable_amount_min: Optional[Union[int, float, Decimal]] = None
    variable_amount_max: Optional[Union[int, float, Decimal]] = None


class PayfastOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: Optional[str] = None
    email_confirmation: Optional[bool] = None
    confirmation_address: Optional[str] = None
    m_payment_id: Optional[str] = None
    item_name: Optional[str] = None
    item_description: Optional[str] = None


class PaystackOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channels: Optional[list[str]] = None


ProviderOptions = Union[OzowOptions, PayfastOptions, PaystackOptions]


# ── Payments ──


class PaymentRequest(BaseModel):
    """Provider-agnostic payment initiation request."""

    provider: PaymentProvider
    amount: AmountInput
    amount_unit: Literal["major", "minor"] = "major"
    currency: str = "ZAR"
    reference: str
    description: Optional[str] = None
    customer: Optional[Customer] = None
    urls: Optional[RedirectUrls] = None
    metadata: Optional[dict[str, str]] = None
    provider_options: Optional[ProviderOptions] = None
    provider_data: Optional[dict[str, ProviderDataValue]] = None
    test_mode: bool = False
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)


class PaymentResponse(BaseModel):
    """Signed, provider-specific request the caller must follow."""

    provider: PaymentProvider
    redirect_url: str
    method: Literal["GET", "POST"]
    form_fields: Optional[dict[str, str]] = None
    payment_request_id: Optional[str] = None
    raw: Any = None


class Payment(BaseModel):
    """Canonical payment returned by the high-level client."""

    id: str
    status: Literal["pending", "paid", "failed"] = "pending"
    amount: Decimal
    currency: str
    redirect_url: Optional[str] = None
    method: Literal["GET", "POST"] = "GET"
    form_fields: Optional[dict[str, str]] = None
    provider: PaymentProvider
    provider_ref: Optional[str] = None
    raw: Any = None


class VerifyPaymentInput(BaseModel):
    reference: str
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)
    test_mode: bool = False


class VerificationResult(BaseModel):
    provider: PaymentProvider
    status: Literal["pending", "paid", "failed", "unknown"]
    provider_ref: Optional[str] = None
    raw: Any = None


# ── Webhook verification ──


class WebhookVerifyInput(BaseModel):
    provider: PaymentProvider
    raw_body: Optional[Union[bytes, str]] = None
    payload: Optional[dict[str, ProviderDataValue]] = None
    headers: Optional[dict[str, Union[str, list[str], None]]] = None
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)


class WebhookVerifyResult(BaseModel):
    provider: PaymentProvider
    is_valid: bool
    reason: Optional[str] = None


class WebhookParseInput(BaseModel):
    raw_body: Union[bytes, str]
    headers: Optional[dict[str, Union[str, list[str], None]]] = None
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)


# ── Ozow transaction lookups ──


class OzowTransactionQuery(BaseModel):
    site_code: str
    api_key: str
    transaction_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    test_mode: bool = False


class OzowTransactionResult(BaseModel):
    provider: Literal["ozow"] = "ozow"
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    raw: Any = None


# ── Payfast ITN hardening ──


class PayfastValidationInput(BaseModel):
    raw_body: Union[bytes, str]
    passphrase: Optional[str] = None
    mode: Literal["live", "sandbox"] = "live"
    source_ip: Optional[str] = None
    allowed_ips: Optional[list[str]] = None
    validate_signature: bool = True
    validate_ip: bool = False
    validate_server: bool = False


class PayfastValidationResult(BaseModel):
    provider: Literal["payfast"] = "payfast"
    is_valid: bool
    reason: Optional[str] = None
    checks: dict[str, bool] = Field(default_factory=dict)


# ── Paystack plans & subscriptions ──


class PlanCreateInput(BaseModel):
    name: str
    amount: AmountInput
    amount_unit: Literal["major", "minor"] = "major"
    interval: Literal["hourly", "daily", "weekly", "monthly", "quarterly", "biannually", "annually"]
    currency: str = "ZAR"
    description: Optional[str] = None
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)


class SubscriptionPlan(BaseModel):
    provider: PaymentProvider
    plan_code: str
    name: str
    amount: Decimal
    interval: str
    currency: str
    raw: Any = None


class SubscriptionCreateInput(BaseModel):
    customer: str  # email or customer code
    plan: str
    authorization: Optional[str] = None
    start_date: Optional[str] = None
    secrets: ProviderSecrets = Field(default_factory=ProviderSecrets)


class Subscription(BaseModel):
    provider: PaymentProvider
    subscription_code: str
    status: Optional[str] = None
    email_token: Optional[str] = None
    raw: Any = None


# ── Client credentials ──


class OzowCredentials(BaseModel):
    site_code: str
    api_key: str
    private_key: str

    def to_secrets(self) -> ProviderSecrets:
        return ProviderSecrets(site_code=self.site_code, api_key=self.api_key, private_key=self.private_key)


class PayfastCredentials(BaseModel):
    merchant_id: str
    merchant_key: str
    passphrase: Optional[str] = None

    def to_secrets(self) -> ProviderSecrets:
        return ProviderSecrets(
            merchant_id=self.merchant_id,
            merchant_key=self.merchant_key,
            passphrase=self.passphrase,
        )


class PaystackCredentials(BaseModel):
    secret_key: str

    def to_secrets(self) -> ProviderSecrets:
        return ProviderSecrets(paystack_secret_key=self.secret_key)


Credentials = Union[OzowCredentials, PayfastCredentials, PaystackCredentials]
