"""
Stash client: a provider-bound convenience wrapper.

Binds one provider, its credentials and the test-mode flag, assigns a
request id to every payment, logs each operation, and escalates invalid
webhook signatures into ``InvalidSignatureError``.
"""

import logging
import uuid
from typing import Any, Optional, Union

import httpx

from stash_gateway.codec.amount import AmountValue, resolve_major_amount
from stash_gateway.common.config import StashSettings, get_settings
from stash_gateway.common.exceptions import InvalidSignatureError, MissingRequiredFieldError
from stash_gateway.common.schemas import (
    Credentials,
    Customer,
    Payment,
    PaymentProvider,
    PaymentRequest,
    PlanCreateInput,
    ProviderOptions,
    ProviderSecrets,
    RedirectUrls,
    Subscription,
    SubscriptionCreateInput,
    SubscriptionPlan,
    VerificationResult,
    VerifyPaymentInput,
    WebhookParseInput,
)
from stash_gateway.providers.capabilities import (
    normalize_currency,
    require_plan_support,
    require_subscription_support,
    require_verify_support,
)
from stash_gateway.providers.registry import get_adapter
from stash_gateway.webhooks.schemas import ParsedWebhook

logger = logging.getLogger(__name__)


class Stash:
    """
    Synchronous client bound to a single payment provider.

    Without an ``httpx.Client`` the instance creates one and releases it
    in :meth:`close`. A caller-supplied client is reused but never closed.
    """

    def __init__(
        self,
        provider: PaymentProvider,
        credentials: Union[Credentials, ProviderSecrets],
        test_mode: bool = False,
        default_currency: str = "ZAR",
        http: Optional[httpx.Client] = None,
    ):
        self.provider = provider
        self.adapter = get_adapter(provider)
        self.secrets = credentials if isinstance(credentials, ProviderSecrets) else credentials.to_secrets()
        self.test_mode = test_mode
        self.default_currency = default_currency
        # An injected client belongs to the caller; only our own is closed.
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=get_settings().http_timeout)

    @classmethod
    def from_settings(cls, settings: Optional[StashSettings] = None, **kwargs: Any) -> "Stash":
        """Build a client from ``STASH_*`` environment configuration."""
        settings = settings or get_settings()
        if not settings.provider:
            raise MissingRequiredFieldError("STASH_PROVIDER")
        return cls(
            provider=settings.provider,
            credentials=settings.secrets(),
            test_mode=settings.test_mode,
            default_currency=settings.default_currency,
            **kwargs,
        )

    # ── Payments ──

    def create_payment(
        self,
        amount: AmountValue,
        reference: str,
        *,
        currency: Optional[str] = None,
        amount_unit: str = "major",
        description: Optional[str] = None,
        customer: Union[Customer, dict, None] = None,
        urls: Union[RedirectUrls, dict, None] = None,
        metadata: Optional[dict[str, str]] = None,
        provider_options: Union[ProviderOptions, dict, None] = None,
        provider_data: Optional[dict[str, Any]] = None,
    ) -> Payment:
        """Create a payment and return it in canonical form (status ``pending``)."""
        request = PaymentRequest(
            provider=self.provider,
            amount=amount,
            amount_unit=amount_unit,
            currency=normalize_currency(currency, self.default_currency),
            reference=reference,
            description=description,
            customer=customer,
            urls=urls,
            metadata=metadata,
            provider_options=provider_options,
            provider_data=provider_data,
            test_mode=self.test_mode,
            secrets=self.secrets,
        )
        request_id = str(uuid.uuid4())
        logger.info(
            "payment.create",
            extra={"request_id": request_id, "provider": self.provider, "reference": reference},
        )

        try:
            response = self.adapter.create_payment(request, self._http)
        except Exception:
            logger.exception(
                "payment.create failed",
                extra={"request_id": request_id, "provider": self.provider, "reference": reference},
            )
            raise

        return Payment(
            id=request_id,
            status="pending",
            amount=resolve_major_amount(request.amount, request.amount_unit, request.currency),
            currency=request.currency,
            redirect_url=response.redirect_url,
            method=response.method,
            form_fields=response.form_fields,
            provider=self.provider,
            provider_ref=response.payment_request_id,
            raw=response.raw,
        )

    def verify_payment(self, reference: str) -> VerificationResult:
        """Look a payment up by merchant reference."""
        require_verify_support(self.provider)
        result = self.adapter.verify_payment(
            VerifyPaymentInput(reference=reference, secrets=self.secrets, test_mode=self.test_mode),
            self._http,
        )
        logger.info(
            "payment.verify",
            extra={"provider": self.provider, "reference": reference, "status": result.status},
        )
        return result

    # ── Webhooks ──

    def parse_webhook(
        self,
        raw_body: Union[bytes, str],
        headers: Optional[dict[str, Any]] = None,
    ) -> ParsedWebhook:
        """Verify and normalize a notification; raise if it is not authentic."""
        result = self.adapter.parse_webhook(
            WebhookParseInput(raw_body=raw_body, headers=headers, secrets=self.secrets)
        )
        if not result.is_valid:
            logger.warning("webhook.invalid_signature", extra={"provider": self.provider})
            raise InvalidSignatureError(f"Invalid {self.provider} webhook signature")

        logger.info("webhook.parsed", extra={"provider": self.provider, "event_type": result.event.type})
        return ParsedWebhook(event=result.event, provider=self.provider, raw=result.raw)

    # ── Plans & subscriptions ──

    def create_plan(
        self,
        name: str,
        amount: AmountValue,
        interval: str,
        *,
        currency: Optional[str] = None,
        amount_unit: str = "major",
        description: Optional[str] = None,
    ) -> SubscriptionPlan:
        require_plan_support(self.provider)
        return self.adapter.create_plan(
            PlanCreateInput(
                name=name,
                amount=amount,
                amount_unit=amount_unit,
                interval=interval,
                currency=normalize_currency(currency, self.default_currency),
                description=description,
                secrets=self.secrets,
            ),
            self._http,
        )

    def create_subscription(
        self,
        customer: str,
        plan: str,
        *,
        authorization: Optional[str] = None,
        start_date: Optional[str] = None,
    ) -> Subscription:
        require_subscription_support(self.provider)
        return self.adapter.create_subscription(
            SubscriptionCreateInput(
                customer=customer,
                plan=plan,
                authorization=authorization,
                start_date=start_date,
                secrets=self.secrets,
            ),
            self._http,
        )

    # ── Lifecycle ──

    def close(self) -> None:
        """Close the HTTP client this instance created; an injected one is left open."""
        if self._owns_http:
            self._http.close()
