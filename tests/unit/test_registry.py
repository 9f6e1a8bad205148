"""Tests for the adapter registry and provider-agnostic entry points."""

import pytest

from stash_gateway.common.exceptions import UnsupportedCapabilityError, UnsupportedProviderError
from stash_gateway.common.schemas import (
    OzowTransactionQuery,
    PayfastValidationInput,
    PaymentRequest,
    ProviderSecrets,
    VerifyPaymentInput,
    WebhookParseInput,
    WebhookVerifyInput,
)
from stash_gateway.providers.base import resolve_header
from stash_gateway.providers.ozow import OzowAdapter
from stash_gateway.providers.payfast import PayfastAdapter
from stash_gateway.providers.paystack import PaystackAdapter
from stash_gateway.providers.registry import (
    PROVIDER_ADAPTERS,
    get_adapter,
    get_ozow_transaction_status,
    get_ozow_transaction_status_by_reference,
    make_payment,
    parse_webhook,
    validate_payfast_webhook_signature,
    verify_payment,
    verify_webhook_signature,
)


class TestGetAdapter:
    def test_known(self):
        assert isinstance(get_adapter("ozow"), OzowAdapter)
        assert isinstance(get_adapter("payfast"), PayfastAdapter)
        assert isinstance(get_adapter("paystack"), PaystackAdapter)

    def test_unknown(self):
        with pytest.raises(UnsupportedProviderError) as exc:
            get_adapter("stripe")
        assert exc.value.code == "unsupported_provider"
        assert "ozow, payfast, paystack" in exc.value.message

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            PROVIDER_ADAPTERS["stripe"] = OzowAdapter()

    def test_adapter_exposes_capabilities(self):
        assert get_adapter("paystack").capabilities.supports_plans


class TestEntryPoints:
    def test_make_payment_dispatches(self, payfast_secrets):
        response = make_payment(
            PaymentRequest(provider="payfast", amount="10", reference="R-1", secrets=payfast_secrets)
        )
        assert response.provider == "payfast"
        assert response.method == "POST"

    def test_verify_webhook_signature_never_raises(self):
        result = verify_webhook_signature(WebhookVerifyInput(provider="paystack", raw_body="{}"))
        assert not result.is_valid
        assert result.reason == "missing_secret_key"

    def test_parse_webhook(self):
        result = parse_webhook("payfast", WebhookParseInput(raw_body="payment_status=COMPLETE"))
        assert not result.is_valid
        assert result.event.type == "payment.completed"

    def test_verify_payment_unsupported(self):
        with pytest.raises(UnsupportedCapabilityError):
            verify_payment("payfast", VerifyPaymentInput(reference="R-1"))

    def test_verify_payment_paystack(self, paystack_secrets, transport):
        rec = transport(body={"status": True, "data": {"id": 5, "status": "success"}})
        result = verify_payment("paystack", VerifyPaymentInput(reference="R-1", secrets=paystack_secrets), rec.client())
        assert result.status == "paid"
        assert result.provider_ref == "5"

    def test_payfast_validation(self):
        result = validate_payfast_webhook_signature(PayfastValidationInput(raw_body="m_payment_id=1"))
        assert result.reason == "missing_signature"

    def test_ozow_status_wrappers(self, transport):
        rec = transport(body=[])
        query = OzowTransactionQuery(site_code="SITE", api_key="API", transaction_reference="R", transaction_id="T")
        assert get_ozow_transaction_status_by_reference(query, rec.client()).transactions == []
        assert get_ozow_transaction_status(query, rec.client()).transactions == []
        assert len(rec.requests) == 2


class TestBaseAdapter:
    def test_unsupported_defaults(self):
        with pytest.raises(UnsupportedCapabilityError):
            get_adapter("payfast").verify_payment(VerifyPaymentInput(reference="R"))
        with pytest.raises(UnsupportedCapabilityError):
            get_adapter("ozow").create_subscription(None)

    def test_resolve_header(self):
        assert resolve_header({"X-Test": "a"}, "x-test") == "a"
        assert resolve_header({"x-test": ["b", "c"]}, "X-TEST") == "b"
        assert resolve_header({"x-test": []}, "x-test") is None
        assert resolve_header(None, "x-test") is None


class TestSecretsIsolation:
    def test_payfast_ignores_other_credentials(self, payfast_secrets):
        combined = payfast_secrets.model_copy(update={"private_key": "ozow", "paystack_secret_key": "sk"})
        response = make_payment(PaymentRequest(provider="payfast", amount="10", reference="R-1", secrets=combined))
        only = make_payment(PaymentRequest(provider="payfast", amount="10", reference="R-1", secrets=payfast_secrets))
        assert response.form_fields == only.form_fields

    def test_default_secrets_empty(self):
        assert ProviderSecrets().model_dump(exclude_none=True) == {}
