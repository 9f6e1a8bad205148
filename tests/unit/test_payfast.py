"""Tests for the Payfast adapter: form fields, signatures and ITN validation."""

import hashlib

import pytest

from stash_gateway.common.exceptions import (
    InvalidPayloadError,
    InvalidProviderDataError,
    UnsupportedCurrencyError,
)
from stash_gateway.common.schemas import (
    PayfastValidationInput,
    PaymentRequest,
    ProviderSecrets,
    WebhookParseInput,
    WebhookVerifyInput,
)
from stash_gateway.providers.payfast import (
    PayfastAdapter,
    build_payfast_fields,
    build_payfast_signature,
    itn_param_string,
    make_payfast_payment,
    resolve_payfast_ips,
    validate_payfast_webhook,
    verify_payfast_webhook,
)
from stash_gateway.providers.registry import verify_webhook_signature

PASSPHRASE = "test-pass"


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _itn_body(passphrase: str = PASSPHRASE) -> str:
    params = "m_payment_id=ORDER-100&payment_status=COMPLETE&amount_gross=200.00"
    signature = _md5(f"{params}&passphrase={passphrase}")
    return f"{params}&signature={signature}"


def _request(secrets, **overrides) -> PaymentRequest:
    fields = dict(
        provider="payfast",
        amount="100",
        reference="ORDER-100",
        secrets=secrets,
        urls={"return_url": "https://shop.test/ok", "notify_url": "https://shop.test/itn"},
    )
    fields.update(overrides)
    return PaymentRequest(**fields)


class TestBuildFields:
    def test_core_fields(self, payfast_secrets):
        fields = build_payfast_fields(
            _request(
                payfast_secrets,
                description="Test Item",
                customer={"first_name": "Jo", "last_name": "Soap", "email": "jo@shop.test"},
                metadata={"cart": "c-1"},
            )
        )
        assert fields["merchant_id"] == "10000100"
        assert fields["m_payment_id"] == "ORDER-100"
        assert fields["amount"] == "100.00"
        assert fields["item_name"] == "Test Item"
        assert fields["name_first"] == "Jo"
        assert fields["email_address"] == "jo@shop.test"
        assert fields["custom_str1"] == "c-1"
        assert "signature" not in fields

    def test_item_name_fallback(self, payfast_secrets):
        assert build_payfast_fields(_request(payfast_secrets))["item_name"] == "ORDER-100"

    def test_item_name_from_provider_data(self, payfast_secrets):
        fields = build_payfast_fields(
            _request(payfast_secrets, description="ignored", provider_data={"item_name": "Widget"})
        )
        assert fields["item_name"] == "Widget"

    def test_options(self, payfast_secrets):
        fields = build_payfast_fields(
            _request(
                payfast_secrets,
                provider_options={"payment_method": "cc", "email_confirmation": True, "confirmation_address": "a@b.co"},
            )
        )
        assert fields["payment_method"] == "cc"
        assert fields["email_confirmation"] == "1"
        assert fields["confirmation_address"] == "a@b.co"

    def test_unsupported_currency(self, payfast_secrets):
        with pytest.raises(UnsupportedCurrencyError):
            build_payfast_fields(_request(payfast_secrets, currency="usd"))

    def test_unknown_provider_data(self, payfast_secrets):
        with pytest.raises(InvalidProviderDataError, match="Unsupported Payfast field: foo"):
            build_payfast_fields(_request(payfast_secrets, provider_data={"foo": "1"}))

    def test_provider_data_overlaps_options(self, payfast_secrets):
        with pytest.raises(InvalidProviderDataError, match="provider_options: payment_method"):
            build_payfast_fields(
                _request(
                    payfast_secrets,
                    provider_options={"payment_method": "cc"},
                    provider_data={"payment_method": "eft"},
                )
            )

    def test_provider_data_cannot_set_signature(self, payfast_secrets):
        with pytest.raises(InvalidProviderDataError, match="computed field: signature"):
            build_payfast_fields(_request(payfast_secrets, provider_data={"signature": "x"}))

    def test_provider_data_subscription_fields(self, payfast_secrets):
        fields = build_payfast_fields(
            _request(payfast_secrets, provider_data={"subscription_type": 1, "frequency": 3, "cycles": 0})
        )
        assert fields["subscription_type"] == "1"
        assert fields["frequency"] == "3"
        assert fields["cycles"] == "0"


class TestSignature:
    def test_fixed_order_encoding_and_passphrase(self):
        fields = {
            "amount": "100.00",
            "item_name": "Test Item",
            "merchant_key": "46f0cd694581a",
            "merchant_id": "10000100",
            "return_url": "https://shop.test/ok?a=b",
            "name_first": "",
        }
        expected = _md5(
            "merchant_id=10000100&merchant_key=46f0cd694581a"
            "&return_url=https%3A%2F%2Fshop.test%2Fok%3Fa%3Db"
            "&amount=100.00&item_name=Test+Item&passphrase=test-pass"
        )
        assert build_payfast_signature(fields, PASSPHRASE) == expected

    def test_without_passphrase(self):
        assert build_payfast_signature({"merchant_id": "1"}) == _md5("merchant_id=1")

    def test_values_are_trimmed(self):
        assert build_payfast_signature({"merchant_id": " 1 "}) == _md5("merchant_id=1")

    def test_make_payment(self, payfast_secrets):
        response = make_payfast_payment(_request(payfast_secrets, test_mode=True))
        assert response.method == "POST"
        assert response.redirect_url == "https://sandbox.payfast.co.za/eng/process"
        signature = response.form_fields["signature"]
        assert signature == build_payfast_signature(response.form_fields, PASSPHRASE)

    def test_live_host(self, payfast_secrets):
        assert make_payfast_payment(_request(payfast_secrets)).redirect_url == "https://www.payfast.co.za/eng/process"


    @pytest.mark.parametrize(
        "field,value",
        [
            ("amount", "100.01"),
            ("item_name", "Other Item"),
            ("merchant_id", "10000101"),
            ("m_payment_id", "ORDER-101"),
            ("return_url", "https://evil.test/ok"),
        ],
    )
    def test_changing_a_signed_field_breaks_signature(self, payfast_secrets, field, value):
        fields = make_payfast_payment(_request(payfast_secrets)).form_fields
        signature = fields.pop("signature")
        assert build_payfast_signature(fields, PASSPHRASE) == signature

        tampered = {**fields, field: value}
        assert build_payfast_signature(tampered, PASSPHRASE) != signature


class TestVerifyWebhook:
    @pytest.mark.parametrize(
        "original,replacement",
        [
            ("amount_gross=200.00", "amount_gross=2.00"),
            ("m_payment_id=ORDER-100", "m_payment_id=ORDER-999"),
            ("payment_status=COMPLETE", "payment_status=FAILED"),
        ],
    )
    def test_tampered_itn_field(self, original, replacement):
        body = _itn_body()
        secrets = ProviderSecrets(passphrase=PASSPHRASE)
        assert verify_payfast_webhook(WebhookVerifyInput(provider="payfast", raw_body=body, secrets=secrets)).is_valid

        result = verify_payfast_webhook(
            WebhookVerifyInput(provider="payfast", raw_body=body.replace(original, replacement), secrets=secrets)
        )
        assert not result.is_valid
        assert result.reason == "invalid_signature"

    def test_undecodable_body(self):
        result = verify_webhook_signature(
            WebhookVerifyInput(
                provider="payfast",
                raw_body=b"m_payment_id=\xe9&signature=abc",
                secrets=ProviderSecrets(passphrase=PASSPHRASE),
            )
        )
        assert not result.is_valid
        assert result.reason == "invalid_encoding"

    def test_parse_undecodable_body(self):
        with pytest.raises(InvalidPayloadError):
            PayfastAdapter().parse_webhook(WebhookParseInput(raw_body=b"m_payment_id=\xe9&signature=abc"))

    def test_completed_itn(self):
        result = verify_payfast_webhook(
            WebhookVerifyInput(provider="payfast", raw_body=_itn_body(), secrets=ProviderSecrets(passphrase=PASSPHRASE))
        )
        assert result.is_valid
        assert result.reason is None

    def test_wrong_passphrase(self):
        result = verify_payfast_webhook(
            WebhookVerifyInput(provider="payfast", raw_body=_itn_body(), secrets=ProviderSecrets(passphrase="other"))
        )
        assert not result.is_valid
        assert result.reason == "invalid_signature"

    def test_payload_without_raw_body(self):
        result = verify_payfast_webhook(
            WebhookVerifyInput(provider="payfast", payload={"m_payment_id": "ORDER-100", "signature": "abc"})
        )
        assert result.reason == "raw_body_required"

    def test_missing_signature(self):
        result = verify_payfast_webhook(WebhookVerifyInput(provider="payfast", raw_body="m_payment_id=1"))
        assert result.reason == "missing_signature"

    def test_received_order_is_signed(self):
        assert itn_param_string([("b", "2 2"), ("a", "1"), ("signature", "x"), ("c", "3")]) == "b=2+2&a=1"

    def test_parse_webhook_event(self):
        result = PayfastAdapter().parse_webhook(
            WebhookParseInput(raw_body=_itn_body().encode(), secrets=ProviderSecrets(passphrase=PASSPHRASE))
        )
        assert result.is_valid
        assert result.event.type == "payment.completed"
        assert result.event.data.reference == "ORDER-100"
        assert str(result.event.data.amount) == "200.00"
        assert result.event.data.currency == "ZAR"


class TestValidateWebhook:
    def _input(self, **kwargs) -> PayfastValidationInput:
        return PayfastValidationInput(raw_body=_itn_body(), passphrase=PASSPHRASE, **kwargs)

    def test_signature_only(self):
        result = validate_payfast_webhook(self._input())
        assert result.is_valid
        assert result.checks == {"signature": True}

    def test_signature_failure_stops(self):
        result = validate_payfast_webhook(
            PayfastValidationInput(raw_body=_itn_body(), passphrase="nope", validate_ip=True)
        )
        assert not result.is_valid
        assert result.reason == "invalid_signature"
        assert result.checks == {"signature": False}

    def test_ip_allowed(self):
        result = validate_payfast_webhook(
            self._input(validate_ip=True, source_ip="197.97.145.144", allowed_ips=["197.97.145.144"])
        )
        assert result.is_valid
        assert result.checks["ip"] is True

    def test_ip_rejected(self):
        result = validate_payfast_webhook(
            self._input(validate_ip=True, source_ip="10.0.0.1"), resolver=lambda: {"197.97.145.144"}
        )
        assert result.reason == "invalid_source_ip"

    def test_missing_source_ip(self):
        result = validate_payfast_webhook(self._input(validate_ip=True))
        assert result.reason == "missing_source_ip"

    def test_allowed_ips_from_settings(self, monkeypatch):
        monkeypatch.setenv("STASH_PAYFAST_ALLOWED_IPS", '["41.74.179.194"]')
        result = validate_payfast_webhook(
            self._input(validate_ip=True, source_ip="41.74.179.194"),
            resolver=lambda: pytest.fail("resolver should not run"),
        )
        assert result.is_valid

    def test_server_validation(self, transport):
        rec = transport(text="VALID")
        result = validate_payfast_webhook(self._input(validate_server=True, mode="sandbox"), http=rec.client())
        assert result.is_valid
        assert result.checks == {"signature": True, "server": True}
        assert str(rec.last.url) == "https://sandbox.payfast.co.za/eng/query/validate"
        assert rec.last.content == b"m_payment_id=ORDER-100&payment_status=COMPLETE&amount_gross=200.00"

    def test_server_only_undecodable_body(self, transport):
        rec = transport(text="VALID")
        result = validate_payfast_webhook(
            PayfastValidationInput(
                raw_body=b"m_payment_id=\xe9&signature=abc",
                validate_signature=False,
                validate_server=True,
            ),
            http=rec.client(),
        )
        assert not result.is_valid
        assert result.reason == "invalid_encoding"
        assert result.checks == {"server": False}
        assert rec.requests == []

    def test_signature_check_undecodable_body(self):
        result = validate_payfast_webhook(PayfastValidationInput(raw_body=b"\xff\xfe", passphrase=PASSPHRASE))
        assert result.reason == "invalid_encoding"
        assert result.checks == {"signature": False}

    def test_server_validation_invalid(self, transport):
        rec = transport(text="INVALID")
        result = validate_payfast_webhook(self._input(validate_server=True), http=rec.client())
        assert not result.is_valid
        assert result.reason == "server_validation_failed"

    def test_resolve_ips_skips_unresolvable(self, monkeypatch):
        def fake_lookup(host):
            if host == "bad.example":
                raise OSError("no such host")
            return host, [], ["1.2.3.4"]

        monkeypatch.setattr("stash_gateway.providers.payfast.socket.gethostbyname_ex", fake_lookup)
        assert resolve_payfast_ips(["good.example", "bad.example"]) == {"1.2.3.4"}
