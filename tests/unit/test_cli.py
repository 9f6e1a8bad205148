"""Tests for the stash CLI."""

import hashlib
import hmac
import json
from unittest.mock import patch

from typer.testing import CliRunner

from stash_gateway.cli import app
from stash_gateway.common.schemas import OzowTransactionResult

runner = CliRunner()


class TestAmountCommands:
    def test_to_minor(self):
        result = runner.invoke(app, ["to-minor", "25.00"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "2500"

    def test_to_minor_invalid(self):
        result = runner.invoke(app, ["to-minor", "25.001"])
        assert result.exit_code == 1
        assert "invalid_amount" in result.stdout

    def test_from_minor(self):
        result = runner.invoke(app, ["from-minor", "2500", "--currency", "NGN"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "25.00"


class TestVerifyWebhookCommand:
    def test_paystack_valid(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STASH_PAYSTACK_SECRET_KEY", "sk_test_secret")
        body = json.dumps({"event": "charge.success", "data": {"reference": "R-1"}}).encode()
        path = tmp_path / "body.json"
        path.write_bytes(body)
        signature = hmac.new(b"sk_test_secret", body, hashlib.sha512).hexdigest()

        result = runner.invoke(app, ["verify-webhook", "paystack", str(path), "--signature", signature])
        assert result.exit_code == 0
        assert "VALID" in result.stdout
        assert "payment.completed" in result.stdout

    def test_payfast_invalid(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STASH_PAYFAST_PASSPHRASE", "test-pass")
        path = tmp_path / "itn.txt"
        path.write_text("m_payment_id=1&payment_status=COMPLETE&signature=deadbeef")

        result = runner.invoke(app, ["verify-webhook", "payfast", str(path)])
        assert result.exit_code == 1
        assert "INVALID" in result.stdout

    def test_unknown_provider(self, tmp_path):
        path = tmp_path / "body.txt"
        path.write_text("x=1")
        result = runner.invoke(app, ["verify-webhook", "stripe", str(path)])
        assert result.exit_code == 1
        assert "unsupported_provider" in result.stdout


class TestOzowStatusCommand:
    def test_lists_transactions(self, monkeypatch):
        monkeypatch.setenv("STASH_OZOW_SITE_CODE", "SITE")
        monkeypatch.setenv("STASH_OZOW_API_KEY", "API")
        found = OzowTransactionResult(transactions=[{"TransactionId": "TX-1", "Status": "Complete"}])
        with patch("stash_gateway.providers.ozow.get_ozow_transaction_by_reference", return_value=found) as lookup:
            result = runner.invoke(app, ["ozow-status", "REF-1", "--test"])

        assert result.exit_code == 0
        assert "TX-1" in result.stdout
        assert "paid" in result.stdout
        query = lookup.call_args.args[0]
        assert query.site_code == "SITE"
        assert query.transaction_reference == "REF-1"
        assert query.test_mode is True

    def test_no_transactions(self, monkeypatch):
        with patch(
            "stash_gateway.providers.ozow.get_ozow_transaction_by_reference",
            return_value=OzowTransactionResult(),
        ):
            result = runner.invoke(app, ["ozow-status", "REF-1"])
        assert result.exit_code == 0
        assert "No transactions found for REF-1" in result.stdout

    def test_missing_credentials(self):
        result = runner.invoke(app, ["ozow-status", "REF-1"])
        assert result.exit_code == 1
        assert "missing_required_field" in result.stdout
