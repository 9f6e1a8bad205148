"""Stash: signed payment requests and verified webhooks for Ozow, Payfast and Paystack."""

from stash_gateway.client import Stash
from stash_gateway.codec.amount import from_minor_units, parse_minor_units, to_minor_units
from stash_gateway.codec.form import build_form_encoded, pairs_to_dict, parse_form_body, parse_form_encoded
from stash_gateway.common.exceptions import StashError
from stash_gateway.providers.capabilities import PROVIDER_CAPABILITIES
from stash_gateway.providers.registry import (
    get_adapter,
    get_ozow_transaction_status,
    get_ozow_transaction_status_by_reference,
    make_payment,
    parse_webhook,
    validate_payfast_webhook_signature,
    verify_payment,
    verify_webhook_signature,
)

__all__ = [
    "Stash",
    "StashError",
    "PROVIDER_CAPABILITIES",
    "get_adapter",
    "make_payment",
    "parse_webhook",
    "verify_payment",
    "verify_webhook_signature",
    "validate_payfast_webhook_signature",
    "get_ozow_transaction_status",
    "get_ozow_transaction_status_by_reference",
    "to_minor_units",
    "from_minor_units",
    "parse_minor_units",
    "build_form_encoded",
    "parse_form_body",
    "parse_form_encoded",
    "pairs_to_dict",
]
__version__ = "0.1.0"
