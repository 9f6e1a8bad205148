"""
Static per-provider capability table and the guards built on it.

Guards run before a request is built, so an unsupported currency, a
missing customer email, or an unimplemented operation fails without a
wasted round trip to the provider.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

from stash_gateway.common.exceptions import (
    MissingRequiredFieldError,
    UnsupportedCapabilityError,
    UnsupportedCurrencyError,
)


@dataclass(frozen=True)
class ProviderCapabilities:
    """Read-only description of what a provider supports."""

    currencies: Optional[tuple[str, ...]] = None  # None means unrestricted
    requires_customer_email: bool = False
    supports_verify: bool = False
    supports_webhooks: bool = False
    supports_subscriptions: bool = False
    supports_plans: bool = False


PROVIDER_CAPABILITIES: Mapping[str, ProviderCapabilities] = MappingProxyType({
    "ozow": ProviderCapabilities(
        currencies=("ZAR",),
        supports_verify=True,
        supports_webhooks=True,
    ),
    "payfast": ProviderCapabilities(
        currencies=("ZAR",),
        supports_webhooks=True,
    ),
    "paystack": ProviderCapabilities(
        requires_customer_email=True,
        supports_verify=True,
        supports_webhooks=True,
        supports_subscriptions=True,
        supports_plans=True,
    ),
})


def get_capabilities(provider: str) -> ProviderCapabilities:
    return PROVIDER_CAPABILITIES.get(provider, ProviderCapabilities())


def require_value(value: Any, name: str) -> Any:
    """Return ``value`` or raise if it is None or an empty string."""
    if value is None or value == "":
        raise MissingRequiredFieldError(name)
    return value


def normalize_currency(currency: Optional[str], fallback: str = "ZAR") -> str:
    raw = (currency or "").strip() or fallback
    return raw.upper()


def require_supported_currency(provider: str, currency: str) -> None:
    supported = get_capabilities(provider).currencies
    if not supported:
        return
    if currency.upper() not in {value.upper() for value in supported}:
        raise UnsupportedCurrencyError(provider, currency, supported)


def require_customer_email(provider: str, email: Optional[str]) -> str:
    if not get_capabilities(provider).requires_customer_email:
        return email or ""
    if not email:
        raise MissingRequiredFieldError("customer.email")
    return email


def require_verify_support(provider: str) -> None:
    if not get_capabilities(provider).supports_verify:
        raise UnsupportedCapabilityError(f"payment verification is not supported for {provider}")


def require_subscription_support(provider: str) -> None:
    if not get_capabilities(provider).supports_subscriptions:
        raise UnsupportedCapabilityError(f"subscriptions are not supported for {provider}")


def require_plan_support(provider: str) -> None:
    if not get_capabilities(provider).supports_plans:
        raise UnsupportedCapabilityError(f"subscription plans are not supported for {provider}")
