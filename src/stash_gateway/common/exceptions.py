"""Stash exception hierarchy."""

from typing import Any, Iterable, Optional


class StashError(Exception):
    """Base exception for all Stash errors."""

    def __init__(self, message: str = "", code: str = "stash_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class MissingRequiredFieldError(StashError):
    """Raised when a mandatory input (secret, customer email, ...) is absent."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}", code="missing_required_field")


class UnsupportedCurrencyError(StashError):
    """Raised when a currency falls outside a provider's fixed set."""

    def __init__(self, provider: str, currency: str, supported: Iterable[str]):
        supported = list(supported)
        listed = ", ".join(supported)
        hint = f' Set currency: "{supported[0]}".' if len(supported) == 1 else ""
        super().__init__(
            f"{provider} only supports {listed}. Received: {currency}.{hint}",
            code="unsupported_currency",
        )


class InvalidProviderDataError(StashError):
    """Raised when raw provider data collides with managed fields."""

    def __init__(self, message: str):
        super().__init__(message, code="invalid_provider_data")


class InvalidSignatureError(StashError):
    """Raised when a webhook signature or hash does not match."""

    def __init__(self, message: str = "Webhook signature is invalid", reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message, code="invalid_signature")


class UnsupportedCapabilityError(StashError):
    """Raised when an operation is not implemented by a provider."""

    def __init__(self, message: str):
        super().__init__(message, code="unsupported_capability")


class UnsupportedProviderError(StashError):
    """Raised when no adapter is registered for a provider identifier."""

    def __init__(self, provider: str, supported: Iterable[str]):
        super().__init__(
            f"Unsupported provider: {provider}. Supported providers: {', '.join(supported)}",
            code="unsupported_provider",
        )


class InvalidAmountError(StashError, ValueError):
    """Raised when an amount cannot be represented losslessly."""

    def __init__(self, message: str = "Amount must be a valid number"):
        super().__init__(message, code="invalid_amount")


class InvalidPayloadError(StashError):
    """Raised when an inbound notification body cannot be decoded."""

    def __init__(self, message: str):
        super().__init__(message, code="invalid_payload")


class ProviderRequestError(StashError):
    """Raised on a non-2xx provider response or malformed provider JSON."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, code="provider_error")
