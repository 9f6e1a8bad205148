"""Stash configuration via pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from stash_gateway.common.schemas import ProviderSecrets


class StashSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STASH_")

    environment: str = "development"
    log_level: str = "INFO"

    # Defaults applied by the high-level client
    provider: Optional[str] = None
    test_mode: bool = False
    default_currency: str = "ZAR"
    http_timeout: float = 30.0  # seconds

    # Ozow
    ozow_site_code: Optional[str] = None
    ozow_api_key: Optional[str] = None
    ozow_private_key: Optional[str] = None

    # Payfast
    payfast_merchant_id: Optional[str] = None
    payfast_merchant_key: Optional[str] = None
    payfast_passphrase: Optional[str] = None
    # When set, ITN source IPs are checked against this list instead of DNS.
    payfast_allowed_ips: list[str] = []

    # Paystack
    paystack_secret_key: Optional[str] = None

    def secrets(self) -> ProviderSecrets:
        """Return every configured credential as a ProviderSecrets bag."""
        return ProviderSecrets(
            site_code=self.ozow_site_code,
            api_key=self.ozow_api_key,
            private_key=self.ozow_private_key,
            merchant_id=self.payfast_merchant_id,
            merchant_key=self.payfast_merchant_key,
            passphrase=self.payfast_passphrase,
            paystack_secret_key=self.paystack_secret_key,
        )


@lru_cache
def get_settings() -> StashSettings:
    return StashSettings()
