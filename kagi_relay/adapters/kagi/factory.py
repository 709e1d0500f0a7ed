"""Factory for the Kagi client."""

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.adapters.kagi.client import KagiClient
from kagi_relay.core.config import KagiSettings, settings
from kagi_relay.core.errors import ConfigurationError


def create_kagi_client(kagi_settings: KagiSettings | None = None) -> AbstractKagiClient:
    """Instantiate the Kagi client from settings.

    Returns:
        AbstractKagiClient: Configured client.

    Raises:
        ConfigurationError: If KAGI_API_KEY is not set.
    """
    cfg = kagi_settings or settings.kagi

    if not cfg.api_key:
        raise ConfigurationError(
            code="kagi_missing_api_key",
            message="KAGI_API_KEY is not set in the environment variables",
            details={"setting": "KAGI_API_KEY"},
        )

    return KagiClient(
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
    )
