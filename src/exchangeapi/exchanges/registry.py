"""Registry mapping exchange names to client instances."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Type

from .base import BaseExchangeClient, ProxyConfig
from .bitfinex import BitfinexClient
from .bittrex import BittrexClient
from .gdax import GdaxClient
from .gemini import GeminiClient
from .kraken import KrakenClient
from .rate_limit import RateGate

if TYPE_CHECKING:
    from ..settings import Settings

logger = logging.getLogger(__name__)

EXCHANGE_NAME_BITFINEX = "Bitfinex"
EXCHANGE_NAME_GEMINI = "Gemini"
EXCHANGE_NAME_GDAX = "GDAX"
EXCHANGE_NAME_KRAKEN = "Kraken"
EXCHANGE_NAME_BITTREX = "Bittrex"

EXCHANGE_CLIENTS: dict[str, Type[BaseExchangeClient]] = {
    EXCHANGE_NAME_GEMINI: GeminiClient,
    EXCHANGE_NAME_BITFINEX: BitfinexClient,
    EXCHANGE_NAME_GDAX: GdaxClient,
    EXCHANGE_NAME_KRAKEN: KrakenClient,
    EXCHANGE_NAME_BITTREX: BittrexClient,
}


class ExchangeRegistry:
    """Entry point: builds configured exchange clients by name.

    Every lookup constructs a new client, each with its own rate gate, so
    callers never share mutable state through the registry. Keep the returned
    instance for as long as its rate gate should apply.
    """

    def __init__(self, settings: "Settings | None" = None):
        self.settings = settings

    def names(self) -> list[str]:
        """Registered exchange names."""
        if self.settings is None:
            return list(EXCHANGE_CLIENTS)
        return [name for name in EXCHANGE_CLIENTS if self._enabled(name)]

    def _resolve(self, name: str) -> str | None:
        if name in EXCHANGE_CLIENTS:
            return name
        lowered = name.lower()
        for known in EXCHANGE_CLIENTS:
            if known.lower() == lowered:
                return known
        return None

    def _enabled(self, name: str) -> bool:
        exchange_settings = self.settings.exchange(name) if self.settings else None
        return exchange_settings is None or exchange_settings.enabled

    def lookup(self, name: str) -> BaseExchangeClient | None:
        """Build the client registered under ``name``.

        Returns:
            A new client, or None if the name is unknown or disabled in settings
        """
        known = self._resolve(name)
        if known is None:
            logger.debug("Unknown exchange requested: %s", name)
            return None
        if not self._enabled(known):
            logger.debug("Exchange %s is disabled, skipping", known)
            return None
        return self._create(known)

    def list_all(self) -> dict[str, BaseExchangeClient]:
        """Build one new client per registered exchange."""
        return {name: self._create(name) for name in self.names()}

    def _create(self, name: str) -> BaseExchangeClient:
        client_class = EXCHANGE_CLIENTS[name]
        if self.settings is None:
            return client_class()

        settings = self.settings
        exchange_settings = settings.exchange(name)
        rate = settings.rate_limit
        if exchange_settings is not None and exchange_settings.rate_limit is not None:
            rate = exchange_settings.rate_limit

        proxy_config = None
        if settings.proxy.enabled and settings.proxy.url:
            proxy_config = ProxyConfig(
                url=settings.proxy.url,
                username=settings.proxy.username,
                password=settings.proxy.password.get_secret_value() if settings.proxy.password else None,
            )

        kwargs = {
            "rate_limit": RateGate(rate.max_requests, rate.window_seconds),
            "user_agent": settings.http.user_agent,
            "timeout": settings.http.timeout_seconds,
            "proxy": proxy_config,
        }

        if exchange_settings is not None:
            credentials = exchange_settings.credentials
            if credentials is not None:
                kwargs["public_api_key"] = credentials.public_key.get_secret_value()
                kwargs["private_api_key"] = credentials.private_key.get_secret_value()
                if credentials.passphrase is not None:
                    kwargs["passphrase"] = credentials.passphrase.get_secret_value()
            if exchange_settings.base_url:
                kwargs["base_url"] = exchange_settings.base_url
            kwargs.update(exchange_settings.options)

        logger.debug("Creating %s client", name)
        return client_class(**kwargs)


def get_exchange_api(name: str, settings: "Settings | None" = None) -> BaseExchangeClient | None:
    """Build one exchange client by name, None if unknown."""
    return ExchangeRegistry(settings).lookup(name)


def get_exchange_api_dictionary(settings: "Settings | None" = None) -> dict[str, BaseExchangeClient]:
    """Build a fresh client for every registered exchange."""
    return ExchangeRegistry(settings).list_all()
