"""Tests for the exchange registry."""

import pytest

from exchangeapi.exchanges.bitfinex import BitfinexClient
from exchangeapi.exchanges.gdax import GdaxClient
from exchangeapi.exchanges.kraken import KrakenClient
from exchangeapi.exchanges.registry import (
    EXCHANGE_CLIENTS,
    ExchangeRegistry,
    get_exchange_api,
    get_exchange_api_dictionary,
)
from exchangeapi.settings import Settings


class TestExchangeRegistry:
    """Tests for exchange lookup."""

    def test_lookup_kraken(self):
        """Test looking up Kraken by name."""
        client = ExchangeRegistry().lookup("Kraken")
        assert isinstance(client, KrakenClient)
        assert client.name == "Kraken"

    def test_lookup_unknown_is_none(self):
        """Test that unknown names are absent rather than an error."""
        assert ExchangeRegistry().lookup("NoSuchExchange") is None
        assert get_exchange_api("NoSuchExchange") is None

    def test_lookup_case_insensitive(self):
        """Test that lookups fall back to case-insensitive matching."""
        assert isinstance(ExchangeRegistry().lookup("kraken"), KrakenClient)
        assert isinstance(ExchangeRegistry().lookup("gdax"), GdaxClient)

    def test_all_exchanges_registered(self):
        """Test that the fixed exchange names are registered."""
        expected = {"Bitfinex", "Gemini", "GDAX", "Kraken", "Bittrex"}
        assert set(EXCHANGE_CLIENTS) == expected
        assert set(get_exchange_api_dictionary()) == expected

    def test_registry_names_match_client_names(self):
        """Test that each client reports its registry key as name."""
        for name, client in ExchangeRegistry().list_all().items():
            assert client.name == name

    def test_list_all_returns_fresh_instances(self):
        """Test that each call builds independent clients with their own gates."""
        registry = ExchangeRegistry()
        first = registry.list_all()
        second = registry.list_all()
        for name in first:
            assert first[name] is not second[name]
            assert first[name].rate_limit is not second[name].rate_limit

    def test_lookup_returns_fresh_instances(self):
        """Test that repeated lookups do not share state."""
        registry = ExchangeRegistry()
        assert registry.lookup("Gemini") is not registry.lookup("Gemini")

    def test_default_rate_limit(self):
        """Test default 5 per 15s policy without settings."""
        client = get_exchange_api("Bitfinex")
        assert isinstance(client, BitfinexClient)
        assert client.rate_limit.max_requests == 5
        assert client.rate_limit.window_seconds == 15.0


class TestRegistryFromSettings:
    """Tests for settings-driven client construction."""

    @pytest.fixture
    def settings(self):
        return Settings.model_validate({
            "http": {"user_agent": "desk/1.0", "timeout_seconds": 5},
            "rate_limit": {"max_requests": 10, "window_seconds": 1},
            "proxy": {"enabled": True, "url": "http://127.0.0.1:8080", "username": "u", "password": "p"},
            "exchanges": {
                "kraken": {
                    "credentials": {"public_key": "pub", "private_key": "cHJpdg=="},
                    "rate_limit": {"max_requests": 1, "window_seconds": 3},
                },
                "GDAX": {
                    "base_url": "https://api-public.sandbox.gdax.com",
                    "credentials": {"public_key": "pub", "private_key": "cHJpdg==", "passphrase": "phrase"},
                },
                "Bittrex": {"enabled": False},
            },
        })

    def test_credentials_applied(self, settings):
        """Test that credentials flow into the client."""
        client = ExchangeRegistry(settings).lookup("Kraken")
        assert client.public_api_key == "pub"
        assert client.private_api_key == "cHJpdg=="
        assert client.has_credentials

    def test_passphrase_and_base_url(self, settings):
        """Test passphrase and base URL override."""
        client = ExchangeRegistry(settings).lookup("GDAX")
        assert client.passphrase == "phrase"
        assert client.base_url == "https://api-public.sandbox.gdax.com"

    def test_rate_limit_override(self, settings):
        """Test per-exchange rate limit override and global default."""
        registry = ExchangeRegistry(settings)
        kraken = registry.lookup("Kraken")
        gemini = registry.lookup("Gemini")
        assert (kraken.rate_limit.max_requests, kraken.rate_limit.window_seconds) == (1, 3.0)
        assert (gemini.rate_limit.max_requests, gemini.rate_limit.window_seconds) == (10, 1.0)

    def test_http_and_proxy_settings(self, settings):
        """Test user agent, timeout and proxy settings."""
        client = ExchangeRegistry(settings).lookup("Gemini")
        assert client.request_user_agent == "desk/1.0"
        assert client.timeout == 5.0
        assert client.proxy.proxy_url == "http://u:p@127.0.0.1:8080"

    def test_disabled_exchange_is_absent(self, settings):
        """Test that disabled exchanges are not listed or returned."""
        registry = ExchangeRegistry(settings)
        assert registry.lookup("Bittrex") is None
        assert "Bittrex" not in registry.list_all()
        assert "Bittrex" not in registry.names()

    def test_unconfigured_exchange_has_no_credentials(self, settings):
        """Test that exchanges missing from settings still build."""
        client = ExchangeRegistry(settings).lookup("Bitfinex")
        assert isinstance(client, BitfinexClient)
        assert not client.has_credentials
