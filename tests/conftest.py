"""Pytest configuration and fixtures."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from exchangeapi.exchanges.rate_limit import RateGate


def create_async_response(status=200, json_data=None, text=None, headers=None):
    """Create a mock aiohttp response usable as an async context manager."""
    resp = AsyncMock()
    resp.status = status
    resp.headers = headers or {}
    body = text if text is not None else json.dumps(json_data if json_data is not None else {})
    resp.text = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


def attach_session(client, *responses):
    """Replace the client's HTTP session with a mock serving ``responses`` in order.

    Exceptions in ``responses`` are raised by ``session.request`` instead.
    """
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    client._ensure_session = AsyncMock(return_value=session)
    return session


@pytest.fixture
def public_key():
    """Test public API key."""
    return "test_public_key_123456"


@pytest.fixture
def private_key():
    """Test private API key (base64, as Kraken and GDAX issue them)."""
    return "dGVzdF9wcml2YXRlX2tleV83ODkwMTI="


@pytest.fixture
def passphrase():
    """Test passphrase."""
    return "test_passphrase_345678"


@pytest.fixture
def fast_gate():
    """Rate gate that never blocks within a test."""
    return RateGate(1000, 1.0)


@pytest.fixture
def sample_ticker_body():
    """Normalized ticker document."""
    return {
        "bid": 44999.5,
        "ask": 45000.5,
        "last": 45000.0,
        "volume": {
            "timestamp": "2024-01-01T00:00:00Z",
            "price_symbol": "USD",
            "price_amount": 4500000.0,
            "quantity_symbol": "BTC",
            "quantity_amount": 100.0,
        },
    }
