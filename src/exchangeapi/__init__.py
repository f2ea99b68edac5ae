"""exchangeapi: one client interface over many exchange REST APIs."""

from .settings import Settings
from .exchanges import ExchangeAPI, ExchangeRegistry, get_exchange_api, get_exchange_api_dictionary

__all__ = [
    "Settings",
    "ExchangeAPI",
    "ExchangeRegistry",
    "get_exchange_api",
    "get_exchange_api_dictionary",
]
