"""Exchange adapters and the shared request pipeline."""

from .base import BaseExchangeClient, HttpRequest, ProxyConfig, RawResponse
from .decoder import decode, encode
from .errors import DecodeError, ExchangeAPIError, ExchangeError, NotSupportedError
from .protocol import (
    ExchangeAPI,
    ExchangeAPIOrderResult,
    ExchangeOrderBook,
    ExchangeOrderPrice,
    ExchangeOrderResult,
    ExchangeTicker,
    ExchangeTrade,
    ExchangeVolume,
)
from .rate_limit import RateGate
from .registry import (
    EXCHANGE_CLIENTS,
    ExchangeRegistry,
    get_exchange_api,
    get_exchange_api_dictionary,
)

__all__ = [
    "BaseExchangeClient",
    "HttpRequest",
    "ProxyConfig",
    "RawResponse",
    "decode",
    "encode",
    "DecodeError",
    "ExchangeAPIError",
    "ExchangeError",
    "NotSupportedError",
    "ExchangeAPI",
    "ExchangeAPIOrderResult",
    "ExchangeOrderBook",
    "ExchangeOrderPrice",
    "ExchangeOrderResult",
    "ExchangeTicker",
    "ExchangeTrade",
    "ExchangeVolume",
    "RateGate",
    "EXCHANGE_CLIENTS",
    "ExchangeRegistry",
    "get_exchange_api",
    "get_exchange_api_dictionary",
]
