"""Base client class for exchange adapters.

Every adapter funnels its HTTP traffic through :meth:`BaseExchangeClient.execute`.
Exchange specifics live only in the three hooks (:meth:`process_request_url`,
:meth:`process_request`, :meth:`process_response`) and in the capability
methods an adapter chooses to override.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping

import aiohttp

from .decoder import decode
from .errors import NotSupportedError
from .protocol import (
    ExchangeAPIOrderResult,
    ExchangeOrderBook,
    ExchangeOrderResult,
    ExchangeTicker,
    ExchangeTrade,
)
from .rate_limit import RateGate

logger = logging.getLogger(__name__)

EXCHANGE_NAME_NULL = "NullExchange"
DEFAULT_USER_AGENT = "exchangeapi"
DEFAULT_TIMEOUT_SECONDS = 30.0
NO_RESPONSE_MESSAGE = "no response from exchange"


class ProxyConfig:
    """HTTP proxy configuration."""

    def __init__(self, url: str | None = None, username: str | None = None, password: str | None = None):
        self.url = url
        self.username = username
        self.password = password

    @property
    def proxy_url(self) -> str | None:
        if not self.url:
            return None
        if self.username and self.password:
            protocol, _, rest = self.url.partition("://") if "://" in self.url else ("http", "", self.url)
            return f"{protocol}://{self.username}:{self.password}@{rest}"
        return self.url


@dataclass
class HttpRequest:
    """Outbound request as seen by :meth:`BaseExchangeClient.process_request`."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | None = None


@dataclass(frozen=True)
class RawResponse:
    """Status, headers and body of a completed call, whatever its status."""

    status: int
    headers: Mapping[str, str]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        value = self.headers.get(name)
        if value is not None:
            return value
        lowered = name.lower()
        for key, val in self.headers.items():
            if key.lower() == lowered:
                return val
        return default


def utc_from_timestamp(seconds: float) -> datetime:
    """Convert a unix timestamp in seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_timestamp(value: datetime) -> float:
    """Unix seconds for ``value``; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class BaseExchangeClient(ABC):
    """Base class for all exchange adapters."""

    name: str = EXCHANGE_NAME_NULL

    def __init__(
        self,
        public_api_key: str | None = None,
        private_api_key: str | None = None,
        *,
        passphrase: str | None = None,
        base_url: str | None = None,
        rate_limit: RateGate | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        proxy: ProxyConfig | None = None,
        **options: Any,
    ):
        """Initialize exchange client.

        Args:
            public_api_key: Public API key, only needed for private endpoints
            private_api_key: Private API key, only needed for private endpoints
            passphrase: API passphrase (GDAX)
            base_url: Override the exchange's default base URL
            rate_limit: Rate gate owned by this client (default 5 per 15s)
            user_agent: User-Agent header value
            timeout: Total request timeout in seconds
            proxy: Proxy configuration
            **options: Additional exchange-specific options
        """
        self.public_api_key = public_api_key
        self.private_api_key = private_api_key
        self.passphrase = passphrase
        self.base_url = base_url or self.get_base_url()
        self.rate_limit = rate_limit or RateGate()
        self.request_method = "GET"
        self.request_content_type = "text/plain"
        self.request_user_agent = user_agent
        self.timeout = timeout
        self.proxy = proxy or ProxyConfig()
        self.options = options
        self.session: aiohttp.ClientSession | None = None
        self._last_nonce = 0

    @abstractmethod
    def get_base_url(self) -> str:
        """Default base API URL of the exchange."""
        ...

    @property
    def has_credentials(self) -> bool:
        return bool(self.public_api_key and self.private_api_key)

    @staticmethod
    def generate_signature(
        secret: str | bytes,
        message: str | bytes,
        digest: str = "sha256",
        encoding: str = "hex",
    ) -> str:
        """Generate an HMAC signature.

        Args:
            secret: Secret key
            message: Message to sign
            digest: hashlib digest name (sha256, sha384, sha512)
            encoding: 'hex' or 'base64'

        Returns:
            Encoded signature
        """
        key = secret.encode() if isinstance(secret, str) else secret
        msg = message.encode() if isinstance(message, str) else message
        mac = hmac.new(key, msg, getattr(hashlib, digest))
        if encoding == "hex":
            return mac.hexdigest()
        if encoding == "base64":
            return base64.b64encode(mac.digest()).decode()
        raise ValueError(f"Unsupported signature encoding: {encoding}")

    def generate_nonce(self) -> int:
        """Millisecond nonce, strictly increasing for this client."""
        nonce = max(int(time.time() * 1000), self._last_nonce + 1)
        self._last_nonce = nonce
        return nonce

    @staticmethod
    def encode_form(payload: Mapping[str, Any] | None) -> str:
        """Join payload entries as ``key=value`` pairs in insertion order."""
        if not payload:
            return ""
        return "&".join(f"{key}={value}" for key, value in payload.items())

    def process_request_url(self, url: str, payload: dict[str, Any] | None) -> str:
        """Hook: adjust the full URL before the request is built."""
        return url

    def process_request(self, request: HttpRequest, payload: dict[str, Any] | None) -> None:
        """Hook: adjust headers, method or body before dispatch."""

    def process_response(self, response: RawResponse | None) -> None:
        """Hook: inspect the response; None when the call produced no response."""

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            connector = aiohttp.TCPConnector()
            self.session = aiohttp.ClientSession(connector=connector)
        return self.session

    def _build_request(self, url: str, payload: dict[str, Any] | None, method: str | None) -> HttpRequest:
        request = HttpRequest(
            method=method or self.request_method,
            url=url,
            headers={
                "Content-Type": self.request_content_type,
                "User-Agent": self.request_user_agent,
                "Cache-Control": "no-cache, no-store",
                "Pragma": "no-cache",
            },
        )
        if payload:
            request.body = self.encode_form(payload)
        return request

    async def _dispatch(self, request: HttpRequest) -> RawResponse | None:
        session = await self._ensure_session()
        logger.debug("%s %s %s", self.name, request.method, request.url)
        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
                proxy=self.proxy.proxy_url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                # Bodies in a foreign charset are still captured, with bad bytes replaced
                text = await resp.text(errors="replace")
                response = RawResponse(resp.status, resp.headers, text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("%s %s %s failed without response: %s", self.name, request.method, request.url, e)
            return None

        if not response.ok:
            logger.info("%s %s %s returned HTTP %s", self.name, request.method, request.url, response.status)
        return response

    async def execute(
        self,
        path: str | None,
        base_url: str | None = None,
        payload: dict[str, Any] | None = None,
        *,
        method: str | None = None,
    ) -> RawResponse | None:
        """Run one request through the pipeline.

        Args:
            path: Route relative to the base URL, with or without leading slash
            base_url: Override the client's base URL for this call only
            payload: Request parameters, form-encoded into the body when non-empty
            method: Override the HTTP method for this call only

        Returns:
            The captured response (any status), or None if the path is empty
            or no response could be obtained
        """
        await self.rate_limit.acquire()
        if path is None or not path.strip():
            return None
        path = path.strip()
        if not path.startswith("/"):
            path = "/" + path

        url = self.process_request_url((base_url or self.base_url) + path, payload)
        request = self._build_request(url, payload, method)
        self.process_request(request, payload)
        response = await self._dispatch(request)
        self.process_response(response)
        return response

    async def make_request(
        self,
        path: str | None,
        base_url: str | None = None,
        payload: dict[str, Any] | None = None,
        *,
        method: str | None = None,
    ) -> str | None:
        """Run a request and return the raw body text."""
        response = await self.execute(path, base_url, payload, method=method)
        return response.text if response is not None else None

    async def make_json_request(
        self,
        path: str | None,
        shape: Any = Any,
        base_url: str | None = None,
        payload: dict[str, Any] | None = None,
        *,
        method: str | None = None,
    ) -> Any:
        """Run a request and decode the JSON body into ``shape``.

        Returns None when no body was obtained. Raises DecodeError if the body
        does not parse into ``shape``.
        """
        raw = await self.make_request(path, base_url, payload, method=method)
        if not raw:
            return None
        return decode(raw, shape)

    def _unsupported(self, operation: str) -> NotSupportedError:
        return NotSupportedError(self.name, operation)

    def _require_credentials(self) -> None:
        if not self.has_credentials:
            raise ValueError(f"{self.name} requires public_api_key and private_api_key for private endpoints")

    def _error_result(self, order_id: str, message: str = NO_RESPONSE_MESSAGE) -> ExchangeOrderResult:
        return ExchangeOrderResult(order_id=order_id, result=ExchangeAPIOrderResult.ERROR, message=message)

    async def list_symbols(self) -> list[str]:
        raise self._unsupported("list_symbols")

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        raise self._unsupported("get_ticker")

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        raise self._unsupported("get_order_book")

    def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        """Iterate trades oldest to newest.

        Adapters override this with an async generator. The default raises
        when called, before any iteration starts.
        """
        raise self._unsupported("get_historical_trades")

    def get_recent_trades(self, symbol: str) -> AsyncIterator[ExchangeTrade]:
        return self.get_historical_trades(symbol, None)

    async def get_available_balances(self) -> dict[str, float]:
        raise self._unsupported("get_available_balances")

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        raise self._unsupported("place_order")

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        raise self._unsupported("get_order_details")

    async def cancel_order(self, order_id: str) -> str | None:
        raise self._unsupported("cancel_order")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> BaseExchangeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self.base_url!r}, rate_limit={self.rate_limit!r})"
