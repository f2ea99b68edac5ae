"""Bittrex exchange adapter."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from .base import NO_RESPONSE_MESSAGE, BaseExchangeClient, HttpRequest, to_timestamp
from .errors import ExchangeAPIError
from .protocol import (
    ExchangeAPIOrderResult,
    ExchangeOrderBook,
    ExchangeOrderPrice,
    ExchangeOrderResult,
    ExchangeTicker,
    ExchangeTrade,
    ExchangeVolume,
)

logger = logging.getLogger(__name__)


def _parse_time(value: str | None) -> datetime | None:
    """Bittrex timestamps are UTC without an offset, e.g. 2014-07-09T03:21:20.08."""
    if not value:
        return None
    return datetime.fromisoformat(value.rstrip("Z")).replace(tzinfo=timezone.utc)


class BittrexClient(BaseExchangeClient):
    """Bittrex exchange client.

    Private calls carry ``apikey`` and ``nonce`` in the query string; the full
    URL is then signed into the ``apisign`` header.
    """

    name = "Bittrex"

    def get_base_url(self) -> str:
        return "https://bittrex.com/api/v1.1"

    def process_request_url(self, url: str, payload: dict[str, Any] | None) -> str:
        if payload is None:
            return url
        nonce = payload["nonce"] if "nonce" in payload else self.generate_nonce()
        params: dict[str, Any] = {"apikey": self.public_api_key or "", "nonce": nonce}
        params.update((k, v) for k, v in payload.items() if k != "nonce")
        separator = "&" if "?" in url else "?"
        return url + separator + self.encode_form(params)

    def process_request(self, request: HttpRequest, payload: dict[str, Any] | None) -> None:
        if payload is None:
            return
        # Everything travels in the URL
        request.body = None
        request.headers["apisign"] = self.generate_signature(
            self.private_api_key or "", request.url, digest="sha512"
        )

    async def _query(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        data = await self.make_json_request(path, dict[str, Any], payload=payload)
        if data is None:
            return None
        if not data.get("success"):
            raise ExchangeAPIError(self.name, data.get("message") or "request failed")
        return data.get("result")

    async def _private(self, path: str, **params: Any) -> Any:
        self._require_credentials()
        payload: dict[str, Any] = {"nonce": self.generate_nonce()}
        payload.update(params)
        return await self._query(path, payload)

    async def list_symbols(self) -> list[str]:
        result = await self._query("/public/getmarkets")
        return [market["MarketName"] for market in result or []]

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        try:
            result = await self._query(f"/public/getmarketsummary?market={symbol}")
        except ExchangeAPIError as e:
            logger.warning("Bittrex ticker for %s failed: %s", symbol, e.message)
            return None
        if not result:
            return None

        summary = result[0]
        # Market names are QUOTE-BASE, e.g. BTC-LTC
        quote, _, base = symbol.partition("-")
        return ExchangeTicker(
            bid=float(summary["Bid"]),
            ask=float(summary["Ask"]),
            last=float(summary["Last"]),
            volume=ExchangeVolume(
                timestamp=_parse_time(summary.get("TimeStamp")),
                price_symbol=quote,
                price_amount=float(summary.get("BaseVolume") or 0),
                quantity_symbol=base,
                quantity_amount=float(summary.get("Volume") or 0),
            ),
        )

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        try:
            result = await self._query(f"/public/getorderbook?market={symbol}&type=both&depth={max_count}")
        except ExchangeAPIError as e:
            logger.warning("Bittrex order book for %s failed: %s", symbol, e.message)
            return None
        if not result:
            return None

        return ExchangeOrderBook(
            bids=[ExchangeOrderPrice(price=float(o["Rate"]), amount=float(o["Quantity"])) for o in result.get("buy") or []][:max_count],
            asks=[ExchangeOrderPrice(price=float(o["Rate"]), amount=float(o["Quantity"])) for o in result.get("sell") or []][:max_count],
        )

    async def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        # Only the latest page of market history is published
        result = await self._query(f"/public/getmarkethistory?market={symbol}")
        cutoff = to_timestamp(since) if since else None
        trades = []
        for row in result or []:
            timestamp = _parse_time(row["TimeStamp"])
            if cutoff is not None and timestamp.timestamp() < cutoff:
                continue
            trades.append(
                ExchangeTrade(
                    id=row["Id"],
                    timestamp=timestamp,
                    price=float(row["Price"]),
                    amount=float(row["Quantity"]),
                    is_buy=row.get("OrderType") == "BUY",
                )
            )
        for trade in sorted(trades, key=lambda t: t.timestamp):
            yield trade

    async def get_available_balances(self) -> dict[str, float]:
        result = await self._private("/account/getbalances")
        if result is None:
            logger.warning("Bittrex balances: no response")
            return {}
        return {row["Currency"]: float(row.get("Available") or 0) for row in result}

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        path = "/market/buylimit" if buy else "/market/selllimit"
        try:
            result = await self._private(path, market=symbol, quantity=amount, rate=price)
        except ExchangeAPIError as e:
            return self._error_result("", e.message)
        if result is None:
            return self._error_result("")

        return ExchangeOrderResult(
            order_id=result["uuid"],
            result=ExchangeAPIOrderResult.PENDING,
            amount=amount,
            order_date=datetime.now(timezone.utc),
            symbol=symbol,
            is_buy=buy,
        )

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        try:
            order = await self._private("/account/getorder", uuid=order_id)
        except ExchangeAPIError as e:
            return self._error_result(order_id, e.message)
        if not order:
            return self._error_result(order_id)

        amount = float(order.get("Quantity") or 0)
        filled = amount - float(order.get("QuantityRemaining") or 0)
        if order.get("IsOpen"):
            status = ExchangeAPIOrderResult.FILLED_PARTIALLY if filled > 0 else ExchangeAPIOrderResult.PENDING
        elif order.get("CancelInitiated"):
            status = ExchangeAPIOrderResult.CANCELED
        else:
            status = ExchangeAPIOrderResult.FILLED

        return ExchangeOrderResult(
            order_id=order_id,
            result=status,
            amount=amount,
            amount_filled=filled,
            average_price=float(order.get("PricePerUnit") or 0),
            order_date=_parse_time(order.get("Opened")),
            symbol=order.get("Exchange"),
            is_buy="BUY" in (order.get("Type") or ""),
        )

    async def cancel_order(self, order_id: str) -> str | None:
        # Successful cancels carry a null result, so inspect the envelope directly
        self._require_credentials()
        payload = {"nonce": self.generate_nonce(), "uuid": order_id}
        data = await self.make_json_request("/market/cancel", dict[str, Any], payload=payload)
        if data is None:
            return NO_RESPONSE_MESSAGE
        if not data.get("success"):
            return data.get("message") or "cancel failed"
        return None
