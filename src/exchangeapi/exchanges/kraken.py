"""Kraken exchange adapter."""

from __future__ import annotations

import base64
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from urllib.parse import urlsplit

from .base import NO_RESPONSE_MESSAGE, BaseExchangeClient, HttpRequest, to_timestamp, utc_from_timestamp
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

_ORDER_STATUS = {
    "pending": ExchangeAPIOrderResult.PENDING,
    "open": ExchangeAPIOrderResult.PENDING,
    "closed": ExchangeAPIOrderResult.FILLED,
    "canceled": ExchangeAPIOrderResult.CANCELED,
    "expired": ExchangeAPIOrderResult.CANCELED,
}


class KrakenClient(BaseExchangeClient):
    """Kraken exchange client."""

    name = "Kraken"

    def get_base_url(self) -> str:
        return "https://api.kraken.com"

    def process_request(self, request: HttpRequest, payload: dict[str, Any] | None) -> None:
        if payload is None:
            return

        # Private endpoints: POST form body signed with the nonce inside it
        body = self.encode_form(payload)
        request.method = "POST"
        request.headers["Content-Type"] = "application/x-www-form-urlencoded"
        request.body = body

        path = urlsplit(request.url).path
        message = path.encode() + hashlib.sha256((str(payload["nonce"]) + body).encode()).digest()
        request.headers["API-Key"] = self.public_api_key or ""
        request.headers["API-Sign"] = self.generate_signature(
            base64.b64decode(self.private_api_key or ""),
            message,
            digest="sha512",
            encoding="base64",
        )

    async def _query(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        data = await self.make_json_request(path, dict[str, Any], payload=payload)
        if data is None:
            return None
        errors = data.get("error") or []
        if errors:
            raise ExchangeAPIError(self.name, ", ".join(errors))
        return data.get("result")

    async def _private(self, method: str, **params: Any) -> Any:
        self._require_credentials()
        payload: dict[str, Any] = {"nonce": self.generate_nonce()}
        payload.update(params)
        return await self._query(f"/0/private/{method}", payload)

    async def list_symbols(self) -> list[str]:
        result = await self._query("/0/public/AssetPairs")
        return list(result or {})

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        try:
            result = await self._query(f"/0/public/Ticker?pair={symbol}")
        except ExchangeAPIError as e:
            logger.warning("Kraken ticker for %s failed: %s", symbol, e.message)
            return None
        if not result:
            return None

        # Result is keyed by Kraken's canonical pair name, which may differ from the request
        ticker = next(iter(result.values()))
        last = float(ticker["c"][0])
        volume = float(ticker["v"][1])
        return ExchangeTicker(
            bid=float(ticker["b"][0]),
            ask=float(ticker["a"][0]),
            last=last,
            volume=ExchangeVolume(
                timestamp=datetime.now(timezone.utc),
                price_symbol=symbol,
                price_amount=volume * last,
                quantity_symbol=symbol,
                quantity_amount=volume,
            ),
        )

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        try:
            result = await self._query(f"/0/public/Depth?pair={symbol}&count={max_count}")
        except ExchangeAPIError as e:
            logger.warning("Kraken order book for %s failed: %s", symbol, e.message)
            return None
        if not result:
            return None

        book = next(iter(result.values()))
        return ExchangeOrderBook(
            bids=[ExchangeOrderPrice(price=float(p), amount=float(a)) for p, a, *_ in book.get("bids", [])],
            asks=[ExchangeOrderPrice(price=float(p), amount=float(a)) for p, a, *_ in book.get("asks", [])],
        )

    async def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        # Kraken's cursor is a nanosecond timestamp returned as "last"
        cursor = str(int(to_timestamp(since) * 1_000_000_000)) if since else None
        while True:
            path = f"/0/public/Trades?pair={symbol}"
            if cursor:
                path += f"&since={cursor}"
            result = await self._query(path)
            if not result:
                return

            last = result.get("last")
            rows = next((v for k, v in result.items() if k != "last"), [])
            for row in rows:
                price, volume, ts, side = row[0], row[1], float(row[2]), row[3]
                yield ExchangeTrade(
                    id=int(row[6]) if len(row) > 6 else int(ts * 1_000_000),
                    timestamp=utc_from_timestamp(ts),
                    price=float(price),
                    amount=float(volume),
                    is_buy=side == "b",
                )

            if since is None or not rows or last is None or str(last) == cursor:
                return
            cursor = str(last)

    async def get_available_balances(self) -> dict[str, float]:
        result = await self._private("Balance")
        if result is None:
            logger.warning("Kraken balances: no response")
            return {}
        return {asset: float(amount) for asset, amount in result.items()}

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        try:
            result = await self._private(
                "AddOrder",
                pair=symbol,
                type="buy" if buy else "sell",
                ordertype="limit",
                price=price,
                volume=amount,
            )
        except ExchangeAPIError as e:
            return self._error_result("", e.message)
        if result is None:
            return self._error_result("")

        txids = result.get("txid") or []
        return ExchangeOrderResult(
            order_id=txids[0] if txids else "",
            result=ExchangeAPIOrderResult.PENDING,
            message=(result.get("descr") or {}).get("order"),
            amount=amount,
            order_date=datetime.now(timezone.utc),
            symbol=symbol,
            is_buy=buy,
        )

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        try:
            result = await self._private("QueryOrders", txid=order_id)
        except ExchangeAPIError as e:
            return self._error_result(order_id, e.message)
        if not result or order_id not in result:
            return self._error_result(order_id)

        order = result[order_id]
        descr = order.get("descr") or {}
        amount = float(order.get("vol", 0))
        filled = float(order.get("vol_exec", 0))
        status = _ORDER_STATUS.get(order.get("status", ""), ExchangeAPIOrderResult.UNKNOWN)
        if status == ExchangeAPIOrderResult.PENDING and filled > 0:
            status = ExchangeAPIOrderResult.FILLED_PARTIALLY

        return ExchangeOrderResult(
            order_id=order_id,
            result=status,
            message=order.get("reason"),
            amount=amount,
            amount_filled=filled,
            average_price=float(order.get("price", 0)),
            order_date=utc_from_timestamp(float(order["opentm"])) if order.get("opentm") else None,
            symbol=descr.get("pair"),
            is_buy=descr.get("type") == "buy",
        )

    async def cancel_order(self, order_id: str) -> str | None:
        try:
            result = await self._private("CancelOrder", txid=order_id)
        except ExchangeAPIError as e:
            return e.message
        if result is None:
            return NO_RESPONSE_MESSAGE
        return None
