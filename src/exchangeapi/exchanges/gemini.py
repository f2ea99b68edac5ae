"""Gemini exchange adapter."""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime
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

TRADES_PAGE_SIZE = 500


def _parse_order(data: dict[str, Any]) -> ExchangeOrderResult:
    amount = float(data.get("original_amount") or 0)
    filled = float(data.get("executed_amount") or 0)
    if data.get("is_cancelled"):
        status = ExchangeAPIOrderResult.CANCELED
    elif data.get("is_live"):
        status = ExchangeAPIOrderResult.FILLED_PARTIALLY if filled > 0 else ExchangeAPIOrderResult.PENDING
    else:
        status = ExchangeAPIOrderResult.FILLED

    return ExchangeOrderResult(
        order_id=str(data["order_id"]),
        result=status,
        amount=amount,
        amount_filled=filled,
        average_price=float(data.get("avg_execution_price") or 0),
        order_date=utc_from_timestamp(int(data["timestampms"]) / 1000) if data.get("timestampms") else None,
        symbol=data.get("symbol"),
        is_buy=data.get("side") == "buy",
    )


class GeminiClient(BaseExchangeClient):
    """Gemini exchange client.

    Private calls send no body: the JSON payload travels base64-encoded in
    ``X-GEMINI-PAYLOAD`` and is signed with HMAC-SHA384.
    """

    name = "Gemini"

    def get_base_url(self) -> str:
        return "https://api.gemini.com/v1"

    def process_request(self, request: HttpRequest, payload: dict[str, Any] | None) -> None:
        if payload is None:
            return

        body: dict[str, Any] = {"request": urlsplit(request.url).path, "nonce": str(payload["nonce"])}
        body.update((k, v) for k, v in payload.items() if k != "nonce")
        encoded = base64.b64encode(json.dumps(body).encode()).decode()

        request.method = "POST"
        request.body = None
        request.headers["Content-Length"] = "0"
        request.headers["X-GEMINI-APIKEY"] = self.public_api_key or ""
        request.headers["X-GEMINI-PAYLOAD"] = encoded
        request.headers["X-GEMINI-SIGNATURE"] = self.generate_signature(
            self.private_api_key or "", encoded, digest="sha384"
        )

    async def _query(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        data = await self.make_json_request(path, payload=payload)
        if isinstance(data, dict) and data.get("result") == "error":
            raise ExchangeAPIError(self.name, data.get("message") or data.get("reason") or "request failed")
        return data

    async def _private(self, path: str, **params: Any) -> Any:
        self._require_credentials()
        payload: dict[str, Any] = {"nonce": self.generate_nonce()}
        payload.update(params)
        return await self._query(path, payload)

    async def list_symbols(self) -> list[str]:
        return await self.make_json_request("/symbols", list[str]) or []

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        try:
            data = await self._query(f"/pubticker/{symbol}")
        except ExchangeAPIError as e:
            logger.warning("Gemini ticker for %s failed: %s", symbol, e.message)
            return None
        if not data:
            return None

        # Volume is keyed by currency, e.g. {"BTC": "...", "USD": "...", "timestamp": ms}
        quantity_symbol, price_symbol = symbol[:3].upper(), symbol[3:].upper()
        volume = data.get("volume") or {}
        return ExchangeTicker(
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            last=float(data["last"]),
            volume=ExchangeVolume(
                timestamp=utc_from_timestamp(int(volume["timestamp"]) / 1000) if volume.get("timestamp") else None,
                price_symbol=price_symbol,
                price_amount=float(volume.get(price_symbol) or 0),
                quantity_symbol=quantity_symbol,
                quantity_amount=float(volume.get(quantity_symbol) or 0),
            ),
        )

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        try:
            data = await self._query(f"/book/{symbol}?limit_bids={max_count}&limit_asks={max_count}")
        except ExchangeAPIError as e:
            logger.warning("Gemini order book for %s failed: %s", symbol, e.message)
            return None
        if not data:
            return None

        return ExchangeOrderBook(
            bids=[ExchangeOrderPrice(price=float(o["price"]), amount=float(o["amount"])) for o in data.get("bids", [])],
            asks=[ExchangeOrderPrice(price=float(o["price"]), amount=float(o["amount"])) for o in data.get("asks", [])],
        )

    async def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        cursor = int(to_timestamp(since) * 1000) if since else None
        last_tid = -1
        while True:
            path = f"/trades/{symbol}?limit_trades={TRADES_PAGE_SIZE}"
            if cursor is not None:
                path += f"&timestamp={cursor}"
            page = await self._query(path)
            if not page:
                return

            fresh = sorted((t for t in page if int(t["tid"]) > last_tid), key=lambda t: int(t["tid"]))
            for row in fresh:
                yield ExchangeTrade(
                    id=int(row["tid"]),
                    timestamp=utc_from_timestamp(int(row["timestampms"]) / 1000),
                    price=float(row["price"]),
                    amount=float(row["amount"]),
                    is_buy=row.get("type") == "buy",
                )

            if since is None or not fresh or len(page) < TRADES_PAGE_SIZE:
                return
            last_tid = int(fresh[-1]["tid"])
            cursor = int(fresh[-1]["timestampms"])

    async def get_available_balances(self) -> dict[str, float]:
        data = await self._private("/balances")
        if data is None:
            logger.warning("Gemini balances: no response")
            return {}
        return {row["currency"]: float(row.get("available") or 0) for row in data}

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        try:
            data = await self._private(
                "/order/new",
                symbol=symbol,
                amount=str(amount),
                price=str(price),
                side="buy" if buy else "sell",
                type="exchange limit",
            )
        except ExchangeAPIError as e:
            return self._error_result("", e.message)
        if not data:
            return self._error_result("")
        return _parse_order(data)

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        try:
            data = await self._private("/order/status", order_id=int(order_id))
        except ExchangeAPIError as e:
            return self._error_result(order_id, e.message)
        if not data:
            return self._error_result(order_id)
        return _parse_order(data)

    async def cancel_order(self, order_id: str) -> str | None:
        try:
            data = await self._private("/order/cancel", order_id=int(order_id))
        except ExchangeAPIError as e:
            return e.message
        if data is None:
            return NO_RESPONSE_MESSAGE
        return None
