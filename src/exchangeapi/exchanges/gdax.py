"""GDAX (Coinbase Exchange) adapter."""

from __future__ import annotations

import base64
import json
import logging
import time
from datetime import datetime
from typing import Any, AsyncIterator
from urllib.parse import urlsplit

from .base import NO_RESPONSE_MESSAGE, BaseExchangeClient, HttpRequest, RawResponse, to_timestamp
from .decoder import decode
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


def _parse_order(data: dict[str, Any]) -> ExchangeOrderResult:
    amount = float(data.get("size") or 0)
    filled = float(data.get("filled_size") or 0)
    executed_value = float(data.get("executed_value") or 0)
    status = data.get("status")
    if status == "done":
        result = ExchangeAPIOrderResult.CANCELED if data.get("done_reason") == "canceled" else ExchangeAPIOrderResult.FILLED
    elif status in ("pending", "open", "active"):
        result = ExchangeAPIOrderResult.FILLED_PARTIALLY if filled > 0 else ExchangeAPIOrderResult.PENDING
    elif status == "rejected":
        result = ExchangeAPIOrderResult.ERROR
    else:
        result = ExchangeAPIOrderResult.UNKNOWN

    return ExchangeOrderResult(
        order_id=data["id"],
        result=result,
        message=data.get("reject_reason"),
        amount=amount,
        amount_filled=filled,
        average_price=executed_value / filled if filled else 0.0,
        order_date=data.get("created_at"),
        symbol=data.get("product_id"),
        is_buy=data.get("side") == "buy",
    )


class GdaxClient(BaseExchangeClient):
    """GDAX exchange client.

    Private calls need ``passphrase`` in addition to the key pair. The private
    key is the base64 secret issued by the exchange.
    """

    name = "GDAX"

    def get_base_url(self) -> str:
        return "https://api.gdax.com"

    def process_request(self, request: HttpRequest, payload: dict[str, Any] | None) -> None:
        if payload is None:
            return

        parts = urlsplit(request.url)
        request_path = parts.path + (f"?{parts.query}" if parts.query else "")
        body = json.dumps(payload) if payload else ""
        timestamp = str(time.time())

        request.body = body or None
        request.headers["Content-Type"] = "application/json"
        request.headers["CB-ACCESS-KEY"] = self.public_api_key or ""
        request.headers["CB-ACCESS-TIMESTAMP"] = timestamp
        request.headers["CB-ACCESS-PASSPHRASE"] = self.passphrase or ""
        request.headers["CB-ACCESS-SIGN"] = self.generate_signature(
            base64.b64decode(self.private_api_key or ""),
            timestamp + request.method + request_path + body,
            digest="sha256",
            encoding="base64",
        )

    def _check(self, data: Any) -> Any:
        if isinstance(data, dict) and set(data) == {"message"}:
            raise ExchangeAPIError(self.name, data["message"])
        return data

    async def _private(self, path: str, payload: dict[str, Any] | None = None, method: str = "GET") -> Any:
        self._require_credentials()
        if not self.passphrase:
            raise ValueError("GDAX requires passphrase for private endpoints")
        data = await self.make_json_request(path, payload=payload or {}, method=method)
        return self._check(data)

    async def list_symbols(self) -> list[str]:
        products = await self.make_json_request("/products", list[dict[str, Any]])
        return [product["id"] for product in products or []]

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        try:
            data = self._check(await self.make_json_request(f"/products/{symbol}/ticker"))
        except ExchangeAPIError as e:
            logger.warning("GDAX ticker for %s failed: %s", symbol, e.message)
            return None
        if not data:
            return None

        base, _, quote = symbol.partition("-")
        last = float(data["price"])
        volume = float(data.get("volume") or 0)
        return ExchangeTicker(
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            last=last,
            volume=ExchangeVolume(
                timestamp=data.get("time"),
                price_symbol=quote,
                price_amount=volume * last,
                quantity_symbol=base,
                quantity_amount=volume,
            ),
        )

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        # Level 2 is the aggregated top 50; max_count only trims it
        try:
            data = self._check(await self.make_json_request(f"/products/{symbol}/book?level=2"))
        except ExchangeAPIError as e:
            logger.warning("GDAX order book for %s failed: %s", symbol, e.message)
            return None
        if not data:
            return None

        return ExchangeOrderBook(
            bids=[ExchangeOrderPrice(price=float(p), amount=float(a)) for p, a, *_ in data.get("bids", [])][:max_count],
            asks=[ExchangeOrderPrice(price=float(p), amount=float(a)) for p, a, *_ in data.get("asks", [])][:max_count],
        )

    def _trade_page(self, response: RawResponse) -> list[dict[str, Any]]:
        page = self._check(decode(response.text, Any))
        if not response.ok:
            raise ExchangeAPIError(self.name, f"HTTP {response.status}", status=response.status)
        return page

    async def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        # Pages run newest to oldest; the CB-AFTER header is the cursor to the next older page
        cutoff = to_timestamp(since) if since else None
        collected: list[ExchangeTrade] = []
        after: str | None = None
        while True:
            path = f"/products/{symbol}/trades" + (f"?after={after}" if after else "")
            response = await self.execute(path)
            if response is None or not response.text:
                break
            page = self._trade_page(response)
            if not page:
                break

            reached = False
            for row in page:
                trade = ExchangeTrade(
                    id=int(row["trade_id"]),
                    timestamp=row["time"],
                    price=float(row["price"]),
                    amount=float(row["size"]),
                    # side is the maker's side; a sell maker means the taker bought
                    is_buy=row.get("side") == "sell",
                )
                if cutoff is not None and trade.timestamp.timestamp() < cutoff:
                    reached = True
                    break
                collected.append(trade)

            after = response.header("CB-AFTER")
            if cutoff is None or reached or not after:
                break

        for trade in reversed(collected):
            yield trade

    async def get_available_balances(self) -> dict[str, float]:
        data = await self._private("/accounts")
        if data is None:
            logger.warning("GDAX balances: no response")
            return {}
        return {row["currency"]: float(row.get("available") or 0) for row in data}

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        payload = {
            "type": "limit",
            "side": "buy" if buy else "sell",
            "product_id": symbol,
            "price": str(price),
            "size": str(amount),
        }
        try:
            data = await self._private("/orders", payload, method="POST")
        except ExchangeAPIError as e:
            return self._error_result("", e.message)
        if not data:
            return self._error_result("")
        return _parse_order(data)

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        try:
            data = await self._private(f"/orders/{order_id}")
        except ExchangeAPIError as e:
            return self._error_result(order_id, e.message)
        if not data:
            return self._error_result(order_id)
        return _parse_order(data)

    async def cancel_order(self, order_id: str) -> str | None:
        try:
            data = await self._private(f"/orders/{order_id}", method="DELETE")
        except ExchangeAPIError as e:
            return e.message
        if data is None:
            return NO_RESPONSE_MESSAGE
        return None
