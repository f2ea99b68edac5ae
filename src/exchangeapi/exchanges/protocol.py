"""Protocol definition and normalized result types for exchange clients."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Protocol

from pydantic import BaseModel, Field


class ExchangeVolume(BaseModel):
    """Traded volume in both legs of a pair."""

    timestamp: datetime | None = None
    price_symbol: str = ""
    price_amount: float = 0.0
    quantity_symbol: str = ""
    quantity_amount: float = 0.0


class ExchangeTicker(BaseModel):
    """Best bid/ask and last trade price for a symbol."""

    bid: float
    ask: float
    last: float
    volume: ExchangeVolume = Field(default_factory=ExchangeVolume)


class ExchangeOrderPrice(BaseModel):
    """One level of an order book."""

    price: float
    amount: float


class ExchangeOrderBook(BaseModel):
    """Bids (best first) and asks (best first)."""

    bids: list[ExchangeOrderPrice] = Field(default_factory=list)
    asks: list[ExchangeOrderPrice] = Field(default_factory=list)


class ExchangeTrade(BaseModel):
    """A single public trade."""

    id: int | str
    timestamp: datetime
    price: float
    amount: float
    is_buy: bool


class ExchangeAPIOrderResult(str, Enum):
    UNKNOWN = "unknown"
    FILLED = "filled"
    FILLED_PARTIALLY = "filled_partially"
    PENDING = "pending"
    ERROR = "error"
    CANCELED = "canceled"


class ExchangeOrderResult(BaseModel):
    """State of an order as reported by the exchange."""

    order_id: str
    result: ExchangeAPIOrderResult = ExchangeAPIOrderResult.UNKNOWN
    message: str | None = None
    amount: float = 0.0
    amount_filled: float = 0.0
    average_price: float = 0.0
    order_date: datetime | None = None
    symbol: str | None = None
    is_buy: bool = False


class ExchangeAPI(Protocol):
    """Capability set every exchange client exposes."""

    @property
    def name(self) -> str:
        """Registry name of the exchange."""
        ...

    async def list_symbols(self) -> list[str]:
        """Fetch tradable symbols in the exchange's own notation."""
        ...

    async def get_ticker(self, symbol: str) -> ExchangeTicker | None:
        """Fetch ticker for a symbol.

        Returns:
            Ticker, or None if no response was obtained or the exchange reported an error
        """
        ...

    async def get_order_book(self, symbol: str, max_count: int = 100) -> ExchangeOrderBook | None:
        """Fetch order book for a symbol.

        Args:
            symbol: Trading symbol
            max_count: Max levels per side, not every exchange honors it

        Returns:
            Order book, or None on failure
        """
        ...

    def get_historical_trades(
        self, symbol: str, since: datetime | None = None
    ) -> AsyncIterator[ExchangeTrade]:
        """Iterate trades oldest to newest.

        Args:
            symbol: Trading symbol
            since: Start time, None for the most recent trades only

        Yields:
            ExchangeTrade objects; pages are fetched lazily
        """
        ...

    def get_recent_trades(self, symbol: str) -> AsyncIterator[ExchangeTrade]:
        """Iterate the most recent trades."""
        ...

    async def get_available_balances(self) -> dict[str, float]:
        """Fetch amounts available to trade, keyed by currency."""
        ...

    async def place_order(self, symbol: str, amount: float, price: float, buy: bool) -> ExchangeOrderResult:
        """Place a limit order."""
        ...

    async def get_order_details(self, order_id: str) -> ExchangeOrderResult:
        """Fetch the state of an order."""
        ...

    async def cancel_order(self, order_id: str) -> str | None:
        """Cancel an order.

        Returns:
            None on success, otherwise the exchange's reason
        """
        ...

    async def close(self) -> None:
        """Release the HTTP session."""
        ...
