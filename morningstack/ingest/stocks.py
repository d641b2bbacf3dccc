"""Market index quotes for the ticker widget (Yahoo Finance, no key)."""

from __future__ import annotations

import logging
from datetime import datetime, time

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.models import StockData

logger = logging.getLogger(__name__)

QUOTE_URL = "https://query1.finance.yahoo.com/v7/finance/quote"

INDEX_SYMBOLS: dict[str, str] = {
    "^N225": "Nikkei 225",
    "^GSPC": "S&P 500",
    "^IXIC": "NASDAQ",
}

TTL_MARKET_OPEN = 15 * 60
TTL_MARKET_CLOSED = 6 * 60 * 60

# Trading windows in UTC. The US window spans both EDT and EST sessions.
JPX_HOURS = (time(0, 0), time(6, 0))
US_HOURS = (time(13, 30), time(21, 0))


def market_aware_ttl(now: datetime) -> int:
    """Short TTL while JPX or NYSE/NASDAQ trades, long TTL otherwise.

    ``now`` must be in UTC.
    """
    if now.weekday() >= 5:
        return TTL_MARKET_CLOSED

    t = now.time()
    for start, end in (JPX_HOURS, US_HOURS):
        if start <= t < end:
            return TTL_MARKET_OPEN
    return TTL_MARKET_CLOSED


def _make_quote(quote: dict) -> StockData:
    symbol = quote["symbol"]
    return StockData(
        symbol=symbol,
        name=INDEX_SYMBOLS.get(symbol) or quote.get("shortName") or symbol,
        price=quote.get("regularMarketPrice") or 0.0,
        change_amount=round(quote.get("regularMarketChange") or 0.0, 2),
        change_percent=round(quote.get("regularMarketChangePercent") or 0.0, 2),
        currency=quote.get("currency") or "USD",
    )


async def load_stocks(api: SourceAPI, config) -> list[StockData]:
    data = await api.get_json(QUOTE_URL, params={"symbols": ",".join(INDEX_SYMBOLS)})
    response = data["quoteResponse"]
    if response.get("error"):
        raise ValueError(f"Yahoo Finance error: {response['error']}")

    stocks = [_make_quote(q) for q in response.get("result", [])]
    logger.info("Fetched %d index quotes", len(stocks))
    return stocks


CONFIG = SourceConfig(name="stocks", load=load_stocks, ttl=market_aware_ttl, limit=None)
