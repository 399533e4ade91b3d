"""
Configurable Quote Adapter

Most ticker endpoints differ only in URL and field names, so a quote source
is described by a QuoteSourceConfig (base URL, path, field mapping) instead
of a hand-written class per exchange.

Field paths are dotted: "data.{symbol}.quote.USD.price", "result.*.c.0".
- integer parts index into lists
- "*" takes the first value of a mapping (Kraken keys results by pair name)
- "{symbol}" / "{pair}" are substituted before lookup
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from coinpulse.schemas.market import Quote
from coinpulse.services.base import MalformedPayloadError
from coinpulse.services.market_data.http_client import fetch_json
from coinpulse.services.market_data.interface import QuoteSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMapping:
    """Where each quote field lives in the payload."""

    price: str
    volume: Optional[str] = None
    change: Optional[str] = None  # 24h change in percent
    high: Optional[str] = None
    low: Optional[str] = None
    open: Optional[str] = None  # Used to derive change when not provided


@dataclass(frozen=True)
class QuoteSourceConfig:
    """Static description of one ticker endpoint."""

    name: str
    base_url: str
    path: str
    fields: FieldMapping
    params: dict[str, str] = field(default_factory=dict)
    pair_format: str = "{symbol}USDT"
    pair_overrides: dict[str, str] = field(default_factory=dict)
    volume_in_base: bool = False  # Volume quoted in coins, convert with price
    api_key_header: Optional[str] = None
    requires_api_key: bool = False


def extract_path(payload: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts/lists."""
    current = payload
    for part in path.split("."):
        if part == "*":
            if not isinstance(current, dict) or not current:
                raise KeyError(path)
            current = next(iter(current.values()))
        elif isinstance(current, list):
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current[part]
        else:
            raise KeyError(path)
    return current


class MappedQuoteSource(QuoteSource):
    """QuoteSource driven by a QuoteSourceConfig."""

    def __init__(
        self,
        config: QuoteSourceConfig,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = None,
        timeout: float = 6.0,
    ):
        self.config = config
        self._session = session
        self._api_key = api_key
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.config.name

    def pair_for(self, symbol: str) -> str:
        symbol = symbol.upper().strip()
        return self.config.pair_overrides.get(symbol) or self.config.pair_format.format(
            symbol=symbol, symbol_lower=symbol.lower()
        )

    async def fetch_quote(self, symbol: str) -> Quote:
        symbol = symbol.upper().strip()
        pair = self.pair_for(symbol)
        url = self.config.base_url + self.config.path.format(symbol=symbol, pair=pair)
        params = {k: v.format(symbol=symbol, pair=pair) for k, v in self.config.params.items()}

        headers = None
        if self.config.api_key_header and self._api_key:
            headers = {self.config.api_key_header: self._api_key}

        payload = await fetch_json(
            self._session,
            self.name,
            url,
            params=params or None,
            headers=headers,
            timeout=self._timeout,
        )
        return self.parse(symbol, payload)

    def parse(self, symbol: str, payload: Any) -> Quote:
        """Normalize a raw ticker payload into a Quote."""
        pair = self.pair_for(symbol)
        fields = self.config.fields

        def read(path: Optional[str]) -> Optional[float]:
            if path is None:
                return None
            value = extract_path(payload, path.format(symbol=symbol, pair=pair))
            return None if value is None else float(value)

        try:
            price = read(fields.price)
            volume = read(fields.volume)
            change = read(fields.change)
            high = read(fields.high)
            low = read(fields.low)
            open_price = read(fields.open)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise MalformedPayloadError(
                self.name, f"Unexpected ticker payload for {symbol}: missing {e}"
            ) from e

        if price is None or not math.isfinite(price) or price <= 0:
            raise MalformedPayloadError(self.name, f"Invalid price for {symbol}: {price}")

        for label, value in (("volume", volume), ("change", change), ("high", high), ("low", low), ("open", open_price)):
            if value is not None and not math.isfinite(value):
                raise MalformedPayloadError(self.name, f"Non-finite {label} for {symbol}: {value}")

        if change is None and open_price:
            change = (price - open_price) / open_price * 100

        volume = volume or 0.0
        if self.config.volume_in_base:
            volume *= price

        try:
            return Quote(
                source=self.name,
                symbol=symbol,
                price=price,
                volume_24h=max(volume, 0.0),
                change_24h=change or 0.0,
                high_24h=high,
                low_24h=low,
                fetched_at=datetime.now(timezone.utc),
            )
        except ValidationError as e:
            raise MalformedPayloadError(
                self.name, f"Rejected ticker for {symbol}: {e.error_count()} invalid fields"
            ) from e
