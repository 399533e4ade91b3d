"""
Built-in price source configurations.

Binance, Coinbase Exchange and Kraken are public. CoinGecko accepts an
optional demo key; CoinMarketCap requires one and is skipped without it.
"""

import logging
from typing import Optional

import aiohttp

from coinpulse.core.config import Settings
from coinpulse.services.market_data.mapped_source import (
    FieldMapping,
    MappedQuoteSource,
    QuoteSourceConfig,
)

logger = logging.getLogger(__name__)


BINANCE = QuoteSourceConfig(
    name="binance",
    base_url="https://api.binance.com/api/v3",
    path="/ticker/24hr",
    params={"symbol": "{pair}"},
    pair_format="{symbol}USDT",
    fields=FieldMapping(
        price="lastPrice",
        volume="quoteVolume",
        change="priceChangePercent",
        high="highPrice",
        low="lowPrice",
    ),
)

COINBASE = QuoteSourceConfig(
    name="coinbase",
    base_url="https://api.exchange.coinbase.com",
    path="/products/{pair}/stats",
    pair_format="{symbol}-USD",
    fields=FieldMapping(
        price="last",
        volume="volume",
        high="high",
        low="low",
        open="open",
    ),
    volume_in_base=True,
)

KRAKEN = QuoteSourceConfig(
    name="kraken",
    base_url="https://api.kraken.com/0/public",
    path="/Ticker",
    params={"pair": "{pair}"},
    pair_format="{symbol}USD",
    pair_overrides={
        "BTC": "XXBTZUSD",
        "ETH": "XETHZUSD",
        "XRP": "XXRPZUSD",
        "DOGE": "XDGUSD",
    },
    fields=FieldMapping(
        price="result.*.c.0",
        volume="result.*.v.1",
        high="result.*.h.1",
        low="result.*.l.1",
        open="result.*.o",
    ),
    volume_in_base=True,
)

COINGECKO = QuoteSourceConfig(
    name="coingecko",
    base_url="https://api.coingecko.com/api/v3",
    path="/simple/price",
    params={
        "ids": "{pair}",
        "vs_currencies": "usd",
        "include_24hr_vol": "true",
        "include_24hr_change": "true",
    },
    pair_format="{symbol_lower}",
    pair_overrides={
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "SOL": "solana",
        "XRP": "ripple",
        "ADA": "cardano",
        "DOGE": "dogecoin",
        "BNB": "binancecoin",
        "AVAX": "avalanche-2",
        "DOT": "polkadot",
        "LINK": "chainlink",
    },
    fields=FieldMapping(
        price="{pair}.usd",
        volume="{pair}.usd_24h_vol",
        change="{pair}.usd_24h_change",
    ),
    api_key_header="x-cg-demo-api-key",
)

COINMARKETCAP = QuoteSourceConfig(
    name="coinmarketcap",
    base_url="https://pro-api.coinmarketcap.com/v1",
    path="/cryptocurrency/quotes/latest",
    params={"symbol": "{symbol}"},
    pair_format="{symbol}",
    fields=FieldMapping(
        price="data.{symbol}.quote.USD.price",
        volume="data.{symbol}.quote.USD.volume_24h",
        change="data.{symbol}.quote.USD.percent_change_24h",
    ),
    api_key_header="X-CMC_PRO_API_KEY",
    requires_api_key=True,
)

QUOTE_SOURCE_CONFIGS = {
    config.name: config
    for config in (BINANCE, COINBASE, KRAKEN, COINGECKO, COINMARKETCAP)
}


def _api_key_for(name: str, settings: Settings) -> Optional[str]:
    return {
        "coingecko": settings.coingecko_api_key,
        "coinmarketcap": settings.coinmarketcap_api_key,
    }.get(name)


def build_quote_sources(
    session: aiohttp.ClientSession, settings: Settings
) -> list[MappedQuoteSource]:
    """Instantiate the configured quote sources that can actually run."""
    sources = []
    for name in settings.quote_sources:
        config = QUOTE_SOURCE_CONFIGS.get(name.lower())
        if config is None:
            logger.warning(f"Unknown quote source in settings: {name}")
            continue

        api_key = _api_key_for(config.name, settings)
        if config.requires_api_key and not api_key:
            logger.info(f"Skipping {config.name}: no API key configured")
            continue

        sources.append(
            MappedQuoteSource(
                config,
                session,
                api_key=api_key,
                timeout=settings.quote_timeout_seconds,
            )
        )
    return sources
