"""
Live check of every configured exchange.
Run with: python check_sources.py [SYMBOL ...]

Hits the real APIs; not part of the pytest suite.
"""

import asyncio
import os
import sys

# Set working directory to backend folder
backend_dir = os.path.dirname(os.path.abspath(__file__))
os.chdir(backend_dir)
sys.path.insert(0, backend_dir)

# Load environment variables from .env
from dotenv import load_dotenv
load_dotenv(os.path.join(backend_dir, ".env"))


async def check_sources(symbols: list[str]):
    """Aggregate quotes, then fetch depth and history for each symbol."""
    print("\n" + "=" * 60)
    print("COINPULSE - LIVE SOURCE CHECK")
    print("=" * 60)

    from coinpulse.core.config import settings
    from coinpulse.services.base import ServiceError
    from coinpulse.services.market_data import (
        BinanceMarketSource,
        KrakenOrderBookSource,
        MarketDataService,
        build_quote_sources,
        create_session,
    )

    async with create_session() as session:
        quote_sources = build_quote_sources(session, settings)
        binance = BinanceMarketSource(session)
        service = MarketDataService(
            quote_sources,
            order_book_sources=[binance, KrakenOrderBookSource(session)],
            history_source=binance,
            settings=settings,
        )

        print(f"\nQuote sources: {', '.join(service.source_names) or 'none'}")

        for symbol in symbols:
            print(f"\n[{symbol}]")
            print("-" * 40)

            try:
                price = await service.get_price(symbol)
            except ServiceError as e:
                print(f"  Price: FAILED ({e.message})")
                continue

            print(f"  Average: ${price.average:,.2f}  Median: ${price.median:,.2f}")
            print(f"  Range: ${price.min:,.2f} - ${price.max:,.2f} (spread {price.spread_pct:.3f}%)")
            print(f"  Confidence: {price.confidence.value} from {price.source_count} sources")
            for quote in price.quotes:
                print(f"    - {quote.source:<14} ${quote.price:,.2f}")
            for failure in price.failed_sources:
                print(f"    x {failure.source:<14} {failure.error_type}: {failure.message}")
            for opportunity in price.arbitrage:
                print(
                    f"  Arbitrage: buy {opportunity.buy_source} / sell {opportunity.sell_source} "
                    f"({opportunity.spread_percent:.2f}%)"
                )

            try:
                book = await service.get_order_book(symbol, 100)
                print(f"  Order book ({book.source}): bid ${book.best_bid:,.2f} / ask ${book.best_ask:,.2f}")
            except ServiceError as e:
                print(f"  Order book: FAILED ({e.message})")

            try:
                candles = await service.get_candles(symbol, "1h", 24)
                last = f", last close ${candles[-1].close:,.2f}" if candles else ""
                print(f"  History: {len(candles)} hourly candles{last}")
            except (ServiceError, asyncio.TimeoutError) as e:
                print(f"  History: FAILED ({e})")

    print("\n" + "=" * 60)
    print("CHECK COMPLETE")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(check_sources([s.upper() for s in sys.argv[1:]] or ["BTC", "ETH", "SOL"]))
