"""
Zone Detector Service Interface

Defines the contract for the supply/demand zone layer.
"""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional

from coinpulse.services.base import BaseService
from coinpulse.schemas.market import OrderBook, PriceSeries
from coinpulse.schemas.zones import ZoneAnalysis


@dataclass
class ZoneRequest:
    """Inputs for one detection. Both data sources are optional."""

    current_price: float
    order_book: Optional[OrderBook] = None
    series: Optional[PriceSeries] = None


class ZoneDetectorInterface(BaseService[ZoneRequest, ZoneAnalysis]):
    """
    Zone Detector Contract.

    INPUT: ZoneRequest
        - current_price: reference price (aggregated average)
        - order_book: live depth, primary source
        - series: candle history for pivots, Fibonacci, swings, volume profile

    OUTPUT: ZoneAnalysis
        - supply: top-K zones strictly above current price
        - demand: top-K zones strictly below current price
        - low_confidence: set when nothing could be derived
    """

    @property
    def name(self) -> str:
        return "ZoneDetector"

    @abstractmethod
    async def execute(self, input_data: ZoneRequest) -> ZoneAnalysis:
        pass

    @abstractmethod
    def detect(
        self,
        current_price: float,
        order_book: Optional[OrderBook] = None,
        series: Optional[PriceSeries] = None,
    ) -> ZoneAnalysis:
        """Synchronous detection. Pure computation, no I/O."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
