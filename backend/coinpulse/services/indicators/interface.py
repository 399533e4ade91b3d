"""
Indicator Engine Service Interface

Defines the contract for the indicator calculation layer.
"""

from abc import abstractmethod

from coinpulse.services.base import BaseService
from coinpulse.schemas.market import PriceSeries
from coinpulse.schemas.indicators import IndicatorSet


class IndicatorServiceInterface(BaseService[PriceSeries, IndicatorSet]):
    """
    Indicator Engine Service Contract.

    INPUT: PriceSeries
        - closes: time-ascending closing prices
        - highs/lows: optional, index-aligned (needed for ATR and stochastic)

    OUTPUT: IndicatorSet
        - Readings for the last bar; None where the series is too short
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    @abstractmethod
    async def execute(self, input_data: PriceSeries) -> IndicatorSet:
        """Calculate indicators for a series."""
        pass

    @abstractmethod
    def calculate(self, series: PriceSeries) -> IndicatorSet:
        """Synchronous variant. Pure computation, no I/O."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        pass
