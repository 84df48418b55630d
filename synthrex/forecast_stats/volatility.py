"""
Volatility Tiers

Annualised realized volatility (%) classification:
- VERY_LOW: < 20
- LOW: < 40
- MEDIUM: < 60
- HIGH: >= 60
"""

import math
import logging
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import pandas as pd

LOG = logging.getLogger(__name__)


class VolatilityTier(str, Enum):
    """Volatility tier used to pick percentile thresholds"""
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def classify_volatility_tier(
    volatility_pct: float,
    very_low_max: float = 20.0,
    low_max: float = 40.0,
    medium_max: float = 60.0
) -> VolatilityTier:
    """
    Classify annualised volatility into a tier.

    Args:
        volatility_pct: Annualised volatility in percent (35.0 = 35%)

    Returns:
        VolatilityTier
    """
    if volatility_pct < very_low_max:
        return VolatilityTier.VERY_LOW
    elif volatility_pct < low_max:
        return VolatilityTier.LOW
    elif volatility_pct < medium_max:
        return VolatilityTier.MEDIUM
    else:
        return VolatilityTier.HIGH


def realized_volatility(
    prices: Sequence[float],
    periods_per_year: int
) -> Optional[float]:
    """
    Annualised realized volatility from a regularly sampled price series.

    Uses the sample standard deviation of log returns scaled by
    sqrt(periods_per_year), expressed in percent.

    Args:
        prices: Prices oldest first
        periods_per_year: Sampling periods per year (35040 for 15-minute bars)

    Returns:
        Volatility in percent, or None with fewer than 2 returns
    """
    series = pd.Series(prices, dtype=float)
    series = series[series > 0]
    returns = np.log(series).diff().dropna()

    if len(returns) < 2:
        return None

    std = returns.std(ddof=1)
    if pd.isna(std):
        return None

    return float(std * math.sqrt(periods_per_year) * 100.0)
