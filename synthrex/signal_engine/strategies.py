"""
Signal Strategies

Two independent, named strategies:

1. RegimeConditionedStrategy ("regime")
       TREND_UP / TREND_DOWN → contrarian on bias-corrected forecast tilt
       RANGE                 → band breakout on q10 / q90
       CHOPPY                → NEUTRAL

2. PercentileThresholdStrategy ("percentile")
       Volatility tier selects percentile triggers against the merged
       24h-ago forecast distribution. WAIT outside [P1, P99].

Neither strategy has priority over the other; the caller chooses.
"""

import logging
from typing import Optional

from synthrex.config import (
    ContrarianConfig,
    PercentileStrategyConfig,
    RangeBandConfig
)
from synthrex.forecast_stats.quantiles import MergedPercentiles
from synthrex.forecast_stats.ring_buffer import FlatSnap
from synthrex.forecast_stats.schemas import MarketRegime, RegimeClassification, RollingStats
from synthrex.forecast_stats.volatility import classify_volatility_tier
from synthrex.signal_engine.schemas import (
    PercentileSignal,
    RegimeSignal,
    SignalDirection,
    SignalType,
    StrategyName
)

LOG = logging.getLogger(__name__)


class RegimeConditionedStrategy:
    """
    Policy A: signal conditioned on the current regime.

    Contrarian tilt:
        tilt = (q50 / price - 1) - bias
        tilt >=  TAU → SHORT, strength min(tilt / 2TAU, 1)
        tilt <= -TAU → LONG,  strength min(|tilt| / 2TAU, 1)

    Range band:
        q10 > price (1 + EPS) → LONG,  strength min(100 (q10/price - 1) / 2, 1)
        q90 < price (1 - EPS) → SHORT, strength min(100 (1 - q90/price) / 2, 1)
    """

    name = StrategyName.REGIME

    def __init__(
        self,
        contrarian: Optional[ContrarianConfig] = None,
        range_band: Optional[RangeBandConfig] = None
    ):
        self.contrarian_config = contrarian or ContrarianConfig()
        self.range_config = range_band or RangeBandConfig()

    def contrarian(
        self,
        regime: MarketRegime,
        price: float,
        q50: float,
        bias: float
    ) -> RegimeSignal:
        """Contrarian signal for a trending regime"""
        tau = self.contrarian_config.tau
        tilt = (q50 / price - 1.0) - bias
        strength = min(abs(tilt) / (2.0 * tau), 1.0)

        if tilt >= tau:
            note = "counter-trend " if regime == MarketRegime.TREND_UP else ""
            return RegimeSignal(
                direction=SignalDirection.SHORT,
                signal_type=SignalType.CONTRARIAN,
                strength=strength,
                tilt=tilt,
                reason=f"{regime.value}: {note}tilt {tilt:+.2%} >= {tau:.2%} (overbought vs forecast)"
            )

        if tilt <= -tau:
            note = "counter-trend " if regime == MarketRegime.TREND_DOWN else ""
            return RegimeSignal(
                direction=SignalDirection.LONG,
                signal_type=SignalType.CONTRARIAN,
                strength=strength,
                tilt=tilt,
                reason=f"{regime.value}: {note}tilt {tilt:+.2%} <= -{tau:.2%} (oversold vs forecast)"
            )

        return RegimeSignal(
            direction=SignalDirection.NEUTRAL,
            tilt=tilt,
            reason=f"{regime.value}: tilt {tilt:+.2%} inside ±{tau:.2%}"
        )

    def range_band(self, price: float, q10: float, q90: float) -> RegimeSignal:
        """Band breakout signal for a ranging regime"""
        eps = self.range_config.eps
        scale = self.range_config.strength_scale
        divisor = self.range_config.strength_divisor

        if q10 > price * (1.0 + eps):
            edge = q10 / price - 1.0
            return RegimeSignal(
                direction=SignalDirection.LONG,
                signal_type=SignalType.RANGE_BAND,
                strength=min(scale * edge / divisor, 1.0),
                reason=f"RANGE: price {edge:.2%} below forecast Q10 {q10:,.2f}"
            )

        if q90 < price * (1.0 - eps):
            edge = 1.0 - q90 / price
            return RegimeSignal(
                direction=SignalDirection.SHORT,
                signal_type=SignalType.RANGE_BAND,
                strength=min(scale * edge / divisor, 1.0),
                reason=f"RANGE: price {edge:.2%} above forecast Q90 {q90:,.2f}"
            )

        return RegimeSignal(
            direction=SignalDirection.NEUTRAL,
            reason=f"RANGE: price inside forecast band [{q10:,.2f}, {q90:,.2f}]"
        )

    def generate(
        self,
        regime: Optional[RegimeClassification],
        price: float,
        snap: Optional[FlatSnap],
        stats: Optional[RollingStats]
    ) -> RegimeSignal:
        """
        Generate regime-conditioned signal.

        Args:
            regime: Current regime (None = insufficient history)
            price: Current price
            snap: Latest buffered forecast snapshot
            stats: Rolling statistics supplying the bias correction

        Returns:
            RegimeSignal (NEUTRAL with reason when no opinion)
        """
        if snap is None:
            return RegimeSignal(reason="No forecast snapshot buffered")

        if regime is None or stats is None:
            return RegimeSignal(reason="Insufficient history for rolling statistics, regime unknown")

        if regime.regime == MarketRegime.CHOPPY:
            return RegimeSignal(
                reason=f"CHOPPY: vol_norm {regime.vol_norm:.2f}, directional tilt not trusted"
            )

        if regime.regime == MarketRegime.RANGE:
            return self.range_band(price, snap.q10, snap.q90)

        return self.contrarian(regime.regime, price, snap.q50, stats.bias)


class PercentileThresholdStrategy:
    """
    Policy B: volatility-tiered percentile thresholds.

    | Tier     | LONG     | SHORT    | Stop      | Min buffer |
    |----------|----------|----------|-----------|------------|
    | VERY_LOW | <= P20   | >= P80   | P15 / P85 | 0.5%       |
    | LOW      | <= P15   | >= P85   | P10 / P90 | 1%         |
    | MEDIUM   | <= P10   | >= P90   | P5 / P95  | 1%         |
    | HIGH     | <= P5    | >= P95   | P1 / P99  | 2%         |

    Target is P50. Stops are always strictly on the losing side of entry.
    """

    name = StrategyName.PERCENTILE

    def __init__(self, config: Optional[PercentileStrategyConfig] = None):
        self.config = config or PercentileStrategyConfig()

    def _strength(self, price: float, trigger: float, bound: float) -> float:
        """0.5 at the trigger rising to 1.0 at the forecast bound"""
        span = abs(trigger - bound)
        if span <= 0:
            return 1.0
        depth = min(max(abs(trigger - price) / span, 0.0), 1.0)
        return 0.5 + 0.5 * depth

    def generate(
        self,
        price: float,
        volatility_pct: Optional[float],
        ladder: Optional[MergedPercentiles]
    ) -> PercentileSignal:
        """
        Generate percentile-threshold signal.

        Args:
            price: Current price
            volatility_pct: Annualised 24h volatility in percent
            ladder: Merged 24h-ago percentile distribution

        Returns:
            PercentileSignal (WAIT with reason when no trigger)
        """
        cfg = self.config

        if ladder is None:
            return PercentileSignal(reason="No 24h-ago forecast distribution available")

        if volatility_pct is None:
            return PercentileSignal(reason="Volatility unavailable, tier cannot be selected")

        tier = classify_volatility_tier(
            volatility_pct, cfg.very_low_max, cfg.low_max, cfg.medium_max
        )
        tier_cfg = cfg.tiers[tier.value]

        lower = ladder[cfg.lower_bound_percentile]
        upper = ladder[cfg.upper_bound_percentile]
        target = ladder[cfg.target_percentile]

        base = PercentileSignal(
            tier=tier,
            long_trigger=tier_cfg.long_trigger,
            short_trigger=tier_cfg.short_trigger
        )

        if price < lower or price > upper:
            base.reason = (
                f"Price {price:,.2f} outside forecast bounds "
                f"[P{cfg.lower_bound_percentile} {lower:,.2f}, P{cfg.upper_bound_percentile} {upper:,.2f}]"
            )
            return base

        long_level = ladder[tier_cfg.long_trigger]
        short_level = ladder[tier_cfg.short_trigger]

        if price <= long_level:
            stop = min(ladder[tier_cfg.long_stop], price * (1.0 - tier_cfg.min_stop_buffer))
            base.direction = SignalDirection.LONG
            base.strength = self._strength(price, long_level, lower)
            base.reason = f"{tier.value}: price {price:,.2f} <= P{tier_cfg.long_trigger} {long_level:,.2f}"
        elif price >= short_level:
            stop = max(ladder[tier_cfg.short_stop], price * (1.0 + tier_cfg.min_stop_buffer))
            base.direction = SignalDirection.SHORT
            base.strength = self._strength(price, short_level, upper)
            base.reason = f"{tier.value}: price {price:,.2f} >= P{tier_cfg.short_trigger} {short_level:,.2f}"
        else:
            base.reason = (
                f"{tier.value}: price {price:,.2f} inside "
                f"[P{tier_cfg.long_trigger} {long_level:,.2f}, P{tier_cfg.short_trigger} {short_level:,.2f}]"
            )
            return base

        risk = abs(price - stop)
        base.entry_price = price
        base.stop_loss = stop
        base.take_profit = target
        base.risk_reward = abs(target - price) / risk if risk > 0 else None

        LOG.debug(f"Percentile signal {base.direction.value} tier={tier.value} stop={stop:.4f} target={target:.4f}")
        return base
