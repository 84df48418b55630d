"""
Report Formatter

Renders an AnalysisResult as a fixed, order-significant key-value block
for the downstream agent layer:

    SIGNAL: LONG (percentile)
    CURRENT_PRICE: 94.00
    CURRENT_PRICE_PERCENTILE: P12
    VOLATILITY: 15.00% (VERY_LOW)
    REGIME: TREND_UP                  (regime strategy only)
    CONFIDENCE: 0.82
    DRIFT: mean=+0.50% std=0.30%
    BIAS: -0.10%
    SIGNAL_STRENGTH: 0.75             (directional signals only)
    STOP_LOSS / TAKE_PROFIT / RISK_REWARD   (percentile strategy)
    REASON: ...
    WARNINGS: ...                     (when present)
    PERCENTILE_LADDER (...):
      P1: ...
"""

from typing import List, Optional

from synthrex.signal_engine.schemas import AnalysisResult, StrategyName

NA = "N/A"


def _price(value: Optional[float]) -> str:
    return f"{value:,.2f}" if value is not None else NA


def _pct(value: Optional[float], signed: bool = True) -> str:
    if value is None:
        return NA
    return f"{value:+.2%}" if signed else f"{value:.2%}"


def format_report(result: AnalysisResult) -> str:
    """
    Render analysis result as text.

    Args:
        result: Structured analysis result

    Returns:
        Multi-line report, keys in fixed order
    """
    lines: List[str] = []

    lines.append(f"SIGNAL: {result.direction.value} ({result.strategy.value})")
    lines.append(f"CURRENT_PRICE: {_price(result.current_price)}")

    if result.current_percentile is not None:
        lines.append(f"CURRENT_PRICE_PERCENTILE: P{int(round(result.current_percentile))}")
    else:
        lines.append(f"CURRENT_PRICE_PERCENTILE: {NA}")

    if result.volatility is not None:
        tier = f" ({result.volatility_tier.value})" if result.volatility_tier else ""
        estimated = " (estimated)" if result.volatility_estimated else ""
        lines.append(f"VOLATILITY: {result.volatility:.2f}%{tier}{estimated}")
    else:
        lines.append(f"VOLATILITY: {NA}")

    if result.strategy == StrategyName.REGIME:
        lines.append(f"REGIME: {result.regime.regime.value if result.regime else 'UNKNOWN'}")

    lines.append(f"CONFIDENCE: {result.regime.confidence:.2f}" if result.regime else f"CONFIDENCE: {NA}")

    if result.stats is not None:
        lines.append(
            f"DRIFT: mean={_pct(result.stats.drift.mean)} std={_pct(result.stats.drift.std, signed=False)} "
            f"(n={result.stats.sample_size}, {result.stats.source.value})"
        )
        lines.append(f"BIAS: {_pct(result.stats.bias)}")
    else:
        lines.append(f"DRIFT: {NA}")
        lines.append(f"BIAS: {NA}")

    if result.direction.is_directional:
        lines.append(f"SIGNAL_STRENGTH: {result.strength:.2f}")

    signal = result.percentile_signal
    if result.strategy == StrategyName.PERCENTILE and signal is not None and signal.direction.is_directional:
        lines.append(f"STOP_LOSS: {_price(signal.stop_loss)}")
        lines.append(f"TAKE_PROFIT: {_price(signal.take_profit)}")
        rr = f"{signal.risk_reward:.2f}" if signal.risk_reward is not None else NA
        lines.append(f"RISK_REWARD: {rr}")

    lines.append(f"REASON: {result.reason or NA}")

    if result.warnings:
        lines.append(f"WARNINGS: {'; '.join(result.warnings)}")

    if result.ladder:
        lines.append(f"PERCENTILE_LADDER ({result.ladder_source}):")
        for pct in sorted(result.ladder):
            lines.append(f"  P{pct}: {_price(result.ladder[pct])}")
    else:
        lines.append(f"PERCENTILE_LADDER: {NA}")

    return "\n".join(lines)
