"""
Factories for synthrex test data.
"""

import json
from datetime import datetime, timedelta, timezone

from synthrex.forecast_stats.ring_buffer import FlatSnap
from synthrex.snapshot_store.schemas import Snapshot


BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

# Probability grid landing exactly on every target percentile around price 100
LADDER_100 = {
    1: 88.0, 5: 90.0, 10: 92.0, 15: 94.5, 20: 95.0, 30: 97.0, 40: 99.0, 50: 100.0,
    60: 101.0, 70: 103.0, 80: 105.0, 85: 106.0, 90: 108.0, 95: 110.0, 99: 112.0,
}


def create_distribution(scale: float = 1.0) -> dict:
    """price -> probability below, scaled from LADDER_100"""
    return {price * scale: pct / 100.0 for pct, price in LADDER_100.items()}


def create_snapshot(t: datetime, price: float = 100.0, asset: str = "BTC", scale: float = None) -> Snapshot:
    return Snapshot(
        timestamp=t,
        asset=asset,
        current_price=price,
        probability_below=create_distribution(scale if scale is not None else price / 100.0)
    )


def create_record(t: datetime, price: float = 100.0) -> dict:
    """Flat wire-format record (epoch milliseconds)"""
    return {
        'timestamp': int(t.timestamp() * 1000),
        'current_price': price,
        'probability_below': {
            repr(float(k)): v for k, v in create_distribution(price / 100.0).items()
        },
    }


def create_flat(t: datetime, price: float, q50: float, q10: float = None, q90: float = None,
                symbol: str = "BTC") -> FlatSnap:
    return FlatSnap(
        t=t,
        symbol=symbol,
        price=price,
        quantiles={
            10: q10 if q10 is not None else q50 * 0.95,
            50: q50,
            90: q90 if q90 is not None else q50 * 1.05,
        }
    )


def write_snapshot_file(path, records_by_asset: dict):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump({'version': '1.0', 'snapshots': records_by_asset}, f)


def five_minute_times(count: int, start: datetime = BASE_TIME):
    return [start + timedelta(minutes=5 * i) for i in range(count)]


