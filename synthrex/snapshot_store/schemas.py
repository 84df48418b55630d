"""
Snapshot Schemas

`SnapshotRecord` validates the persisted wire format at the ingestion
boundary; `Snapshot` is the immutable in-process representation handed
to the quantile extractor.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict
import math

from pydantic import BaseModel, Field, field_validator, model_validator

# 9999-12-31T23:59:59Z, the last instant datetime can represent
MAX_TIMESTAMP_MS = 253402300799000


@dataclass(frozen=True)
class Snapshot:
    """
    One timestamped probabilistic price forecast for an asset.

    `probability_below` maps price -> cumulative probability that the
    price at the forecast horizon ends below it.
    """

    timestamp: datetime
    asset: str
    current_price: float
    probability_below: Dict[float, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the flat wire format"""
        return {
            'timestamp': int(self.timestamp.timestamp() * 1000),
            'current_price': float(self.current_price),
            'probability_below': {
                repr(float(price)): float(prob)
                for price, prob in self.probability_below.items()
            },
        }


class SnapshotRecord(BaseModel):
    """Validated persisted snapshot record"""

    timestamp: float = Field(..., gt=0, le=MAX_TIMESTAMP_MS, description="Unix epoch milliseconds")
    current_price: float = Field(..., gt=0, description="Spot price when the forecast was taken")
    probability_below: Dict[str, float] = Field(..., description="Price string -> probability below")

    model_config = {
        "json_schema_extra": {
            "example": {
                "timestamp": 1735689600000,
                "current_price": 94250.5,
                "probability_below": {"92000": 0.1, "94000": 0.45, "96500": 0.9}
            }
        }
    }

    @model_validator(mode='before')
    @classmethod
    def _unwrap_bounds(cls, data: Any) -> Any:
        """Accept the upstream nested shape {timestamp, bounds: {current_price, data: {24h: ...}}}"""
        if isinstance(data, dict) and 'bounds' in data and 'current_price' not in data:
            bounds = data.get('bounds') or {}
            if not isinstance(bounds, dict):
                return data
            horizons = bounds.get('data') or {}
            if not isinstance(horizons, dict):
                return data
            horizon = horizons.get('24h') or {}
            if not isinstance(horizon, dict):
                return data
            return {
                'timestamp': data.get('timestamp'),
                'current_price': bounds.get('current_price'),
                'probability_below': horizon.get('probability_below'),
            }
        return data

    @field_validator('current_price')
    @classmethod
    def _finite_price(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("current_price must be finite")
        return value

    @field_validator('probability_below')
    @classmethod
    def _check_distribution(cls, value: Dict[str, float]) -> Dict[str, float]:
        if not value:
            raise ValueError("probability_below is empty")

        for price_key, prob in value.items():
            try:
                price = float(price_key)
            except ValueError:
                raise ValueError(f"price key {price_key!r} is not numeric")
            if not math.isfinite(price) or price <= 0:
                raise ValueError(f"price key {price_key!r} must be a positive finite number")
            if not math.isfinite(prob) or prob < 0.0 or prob > 1.0:
                raise ValueError(f"probability {prob!r} at {price_key} outside [0, 1]")

        return value

    def to_snapshot(self, asset: str) -> Snapshot:
        """Convert to immutable Snapshot"""
        return Snapshot(
            timestamp=datetime.fromtimestamp(self.timestamp / 1000.0, tz=timezone.utc),
            asset=asset,
            current_price=float(self.current_price),
            probability_below={float(k): float(v) for k, v in self.probability_below.items()},
        )
