"""
Signal Engine FastAPI Interface

RESTful API for the Forecast Signal Engine.
"""

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
import logging

from synthrex.config import EngineConfig
from synthrex.signal_engine.engine import ForecastSignalEngine
from synthrex.signal_engine.report import format_report
from synthrex.signal_engine.schemas import StrategyName

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Forecast Signal Engine API",
    description="Regime-aware signals from probabilistic price forecasts",
    version="1.0.0"
)

# Global engine instance
_engine: Optional[ForecastSignalEngine] = None


def get_engine() -> ForecastSignalEngine:
    """Get or create engine instance"""
    global _engine
    if _engine is None:
        _engine = ForecastSignalEngine(EngineConfig.from_env())
        logger.info("Forecast Signal Engine initialized")
    return _engine


def set_engine(engine: Optional[ForecastSignalEngine]):
    """Replace the global engine (None resets to lazy construction)"""
    global _engine
    _engine = engine


class AnalyzeRequest(BaseModel):
    """Analysis request"""

    symbol: str = Field(..., min_length=1, description="Asset identifier, e.g. BTC")
    current_price: float = Field(..., description="Current spot price")
    current_volatility: Optional[float] = Field(
        None, description="Annualised volatility in percent; estimated when omitted"
    )
    strategy: StrategyName = Field(StrategyName.REGIME, description="regime or percentile")

    model_config = {
        "json_schema_extra": {
            "example": {
                "symbol": "BTC",
                "current_price": 94250.5,
                "current_volatility": 35.0,
                "strategy": "percentile"
            }
        }
    }


class AnalyzeResponse(BaseModel):
    """Analysis response"""

    symbol: str
    strategy: str
    direction: str
    strength: float
    reason: str
    report: str
    result: dict


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        API status and engine health metrics
    """
    engine = get_engine()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "engine_health": engine.get_health().to_dict(),
        "buffer_depth": engine.buffer_depth(),
        "config_hash": engine.config_hash
    }


@app.post("/analyze", response_model=AnalyzeResponse)
def analyze(request: AnalyzeRequest):
    """
    Analyze an asset with the selected strategy.

    Insufficient data yields NEUTRAL / WAIT with a reason; invalid input
    yields HTTP 400.
    """
    engine = get_engine()
    try:
        result = engine.evaluate(
            request.symbol,
            request.current_price,
            request.current_volatility,
            request.strategy
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return AnalyzeResponse(
        symbol=result.symbol,
        strategy=result.strategy.value,
        direction=result.direction.value,
        strength=result.strength,
        reason=result.reason,
        report=format_report(result),
        result=result.to_dict()
    )


@app.get("/regime/{symbol}")
async def get_regime(symbol: str):
    """
    Last logged regime and transition history for a symbol.
    """
    engine = get_engine()
    current = engine.get_regime(symbol)
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No regime classified yet for {symbol}"
        )
    return {
        "symbol": symbol,
        "current": current.to_dict(),
        "transitions": [t.to_dict() for t in engine.get_regime_history(symbol)]
    }


@app.get("/signals")
async def get_signals(symbol: Optional[str] = None, open_only: bool = False):
    """
    Signal tracking log, oldest first.
    """
    engine = get_engine()
    entries = engine.get_tracking_log()
    if symbol is not None:
        entries = [e for e in entries if e.symbol == symbol]
    if open_only:
        entries = [e for e in entries if not e.completed]
    return {
        "count": len(entries),
        "entries": [e.to_dict() for e in entries]
    }
