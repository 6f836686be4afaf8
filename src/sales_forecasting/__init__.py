"""Daily sales forecasting engine: ensemble of trend, volatility and natural-fluctuation models."""

from .analyzer import analyze
from .backtest import BacktestResult, rolling_backtest
from .config import BacktestConfig, EnginePolicy, ForecastConfig
from .data import load_daily_series, prepare_history
from .domain import (
    EnsembleResult,
    ForecastComponents,
    ForecastPoint,
    HistoricalPoint,
    MarketProfile,
    ModelMetrics,
    ModelScore,
    Regime,
    StrategyResult,
)
from .errors import AllStrategiesFailedError, DegenerateSeriesError, ForecastingError, InsufficientDataError
from .metrics import MetricsCalculator
from .models import (
    NaturalFluctuationForecaster,
    SimpleTrendForecaster,
    StrategyKind,
    VolatilityAwareForecaster,
    build_strategy,
)
from .pipeline import EnsembleSelector, generate_forecast
from .stability import StabilityGuard

__all__ = [
    "AllStrategiesFailedError",
    "BacktestConfig",
    "BacktestResult",
    "DegenerateSeriesError",
    "EnginePolicy",
    "EnsembleResult",
    "EnsembleSelector",
    "ForecastComponents",
    "ForecastConfig",
    "ForecastPoint",
    "ForecastingError",
    "HistoricalPoint",
    "InsufficientDataError",
    "MarketProfile",
    "MetricsCalculator",
    "ModelMetrics",
    "ModelScore",
    "NaturalFluctuationForecaster",
    "Regime",
    "SimpleTrendForecaster",
    "StabilityGuard",
    "StrategyKind",
    "StrategyResult",
    "VolatilityAwareForecaster",
    "analyze",
    "build_strategy",
    "generate_forecast",
    "load_daily_series",
    "prepare_history",
    "rolling_backtest",
]

__version__ = "0.1.0"
