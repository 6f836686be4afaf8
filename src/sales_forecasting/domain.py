from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Regime(str, Enum):
    TRENDING = "trending"
    VOLATILE = "volatile"
    RANGING = "ranging"


@dataclass(frozen=True)
class HistoricalPoint:
    date: dt.date
    value: float


@dataclass(frozen=True)
class MarketProfile:
    base_volatility: float
    trend_strength: float
    regime: Regime
    seasonal_amplitude: float
    seasonal_phase: float = 0.0
    natural_fluctuation: float = 0.0
    persistence: float = 0.4
    mean_reversion: float = 0.6
    clustering: float = 0.3
    observations: int = 0
    degenerate: bool = False

    @classmethod
    def neutral(cls, observations: int = 0) -> "MarketProfile":
        return cls(
            base_volatility=0.05,
            trend_strength=0.0,
            regime=Regime.RANGING,
            seasonal_amplitude=0.0,
            observations=observations,
            degenerate=True,
        )


@dataclass
class ForecastComponents:
    trend: float
    seasonal: float
    residual: float

    def total(self) -> float:
        return self.trend + self.seasonal + self.residual


@dataclass
class ForecastPoint:
    date: dt.date
    predicted: float
    lower_bound: float
    upper_bound: float
    confidence: float
    model: str
    components: ForecastComponents

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "predicted": round(self.predicted, 2),
            "lowerBound": round(self.lower_bound, 2),
            "upperBound": round(self.upper_bound, 2),
            "confidence": round(self.confidence, 2),
            "model": self.model,
            "components": {
                "trend": round(self.components.trend, 2),
                "seasonal": round(self.components.seasonal, 2),
                "residual": round(self.components.residual, 2),
            },
        }


@dataclass
class ModelMetrics:
    mape: float
    mae: float
    rmse: float
    confidence: float
    r_squared: float
    quality_score: float
    source: str = "estimate"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mape": round(self.mape, 2),
            "mae": round(self.mae, 2),
            "rmse": round(self.rmse, 2),
            "confidence": round(self.confidence, 2),
            "rSquared": round(self.r_squared, 3),
            "qualityScore": round(self.quality_score, 2),
            "source": self.source,
        }


@dataclass
class StrategyResult:
    forecasts: List[ForecastPoint]
    metrics: ModelMetrics
    # Value the first forecast day is measured against
    anchor: Optional[float] = None


@dataclass
class ModelScore:
    name: str
    score: float
    metrics: Optional[ModelMetrics] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": round(self.score, 4),
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
            "error": self.error,
        }


@dataclass
class EnsembleResult:
    forecasts: List[ForecastPoint]
    metrics: Optional[ModelMetrics]
    best_model: str
    model_comparison: List[ModelScore] = field(default_factory=list)

    @classmethod
    def empty(cls, model_comparison: Optional[List[ModelScore]] = None) -> "EnsembleResult":
        return cls(forecasts=[], metrics=None, best_model="None", model_comparison=model_comparison or [])

    @property
    def is_empty(self) -> bool:
        return not self.forecasts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forecasts": [point.to_dict() for point in self.forecasts],
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
            "bestModel": self.best_model,
            "modelComparison": [entry.to_dict() for entry in self.model_comparison],
        }
