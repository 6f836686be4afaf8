from __future__ import annotations

import math
from typing import Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .analyzer import analyze
from .config import EnginePolicy
from .domain import ForecastPoint, HistoricalPoint, MarketProfile, ModelMetrics, StrategyResult


class Forecaster(Protocol):
    min_points: int

    def forecast(
        self,
        history: Sequence[HistoricalPoint],
        horizon: int,
        profile: Optional[MarketProfile] = None,
    ) -> StrategyResult:
        ...


def wmape(actual: pd.Series | np.ndarray, predicted: pd.Series | np.ndarray) -> float:
    actual_arr = np.asarray(actual, dtype=float)
    predicted_arr = np.asarray(predicted, dtype=float)
    denom = np.abs(actual_arr).sum()
    if denom == 0:
        return np.nan
    return float(np.abs(actual_arr - predicted_arr).sum() / denom)


def mase(
    actual: pd.Series | np.ndarray,
    predicted: pd.Series | np.ndarray,
    insample: pd.Series | np.ndarray,
    season_length: int,
) -> float:
    insample_arr = np.asarray(insample, dtype=float)
    if season_length < 1:
        season_length = 1
    if insample_arr.size <= season_length:
        return np.nan
    denom = np.mean(np.abs(insample_arr[season_length:] - insample_arr[:-season_length]))
    if denom == 0:
        return np.nan
    actual_arr = np.asarray(actual, dtype=float)
    predicted_arr = np.asarray(predicted, dtype=float)
    mae = np.mean(np.abs(actual_arr - predicted_arr))
    return float(mae / denom)


def mape(actual: pd.Series | np.ndarray, predicted: pd.Series | np.ndarray) -> float:
    """Mean absolute percentage error over the non-zero actuals, in percent."""
    actual_arr = np.asarray(actual, dtype=float)
    predicted_arr = np.asarray(predicted, dtype=float)
    mask = actual_arr != 0
    if not mask.any():
        return np.nan
    return float(np.mean(np.abs(actual_arr[mask] - predicted_arr[mask]) / np.abs(actual_arr[mask])) * 100)


def r_squared(actual: pd.Series | np.ndarray, predicted: pd.Series | np.ndarray) -> float:
    actual_arr = np.asarray(actual, dtype=float)
    if actual_arr.size < 2:
        return 0.0
    return float(r2_score(actual_arr, np.asarray(predicted, dtype=float)))


def quality_score(confidence: float, r2: float, mape_pct: float) -> float:
    """0.4 * confidence + 0.3 * fit + 0.3 * accuracy, each on a 0-100 scale."""
    score = 0.4 * confidence + 0.3 * (100 * max(0.0, r2)) + 0.3 * (100 - min(mape_pct, 100))
    return float(np.clip(score, 0.0, 100.0))


def holdout_split(
    history: Sequence[HistoricalPoint],
    horizon: int,
    policy: EnginePolicy,
) -> Optional[Tuple[list, list]]:
    """Split off the most recent points as a test set, or ``None`` when too short."""
    size = min(horizon, policy.holdout_max, int(len(history) * policy.holdout_fraction))
    if size < 2:
        return None
    return list(history[:-size]), list(history[-size:])


class MetricsCalculator:
    def __init__(self, policy: Optional[EnginePolicy] = None) -> None:
        self.policy = policy or EnginePolicy()

    def _clip_confidence(self, value: float) -> float:
        return float(np.clip(value, self.policy.confidence_floor, self.policy.confidence_cap))

    def from_actuals(self, actual: Sequence[float], predicted: Sequence[float]) -> ModelMetrics:
        actual_arr = np.asarray(actual, dtype=float)
        predicted_arr = np.asarray(predicted, dtype=float)
        if actual_arr.size == 0 or actual_arr.size != predicted_arr.size:
            raise ValueError(
                f"Cannot score {predicted_arr.size} predictions against {actual_arr.size} actuals"
            )
        if not np.all(np.isfinite(predicted_arr)):
            raise ValueError("Forecast contains non-finite values")

        mae = float(mean_absolute_error(actual_arr, predicted_arr))
        rmse = math.sqrt(float(mean_squared_error(actual_arr, predicted_arr)))
        if not (math.isfinite(mae) and math.isfinite(rmse)):
            raise ValueError("Forecast errors overflow the float range")
        mape_pct = mape(actual_arr, predicted_arr)
        if np.isnan(mape_pct):
            # All actuals are zero
            mape_pct = 0.0 if mae == 0 else 100.0
        r2 = min(1.0, r_squared(actual_arr, predicted_arr))
        confidence = self._clip_confidence(100 - 1.8 * mape_pct)

        return ModelMetrics(
            mape=mape_pct,
            mae=mae,
            rmse=rmse,
            confidence=confidence,
            r_squared=r2,
            quality_score=quality_score(confidence, r2, mape_pct),
            source="holdout",
        )

    def estimate(self, forecasts: Sequence[ForecastPoint], profile: MarketProfile) -> ModelMetrics:
        """Metrics from the forecast's own error bands when no actuals are available."""
        if not forecasts:
            confidence = self.policy.confidence_floor
            return ModelMetrics(
                mape=100.0, mae=0.0, rmse=0.0, confidence=confidence, r_squared=0.0,
                quality_score=quality_score(confidence, 0.0, 100.0),
            )

        predicted = np.array([point.predicted for point in forecasts], dtype=float)
        half_width = np.array([(point.upper_bound - point.lower_bound) / 2 for point in forecasts], dtype=float)
        positive = predicted > 0
        relative = float(np.mean(half_width[positive] / predicted[positive])) if positive.any() else profile.base_volatility

        mape_pct = float(np.clip(100 * (0.5 * relative + 0.5 * profile.base_volatility), 0.0, 100.0))
        mae = mape_pct / 100 * float(predicted.mean())
        # Gaussian ratio between RMSE and MAE
        rmse = mae * math.sqrt(math.pi / 2)
        r2 = float(np.clip(1 - 2 * mape_pct / 100, -1.0, 0.95))
        confidence = self._clip_confidence(float(np.mean([point.confidence for point in forecasts])))

        return ModelMetrics(
            mape=mape_pct,
            mae=mae,
            rmse=rmse,
            confidence=confidence,
            r_squared=r2,
            quality_score=quality_score(confidence, r2, mape_pct),
            source="estimate",
        )

    def evaluate(
        self,
        strategy: Forecaster,
        history: Sequence[HistoricalPoint],
        horizon: int,
    ) -> Optional[ModelMetrics]:
        """Backtest ``strategy`` on a holdout of ``history``; ``None`` when no usable split exists."""
        split = holdout_split(history, horizon, self.policy)
        if split is None:
            return None
        train, test = split
        if len(train) < strategy.min_points:
            return None
        result = strategy.forecast(train, len(test), analyze(train))
        return self.from_actuals(
            [point.value for point in test],
            [point.predicted for point in result.forecasts],
        )
