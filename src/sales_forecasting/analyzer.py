"""Market profile derived from a daily sales history."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
import statsmodels.api as sm

from .domain import HistoricalPoint, MarketProfile, Regime
from .errors import DegenerateSeriesError, InsufficientDataError
from .logging_config import get_logger

logger = get_logger(__name__)

VOLATILITY_FLOOR = 0.05
VOLATILITY_CAP = 0.40
TREND_FLOOR = -0.10
TREND_CAP = 0.15
TREND_WINDOW = 30
TRENDING_THRESHOLD = 0.08
VOLATILE_THRESHOLD = 0.25
MIN_SEASONAL_POINTS = 14
MIN_MICROSTRUCTURE_RETURNS = 20
NATURAL_FLUCTUATION_CAP = 0.20


def daily_returns(values: Sequence[float]) -> np.ndarray:
    """Day-over-day relative changes, skipping days that follow a zero."""
    arr = np.asarray(values, dtype=float)
    previous, current = arr[:-1], arr[1:]
    mask = previous > 0
    return (current[mask] - previous[mask]) / previous[mask]


def _check_series(values: np.ndarray) -> None:
    if values.size < 2:
        raise InsufficientDataError(
            "Market analysis needs at least 2 points",
            required_count=2,
            available_count=int(values.size),
        )
    if np.all(values == values[0]):
        raise DegenerateSeriesError(
            "Series is constant",
            context={"value": float(values[0]), "observations": int(values.size)},
        )


def trend_strength(values: Sequence[float]) -> float:
    """Annualised change between the latest window and the one before it.

    The window is 30 days, or half the series when it is shorter. The result is
    clipped to [-10%, +15%] a year so a short blip is never extrapolated into
    an extreme trend.
    """
    arr = np.asarray(values, dtype=float)
    window = min(TREND_WINDOW, arr.size // 2)
    if window < 1:
        return 0.0
    recent = arr[-window:].mean()
    prior = arr[-2 * window:-window].mean()
    if prior <= 0:
        return 0.0
    annualised = (recent - prior) / prior / window * 365
    return float(np.clip(annualised, TREND_FLOOR, TREND_CAP))


def weekly_seasonality(dates: Sequence, values: Sequence[float]) -> Tuple[float, float]:
    """Fit a day-of-week sinusoid to detrended, level-scaled residuals.

    Returns ``(amplitude, phase)`` such that the relative day-of-week effect is
    ``amplitude * sin(2*pi*weekday/7 + phase)``.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size < MIN_SEASONAL_POINTS:
        return 0.0, 0.0
    level = arr.mean()
    if level <= 0:
        return 0.0, 0.0

    x = np.arange(arr.size, dtype=float)
    slope, intercept = np.polyfit(x, arr, 1)
    residuals = (arr - (slope * x + intercept)) / level

    angle = 2 * np.pi * np.array([day.weekday() for day in dates], dtype=float) / 7
    design = sm.add_constant(np.column_stack([np.sin(angle), np.cos(angle)]), has_constant="add")
    params = sm.OLS(residuals, design).fit().params
    b_sin, b_cos = float(params[1]), float(params[2])

    amplitude = float(np.clip(math.hypot(b_sin, b_cos), 0.0, 0.5))
    phase = math.atan2(b_cos, b_sin) if amplitude > 0 else 0.0
    return amplitude, phase


def _autocorrelation(series: np.ndarray, lag: int) -> float:
    if series.size <= lag + 1:
        return 0.0
    head, tail = series[:-lag], series[lag:]
    if head.std() == 0 or tail.std() == 0:
        return 0.0
    return float(np.corrcoef(head, tail)[0, 1])


def microstructure(returns: np.ndarray) -> Tuple[float, float, float]:
    """Persistence, mean reversion and volatility clustering of daily returns."""
    if returns.size < MIN_MICROSTRUCTURE_RETURNS:
        return 0.4, 0.6, 0.3

    persistence = _autocorrelation(returns, 1)
    mean_reversion = -(_autocorrelation(returns, 5) + _autocorrelation(returns, 10)) / 2
    clustering = _autocorrelation(np.abs(returns), 1)
    return (
        float(np.clip(persistence, 0.0, 1.0)),
        float(np.clip(mean_reversion, 0.0, 1.0)),
        float(np.clip(clustering, 0.0, 1.0)),
    )


def classify_regime(trend: float, volatility: float) -> Regime:
    if abs(trend) > TRENDING_THRESHOLD:
        return Regime.TRENDING
    if volatility >= VOLATILE_THRESHOLD:
        return Regime.VOLATILE
    return Regime.RANGING


def analyze(history: Sequence[HistoricalPoint]) -> MarketProfile:
    """Derive the market profile of ``history``. Never raises."""
    values = np.array([point.value for point in history], dtype=float)
    try:
        _check_series(values)
    except (InsufficientDataError, DegenerateSeriesError) as exc:
        logger.debug("Using neutral market profile", reason=str(exc), observations=int(values.size))
        return MarketProfile.neutral(observations=int(values.size))

    returns = daily_returns(values)
    if returns.size == 0:
        logger.debug("No computable returns, using neutral market profile", observations=int(values.size))
        return MarketProfile.neutral(observations=int(values.size))

    base_volatility = float(np.clip(returns.std(), VOLATILITY_FLOOR, VOLATILITY_CAP))
    trend = trend_strength(values)
    amplitude, phase = weekly_seasonality([point.date for point in history], values)
    persistence, mean_reversion, clustering = microstructure(returns)
    natural = float(np.clip(np.median(np.abs(returns)), 0.0, NATURAL_FLUCTUATION_CAP))

    return MarketProfile(
        base_volatility=base_volatility,
        trend_strength=trend,
        regime=classify_regime(trend, base_volatility),
        seasonal_amplitude=amplitude,
        seasonal_phase=phase,
        natural_fluctuation=natural,
        persistence=persistence,
        mean_reversion=mean_reversion,
        clustering=clustering,
        observations=int(values.size),
    )
