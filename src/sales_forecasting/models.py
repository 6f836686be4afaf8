from __future__ import annotations

import hashlib
import math
from collections import deque
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Type

import numpy as np
from dateutil.relativedelta import relativedelta

from .analyzer import analyze
from .config import EnginePolicy
from .data import smooth_outliers
from .domain import (
    ForecastComponents,
    ForecastPoint,
    HistoricalPoint,
    MarketProfile,
    Regime,
    StrategyResult,
)
from .errors import InsufficientDataError
from .logging_config import get_logger
from .metrics import MetricsCalculator

logger = get_logger(__name__)


class StrategyKind(str, Enum):
    SIMPLE_TREND = "simple_trend"
    VOLATILITY_AWARE = "volatility_aware"
    NATURAL_FLUCTUATION = "natural_fluctuation"


def series_seed(history: Sequence[HistoricalPoint], salt: str = "") -> int:
    """Stable 64-bit seed derived from the dates and values of ``history``."""
    digest = hashlib.sha256(salt.encode("utf-8"))
    for point in history:
        digest.update(f"{point.date.isoformat()}={point.value!r};".encode("utf-8"))
    return int.from_bytes(digest.digest()[:8], "big")


def initial_momentum(values: Sequence[float]) -> float:
    """Recency-weighted mean of the last daily changes."""
    arr = np.asarray(values, dtype=float)
    if arr.size < 3:
        return 0.0
    total, weights = 0.0, 0.0
    for idx in range(1, arr.size):
        if arr[idx - 1] > 0:
            total += (arr[idx] - arr[idx - 1]) / arr[idx - 1] * idx
            weights += idx
    return total / weights if weights > 0 else 0.0


class BaseForecaster:
    kind: StrategyKind
    name: str
    min_points: int
    policy_bounds: str

    def __init__(
        self,
        policy: Optional[EnginePolicy] = None,
        calculator: Optional[MetricsCalculator] = None,
    ) -> None:
        self.policy = policy or EnginePolicy()
        self.calculator = calculator or MetricsCalculator(self.policy)
        self.bounds: Tuple[float, float] = getattr(self.policy, self.policy_bounds)

    def forecast(
        self,
        history: Sequence[HistoricalPoint],
        horizon: int,
        profile: Optional[MarketProfile] = None,
    ) -> StrategyResult:
        history = list(history)
        if horizon < 1:
            raise ValueError(f"Forecast horizon must be positive, got {horizon}")
        if len(history) < self.min_points:
            raise InsufficientDataError(
                f"{self.name} needs at least {self.min_points} points, got {len(history)}",
                required_count=self.min_points,
                available_count=len(history),
            )
        if profile is None:
            profile = analyze(history)

        rng = np.random.default_rng(series_seed(history, self.kind.value))
        forecasts = self._generate(history, horizon, profile, rng)
        if not all(math.isfinite(point.predicted) for point in forecasts):
            raise ValueError(f"{self.name} produced non-finite predictions")
        logger.debug("Generated forecast", model=self.name, horizon=horizon, observations=len(history))
        return StrategyResult(
            forecasts=forecasts,
            metrics=self.calculator.estimate(forecasts, profile),
            anchor=self.anchor_value(history),
        )

    def anchor_value(self, history: Sequence[HistoricalPoint]) -> float:
        """Outlier-smoothed last value the first forecast day continues from."""
        return float(smooth_outliers([point.value for point in history])[-1])

    def _generate(
        self,
        history: List[HistoricalPoint],
        horizon: int,
        profile: MarketProfile,
        rng: np.random.Generator,
    ) -> List[ForecastPoint]:
        raise NotImplementedError

    def clamp(self, raw: float, previous: float) -> float:
        """Bound ``raw`` to this strategy's daily change relative to ``previous``."""
        if previous <= 0:
            return max(0.0, raw)
        max_drop, max_rise = self.bounds
        return float(min(max(raw, previous * (1 + max_drop)), previous * (1 + max_rise)))

    def _point(
        self,
        date,
        predicted: float,
        trend: float,
        seasonal: float,
        half_width: float,
        confidence: float,
    ) -> ForecastPoint:
        predicted = max(0.0, predicted)
        half_width = max(0.0, half_width)
        return ForecastPoint(
            date=date,
            predicted=predicted,
            lower_bound=max(0.0, predicted - half_width),
            upper_bound=predicted + half_width,
            confidence=confidence,
            model=self.name,
            components=ForecastComponents(
                trend=trend,
                seasonal=seasonal,
                residual=predicted - trend - seasonal,
            ),
        )


class SimpleTrendForecaster(BaseForecaster):
    """Linear extrapolation with a fixed weekly swing and shrinking noise."""

    kind = StrategyKind.SIMPLE_TREND
    name = "Simple Trend Forecaster"
    min_points = 2
    policy_bounds = "simple_trend_bounds"

    trend_window = 30
    weekly_amplitude = 0.025
    max_noise = 0.02

    def _generate(self, history, horizon, profile, rng):
        values = smooth_outliers([point.value for point in history])
        window = values[-min(self.trend_window, values.size):]
        slope = float(np.polyfit(np.arange(window.size, dtype=float), window, 1)[0])
        last_value = float(values[-1])
        last_date = history[-1].date
        noise_scale = min(self.max_noise, profile.natural_fluctuation)

        forecasts: List[ForecastPoint] = []
        previous = last_value
        for step in range(1, horizon + 1):
            trend_level = max(0.0, last_value + slope * step)
            seasonal = trend_level * self.weekly_amplitude * math.sin(2 * math.pi * step / 7)
            noise = trend_level * noise_scale * math.exp(-step / 30) * rng.standard_normal()

            predicted = self.clamp(trend_level + seasonal + noise, previous)
            confidence = max(50.0, 90.0 - 0.4 * step)
            half_width = predicted * 0.18 * math.sqrt(step / 25)

            forecasts.append(
                self._point(last_date + relativedelta(days=step), predicted, trend_level, seasonal, half_width, confidence)
            )
            previous = predicted
        return forecasts


class VolatilityAwareForecaster(BaseForecaster):
    """Conservative trend with decaying multi-wave fluctuation, a controlled random walk."""

    kind = StrategyKind.VOLATILITY_AWARE
    name = "Volatility-Aware Trend Forecaster"
    min_points = 7
    policy_bounds = "volatility_aware_bounds"

    wave_periods = (9.0, 23.0, 61.0)
    wave_weights = (0.5, 0.3, 0.2)
    decay_days = 90.0
    regime_multipliers: Dict[Regime, float] = {
        Regime.TRENDING: 0.85,
        Regime.VOLATILE: 1.25,
        Regime.RANGING: 1.0,
    }

    def _generate(self, history, horizon, profile, rng):
        values = smooth_outliers([point.value for point in history])
        last_value = float(values[-1])
        last_date = history[-1].date
        daily_trend = profile.trend_strength / 365
        scale = 0.5 * profile.base_volatility * self.regime_multipliers[profile.regime]
        phases = rng.uniform(0.0, 2 * math.pi, size=len(self.wave_periods))

        forecasts: List[ForecastPoint] = []
        previous = last_value
        confidence = 100.0
        for step in range(1, horizon + 1):
            day = last_date + relativedelta(days=step)
            trend_level = last_value * (1 + daily_trend) ** step
            seasonal = trend_level * profile.seasonal_amplitude * math.sin(
                2 * math.pi * day.weekday() / 7 + profile.seasonal_phase
            )
            wave = sum(
                weight * math.sin(2 * math.pi * step / period + phase)
                for weight, period, phase in zip(self.wave_weights, self.wave_periods, phases)
            )
            wave = float(np.clip(wave + 0.3 * rng.standard_normal(), -1.0, 1.0))
            fluctuation = trend_level * scale * math.exp(-step / self.decay_days) * wave

            predicted = self.clamp(trend_level + seasonal + fluctuation, previous)

            raw_confidence = 80.0 - 0.35 * step - 40.0 * (profile.base_volatility - 0.05)
            if profile.regime is Regime.VOLATILE:
                raw_confidence -= 5.0
            confidence = min(confidence, float(np.clip(raw_confidence, 25.0, 85.0)))
            half_width = predicted * min(0.9, max(0.10, profile.base_volatility * math.sqrt(step / 7)))

            forecasts.append(self._point(day, predicted, trend_level, seasonal, half_width, confidence))
            previous = predicted
        return forecasts


class NaturalFluctuationForecaster(BaseForecaster):
    """Business-cycle waves layered with momentum, mean reversion and volatility clustering."""

    kind = StrategyKind.NATURAL_FLUCTUATION
    name = "Natural Fluctuation Forecaster"
    min_points = 7
    policy_bounds = "natural_fluctuation_bounds"

    # weekly promotions, paydays, monthly campaigns, mid-quarter, quarterly
    wave_periods = (7.0, 14.0, 30.4, 45.6, 91.3)
    wave_weights = (0.35, 0.25, 0.20, 0.12, 0.08)
    trailing_days = 14
    momentum_cap = 0.15
    garch_alpha = 0.10
    garch_beta = 0.85
    regime_multipliers: Dict[Regime, float] = {
        Regime.TRENDING: 0.8,
        Regime.VOLATILE: 1.4,
        Regime.RANGING: 1.1,
    }

    def _wave_level(self, step: int, phases: np.ndarray) -> float:
        return sum(
            weight * math.sin(2 * math.pi * step / period + phase)
            for weight, period, phase in zip(self.wave_weights, self.wave_periods, phases)
        )

    @staticmethod
    def _seasonal_level(day, profile: MarketProfile) -> float:
        return profile.seasonal_amplitude * math.sin(2 * math.pi * day.weekday() / 7 + profile.seasonal_phase)

    def _generate(self, history, horizon, profile, rng):
        values = smooth_outliers([point.value for point in history])
        last_value = float(values[-1])
        last_date = history[-1].date
        daily_trend = profile.trend_strength / 365

        amplitude = profile.natural_fluctuation * self.regime_multipliers[profile.regime]
        # Median absolute move scaled to a standard deviation
        long_run_vol = 1.4826 * profile.natural_fluctuation
        vol_state = long_run_vol
        carry = 0.5 * profile.persistence
        reversion = 0.05 + 0.10 * profile.mean_reversion
        phases = rng.uniform(0.0, 2 * math.pi, size=len(self.wave_periods))

        trailing = deque(values[-self.trailing_days:], maxlen=self.trailing_days)
        momentum = float(np.clip(initial_momentum(values[-10:]), -self.momentum_cap, self.momentum_cap))
        previous_shock = 0.0
        previous_wave = self._wave_level(0, phases)
        previous_season = self._seasonal_level(last_date, profile)

        forecasts: List[ForecastPoint] = []
        previous = last_value
        confidence = 100.0
        for step in range(1, horizon + 1):
            day = last_date + relativedelta(days=step)
            wave = self._wave_level(step, phases)
            season = self._seasonal_level(day, profile)

            target = float(np.mean(trailing)) * (1 + daily_trend * self.trailing_days / 2)
            # Additive so a zero day is still pulled back toward the trailing mean
            trend_value = previous * (1 + daily_trend) + reversion * (target - previous)
            seasonal_value = previous * ((season - previous_season) + amplitude * (wave - previous_wave))

            shock = 0.5 * vol_state * rng.standard_normal()
            momentum = float(np.clip(carry * (momentum + previous_shock), -self.momentum_cap, self.momentum_cap))

            raw = trend_value + seasonal_value + previous * (momentum + shock)
            predicted = self.clamp(raw, previous)

            realized = (predicted - previous) / previous if previous > 0 else 0.0
            vol_state = math.sqrt(
                self.garch_alpha * realized ** 2
                + self.garch_beta * vol_state ** 2
                + (1 - self.garch_alpha - self.garch_beta) * long_run_vol ** 2
            )
            vol_state = float(np.clip(vol_state, 0.5 * long_run_vol, 2.0 * long_run_vol))

            excess_vol = (vol_state - long_run_vol) / long_run_vol if long_run_vol > 0 else 0.0
            raw_confidence = 85.0 - 0.3 * step - 10.0 * max(0.0, excess_vol)
            confidence = min(confidence, float(np.clip(raw_confidence, 30.0, 85.0)))
            half_width = predicted * min(
                0.6,
                max(0.05, 1.5 * vol_state * math.sqrt(step / 7), 2 * profile.natural_fluctuation),
            )

            forecasts.append(self._point(day, predicted, trend_value, seasonal_value, half_width, confidence))

            trailing.append(predicted)
            previous = predicted
            previous_shock = shock
            previous_wave, previous_season = wave, season
        return forecasts


STRATEGY_REGISTRY: Dict[StrategyKind, Type[BaseForecaster]] = {
    StrategyKind.SIMPLE_TREND: SimpleTrendForecaster,
    StrategyKind.VOLATILITY_AWARE: VolatilityAwareForecaster,
    StrategyKind.NATURAL_FLUCTUATION: NaturalFluctuationForecaster,
}

ENSEMBLE_ORDER: Tuple[StrategyKind, ...] = (
    StrategyKind.NATURAL_FLUCTUATION,
    StrategyKind.VOLATILITY_AWARE,
    StrategyKind.SIMPLE_TREND,
)


def build_strategy(
    kind: StrategyKind,
    policy: Optional[EnginePolicy] = None,
    calculator: Optional[MetricsCalculator] = None,
) -> BaseForecaster:
    return STRATEGY_REGISTRY[kind](policy=policy, calculator=calculator)
