from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class EnginePolicy:
    """Fixed engine policy. Bounds are (max_drop, max_rise) as fractions of the previous day."""

    simple_trend_bounds: Tuple[float, float] = (-0.10, 0.15)
    volatility_aware_bounds: Tuple[float, float] = (-0.08, 0.08)
    natural_fluctuation_bounds: Tuple[float, float] = (-0.30, 0.40)
    # Ranking bonus for the natural fluctuation strategy. Kept as policy, not derived.
    natural_fluctuation_bonus: float = 1.15
    holdout_max: int = 14
    holdout_fraction: float = 0.2
    confidence_floor: float = 10.0
    confidence_cap: float = 95.0


@dataclass
class ForecastConfig:
    horizon: int = 30
    policy: EnginePolicy = field(default_factory=EnginePolicy)


@dataclass
class BacktestConfig:
    horizon: int = 7
    min_train: int = 21
    step: int = 7
    season_length: int = 7
