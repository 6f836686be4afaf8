from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .analyzer import analyze
from .config import EnginePolicy, ForecastConfig
from .data import RawPoint, prepare_history
from .domain import EnsembleResult, HistoricalPoint, MarketProfile, ModelScore, StrategyResult
from .errors import AllStrategiesFailedError, InsufficientDataError
from .logging_config import get_logger
from .metrics import MetricsCalculator
from .models import ENSEMBLE_ORDER, BaseForecaster, StrategyKind, build_strategy
from .stability import StabilityGuard

logger = get_logger(__name__)


class EnsembleSelector:
    """Runs every eligible strategy, scores it and keeps the best forecast."""

    def __init__(
        self,
        policy: Optional[EnginePolicy] = None,
        calculator: Optional[MetricsCalculator] = None,
        guard: Optional[StabilityGuard] = None,
    ) -> None:
        self.policy = policy or EnginePolicy()
        self.calculator = calculator or MetricsCalculator(self.policy)
        self.guard = guard or StabilityGuard()
        self.strategies: List[BaseForecaster] = [
            build_strategy(kind, self.policy, self.calculator) for kind in ENSEMBLE_ORDER
        ]

    def score_bonus(self, strategy: BaseForecaster) -> float:
        if strategy.kind is StrategyKind.NATURAL_FLUCTUATION:
            return self.policy.natural_fluctuation_bonus
        return 1.0

    def _run(
        self,
        strategy: BaseForecaster,
        history: List[HistoricalPoint],
        horizon: int,
        profile: MarketProfile,
    ) -> StrategyResult:
        result = strategy.forecast(history, horizon, profile)
        validated = self.calculator.evaluate(strategy, history, horizon)
        if validated is not None:
            result = StrategyResult(forecasts=result.forecasts, metrics=validated, anchor=result.anchor)
        return result

    def _fallback(
        self,
        history: List[HistoricalPoint],
        horizon: int,
        profile: MarketProfile,
        comparison: List[ModelScore],
    ) -> Tuple[StrategyResult, BaseForecaster]:
        strategy = build_strategy(StrategyKind.SIMPLE_TREND, self.policy, self.calculator)
        name = f"{strategy.name} (fallback)"
        try:
            result = strategy.forecast(history, horizon, profile)
        except Exception as exc:  # noqa: BLE001
            comparison.append(ModelScore(name=name, score=0.0, error=str(exc)))
            raise AllStrategiesFailedError(
                "All forecasting strategies failed",
                failures={entry.name: entry.error or "" for entry in comparison},
            ) from exc
        comparison.append(ModelScore(name=name, score=result.metrics.quality_score, metrics=result.metrics))
        return result, strategy

    def select(self, history: Iterable[RawPoint], horizon: int) -> EnsembleResult:
        """Forecast ``horizon`` days past ``history``. Failures come back as an empty result."""
        comparison: List[ModelScore] = []
        try:
            points = prepare_history(history)
            profile = analyze(points)

            best: Optional[StrategyResult] = None
            best_strategy: Optional[BaseForecaster] = None
            best_score = -1.0

            for strategy in self.strategies:
                try:
                    result = self._run(strategy, points, horizon, profile)
                except InsufficientDataError as exc:
                    logger.debug("Skipping strategy", model=strategy.name, reason=str(exc))
                    comparison.append(ModelScore(name=strategy.name, score=0.0, error=str(exc)))
                    continue
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Strategy failed", model=strategy.name, error=str(exc))
                    comparison.append(ModelScore(name=strategy.name, score=0.0, error=str(exc)))
                    continue

                score = result.metrics.quality_score * self.score_bonus(strategy)
                comparison.append(ModelScore(name=strategy.name, score=score, metrics=result.metrics))
                if score > best_score:
                    best, best_strategy, best_score = result, strategy, score

            if best is None:
                if len(points) < 2:
                    raise AllStrategiesFailedError(
                        "At least 2 valid points are required to forecast",
                        context={"observations": len(points)},
                    )
                best, best_strategy = self._fallback(points, horizon, profile, comparison)
        except AllStrategiesFailedError as exc:
            logger.warning("No forecast available", reason=str(exc), failures=exc.failures)
            return EnsembleResult.empty(comparison)
        except Exception as exc:  # noqa: BLE001
            logger.error("Ensemble forecasting failed", error=str(exc))
            comparison.append(ModelScore(name="Ensemble", score=0.0, error=str(exc)))
            return EnsembleResult.empty(comparison)

        anchor = best.anchor if best.anchor is not None else points[-1].value
        forecasts = self.guard.apply(best.forecasts, anchor, best_strategy.bounds)
        logger.info(
            "Selected forecasting model",
            model=best_strategy.name,
            score=round(best_score, 3) if best_score >= 0 else None,
            horizon=horizon,
            observations=len(points),
        )
        return EnsembleResult(
            forecasts=forecasts,
            metrics=best.metrics,
            best_model=best_strategy.name,
            model_comparison=comparison,
        )


def generate_forecast(
    history: Iterable[RawPoint],
    horizon: Optional[int] = None,
    config: Optional[ForecastConfig] = None,
) -> EnsembleResult:
    config = config or ForecastConfig()
    if horizon is None:
        horizon = config.horizon
    return EnsembleSelector(config.policy).select(history, horizon)


def forecasts_to_frame(result: EnsembleResult) -> pd.DataFrame:
    records = [
        {
            "ds": pd.Timestamp(point.date),
            "predicted": point.predicted,
            "lower_bound": point.lower_bound,
            "upper_bound": point.upper_bound,
            "confidence": point.confidence,
            "trend": point.components.trend,
            "seasonal": point.components.seasonal,
            "residual": point.components.residual,
            "selected_model": result.best_model,
        }
        for point in result.forecasts
    ]
    return pd.DataFrame.from_records(records)
