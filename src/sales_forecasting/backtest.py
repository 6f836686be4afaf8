from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .analyzer import analyze
from .config import BacktestConfig, EnginePolicy
from .domain import HistoricalPoint
from .logging_config import get_logger
from .metrics import mape, mase, wmape
from .models import ENSEMBLE_ORDER, build_strategy

logger = get_logger(__name__)


@dataclass
class BacktestResult:
    metrics: pd.DataFrame
    model_selection: Optional[str]


def rolling_backtest(
    history: Sequence[HistoricalPoint],
    config: Optional[BacktestConfig] = None,
    policy: Optional[EnginePolicy] = None,
) -> BacktestResult:
    """Rolling-origin evaluation of every strategy over ``history``.

    Each fold trains on the points before the cutoff and scores the next
    ``config.horizon`` days. ``model_selection`` is the strategy with the lowest
    mean WMAPE across folds.
    """
    config = config or BacktestConfig()
    history = list(history)
    strategies = [build_strategy(kind, policy) for kind in ENSEMBLE_ORDER]
    records: List[dict] = []

    if len(history) < config.min_train + config.horizon:
        logger.info(
            "History too short for rolling backtest",
            observations=len(history),
            required=config.min_train + config.horizon,
        )
        return BacktestResult(metrics=pd.DataFrame.from_records(records), model_selection=None)

    for cutoff in range(config.min_train, len(history) - config.horizon + 1, max(1, config.step)):
        train = history[:cutoff]
        test = history[cutoff : cutoff + config.horizon]
        insample = np.array([point.value for point in train], dtype=float)
        actual = np.array([point.value for point in test], dtype=float)
        cutoff_date = train[-1].date
        profile = analyze(train)

        for strategy in strategies:
            try:
                result = strategy.forecast(train, config.horizon, profile)
                predicted = np.array([point.predicted for point in result.forecasts], dtype=float)
                records.append(
                    {
                        "model": strategy.name,
                        "cutoff": cutoff_date,
                        "mape": mape(actual, predicted),
                        "wmape": wmape(actual, predicted),
                        "mase": mase(actual, predicted, insample, config.season_length),
                        "error": "",
                    }
                )
            except Exception as exc:  # noqa: BLE001
                records.append(
                    {
                        "model": strategy.name,
                        "cutoff": cutoff_date,
                        "mape": np.nan,
                        "wmape": np.nan,
                        "mase": np.nan,
                        "error": str(exc),
                    }
                )

    metrics = pd.DataFrame.from_records(records)
    valid = metrics[metrics["wmape"].notna()]
    if valid.empty:
        return BacktestResult(metrics=metrics, model_selection=None)

    model_scores = valid.groupby("model")["wmape"].mean().sort_values()
    return BacktestResult(metrics=metrics, model_selection=str(model_scores.index[0]))


def summarize_backtest(metrics: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    if metrics.empty:
        return {}
    valid = metrics[metrics["wmape"].notna()]
    if valid.empty:
        return {}
    aggregate = valid.groupby("model")[["mape", "wmape", "mase"]].mean().sort_values("wmape")
    return {
        model: {column: float(value) for column, value in row.items()}
        for model, row in aggregate.iterrows()
    }
