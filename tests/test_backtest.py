"""Tests for the rolling-origin backtest"""

import pandas as pd

from sales_forecasting.backtest import rolling_backtest, summarize_backtest
from sales_forecasting.config import BacktestConfig
from sales_forecasting.models import ENSEMBLE_ORDER, STRATEGY_REGISTRY


class TestRollingBacktest:
    def test_folds_cover_every_strategy(self, noisy_history):
        history = noisy_history[:60]
        result = rolling_backtest(history, BacktestConfig(horizon=7, min_train=21, step=7))

        assert len(result.metrics) == 5 * len(ENSEMBLE_ORDER)
        expected_cutoffs = [history[index - 1].date for index in (21, 28, 35, 42, 49)]
        assert sorted(result.metrics["cutoff"].unique()) == expected_cutoffs
        assert set(result.metrics["model"]) == {STRATEGY_REGISTRY[kind].name for kind in ENSEMBLE_ORDER}
        assert result.metrics["error"].eq("").all()
        assert result.model_selection in set(result.metrics["model"])

    def test_selection_has_lowest_mean_wmape(self, noisy_history):
        result = rolling_backtest(noisy_history[:60])
        means = result.metrics.groupby("model")["wmape"].mean()

        assert means.idxmin() == result.model_selection

    def test_short_history_has_no_folds(self, short_history):
        result = rolling_backtest(short_history)

        assert result.metrics.empty
        assert result.model_selection is None

    def test_strategy_errors_are_recorded(self, history_factory):
        # Folds with fewer than seven training points fail for two strategies
        history = history_factory([100.0 + day for day in range(12)])
        result = rolling_backtest(history, BacktestConfig(horizon=3, min_train=3, step=3))

        failed = result.metrics[result.metrics["error"].str.len() > 0]
        assert not failed.empty
        assert failed["wmape"].isna().all()
        assert result.model_selection is not None


class TestSummarizeBacktest:
    def test_empty_frame(self):
        assert summarize_backtest(pd.DataFrame()) == {}

    def test_aggregates_per_model(self, noisy_history):
        result = rolling_backtest(noisy_history[:60])
        summary = summarize_backtest(result.metrics)

        assert set(summary) == set(result.metrics["model"])
        wmapes = [values["wmape"] for values in summary.values()]
        assert wmapes == sorted(wmapes)
        assert list(summary)[0] == result.model_selection
