"""Tests for the market pattern analyzer"""

import math

import numpy as np

from sales_forecasting.analyzer import (
    VOLATILITY_CAP,
    VOLATILITY_FLOOR,
    analyze,
    classify_regime,
    daily_returns,
    trend_strength,
    weekly_seasonality,
)
from sales_forecasting.domain import Regime


class TestDegenerateSeries:
    """Short and constant series fall back to the neutral profile"""

    def test_single_point_is_neutral(self, history_factory):
        profile = analyze(history_factory([500.0]))

        assert profile.degenerate is True
        assert profile.base_volatility == VOLATILITY_FLOOR
        assert profile.trend_strength == 0.0
        assert profile.regime is Regime.RANGING
        assert profile.observations == 1

    def test_empty_history_is_neutral(self):
        profile = analyze([])

        assert profile.degenerate is True
        assert profile.observations == 0

    def test_constant_series_is_neutral(self, constant_history):
        profile = analyze(constant_history)

        assert profile.degenerate is True
        assert profile.seasonal_amplitude == 0.0
        assert profile.natural_fluctuation == 0.0

    def test_all_zero_series_is_neutral(self, history_factory):
        profile = analyze(history_factory([0.0] * 20))

        assert profile.degenerate is True

    def test_no_computable_returns(self, history_factory):
        # Only the step after a zero exists, which is skipped
        profile = analyze(history_factory([0.0, 25.0]))

        assert profile.degenerate is True


class TestProfileValues:
    """Volatility, trend and regime derivation"""

    def test_volatility_is_clamped_high(self, history_factory):
        profile = analyze(history_factory([100.0, 300.0] * 30))

        assert profile.base_volatility == VOLATILITY_CAP
        assert profile.regime is Regime.VOLATILE

    def test_volatility_within_bounds(self, noisy_history):
        profile = analyze(noisy_history)

        assert VOLATILITY_FLOOR <= profile.base_volatility <= VOLATILITY_CAP
        assert profile.degenerate is False
        assert profile.observations == len(noisy_history)

    def test_rising_series_trend_is_capped(self, rising_history):
        profile = analyze(rising_history)

        assert profile.trend_strength == 0.15
        assert profile.regime is Regime.TRENDING

    def test_falling_series_trend_is_floored(self, history_factory):
        profile = analyze(history_factory([10_000.0 * 0.99 ** day for day in range(60)]))

        assert profile.trend_strength == -0.10
        assert profile.regime is Regime.TRENDING

    def test_trend_strength_short_series(self):
        assert trend_strength([100.0]) == 0.0
        # One-day window: 10% rise over one day, annualised then capped
        assert trend_strength([100.0, 110.0]) == 0.15

    def test_microstructure_within_unit_interval(self, noisy_history):
        profile = analyze(noisy_history)

        for value in (profile.persistence, profile.mean_reversion, profile.clustering):
            assert 0.0 <= value <= 1.0

    def test_classify_regime(self):
        assert classify_regime(0.12, 0.10) is Regime.TRENDING
        assert classify_regime(-0.09, 0.30) is Regime.TRENDING
        assert classify_regime(0.01, 0.30) is Regime.VOLATILE
        assert classify_regime(0.01, 0.10) is Regime.RANGING


class TestSeasonality:
    """Weekly sinusoid fit"""

    def test_recovers_day_of_week_effect(self, history_factory):
        history = history_factory([0.0] * 70)
        values = [1000.0 * (1 + 0.2 * math.sin(2 * math.pi * point.date.weekday() / 7)) for point in history]
        amplitude, phase = weekly_seasonality([point.date for point in history], values)

        assert 0.17 < amplitude < 0.23
        assert abs(phase) < 0.3

    def test_too_short_for_seasonality(self, history_factory):
        history = history_factory([100.0, 120.0, 90.0])
        assert weekly_seasonality([point.date for point in history], [100.0, 120.0, 90.0]) == (0.0, 0.0)


class TestReturns:
    def test_skips_zero_denominators(self):
        returns = daily_returns([0.0, 10.0, 20.0])

        np.testing.assert_allclose(returns, [1.0])


class TestIdempotence:
    def test_repeat_analysis_is_equal(self, noisy_history):
        assert analyze(noisy_history) == analyze(noisy_history)
