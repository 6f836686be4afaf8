"""Pytest configuration and shared fixtures."""

import datetime as dt
from typing import List, Sequence

import numpy as np
import pytest

from sales_forecasting.domain import HistoricalPoint

START = dt.date(2024, 1, 1)


def make_history(values: Sequence[float], start: dt.date = START) -> List[HistoricalPoint]:
    return [
        HistoricalPoint(date=start + dt.timedelta(days=offset), value=float(value))
        for offset, value in enumerate(values)
    ]


@pytest.fixture
def history_factory():
    """Build a daily history from raw values."""
    return make_history


@pytest.fixture
def constant_history() -> List[HistoricalPoint]:
    """90 days of flat revenue."""
    return make_history([1_000_000.0] * 90)


@pytest.fixture
def rising_history() -> List[HistoricalPoint]:
    """60 days growing by exactly 1% a day."""
    return make_history([10_000.0 * 1.01 ** day for day in range(60)])


@pytest.fixture
def noisy_history() -> List[HistoricalPoint]:
    """120 days with a weekly pattern, a mild uptrend and seeded noise."""
    rng = np.random.default_rng(7)
    days = np.arange(120)
    weekly = 1 + 0.1 * np.sin(2 * np.pi * days / 7)
    noise = 1 + 0.05 * rng.standard_normal(days.size)
    values = (50_000 + 100 * days) * weekly * noise
    return make_history(values)


@pytest.fixture
def short_history() -> List[HistoricalPoint]:
    """Three points, below every minimum except the simple trend one."""
    return make_history([1200.0, 1350.0, 1280.0])
