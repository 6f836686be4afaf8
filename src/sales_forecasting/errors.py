"""
Exception hierarchy for the forecasting engine.

Strategy-level errors are caught by the ensemble selector and recorded in the
model comparison; none of them escapes ``generate_forecast``.
"""

from typing import Any, Dict, Optional


class ForecastingError(Exception):
    """Base class for recoverable forecasting problems."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class InsufficientDataError(ForecastingError):
    """Not enough history for a strategy's minimum requirement."""

    def __init__(self, message: str, required_count: Optional[int] = None,
                 available_count: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.required_count = required_count
        self.available_count = available_count


class DegenerateSeriesError(ForecastingError):
    """All-zero or constant series; ratios over it are undefined."""


class AllStrategiesFailedError(ForecastingError):
    """Every strategy and the fallback failed to produce a forecast."""

    def __init__(self, message: str, failures: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.failures = failures or {}
