from __future__ import annotations

import datetime as dt
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np
import pandas as pd
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .domain import HistoricalPoint
from .logging_config import get_logger

logger = get_logger(__name__)

METRIC_COLUMNS: Sequence[str] = ("revenue", "orders", "profit", "quantity")

RawPoint = Union[HistoricalPoint, Mapping[str, Any]]


def load_daily_series(
    path: Path,
    metric: str = "revenue",
    date_column: str = "date",
) -> pd.DataFrame:
    """Load a CSV of sales rows and aggregate it into one row per day.

    Rows may already be daily totals or individual transactions; both are
    summed per calendar day. ``orders`` falls back to a row count when the
    file has no orders column.
    """
    df = pd.read_csv(path)
    if date_column not in df.columns:
        raise ValueError(f"Sales data missing date column: {date_column!r}")

    if metric not in df.columns and metric != "orders":
        raise ValueError(f"Sales data missing metric column: {metric!r}")

    df[date_column] = df[date_column].astype(str).str[:10]
    df[date_column] = pd.to_datetime(df[date_column], errors="coerce")
    df = df.dropna(subset=[date_column])

    if metric in df.columns:
        df[metric] = pd.to_numeric(df[metric], errors="coerce")
        df = df.dropna(subset=[metric])
        daily = df.groupby(date_column)[metric].sum()
    else:
        daily = df.groupby(date_column).size().astype(float)

    if daily.empty:
        raise ValueError("No usable rows left after parsing dates and values.")

    frame = daily.reset_index()
    frame.columns = ["ds", "y"]
    return frame.sort_values("ds").reset_index(drop=True)


def ensure_daily_frequency(df: pd.DataFrame, fill_value: float = 0.0) -> pd.DataFrame:
    prepared = df.sort_values("ds").copy()
    prepared = prepared.set_index("ds").asfreq("D", fill_value=fill_value)
    return prepared.reset_index()


def frame_to_history(df: pd.DataFrame) -> List[HistoricalPoint]:
    return prepare_history(
        {"date": row.ds, "value": row.y} for row in df.itertuples(index=False)
    )


def _coerce_date(raw: Any) -> dt.date:
    if isinstance(raw, pd.Timestamp):
        return raw.date()
    if isinstance(raw, dt.datetime):
        return raw.date()
    if isinstance(raw, dt.date):
        return raw
    return date_parser.isoparse(str(raw)).date()


def prepare_history(points: Iterable[RawPoint]) -> List[HistoricalPoint]:
    """Validate raw points into an ascending, de-duplicated series.

    Points with unparseable dates or non-finite/negative values are dropped.
    A repeated date keeps the last value seen.
    """
    by_date: Dict[dt.date, float] = {}
    dropped = 0
    for raw in points:
        if isinstance(raw, HistoricalPoint):
            raw_date, raw_value = raw.date, raw.value
        else:
            raw_date, raw_value = raw.get("date"), raw.get("value")
        try:
            day = _coerce_date(raw_date)
            value = float(raw_value)
        except (TypeError, ValueError, OverflowError):
            dropped += 1
            continue
        if not math.isfinite(value) or value < 0:
            dropped += 1
            continue
        by_date[day] = value

    if dropped:
        logger.warning("Dropped invalid history points", dropped=dropped, kept=len(by_date))

    return [HistoricalPoint(date=day, value=by_date[day]) for day in sorted(by_date)]


def smooth_outliers(values: Sequence[float], k: float = 2.0) -> np.ndarray:
    """Replace points outside ``[q1 - k*iqr, q3 + k*iqr]`` with a weighted neighbour mean.

    Neighbours within three positions are weighted by ``1 / (distance + 1)``.
    Series shorter than three points are returned unchanged.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size < 3:
        return arr.copy()

    q1, q3 = np.quantile(arr, [0.25, 0.75])
    iqr = q3 - q1
    lower, upper = q1 - k * iqr, q3 + k * iqr

    smoothed = arr.copy()
    for idx, value in enumerate(arr):
        if lower <= value <= upper:
            continue
        start, end = max(0, idx - 3), min(arr.size, idx + 4)
        weights, total = 0.0, 0.0
        for pos in range(start, end):
            if pos == idx:
                continue
            weight = 1.0 / (abs(pos - idx) + 1)
            total += arr[pos] * weight
            weights += weight
        if weights > 0:
            smoothed[idx] = total / weights
    return np.maximum(smoothed, 0.0)


def forecast_horizon_dates(last_date: dt.date, horizons: Sequence[int] = (30, 60, 90)) -> Dict[int, dt.date]:
    return {days: last_date + relativedelta(days=days) for days in horizons}
