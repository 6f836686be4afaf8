from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .backtest import rolling_backtest, summarize_backtest
from .config import BacktestConfig, ForecastConfig
from .data import (
    METRIC_COLUMNS,
    ensure_daily_frequency,
    forecast_horizon_dates,
    frame_to_history,
    load_daily_series,
)
from .domain import EnsembleResult
from .logging_config import configure_logging
from .pipeline import forecasts_to_frame, generate_forecast


def summarize_comparison(result: EnsembleResult) -> str:
    if not result.model_comparison:
        return "No models were evaluated."

    lines: List[str] = [f"Best model: {result.best_model}", "Model comparison (higher is better):"]
    for entry in result.model_comparison:
        if entry.error:
            lines.append(f"- {entry.name}: failed -> {entry.error}")
        else:
            lines.append(f"- {entry.name}: score={entry.score:.2f}")
    if result.metrics is not None:
        metrics = result.metrics
        lines.append(
            f"\nSelected metrics ({metrics.source}): MAPE={metrics.mape:.2f}% "
            f"MAE={metrics.mae:.2f} RMSE={metrics.rmse:.2f} R2={metrics.r_squared:.3f} "
            f"confidence={metrics.confidence:.1f} quality={metrics.quality_score:.1f}"
        )
    return "\n".join(lines)


def summarize_backtest_table(metrics: pd.DataFrame) -> str:
    aggregate = summarize_backtest(metrics)
    if not aggregate:
        return "No backtest folds were scored."
    frame = pd.DataFrame.from_dict(aggregate, orient="index")
    lines = ["Rolling backtest accuracy (lower is better):"]
    lines.append(frame.to_string(float_format=lambda x: f"{x:.4f}"))

    errors = metrics[metrics["error"].str.len().gt(0)]
    if not errors.empty:
        lines.append("\nWarnings:")
        for _, row in errors.iterrows():
            lines.append(f"- {row['cutoff']}: {row['model']} -> {row['error']}")
    return "\n".join(lines)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Daily sales forecasting with an ensemble of trend and volatility models.",
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Path to a sales CSV with a date column and a metric column.",
    )
    parser.add_argument(
        "--metric",
        type=str,
        default="revenue",
        help=f"Metric column to forecast, e.g. {', '.join(METRIC_COLUMNS)} (default: revenue).",
    )
    parser.add_argument(
        "--date-column",
        type=str,
        default="date",
        help="Name of the date column (default: date).",
    )
    parser.add_argument(
        "--horizon",
        type=int,
        default=ForecastConfig.horizon,
        help=f"Number of future days to forecast (default: {ForecastConfig.horizon}).",
    )
    parser.add_argument(
        "--fill-missing-days",
        action="store_true",
        help="Insert zero-valued rows for calendar days without sales.",
    )
    parser.add_argument(
        "--backtest",
        action="store_true",
        help="Run a rolling-origin backtest of every model before forecasting.",
    )
    parser.add_argument(
        "--min-train",
        type=int,
        default=BacktestConfig.min_train,
        help=f"Minimum history (days) before the first backtest fold (default: {BacktestConfig.min_train}).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path to write the forecast result as JSON.",
    )
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level (default: WARNING).")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines.")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    if args.horizon < 1:
        parser.error("--horizon must be a positive integer")

    configure_logging(level=args.log_level, format_json=args.json_logs)

    daily = load_daily_series(args.input, metric=args.metric, date_column=args.date_column)
    if args.fill_missing_days:
        daily = ensure_daily_frequency(daily)
    history = frame_to_history(daily)

    if args.backtest:
        backtest_cfg = BacktestConfig(horizon=min(args.horizon, BacktestConfig.horizon), min_train=args.min_train)
        backtest_result = rolling_backtest(history, backtest_cfg)
        print(summarize_backtest_table(backtest_result.metrics))
        print()

    result = generate_forecast(history, config=ForecastConfig(horizon=args.horizon))
    print(summarize_comparison(result))

    if history:
        print(f"\nLast observed day: {history[-1].date.isoformat()}")
        for days, horizon_date in forecast_horizon_dates(history[-1].date).items():
            print(f"  +{days} days: {horizon_date.isoformat()}")

    if result.is_empty:
        print("\nNo forecast generated. Insufficient data? Check inputs.")
    else:
        print("\nGenerated forecast (first 10 days):")
        print(forecasts_to_frame(result).head(10).to_string(index=False, float_format=lambda x: f"{x:.2f}"))

    if args.output:
        args.output.write_text(json.dumps(result.to_dict(), indent=2))
        print(f"\nSaved forecast to {args.output}")


if __name__ == "__main__":
    main()
