"""Tests for the command line entry point"""

import json

import numpy as np
import pandas as pd
import pytest
import structlog

from sales_forecasting.cli import build_argument_parser, main
from sales_forecasting.logging_config import configure_logging


@pytest.fixture
def sales_csv(tmp_path):
    rng = np.random.default_rng(11)
    dates = pd.date_range("2024-01-01", periods=60, freq="D")
    revenue = 20_000 * (1 + 0.08 * np.sin(2 * np.pi * np.arange(60) / 7)) * (1 + 0.03 * rng.standard_normal(60))
    path = tmp_path / "sales.csv"
    pd.DataFrame({"date": dates.strftime("%Y-%m-%d"), "revenue": revenue.round(2)}).to_csv(path, index=False)
    return path


class TestCli:
    def test_writes_forecast_json(self, sales_csv, tmp_path, capsys):
        output = tmp_path / "forecast.json"
        main(["--input", str(sales_csv), "--horizon", "10", "--output", str(output)])

        payload = json.loads(output.read_text())
        assert len(payload["forecasts"]) == 10
        assert payload["forecasts"][0]["date"] == "2024-03-01"
        assert payload["bestModel"] != "None"
        out = capsys.readouterr().out
        assert "Best model:" in out
        assert "Last observed day: 2024-02-29" in out
        assert "+30 days: 2024-03-30" in out
        assert "+90 days: 2024-05-29" in out

    def test_backtest_summary(self, sales_csv, capsys):
        main(["--input", str(sales_csv), "--horizon", "7", "--backtest"])

        out = capsys.readouterr().out
        assert "Rolling backtest accuracy" in out
        assert "Generated forecast" in out

    def test_rejects_non_positive_horizon(self, sales_csv):
        with pytest.raises(SystemExit):
            main(["--input", str(sales_csv), "--horizon", "0"])

    def test_parser_defaults(self):
        args = build_argument_parser().parse_args(["--input", "sales.csv"])

        assert args.horizon == 30
        assert args.metric == "revenue"
        assert args.min_train == 21
        assert args.output is None


class TestLoggingSetup:
    @pytest.mark.parametrize(
        "format_json, renderer",
        [(True, structlog.processors.JSONRenderer), (False, structlog.dev.ConsoleRenderer)],
    )
    def test_renderer_follows_format(self, format_json, renderer):
        configure_logging(level="ERROR", format_json=format_json)

        assert isinstance(structlog.get_config()["processors"][-1], renderer)
