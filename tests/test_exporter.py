"""Tests for CSV export and the daily forward fill."""

from __future__ import annotations

import math

import pandas as pd
import pytest

from kpi_analytics.equity import append_equity_curve
from kpi_analytics.exporter import Exporter, daily_fill
from kpi_analytics.kpi_calculator import KPISet, compute_kpis
from kpi_analytics.monte_carlo import MonteCarloSimulator
from kpi_analytics.rolling_metrics import append_rolling_metrics, compute_distribution_stats

WINDOW = ("2021-11-15", "2022-11-15")


@pytest.fixture
def results() -> pd.DataFrame:
    frame = pd.DataFrame({
        "trade_id": ["1", "2", "3", "4"],
        "date": pd.to_datetime(["2021-11-16", "2021-11-16", "2021-11-18", "2021-11-25"]),
        "stop_loss_pct": [1.0, 1.2, 0.8, 1.1],
        "return_pct": [2.0, -5.0, 10.0, 1.0],
        "iv": [1.02, 0.95, 1.10, 1.01],
    })
    frame = append_equity_curve(frame)
    frame["loss"] = frame["return_pct"] < 0
    return append_rolling_metrics(frame, window=2)


def test_daily_fill_keeps_last_trade_of_day_and_forward_fills() -> None:
    series = pd.Series(
        [1.02, 0.969, 1.0659],
        index=pd.to_datetime(["2021-11-16", "2021-11-16", "2021-11-18"]),
    )
    filled = daily_fill(series, "2021-11-15", "2021-11-20", "equity")

    assert list(filled.columns) == ["date", "equity"]
    assert filled["date"].tolist() == list(pd.date_range("2021-11-15", "2021-11-20"))
    assert math.isnan(filled["equity"].iloc[0])
    assert filled["equity"].iloc[1:].tolist() == pytest.approx(
        [0.969, 0.969, 1.0659, 1.0659, 1.0659]
    )


def test_daily_fill_ignores_time_of_day() -> None:
    series = pd.Series([1.5], index=pd.to_datetime(["2021-11-16 15:30"]))
    filled = daily_fill(series, "2021-11-16", "2021-11-17", "eq")

    assert filled["eq"].tolist() == [1.5, 1.5]


def test_export_all_writes_every_table(tmp_path, results) -> None:
    kpis = compute_kpis(results)
    distribution = compute_distribution_stats(results["return_pct"])
    monte_carlo = MonteCarloSimulator(n_simulations=100, seed=123).simulate(results["iv"])
    benchmark_kpis = pd.DataFrame(
        [{"asset": "BTC (Buy & Hold)", "return": -0.6, "sharpe": -1.2, "volatility": 0.7, "max_dd": -0.75}]
    )
    btc = pd.Series(
        [1.0, 1.05, 0.97],
        index=pd.to_datetime(["2021-11-15", "2021-11-16", "2021-11-18"]),
        name="btc",
    )

    paths = Exporter(tmp_path / "out").export_all(
        kpis=kpis,
        results=results,
        window=WINDOW,
        distribution=distribution,
        monte_carlo=monte_carlo,
        benchmark_kpis=benchmark_kpis,
        benchmark_equity=btc,
    )

    names = {p.name for p in paths.values()}
    assert names == {
        "kpis.csv",
        "benchmark_kpis.csv",
        "strategy_eq_full.csv",
        "btc_eq_full.csv",
        "strategy_results_full.csv",
        "advanced_metrics.csv",
    }

    kpi_csv = pd.read_csv(paths["kpis"])
    assert list(kpi_csv.columns) == list(KPISet.__dataclass_fields__)
    assert kpi_csv.loc[0, "total_trades"] == 4

    strategy_eq = pd.read_csv(paths["strategy_equity"])
    assert list(strategy_eq.columns) == ["date", "equity"]
    assert len(strategy_eq) == 366
    assert strategy_eq.loc[0, "date"] == "2021-11-15"
    assert math.isnan(strategy_eq.loc[0, "equity"])
    assert strategy_eq.loc[1, "equity"] == pytest.approx(0.969)
    assert strategy_eq["equity"].iloc[-1] == pytest.approx(results["equity"].iloc[-1])

    btc_eq = pd.read_csv(paths["benchmark_equity"])
    assert list(btc_eq.columns) == ["date", "eq_btc"]
    assert btc_eq["eq_btc"].iloc[0] == 1.0
    assert btc_eq["eq_btc"].iloc[-1] == pytest.approx(0.97)

    full = pd.read_csv(paths["results"])
    for col in ["equity", "high_watermark", "drawdown", "loss", "roll_vol", "roll_sharpe", "roll_dd"]:
        assert col in full.columns
    assert full.loc[0, "date"] == "2021-11-16"

    advanced = pd.read_csv(paths["advanced_metrics"])
    assert list(advanced.columns) == [
        "skewness", "kurtosis", "autocorr_lag1",
        "mc_runs", "mc_seed", "mc_1pct", "mc_5pct", "mc_median",
    ]


def test_benchmark_files_skipped_when_absent(tmp_path, results) -> None:
    paths = Exporter(tmp_path).export_all(
        kpis=compute_kpis(results), results=results, window=WINDOW
    )

    assert set(paths) == {"kpis", "strategy_equity", "results"}
    assert not (tmp_path / "btc_eq_full.csv").exists()
    assert not (tmp_path / "benchmark_kpis.csv").exists()
