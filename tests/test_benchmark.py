"""Tests for benchmark acquisition and comparison (yfinance is faked)."""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from kpi_analytics.benchmark import (
    BENCHMARK_KPI_COLUMNS,
    BenchmarkAcquisition,
    BenchmarkComparator,
    align_to_window,
    build_benchmark_equity,
    compute_asset_kpis,
    compute_benchmark_kpis,
    compute_benchmark_returns,
)
from kpi_analytics.config import BenchmarkConfig
from kpi_analytics.errors import BenchmarkFetchError
from tests.conftest import FakeYFinance

BTC_ONLY = BenchmarkConfig(
    symbols={"BTC-USD": ("btc", "BTC (Buy & Hold)")},
    start="2022-01-01",
    end="2022-01-10",
)


def _closes(values, start="2022-01-01", column="btc") -> pd.DataFrame:
    index = pd.date_range(start, periods=len(values), freq="D", name="date")
    return pd.DataFrame({column: values}, index=index)


def test_equity_starts_at_one_and_compounds() -> None:
    equity = build_benchmark_equity(_closes([100.0, 110.0, 99.0]))

    assert equity["btc"].iloc[0] == 1.0
    assert equity["btc"].tolist() == pytest.approx([1.0, 1.1, 0.99])


def test_returns_drop_the_first_date() -> None:
    closes = _closes([100.0, 110.0, 99.0])
    returns = compute_benchmark_returns(closes)

    assert returns.index[0] == closes.index[1]
    assert returns["btc"].tolist() == pytest.approx([0.1, -0.1])


def test_missing_dates_are_dropped_not_interpolated() -> None:
    closes = _closes([100.0, np.nan, 121.0])
    returns = compute_benchmark_returns(closes)
    equity = build_benchmark_equity(closes)

    assert len(returns["btc"].dropna()) == 1
    assert returns["btc"].iloc[0] == pytest.approx(0.21)
    assert equity["btc"].dropna().tolist() == pytest.approx([1.0, 1.21])


def test_align_to_window_is_inclusive() -> None:
    closes = _closes(list(range(1, 11)), start="2021-11-10")
    aligned = align_to_window(closes, "2021-11-12", "2021-11-15")

    assert aligned.index[0] == pd.Timestamp("2021-11-12")
    assert aligned.index[-1] == pd.Timestamp("2021-11-15")
    assert len(aligned) == 4


def test_asset_kpis() -> None:
    closes = _closes([100.0, 110.0, 99.0])
    kpis = compute_asset_kpis(
        compute_benchmark_returns(closes)["btc"], build_benchmark_equity(closes)["btc"]
    )

    assert kpis["return"] == pytest.approx(-0.01)
    assert kpis["sharpe"] == pytest.approx(0.0, abs=1e-12)
    assert kpis["volatility"] == pytest.approx(np.std([0.1, -0.1], ddof=1) * math.sqrt(365))
    assert kpis["max_dd"] == pytest.approx(-0.1)


def test_kpi_table_matches_equity_based_kpis() -> None:
    closes = pd.concat([_closes([100.0, 110.0, 99.0]), _closes([50.0, 45.0, 54.0], column="sp500")], axis=1)
    returns = compute_benchmark_returns(closes)
    table = compute_benchmark_kpis(returns, {"btc": "BTC (Buy & Hold)"})

    assert list(table.columns) == BENCHMARK_KPI_COLUMNS
    assert table["asset"].tolist() == ["BTC (Buy & Hold)", "sp500"]
    assert table.loc[0, "max_dd"] == pytest.approx(-0.1)
    assert table.loc[1, "return"] == pytest.approx(0.08)
    assert table.loc[1, "max_dd"] == pytest.approx(-0.1)


def test_single_price_in_window_raises() -> None:
    with pytest.raises(BenchmarkFetchError, match="at least 2 prices"):
        compute_benchmark_returns(_closes([100.0]))


def test_comparator_end_to_end(fake_yf) -> None:
    comparator = BenchmarkComparator(acquisition=BenchmarkAcquisition(yf_module=fake_yf))
    result = comparator.run()

    assert list(result.kpis.columns) == BENCHMARK_KPI_COLUMNS
    assert result.kpis["asset"].tolist() == ["S&P500", "NASDAQ100", "MSCI WORLD", "BTC (Buy & Hold)"]
    assert result.closes.index.min() >= pd.Timestamp("2021-11-15")
    assert result.closes.index.max() <= pd.Timestamp("2022-11-15")
    for column in ["sp500", "nasdaq", "msci_world", "btc"]:
        assert result.equity[column].dropna().iloc[0] == 1.0
    assert (result.kpis["max_dd"] <= 0).all()
    assert result.provenance is not None
    assert result.provenance.symbols == ("^GSPC", "^NDX", "URTH", "BTC-USD")
    assert len(result.provenance.data_hash) == 16


def test_single_download_without_retry(fake_yf) -> None:
    BenchmarkComparator(acquisition=BenchmarkAcquisition(yf_module=fake_yf)).run()

    assert len(fake_yf.calls) == 1
    call = fake_yf.calls[0]
    assert call["tickers"] == ["^GSPC", "^NDX", "URTH", "BTC-USD"]
    assert call["auto_adjust"] is False
    assert call["start"] == "2021-11-15"
    # Inclusive window end: yfinance stops the day before `end`
    assert call["end"] == "2022-11-16"


def test_download_exception_becomes_fetch_error() -> None:
    fake = FakeYFinance({}, error=ConnectionError("network down"))
    acquisition = BenchmarkAcquisition(yf_module=fake)

    with pytest.raises(BenchmarkFetchError, match="network down"):
        BenchmarkComparator(acquisition=acquisition).run()
    assert len(fake.calls) == 1


def test_empty_download_raises() -> None:
    acquisition = BenchmarkAcquisition(yf_module=FakeYFinance({}))

    with pytest.raises(BenchmarkFetchError, match="no data"):
        acquisition.fetch_closes({"BTC-USD": "btc"}, "2022-01-01", "2022-01-10")


def test_missing_symbol_raises() -> None:
    closes = pd.Series([1.0, 2.0], index=pd.date_range("2022-01-01", periods=2))
    acquisition = BenchmarkAcquisition(yf_module=FakeYFinance({"^GSPC": closes}))

    with pytest.raises(BenchmarkFetchError, match="BTC-USD"):
        acquisition.fetch_closes({"^GSPC": "sp500", "BTC-USD": "btc"}, "2022-01-01", "2022-01-10")


def test_evaluate_uses_configured_labels() -> None:
    comparator = BenchmarkComparator(config=BTC_ONLY)
    result = comparator.evaluate(_closes([100.0, 110.0, 99.0, 105.0]))

    assert result.kpis.loc[0, "asset"] == "BTC (Buy & Hold)"
    assert result.kpis.loc[0, "return"] == pytest.approx(0.05)


def test_provenance_keeps_inclusive_window(fake_yf) -> None:
    acquisition = BenchmarkAcquisition(yf_module=fake_yf)
    _, provenance = acquisition.fetch_closes({"BTC-USD": "btc"}, "2021-11-15", "2022-11-15")

    assert fake_yf.calls[0]["end"] == "2022-11-16"
    assert provenance.date_range == ("2021-11-15", "2022-11-15")


def test_constant_growth_benchmark_has_undefined_sharpe() -> None:
    closes = _closes([100.0 * 1.01 ** k for k in range(7)])
    kpis = compute_asset_kpis(
        compute_benchmark_returns(closes)["btc"], build_benchmark_equity(closes)["btc"]
    )

    assert math.isnan(kpis["sharpe"])
    assert kpis["return"] == pytest.approx(1.01 ** 6 - 1)
