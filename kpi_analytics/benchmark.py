"""
Benchmark Comparator

Fetches daily closing prices for the reference instruments, aligns them to
the analysis window and computes the same headline KPIs as the strategy
from each benchmark's own return series.

PIPELINE
    1. ACQUIRE   - one Yahoo Finance download for all symbols (no retry:
                   a failed pull aborts the run)
    2. ALIGN     - per asset, keep dates inside the window with a price;
                   absent dates are dropped, never interpolated
    3. RETURNS   - simple daily returns p_t / p_{t-1} - 1, first dropped
    4. EQUITY    - base 1.0 on the first aligned date, then cumprod(1 + r)
    5. KPIS      - total return, annualized Sharpe and volatility, max DD

DATA PROVENANCE
    Every pull is recorded with source, symbols, fetch timestamp, date range,
    row count and a SHA-256 hash of the closing prices.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from kpi_analytics.config import ANALYSIS, BENCHMARK, AnalysisConfig, BenchmarkConfig
from kpi_analytics.equity import calculate_drawdown_series
from kpi_analytics.errors import BenchmarkFetchError
from kpi_analytics.kpi_calculator import safe_ratio

logger = logging.getLogger(__name__)

BENCHMARK_KPI_COLUMNS = ["asset", "return", "sharpe", "volatility", "max_dd"]


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class DataProvenance:
    """
    Tracks the origin of benchmark data for auditability.

    Every fetch is recorded with its source, timestamp, and integrity hash
    to ensure reproducibility and traceability.
    """
    source: str                     # Data source identifier
    symbols: Tuple[str, ...]        # Ticker symbols requested
    fetch_timestamp: str            # ISO format timestamp
    date_range: Tuple[str, str]     # (start, end) dates
    record_count: int               # Number of price dates fetched
    data_hash: str                  # SHA-256 hash of closing prices

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source": self.source,
            "symbols": list(self.symbols),
            "fetch_timestamp": self.fetch_timestamp,
            "date_range": list(self.date_range),
            "record_count": self.record_count,
            "data_hash": self.data_hash,
        }


@dataclass
class BenchmarkResult:
    """
    Aligned benchmark series and KPIs.

    Attributes
    ----------
    closes : pd.DataFrame
        Closing prices, one column per asset, NaN where a date is absent
    returns : pd.DataFrame
        Daily simple returns per asset (first date of each asset dropped)
    equity : pd.DataFrame
        Equity curves per asset, 1.0 on each asset's first aligned date
    kpis : pd.DataFrame
        One row per asset: asset, return, sharpe, volatility, max_dd
    provenance : DataProvenance
        Origin of the price data
    """
    closes: pd.DataFrame
    returns: pd.DataFrame
    equity: pd.DataFrame
    kpis: pd.DataFrame
    provenance: Optional[DataProvenance] = None


# =============================================================================
# DATA ACQUISITION
# =============================================================================

class BenchmarkAcquisition:
    """
    Yahoo Finance closing price acquisition.

    A single attempt is made per run. Any exception raised by the download,
    an empty result, or a symbol without prices raises BenchmarkFetchError.
    """

    def __init__(self, timeout: int = 30, yf_module: Any = None):
        """
        Initialize data acquisition.

        Args:
            timeout: Request timeout in seconds
            yf_module: Object exposing ``download`` (default: yfinance)
        """
        self._yf = yf_module
        self.timeout = timeout

    def _get_yf(self):
        """Lazy load yfinance to avoid import overhead."""
        if self._yf is None:
            import yfinance as yf
            self._yf = yf
        return self._yf

    def fetch_closes(
        self,
        symbols: Dict[str, str],
        start: str,
        end: str
    ) -> Tuple[pd.DataFrame, DataProvenance]:
        """
        Fetch daily closing prices.

        Args:
            symbols: Ticker symbol -> output column name
            start: Start date (YYYY-MM-DD)
            end: Last date of the window, inclusive (YYYY-MM-DD)

        Returns:
            Tuple of (date-indexed closes, provenance record)
        """
        yf = self._get_yf()
        tickers = list(symbols)
        tickers_str = " ".join(tickers)
        logger.info(f"Fetching benchmark closes: {tickers_str} ({start} to {end})")

        # yfinance treats end as exclusive; the window is inclusive
        download_end = (pd.Timestamp(end) + pd.Timedelta(days=1)).strftime("%Y-%m-%d")

        fetch_timestamp = datetime.now().isoformat()
        try:
            data = yf.download(
                tickers,
                start=start,
                end=download_end,
                auto_adjust=False,
                progress=False,
                timeout=self.timeout,
                group_by="ticker"
            )
        except Exception as e:
            raise BenchmarkFetchError(tickers_str, start, end, str(e)) from e

        if data is None or len(data) == 0:
            raise BenchmarkFetchError(tickers_str, start, end, "no data returned")

        series = {}
        for sym, column in symbols.items():
            close = self._extract_close(data, sym)
            if close is None or len(close) == 0:
                raise BenchmarkFetchError(sym, start, end, "no closing prices returned")
            series[column] = close

        closes = pd.concat(series, axis=1).sort_index()
        closes.index.name = "date"

        data_hash = hashlib.sha256(
            pd.util.hash_pandas_object(closes.fillna(0.0)).values.tobytes()
        ).hexdigest()[:16]

        provenance = DataProvenance(
            source="yahoo_finance",
            symbols=tuple(tickers),
            fetch_timestamp=fetch_timestamp,
            date_range=(start, end),
            record_count=len(closes),
            data_hash=data_hash
        )

        logger.info(f"Fetched {len(closes)} price dates for {len(series)} symbols (hash {data_hash})")
        return closes, provenance

    @staticmethod
    def _extract_close(data: pd.DataFrame, symbol: str) -> Optional[pd.Series]:
        """Pull one symbol's Close column out of a download frame."""
        if isinstance(data.columns, pd.MultiIndex):
            if symbol in data.columns.get_level_values(0):
                frame = data[symbol]
            elif symbol in data.columns.get_level_values(1):
                frame = data.xs(symbol, axis=1, level=1)
            else:
                return None
        else:
            frame = data

        if "Close" not in frame.columns:
            return None

        close = frame["Close"].astype(float).dropna()

        index = pd.DatetimeIndex(close.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        close.index = index.normalize()

        # Keep one price per calendar date
        return close[~close.index.duplicated(keep="last")]


# =============================================================================
# SERIES CONSTRUCTION
# =============================================================================

def align_to_window(closes: pd.DataFrame, start: str, end: str) -> pd.DataFrame:
    """Restrict closes to the analysis window (inclusive)."""
    return closes.sort_index().loc[pd.Timestamp(start):pd.Timestamp(end)]


def _asset_prices(closes: pd.DataFrame, column: str) -> pd.Series:
    """Observed prices for one asset; absent dates dropped."""
    prices = closes[column].dropna()
    if len(prices) < 2:
        raise BenchmarkFetchError(
            column,
            str(closes.index.min().date()) if len(closes) else "?",
            str(closes.index.max().date()) if len(closes) else "?",
            f"need at least 2 prices in window, got {len(prices)}"
        )
    return prices


def compute_benchmark_returns(closes: pd.DataFrame) -> pd.DataFrame:
    """
    Daily simple returns per asset.

    Each asset uses only the dates on which it has a price; the first
    (undefined) return is dropped. Dates one asset lacks are NaN in the
    combined frame.
    """
    returns = {}
    for column in closes.columns:
        prices = _asset_prices(closes, column)
        returns[column] = (prices / prices.shift(1) - 1).iloc[1:]
    result = pd.concat(returns, axis=1).sort_index()
    result.index.name = "date"
    return result


def build_benchmark_equity(closes: pd.DataFrame) -> pd.DataFrame:
    """
    Equity curve per asset with base 1.0 on its first aligned date.

    After the base date the curve is the compounded product of the daily
    returns, with no skipped price date.
    """
    curves = {}
    for column in closes.columns:
        prices = _asset_prices(closes, column)
        daily = (prices / prices.shift(1) - 1).iloc[1:]
        base = pd.Series([1.0], index=prices.index[:1])
        curves[column] = pd.concat([base, (1 + daily).cumprod()])
    result = pd.concat(curves, axis=1).sort_index()
    result.index.name = "date"
    return result


def compute_asset_kpis(
    returns: pd.Series,
    equity: pd.Series,
    annualization_days: int = ANALYSIS.annualization_days
) -> Dict[str, float]:
    """Total return, annualized Sharpe and volatility, max drawdown."""
    returns = returns.dropna()
    equity = equity.dropna()
    factor = np.sqrt(annualization_days)
    vol = float(returns.std())

    return {
        "return": float(equity.iloc[-1] - 1),
        "sharpe": safe_ratio(float(returns.mean()), vol) * factor,
        "volatility": vol * factor,
        "max_dd": float(calculate_drawdown_series(equity).min()),
    }


def compute_benchmark_kpis(
    returns: pd.DataFrame,
    labels: Optional[Dict[str, str]] = None,
    annualization_days: int = ANALYSIS.annualization_days
) -> pd.DataFrame:
    """
    Benchmark KPI table, one row per asset.

    Each asset's equity curve is rebuilt from its returns with a 1.0 base
    ahead of the first return, matching ``build_benchmark_equity``.

    Args:
        returns: Daily simple returns, one column per asset
        labels: Column name -> display label (default: column names)
        annualization_days: Periods per year for Sharpe and volatility

    Returns:
        DataFrame with columns asset, return, sharpe, volatility, max_dd
    """
    labels = labels or {}
    rows: List[Dict[str, Any]] = []
    for column in returns.columns:
        daily = returns[column].dropna()
        equity = pd.Series(np.concatenate([[1.0], (1 + daily).cumprod().to_numpy()]))
        row = {"asset": labels.get(column, column)}
        row.update(compute_asset_kpis(daily, equity, annualization_days))
        rows.append(row)
        logger.info(
            f"{row['asset']}: return {row['return']:+.2%}, "
            f"sharpe {row['sharpe']:.2f}, max DD {row['max_dd']:.2%}"
        )
    return pd.DataFrame(rows, columns=BENCHMARK_KPI_COLUMNS)


# =============================================================================
# COMPARATOR
# =============================================================================

class BenchmarkComparator:
    """
    Fetch, align and evaluate the benchmark set.

    Usage:
        comparator = BenchmarkComparator()
        result = comparator.run()
        result.kpis
    """

    def __init__(
        self,
        config: BenchmarkConfig = BENCHMARK,
        analysis: AnalysisConfig = ANALYSIS,
        acquisition: Optional[BenchmarkAcquisition] = None
    ):
        self.config = config
        self.analysis = analysis
        self.acquisition = acquisition or BenchmarkAcquisition()

    def run(self) -> BenchmarkResult:
        """Fetch prices and compute the benchmark table."""
        raw, provenance = self.acquisition.fetch_closes(
            self.config.columns, self.config.start, self.config.end
        )
        result = self.evaluate(raw)
        result.provenance = provenance
        return result

    def evaluate(self, raw_closes: pd.DataFrame) -> BenchmarkResult:
        """
        Compute returns, equity curves and KPIs from closing prices.

        Args:
            raw_closes: Date-indexed closes, one column per configured asset

        Returns:
            BenchmarkResult without provenance
        """
        closes = align_to_window(raw_closes, self.config.start, self.config.end)
        returns = compute_benchmark_returns(closes)
        equity = build_benchmark_equity(closes)
        kpis = compute_benchmark_kpis(
            returns, self.config.labels, self.analysis.annualization_days
        )
        return BenchmarkResult(closes=closes, returns=returns, equity=equity, kpis=kpis)
