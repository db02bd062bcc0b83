"""
Rolling & Distributional Metrics

Rolling statistics over a fixed trailing window of trades, plus the higher
moments and lag-1 autocorrelation of the full return series.

Rolling statistics are right-aligned: the value at position i covers trades
i-W+1 .. i, and positions before the first complete window are NaN.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict

import numpy as np
import pandas as pd
from scipy import stats

from kpi_analytics.config import ANALYSIS, ZERO_TOLERANCE

logger = logging.getLogger(__name__)

ROLLING_COLUMNS = ["roll_vol", "roll_sharpe", "roll_dd"]


@dataclass(frozen=True)
class DistributionStats:
    """
    Shape of the return distribution.

    Kurtosis is Pearson (non-excess) kurtosis: a normal sample is ~3.
    """
    skewness: float
    kurtosis: float
    autocorr_lag1: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @property
    def has_fat_tails(self) -> bool:
        """Is kurtosis above that of a normal distribution?"""
        return self.kurtosis > 3

    @property
    def is_negatively_skewed(self) -> bool:
        """Is the distribution negatively skewed?"""
        return self.skewness < -0.5


def compute_rolling_metrics(
    trades: pd.DataFrame,
    window: int = ANALYSIS.rolling_window
) -> pd.DataFrame:
    """
    Compute rolling volatility, Sharpe ratio and minimum drawdown.

    Args:
        trades: Chronological trade table with 'return_pct' and 'drawdown'
        window: Number of trailing observations

    Returns:
        DataFrame with roll_vol, roll_sharpe and roll_dd, aligned to trades
    """
    if window < 2:
        raise ValueError(f"Rolling window must be at least 2, got {window}")

    returns = trades["return_pct"].astype(float)

    roll_vol = returns.rolling(window).std()
    roll_mean = returns.rolling(window).mean()
    # Zero-variance windows are undefined rather than infinite
    flat = roll_vol <= ZERO_TOLERANCE * np.maximum(1.0, roll_mean.abs())
    roll_sharpe = (roll_mean / roll_vol).mask(flat)
    roll_dd = trades["drawdown"].astype(float).rolling(window).min()

    if len(trades) < window:
        logger.warning(
            f"Only {len(trades)} trades - rolling window of {window} never fills"
        )

    return pd.DataFrame({
        "roll_vol": roll_vol,
        "roll_sharpe": roll_sharpe,
        "roll_dd": roll_dd,
    }, index=trades.index)


def append_rolling_metrics(
    trades: pd.DataFrame,
    window: int = ANALYSIS.rolling_window
) -> pd.DataFrame:
    """Return a copy of the trade table with the rolling columns added."""
    result = trades.copy()
    rolling = compute_rolling_metrics(trades, window)
    for col in ROLLING_COLUMNS:
        result[col] = rolling[col]
    return result


def autocorrelation(values: pd.Series, lag: int = 1) -> float:
    """
    Sample autocorrelation at the given lag.

    Standard ACF estimator (statsmodels ``acf``): the lagged cross-product
    normalized by the full-sample sum of squares around the mean.
    """
    from statsmodels.tsa.stattools import acf

    x = np.asarray(values, dtype=float)
    if len(x) <= lag or np.all(x == x[0]):
        return float("nan")
    return float(acf(x, nlags=lag, fft=False)[lag])


def compute_distribution_stats(returns: pd.Series) -> DistributionStats:
    """
    Compute skewness, kurtosis and lag-1 autocorrelation.

    Skewness and kurtosis are the moment estimators (no small-sample bias
    correction).
    """
    x = np.asarray(returns, dtype=float)

    if len(x) < 3 or np.ptp(x) == 0:
        logger.warning("Return series too short or constant for higher moments")
        skewness = float("nan")
        kurtosis = float("nan")
    else:
        skewness = float(stats.skew(x, bias=True))
        kurtosis = float(stats.kurtosis(x, fisher=False, bias=True))

    return DistributionStats(
        skewness=skewness,
        kurtosis=kurtosis,
        autocorr_lag1=autocorrelation(x, lag=1),
    )
