"""
Equity Curve Builder

Compounds the per-trade variation index into an equity curve and derives
the high-water mark and drawdown series from it.

    equity_t         = iv_1 * iv_2 * ... * iv_t
    high_watermark_t = max(equity_1 .. equity_t)
    drawdown_t       = (equity_t - high_watermark_t) / high_watermark_t

Non-positive factors are not rejected: they are a property of the
modeled strategy and simply yield an invalid equity path.
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

from kpi_analytics.errors import TradeDataError

logger = logging.getLogger(__name__)

EQUITY_COLUMNS = ["equity", "high_watermark", "drawdown"]


def calculate_drawdown_series(equity: pd.Series) -> pd.Series:
    """
    Calculate drawdown series.

    Drawdown at each point = (current - running max) / running max
    """
    running_max = equity.cummax()
    return (equity - running_max) / running_max


def build_equity_curve(
    factors: Union[pd.Series, Sequence[float], np.ndarray]
) -> pd.DataFrame:
    """
    Build equity, high-water mark and drawdown from growth factors.

    Parameters
    ----------
    factors : sequence of float
        Per-trade multiplicative factors, already in chronological order

    Returns
    -------
    pd.DataFrame
        Columns ``equity``, ``high_watermark``, ``drawdown`` aligned with
        the input (same index when a Series is given)
    """
    if isinstance(factors, pd.Series):
        iv = factors.astype(float)
    else:
        iv = pd.Series(np.asarray(factors, dtype=float))

    if len(iv) == 0:
        raise TradeDataError("Cannot build an equity curve from zero trades")

    if (iv <= 0).any():
        logger.warning(
            f"{int((iv <= 0).sum())} non-positive variation index values - "
            "equity path will not be meaningful"
        )

    equity = iv.cumprod()
    high_watermark = equity.cummax()
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdown = (equity - high_watermark) / high_watermark

    return pd.DataFrame({
        "equity": equity,
        "high_watermark": high_watermark,
        "drawdown": drawdown,
    }, index=iv.index)


def append_equity_curve(trades: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of the trade table with the equity columns added."""
    if not trades["date"].is_monotonic_increasing:
        raise TradeDataError("Trade records must be sorted by date before compounding")

    result = trades.copy()
    curve = build_equity_curve(result["iv"])
    for col in EQUITY_COLUMNS:
        result[col] = curve[col]
    return result
