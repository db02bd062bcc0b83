"""
================================================================================
KPI CALCULATOR: PERFORMANCE, RISK & BEHAVIOUR STATISTICS
================================================================================

Computes the fixed KPI set of the strategy from the chronologically ordered
trade table (which must already carry the equity, high_watermark and
drawdown columns).

Components:
-----------
1. TRADE STATISTICS
   - Win rate, average win / loss, profit factor, expectancy
   - Largest win / loss

2. RISK-ADJUSTED RETURNS
   - Volatility, Sharpe and Sortino ratios (per period and annualized)
   - Calmar ratio, Ulcer Index, Ulcer Performance Index

3. BEHAVIOUR
   - Longest losing streak
   - Mean stop-loss distance

Conventions:
------------
- All return statistics use the risk-adjusted return column ``return_pct``.
- Periods are treated as daily: annualization multiplies by sqrt(365)
  regardless of actual trade spacing.
- CAGR uses a fixed one-year horizon, so it equals the total return. This
  is a known approximation and is kept as-is.
- Degenerate statistics (no losing trades, zero variance) resolve to
  ``inf`` or ``nan`` sentinels instead of raising.
================================================================================
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from kpi_analytics.config import ANALYSIS, ZERO_TOLERANCE, AnalysisConfig
from kpi_analytics.errors import TradeDataError
from kpi_analytics.monte_carlo import MonteCarloResult
from kpi_analytics.rolling_metrics import DistributionStats

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES FOR RESULTS
# =============================================================================

@dataclass(frozen=True)
class KPISet:
    """
    Scalar KPIs of the strategy, in export column order.

    Attributes
    ----------
    total_trades : int
        Number of trade records
    win_rate : float
        Fraction of trades with a positive risk-adjusted return
    profit_factor : float
        Gross profit / gross loss (``inf`` with no losing trades)
    expectancy : float
        Expected risk-adjusted return per trade
    total_return : float
        Final equity minus one
    cagr : float
        Compound annual growth rate over a fixed one-year horizon
    max_drawdown : float
        Most negative drawdown (<= 0)
    ulcer_index : float
        Root-mean-square of underwater drawdown magnitudes
    """
    total_trades: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    expectancy: float
    total_return: float
    cagr: float
    max_drawdown: float
    volatility_daily: float
    volatility_annualized: float
    sharpe_daily: float
    sharpe_annualized: float
    sortino_daily: float
    sortino_annualized: float
    largest_win: float
    largest_loss: float
    longest_losing_streak: int
    mean_stoploss: float
    calmar_ratio: float
    ulcer_index: float
    ulcer_performance_index: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an ordered dictionary."""
        return asdict(self)

    def to_frame(self) -> pd.DataFrame:
        """Single-row DataFrame for export."""
        return pd.DataFrame([self.to_dict()], columns=[f.name for f in fields(self)])

    @property
    def undefined(self) -> Dict[str, float]:
        """KPIs that resolved to a nan / inf sentinel."""
        return {
            k: v for k, v in self.to_dict().items()
            if isinstance(v, float) and not math.isfinite(v)
        }


# =============================================================================
# HELPERS
# =============================================================================

def safe_ratio(numerator: float, denominator: float) -> float:
    """
    Divide, returning nan when the denominator is zero or undefined.

    Denominators within ZERO_TOLERANCE (scaled by the numerator's size) of
    zero count as zero: a constant series has a floating-point std of ~1e-17,
    not exactly 0.
    """
    if denominator is None or pd.isna(denominator):
        return float("nan")
    if denominator <= ZERO_TOLERANCE * max(1.0, abs(numerator)):
        return float("nan")
    return float(numerator / denominator)


def longest_streak(mask: pd.Series) -> int:
    """Length of the longest run of consecutive True values."""
    values = np.asarray(mask, dtype=bool)
    if not values.any():
        return 0
    # Each False starts a new group; True counts accumulate within a group
    groups = np.cumsum(~values)
    return int(np.bincount(groups[values]).max())


# =============================================================================
# KPI CALCULATOR
# =============================================================================

class KPICalculator:
    """
    Strategy KPI calculator.

    Parameters
    ----------
    config : AnalysisConfig
        Annualization factor, risk-free rate and CAGR horizon

    Example
    -------
    >>> kpis = KPICalculator().calculate(trades)
    >>> kpis.total_return
    0.0659
    """

    REQUIRED_COLUMNS = ("return_pct", "stop_loss_pct", "equity", "drawdown")

    def __init__(self, config: AnalysisConfig = ANALYSIS):
        self.config = config
        self.annualization = np.sqrt(config.annualization_days)

    def calculate(self, trades: pd.DataFrame) -> KPISet:
        """
        Compute the full KPI set.

        Parameters
        ----------
        trades : pd.DataFrame
            Chronological trade table with equity and drawdown columns

        Returns
        -------
        KPISet
        """
        missing = [c for c in self.REQUIRED_COLUMNS if c not in trades.columns]
        if missing:
            raise TradeDataError(f"KPI calculation needs columns {missing}", column=missing[0])
        if len(trades) == 0:
            raise TradeDataError("KPI calculation needs at least one trade")

        returns = trades["return_pct"].astype(float)
        equity = trades["equity"].astype(float)
        drawdown = trades["drawdown"].astype(float)

        with np.errstate(divide="ignore", invalid="ignore"):
            trade_stats = self._trade_statistics(returns)
            risk_stats = self._risk_adjusted(returns)
            dd_stats = self._drawdown_metrics(equity, drawdown)

        kpis = KPISet(
            total_trades=int(len(trades)),
            **trade_stats,
            total_return=dd_stats["total_return"],
            cagr=dd_stats["cagr"],
            max_drawdown=dd_stats["max_drawdown"],
            **risk_stats,
            largest_win=float(returns.max()),
            largest_loss=float(returns.min()),
            longest_losing_streak=longest_streak(returns < 0),
            mean_stoploss=float(trades["stop_loss_pct"].mean()),
            calmar_ratio=dd_stats["calmar_ratio"],
            ulcer_index=dd_stats["ulcer_index"],
            ulcer_performance_index=dd_stats["ulcer_performance_index"],
        )

        if kpis.undefined:
            logger.warning(f"Undefined KPIs (degenerate sample): {sorted(kpis.undefined)}")
        return kpis

    def _trade_statistics(self, returns: pd.Series) -> Dict[str, float]:
        """Win rate, averages, profit factor and expectancy."""
        wins = returns[returns > 0]
        losses = returns[returns < 0]

        win_rate = float((returns > 0).mean())
        avg_win = float(wins.mean()) if len(wins) else float("nan")
        avg_loss = float(losses.mean()) if len(losses) else float("nan")

        gross_profit = float(wins.sum())
        gross_loss = abs(float(losses.sum()))
        if gross_loss > 0:
            profit_factor = gross_profit / gross_loss
        elif gross_profit > 0:
            profit_factor = float("inf")
        else:
            profit_factor = float("nan")

        # A side with no trades contributes nothing
        win_term = win_rate * avg_win if len(wins) else 0.0
        loss_term = (1 - win_rate) * avg_loss if len(losses) else 0.0

        return {
            "win_rate": win_rate,
            "avg_win": avg_win,
            "avg_loss": avg_loss,
            "profit_factor": profit_factor,
            "expectancy": float(win_term + loss_term),
        }

    def _risk_adjusted(self, returns: pd.Series) -> Dict[str, float]:
        """Volatility, Sharpe and Sortino at per-period and annual scale."""
        mean = float(returns.mean())
        vol = float(returns.std())
        downside_vol = float(returns[returns < 0].std())

        sharpe = safe_ratio(mean, vol)
        sortino = safe_ratio(mean, downside_vol)

        return {
            "volatility_daily": vol,
            "volatility_annualized": vol * self.annualization,
            "sharpe_daily": sharpe,
            "sharpe_annualized": sharpe * self.annualization,
            "sortino_daily": sortino,
            "sortino_annualized": sortino * self.annualization,
        }

    def _drawdown_metrics(self, equity: pd.Series, drawdown: pd.Series) -> Dict[str, float]:
        """Total return, CAGR, max drawdown and drawdown-based ratios."""
        final_equity = float(equity.iloc[-1])
        total_return = final_equity / self.config.initial_equity - 1
        max_drawdown = float(drawdown.min())

        # Fixed horizon: annualized return is the total return
        annualized_return = total_return
        cagr = (final_equity / self.config.initial_equity) ** (1 / self.config.cagr_years) - 1

        underwater = -drawdown[drawdown < 0]
        ulcer_index = (
            float(np.sqrt(np.mean(underwater ** 2))) if len(underwater) else float("nan")
        )

        return {
            "total_return": float(total_return),
            "cagr": float(cagr),
            "max_drawdown": max_drawdown,
            "calmar_ratio": safe_ratio(annualized_return, abs(max_drawdown)),
            "ulcer_index": ulcer_index,
            "ulcer_performance_index": safe_ratio(
                annualized_return - self.config.risk_free_rate, ulcer_index
            ),
        }


def compute_kpis(trades: pd.DataFrame, config: AnalysisConfig = ANALYSIS) -> KPISet:
    """Convenience wrapper around KPICalculator."""
    return KPICalculator(config).calculate(trades)


# =============================================================================
# REPORT FORMATTING
# =============================================================================

def format_kpi_report(
    kpis: KPISet,
    distribution: Optional[DistributionStats] = None,
    monte_carlo: Optional[MonteCarloResult] = None,
    benchmark_kpis: Optional[pd.DataFrame] = None
) -> str:
    """
    Format the KPI set (and optional advanced metrics) as a text report.

    Parameters
    ----------
    kpis : KPISet
        Strategy KPIs
    distribution : DistributionStats, optional
        Higher moments and autocorrelation
    monte_carlo : MonteCarloResult, optional
        Stress test quantiles
    benchmark_kpis : pd.DataFrame, optional
        One row per benchmark asset

    Returns
    -------
    str
        Formatted report string
    """
    lines = []

    lines.append("=" * 70)
    lines.append("STRATEGY KPI REPORT")
    lines.append("=" * 70)
    lines.append(f"  Total Trades:           {kpis.total_trades:,}")
    lines.append("")

    lines.append("-" * 70)
    lines.append("TRADE STATISTICS")
    lines.append("-" * 70)
    lines.append(f"  Win Rate:               {kpis.win_rate:.1%}")
    lines.append(f"  Avg Win:                {kpis.avg_win:+.4f}")
    lines.append(f"  Avg Loss:               {kpis.avg_loss:+.4f}")
    lines.append(f"  Profit Factor:          {kpis.profit_factor:.3f}")
    lines.append(f"  Expectancy:             {kpis.expectancy:+.4f}")
    lines.append(f"  Largest Win:            {kpis.largest_win:+.4f}")
    lines.append(f"  Largest Loss:           {kpis.largest_loss:+.4f}")
    lines.append(f"  Longest Losing Streak:  {kpis.longest_losing_streak}")
    lines.append(f"  Mean Stop Loss:         {kpis.mean_stoploss:.3f}")
    lines.append("")

    lines.append("-" * 70)
    lines.append("RETURNS & RISK")
    lines.append("-" * 70)
    lines.append(f"  Total Return:           {kpis.total_return:+.2%}")
    lines.append(f"  CAGR (1y horizon):      {kpis.cagr:+.2%}")
    lines.append(f"  Maximum Drawdown:       {kpis.max_drawdown:.2%}")
    lines.append(f"  Volatility (daily):     {kpis.volatility_daily:.4f}")
    lines.append(f"  Volatility (annual):    {kpis.volatility_annualized:.4f}")
    lines.append(f"  Sharpe (daily/annual):  {kpis.sharpe_daily:.3f} / {kpis.sharpe_annualized:.3f}")
    lines.append(f"  Sortino (daily/annual): {kpis.sortino_daily:.3f} / {kpis.sortino_annualized:.3f}")
    lines.append(f"  Calmar Ratio:           {kpis.calmar_ratio:.3f}")
    lines.append(f"  Ulcer Index:            {kpis.ulcer_index:.4f}")
    lines.append(f"  Ulcer Performance:      {kpis.ulcer_performance_index:.3f}")
    lines.append("")

    if distribution is not None:
        lines.append("-" * 70)
        lines.append("RETURN DISTRIBUTION")
        lines.append("-" * 70)
        lines.append(f"  Skewness:               {distribution.skewness:.3f}")
        lines.append(f"  Kurtosis:               {distribution.kurtosis:.3f}")
        lines.append(f"  Autocorrelation (lag1): {distribution.autocorr_lag1:.3f}")
        lines.append("")

    if monte_carlo is not None:
        lines.append("-" * 70)
        lines.append("MONTE CARLO STRESS TEST")
        lines.append("-" * 70)
        lines.append(f"  Simulations:            {monte_carlo.n_simulations:,} (seed {monte_carlo.seed})")
        lines.append(f"  1st Percentile:         {monte_carlo.percentile_1:+.2%}")
        lines.append(f"  5th Percentile:         {monte_carlo.percentile_5:+.2%}")
        lines.append(f"  Median:                 {monte_carlo.median:+.2%}")
        lines.append("")

    if benchmark_kpis is not None and len(benchmark_kpis) > 0:
        lines.append("-" * 70)
        lines.append("BENCHMARKS")
        lines.append("-" * 70)
        lines.append(f"  {'Asset':<20} {'Return':>10} {'Sharpe':>8} {'Vol':>8} {'Max DD':>9}")
        lines.append("  " + "-" * 58)
        for _, row in benchmark_kpis.iterrows():
            lines.append(
                f"  {row['asset']:<20} {row['return']:>+9.2%} {row['sharpe']:>8.2f} "
                f"{row['volatility']:>7.2%} {row['max_dd']:>8.2%}"
            )
        lines.append("")

    lines.append("=" * 70)

    return "\n".join(lines)
