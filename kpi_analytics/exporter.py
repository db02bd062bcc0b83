"""
CSV Exporter

Serializes the derived tables to flat, comma-separated files for the
dashboard. The only transformation applied here is the daily forward fill
that turns trade-dated and trading-day equity into one value per calendar
day of the analysis window.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from kpi_analytics.config import OUTPUT, OutputConfig
from kpi_analytics.kpi_calculator import KPISet
from kpi_analytics.monte_carlo import MonteCarloResult
from kpi_analytics.rolling_metrics import DistributionStats

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def daily_fill(
    series: pd.Series,
    start: Union[str, pd.Timestamp],
    end: Union[str, pd.Timestamp],
    name: str
) -> pd.DataFrame:
    """
    Spread a date-indexed series over every calendar day in [start, end].

    When several observations share a date the last one is kept. Days
    without an observation carry the last known value forward; days before
    the first observation stay empty.

    Args:
        series: Values indexed by date (duplicates allowed)
        start: First calendar day
        end: Last calendar day
        name: Output value column name

    Returns:
        DataFrame with columns ``date`` and ``name``
    """
    values = series.copy()
    values.index = pd.DatetimeIndex(values.index).normalize()
    values = values.groupby(level=0).last()

    all_dates = pd.date_range(pd.Timestamp(start), pd.Timestamp(end), freq="D")
    filled = values.reindex(all_dates).ffill()

    return pd.DataFrame({"date": all_dates, name: filled.to_numpy()})


class Exporter:
    """
    Write all run outputs to a directory.

    Files are written once, at the end of a run, overwriting any previous
    run's files.
    """

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        config: OutputConfig = OUTPUT
    ):
        self.config = config
        self.output_dir = Path(output_dir) if output_dir is not None else config.directory

    def _write(self, df: pd.DataFrame, filename: str) -> Path:
        path = self.output_dir / filename
        df.to_csv(path, index=False, date_format=DATE_FORMAT)
        logger.info(f"Saved: {path} ({len(df):,} rows)")
        return path

    def export_all(
        self,
        kpis: KPISet,
        results: pd.DataFrame,
        window: Tuple[str, str],
        distribution: Optional[DistributionStats] = None,
        monte_carlo: Optional[MonteCarloResult] = None,
        benchmark_kpis: Optional[pd.DataFrame] = None,
        benchmark_equity: Optional[pd.Series] = None
    ) -> Dict[str, Path]:
        """
        Write every output table.

        Args:
            kpis: Strategy KPI set
            results: Per-trade table with all derived columns
            window: (start, end) of the calendar used for the daily equity files
            distribution: Higher moments and autocorrelation
            monte_carlo: Stress test result
            benchmark_kpis: One row per benchmark asset
            benchmark_equity: Date-indexed equity of the exported benchmark

        Returns:
            Mapping of output name to written path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        start, end = window
        paths: Dict[str, Path] = {}

        paths["kpis"] = self._write(kpis.to_frame(), self.config.kpis_file)

        strategy_eq = daily_fill(
            results.set_index("date")["equity"], start, end, "equity"
        )
        paths["strategy_equity"] = self._write(strategy_eq, self.config.strategy_equity_file)

        paths["results"] = self._write(results, self.config.results_file)

        if distribution is not None or monte_carlo is not None:
            row = {}
            if distribution is not None:
                row.update(distribution.to_dict())
            if monte_carlo is not None:
                row.update(monte_carlo.to_dict())
            paths["advanced_metrics"] = self._write(
                pd.DataFrame([row]), self.config.advanced_metrics_file
            )

        if benchmark_kpis is not None:
            paths["benchmark_kpis"] = self._write(
                benchmark_kpis, self.config.benchmark_kpis_file
            )

        if benchmark_equity is not None:
            column = f"eq_{benchmark_equity.name}" if benchmark_equity.name else "equity"
            bench_eq = daily_fill(benchmark_equity.dropna(), start, end, column)
            paths["benchmark_equity"] = self._write(
                bench_eq, self.config.benchmark_equity_file
            )

        return paths
