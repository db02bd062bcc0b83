"""
Strategy KPI Analysis Pipeline

PIPELINE ARCHITECTURE
    The pipeline operates in seven sequential stages:

    Stage 1 - LOAD
        Read and validate the trade record file; sort chronologically.

    Stage 2 - EQUITY
        Compound the variation index into equity, high-water mark and
        drawdown.

    Stage 3 - KPIS
        Trade statistics, risk-adjusted ratios, drawdown-based ratios.

    Stage 4 - ROLLING
        30-trade rolling volatility, Sharpe and minimum drawdown; skewness,
        kurtosis and lag-1 autocorrelation.

    Stage 5 - MONTE CARLO
        Bootstrap stress test of the compounded total return.

    Stage 6 - BENCHMARKS
        Yahoo Finance closes for the reference indices, aligned and
        evaluated with the same KPIs. Independent of the trade data.

    Stage 7 - EXPORT
        All tables written once as CSV.

Every stage is fail-fast: an exception in any stage aborts the run. Output
files are written only in the export stage, after every computation stage
has finished; an error while writing can still leave some files behind.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from kpi_analytics.benchmark import BenchmarkAcquisition, BenchmarkComparator, BenchmarkResult
from kpi_analytics.config import VERSION, AnalysisStage, PipelineConfig
from kpi_analytics.data_loader import TradeRecordLoader
from kpi_analytics.equity import append_equity_curve
from kpi_analytics.errors import AnalysisError
from kpi_analytics.exporter import Exporter
from kpi_analytics.kpi_calculator import KPICalculator, KPISet
from kpi_analytics.monte_carlo import MonteCarloResult, MonteCarloSimulator
from kpi_analytics.rolling_metrics import (
    DistributionStats,
    append_rolling_metrics,
    compute_distribution_stats,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutput:
    """
    Complete output of one analysis run.

    ``results`` is the per-trade table with every derived column, as
    written to the full results file.
    """
    results: pd.DataFrame
    kpis: KPISet
    distribution: DistributionStats
    monte_carlo: MonteCarloResult
    benchmark: Optional[BenchmarkResult]

    output_paths: Dict[str, Path] = field(default_factory=dict)
    processing_time_ms: float = 0.0
    generated_at: str = ""
    version: str = VERSION

    @property
    def total_trades(self) -> int:
        return len(self.results)


class AnalysisPipeline:
    """
    Orchestrates the complete KPI analysis.

    Usage:
        pipeline = AnalysisPipeline("data/data.csv")
        output = pipeline.run(Path("outputs"))
    """

    def __init__(
        self,
        input_path: Optional[Union[str, Path]] = None,
        config: Optional[PipelineConfig] = None,
        include_benchmarks: bool = True,
        acquisition: Optional[BenchmarkAcquisition] = None
    ):
        """
        Initialize pipeline.

        Args:
            input_path: Trade record file (default: configured input path)
            config: Run configuration (default: module defaults)
            include_benchmarks: Fetch and evaluate benchmark data
            acquisition: Benchmark data source (default: Yahoo Finance)
        """
        self.config = config or PipelineConfig()
        self.input_path = Path(input_path) if input_path is not None else self.config.input.path
        self.include_benchmarks = include_benchmarks

        self.loader = TradeRecordLoader(self.config.input)
        self.calculator = KPICalculator(self.config.analysis)
        self.simulator = MonteCarloSimulator.from_config(self.config.monte_carlo)
        self.comparator = BenchmarkComparator(
            self.config.benchmark, self.config.analysis, acquisition
        )

    def run(self, output_dir: Optional[Path] = None) -> AnalysisOutput:
        """
        Execute the complete pipeline.

        Args:
            output_dir: Output directory (default: configured directory)

        Returns:
            AnalysisOutput with all tables and the written file paths
        """
        t0 = time.perf_counter()
        window = self.config.analysis.rolling_window

        logger.info(f"Stage 1: {AnalysisStage.LOAD.value}...")
        trades = self.loader.load(self.input_path)

        logger.info(f"Stage 2: {AnalysisStage.EQUITY.value}...")
        results = append_equity_curve(trades)
        results["loss"] = results["return_pct"] < 0

        logger.info(f"Stage 3: {AnalysisStage.KPIS.value}...")
        kpis = self.calculator.calculate(results)
        logger.info(
            f"Total return: {kpis.total_return:+.2%}, "
            f"max DD: {kpis.max_drawdown:.2%}, "
            f"Sharpe (ann.): {kpis.sharpe_annualized:.2f}"
        )

        logger.info(f"Stage 4: {AnalysisStage.ROLLING.value} (window={window})...")
        results = append_rolling_metrics(results, window)
        distribution = compute_distribution_stats(results["return_pct"])

        logger.info(f"Stage 5: {AnalysisStage.MONTE_CARLO.value}...")
        monte_carlo = self.simulator.simulate(results["iv"])
        logger.info(
            f"MC 1%: {monte_carlo.percentile_1:+.2%}, "
            f"5%: {monte_carlo.percentile_5:+.2%}, "
            f"median: {monte_carlo.median:+.2%}"
        )

        benchmark = None
        benchmark_equity = None
        if self.include_benchmarks:
            logger.info(f"Stage 6: {AnalysisStage.BENCHMARKS.value}...")
            benchmark = self.comparator.run()
            export_column = self.config.benchmark.export_column
            if export_column not in benchmark.equity.columns:
                raise AnalysisError(
                    f"Benchmark column {export_column!r} not among "
                    f"{list(benchmark.equity.columns)}"
                )
            benchmark_equity = benchmark.equity[export_column]
        else:
            logger.info(f"Stage 6: {AnalysisStage.BENCHMARKS.value} skipped")

        logger.info(f"Stage 7: {AnalysisStage.EXPORT.value}...")
        exporter = Exporter(output_dir, self.config.output)
        paths = exporter.export_all(
            kpis=kpis,
            results=results,
            window=(self.config.benchmark.start, self.config.benchmark.end),
            distribution=distribution,
            monte_carlo=monte_carlo,
            benchmark_kpis=benchmark.kpis if benchmark is not None else None,
            benchmark_equity=benchmark_equity,
        )

        processing_time = (time.perf_counter() - t0) * 1000
        logger.info(f"Pipeline complete in {processing_time:.0f}ms")

        return AnalysisOutput(
            results=results,
            kpis=kpis,
            distribution=distribution,
            monte_carlo=monte_carlo,
            benchmark=benchmark,
            output_paths=paths,
            processing_time_ms=processing_time,
            generated_at=datetime.now().isoformat(),
        )
