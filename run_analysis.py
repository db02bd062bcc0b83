#!/usr/bin/env python3
"""
Strategy KPI Analytics - Runner

Runs the complete analysis of a backtested trade record file:
    Stage 1: Trade record loading and validation
    Stage 2: Equity curve, high-water mark and drawdown
    Stage 3: Performance, risk and behaviour KPIs
    Stage 4: Rolling metrics, higher moments, autocorrelation
    Stage 5: Monte Carlo stress test
    Stage 6: Benchmark comparison (S&P500, NASDAQ100, MSCI World, BTC)
    Stage 7: CSV export for the dashboard

EXECUTION
    python run_analysis.py
    python run_analysis.py --input data/data.csv --output-dir outputs
    python run_analysis.py --no-benchmarks --seed 7

OUTPUT ARTIFACTS
    outputs/
        kpis.csv                    Strategy KPI set (one row)
        benchmark_kpis.csv          Benchmark KPIs (one row per asset)
        strategy_eq_full.csv        Daily strategy equity over the window
        btc_eq_full.csv             Daily BTC buy & hold equity
        strategy_results_full.csv   Per-trade table with derived columns
        advanced_metrics.csv        Moments, autocorrelation, Monte Carlo

Version: 1.0.0
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from kpi_analytics.config import VERSION, PipelineConfig
from kpi_analytics.errors import AnalysisError
from kpi_analytics.kpi_calculator import format_kpi_report
from kpi_analytics.pipeline import AnalysisPipeline


def build_parser() -> argparse.ArgumentParser:
    defaults = PipelineConfig()

    parser = argparse.ArgumentParser(
        description="Strategy KPI Analytics - trade record analysis runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py                          # data/data.csv -> outputs/
  python run_analysis.py -i backtest.csv -o out   # Custom input and output
  python run_analysis.py --no-benchmarks          # Skip the Yahoo Finance pull
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=Path,
        default=defaults.input.path,
        help=f"Trade record file (default: {defaults.input.path})"
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=defaults.output.directory,
        help=f"Output directory (default: {defaults.output.directory})"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=defaults.monte_carlo.seed,
        help=f"Monte Carlo seed (default: {defaults.monte_carlo.seed})"
    )

    parser.add_argument(
        "--no-benchmarks",
        action="store_true",
        help="Skip benchmark download and benchmark output files"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}"
    )

    return parser


def main(argv=None) -> int:
    """
    Main entry point.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure)
    """
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="  %(asctime)s │ %(levelname)s │ %(message)s",
        datefmt="%H:%M:%S"
    )
    logger = logging.getLogger(__name__)

    defaults = PipelineConfig()
    config = replace(
        defaults,
        monte_carlo=replace(defaults.monte_carlo, seed=args.seed),
    )

    print(f"  Execution Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Trade Records:     {args.input}")
    print(f"  Output Directory:  {args.output_dir}")
    print(f"  Benchmarks:        {'off' if args.no_benchmarks else 'on'}")
    print(f"  Version:           {VERSION}")
    print()

    pipeline = AnalysisPipeline(
        input_path=args.input,
        config=config,
        include_benchmarks=not args.no_benchmarks,
    )

    try:
        output = pipeline.run(args.output_dir)
    except AnalysisError as e:
        logger.error(f"Analysis aborted: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected failure: {e}")
        return 1

    print()
    print(format_kpi_report(
        output.kpis,
        distribution=output.distribution,
        monte_carlo=output.monte_carlo,
        benchmark_kpis=output.benchmark.kpis if output.benchmark is not None else None,
    ))
    print()
    for name, path in output.output_paths.items():
        print(f"  {name:<18} {path}")
    print(f"\n  Completed in {output.processing_time_ms / 1000:.1f}s")

    return 0


if __name__ == "__main__":
    sys.exit(main())
