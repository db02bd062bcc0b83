"""
Configuration Module for the Strategy KPI Analytics Pipeline

This module centralizes all configuration constants, field mappings and
settings used throughout the analysis pipeline.

All "magic numbers" and configuration values are defined here to ensure:
1. Single source of truth for all constants
2. Easy modification without touching analysis code
3. Transparency in assumptions (the fixed 1-year CAGR horizon and the
   sqrt(365) annualization factor live here, not inside the formulas)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple


VERSION: str = "1.0.0"


# =============================================================================
# ENUMERATIONS
# =============================================================================

class AnalysisStage(Enum):
    """Enumeration of analysis pipeline stages."""
    LOAD = "Trade Record Loading"
    EQUITY = "Equity Curve Construction"
    KPIS = "KPI Calculation"
    ROLLING = "Rolling & Distributional Metrics"
    MONTE_CARLO = "Monte Carlo Stress Test"
    BENCHMARKS = "Benchmark Comparison"
    EXPORT = "Export"


# =============================================================================
# FIELD NAME MAPPINGS
# =============================================================================

# Column headers of the backtest export vary between tools and versions.
# Headers are normalized first (lower case, '%' -> 'pct', separators -> '_')
# and then matched against these alternatives.

TRADE_RECORD_FIELDS: Dict[str, List[str]] = {
    # Trade identifier
    "trade_id": [
        "trade_id",
        "id",
        "trade",
        "trade_no",
        "n"
    ],

    # Long / short etc.
    "trade_type": [
        "trade_type",
        "type",
        "side",
        "direction"
    ],

    # Stop loss distance in percent
    "stop_loss_pct": [
        "stop_loss_pct",
        "stoploss_pct",
        "sl_pct",
        "stop_loss"
    ],

    # Execution date (day/month/year)
    "date": [
        "date",
        "trade_date",
        "execution_date"
    ],

    # Absolute return in percent
    "return_abs_pct": [
        "return_abs_pct",
        "return_pct_abs",
        "abs_return_pct",
        "return_absolute_pct",
        "return_abs",
        "return",
        # Only reached when a separate risk-adjusted column claimed
        # 'return_pct_risk' first
        "return_pct"
    ],

    # Risk-adjusted return in percent (drives all return statistics)
    "return_pct": [
        "return_pct_risk",
        "return_risk_pct",
        "risk_return_pct",
        "return_pct"
    ],

    # Variation index: per-trade multiplicative growth factor
    "iv": [
        "iv",
        "variation_index",
        "index_variation"
    ]
}

# Columns that must be present for the analysis to run at all
REQUIRED_FIELDS: Tuple[str, ...] = ("date", "return_pct", "iv", "stop_loss_pct")

# Columns that must parse as numbers
NUMERIC_FIELDS: Tuple[str, ...] = ("stop_loss_pct", "return_abs_pct", "return_pct", "iv")


# =============================================================================
# ANALYSIS PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class AnalysisConfig:
    """Parameters for the KPI and rolling metric calculations."""

    rolling_window: int = 30          # Trailing observations per rolling stat

    # Periods are treated as daily regardless of actual trade spacing
    annualization_days: int = 365

    risk_free_rate: float = 0.0       # Used by the Ulcer Performance Index

    # Known approximation: CAGR assumes exactly one year of trading no
    # matter how far apart the first and last trade are.
    cagr_years: float = 1.0
    initial_equity: float = 1.0


# Relative size below which a dispersion measure (std, drawdown depth) is
# treated as zero: a constant series has a floating-point std of ~1e-17
ZERO_TOLERANCE: float = 1e-12


@dataclass(frozen=True)
class MonteCarloConfig:
    """Parameters for the bootstrap stress test."""

    n_simulations: int = 5000
    seed: int = 123


# =============================================================================
# BENCHMARK PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class BenchmarkConfig:
    """Reference instruments and the shared analysis window."""

    # Yahoo Finance symbol -> (column name, display label)
    symbols: Dict[str, Tuple[str, str]] = field(default_factory=lambda: {
        "^GSPC": ("sp500", "S&P500"),
        "^NDX": ("nasdaq", "NASDAQ100"),
        "URTH": ("msci_world", "MSCI WORLD"),
        "BTC-USD": ("btc", "BTC (Buy & Hold)"),
    })

    start: str = "2021-11-15"
    end: str = "2022-11-15"

    # Column whose equity curve is exported alongside the strategy
    export_column: str = "btc"

    @property
    def columns(self) -> Dict[str, str]:
        """Symbol -> column name."""
        return {sym: col for sym, (col, _) in self.symbols.items()}

    @property
    def labels(self) -> Dict[str, str]:
        """Column name -> display label."""
        return {col: label for col, label in self.symbols.values()}


# =============================================================================
# INPUT / OUTPUT CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class InputConfig:
    """Location and format of the trade record file."""

    path: Path = Path("data") / "data.csv"
    separator: str = ";"
    date_format: str = "%d/%m/%Y"


@dataclass(frozen=True)
class OutputConfig:
    """Output directory and file names consumed by the dashboard."""

    directory: Path = Path("outputs")

    kpis_file: str = "kpis.csv"
    benchmark_kpis_file: str = "benchmark_kpis.csv"
    strategy_equity_file: str = "strategy_eq_full.csv"
    benchmark_equity_file: str = "btc_eq_full.csv"
    results_file: str = "strategy_results_full.csv"
    advanced_metrics_file: str = "advanced_metrics.csv"


@dataclass(frozen=True)
class PipelineConfig:
    """Bundle of every configuration section used by a single run."""

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# =============================================================================
# GLOBAL CONFIGURATION INSTANCES
# =============================================================================

ANALYSIS = AnalysisConfig()
MONTE_CARLO = MonteCarloConfig()
BENCHMARK = BenchmarkConfig()
INPUT = InputConfig()
OUTPUT = OutputConfig()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_field_alternatives(field_name: str) -> List[str]:
    """
    Get list of accepted normalized header names for a canonical field.

    Args:
        field_name: Canonical field name (e.g., 'return_pct')

    Returns:
        List of alternative header names to try
    """
    return TRADE_RECORD_FIELDS.get(field_name, [field_name])
