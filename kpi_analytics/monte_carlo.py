"""
Monte Carlo Stress Test

Bootstrap resampling of the per-trade variation index. Each simulated path
draws as many trades as were observed, with replacement, and compounds
them into a total return:

    R_sim = prod(iv_sample) - 1

The empirical distribution of R_sim gives tail-risk quantiles (1st and
5th percentile) and the median outcome. Draws are i.i.d. conditional on
the observed sample; a fixed seed reproduces identical quantiles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from kpi_analytics.config import MONTE_CARLO, MonteCarloConfig
from kpi_analytics.errors import TradeDataError

logger = logging.getLogger(__name__)


@dataclass
class MonteCarloResult:
    """Monte Carlo simulation results."""
    n_simulations: int
    sample_size: int
    seed: Optional[int]

    # Quantiles of the simulated total return
    percentile_1: float
    percentile_5: float
    median: float

    # Full distribution (one value per simulated path)
    simulated_returns: np.ndarray = field(repr=False)

    @property
    def prob_loss(self) -> float:
        """Fraction of simulated paths ending below the starting equity."""
        return float(np.mean(self.simulated_returns < 0))

    def to_dict(self) -> Dict[str, Any]:
        """Scalar summary for export."""
        return {
            "mc_runs": self.n_simulations,
            "mc_seed": self.seed,
            "mc_1pct": self.percentile_1,
            "mc_5pct": self.percentile_5,
            "mc_median": self.median,
        }


class MonteCarloSimulator:
    """
    Bootstrap Monte Carlo simulator over per-trade growth factors.

    Unlike a block bootstrap, trades are drawn independently: the order
    of trades carries no information for a compounded total return.
    """

    def __init__(
        self,
        n_simulations: int = MONTE_CARLO.n_simulations,
        seed: Optional[int] = MONTE_CARLO.seed
    ):
        """
        Initialize Monte Carlo simulator.

        Args:
            n_simulations: Number of simulated paths
            seed: Seed for numpy's Generator; None draws fresh entropy
        """
        if n_simulations < 1:
            raise ValueError(f"n_simulations must be positive, got {n_simulations}")
        self.n_simulations = n_simulations
        self.seed = seed

    @classmethod
    def from_config(cls, config: MonteCarloConfig = MONTE_CARLO) -> "MonteCarloSimulator":
        """Build a simulator from configuration."""
        return cls(n_simulations=config.n_simulations, seed=config.seed)

    def simulate(
        self,
        factors: Union[pd.Series, Sequence[float], np.ndarray],
        sample_size: Optional[int] = None
    ) -> MonteCarloResult:
        """
        Run the simulation.

        Args:
            factors: Observed variation index values
            sample_size: Draws per path (default: number of observations)

        Returns:
            MonteCarloResult with quantiles and the simulated distribution
        """
        values = np.asarray(factors, dtype=float)
        if len(values) == 0:
            raise TradeDataError("Monte Carlo needs at least one variation index value")

        n = len(values) if sample_size is None else sample_size
        rng = np.random.default_rng(self.seed)

        logger.info(
            f"Running Monte Carlo simulation "
            f"({self.n_simulations:,} paths x {n} trades, seed={self.seed})"
        )

        draws = rng.choice(values, size=(self.n_simulations, n), replace=True)
        simulated = draws.prod(axis=1) - 1

        p1, p5, p50 = np.quantile(simulated, [0.01, 0.05, 0.50])

        return MonteCarloResult(
            n_simulations=self.n_simulations,
            sample_size=n,
            seed=self.seed,
            percentile_1=float(p1),
            percentile_5=float(p5),
            median=float(p50),
            simulated_returns=simulated,
        )
