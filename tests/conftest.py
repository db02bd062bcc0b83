"""Shared fixtures: trade record files and an offline stand-in for yfinance."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

HEADER = ["Trade ID", "Trade Type", "Stop Loss %", "Date", "Return %", "Return % Risk", "IV"]


def write_trades(path: Path, rows: Sequence[Sequence[object]], header: Sequence[str] = HEADER) -> Path:
    lines = [";".join(header)]
    lines.extend(";".join(str(v) for v in row) for row in rows)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def make_rows(returns: Sequence[float], start: str = "2021-11-16", step_days: int = 3) -> List[list]:
    """One trade per `step_days`, iv = 1 + return / 100."""
    rows = []
    day = pd.Timestamp(start)
    for i, r in enumerate(returns, start=1):
        side = "Long" if i % 2 else "Short"
        rows.append([i, side, 1.5, day.strftime("%d/%m/%Y"), r * 2, r, round(1 + r / 100, 6)])
        day += pd.Timedelta(days=step_days)
    return rows


class FakeYFinance:
    """Mimics ``yfinance.download(..., group_by="ticker")`` from in-memory closes."""

    def __init__(self, closes: Dict[str, pd.Series], error: Optional[Exception] = None):
        self.closes = closes
        self.error = error
        self.calls: List[dict] = []

    def download(self, tickers, **kwargs):
        self.calls.append({"tickers": list(tickers), **kwargs})
        if self.error is not None:
            raise self.error
        frames = {}
        for sym in tickers:
            if sym not in self.closes:
                continue
            close = self.closes[sym]
            frames[sym] = pd.DataFrame({
                "Open": close,
                "High": close,
                "Low": close,
                "Close": close,
                "Adj Close": close,
                "Volume": 1_000,
            })
        if not frames:
            return pd.DataFrame()
        return pd.concat(frames, axis=1)


def price_series(start: str, end: str, base: float, drift: float, freq: str = "B", seed: int = 0) -> pd.Series:
    dates = pd.date_range(start, end, freq=freq)
    rng = np.random.default_rng(seed)
    steps = 1 + drift + rng.normal(0, 0.01, len(dates))
    return pd.Series(base * np.cumprod(steps), index=dates)


@pytest.fixture
def fake_yf() -> FakeYFinance:
    return FakeYFinance({
        "^GSPC": price_series("2021-11-10", "2022-11-20", 4600, -0.0007, seed=1),
        "^NDX": price_series("2021-11-10", "2022-11-20", 16000, -0.0012, seed=2),
        "URTH": price_series("2021-11-10", "2022-11-20", 130, -0.0008, seed=3),
        "BTC-USD": price_series("2021-11-10", "2022-11-20", 64000, -0.003, freq="D", seed=4),
    })


@pytest.fixture
def sample_returns() -> List[float]:
    rng = np.random.default_rng(42)
    return [round(float(x), 4) for x in rng.normal(0.3, 2.0, 60)]


@pytest.fixture
def trade_file(tmp_path, sample_returns) -> Path:
    return write_trades(tmp_path / "data.csv", make_rows(sample_returns))
