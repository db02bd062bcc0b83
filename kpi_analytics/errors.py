"""Fail-fast error types raised by the analysis pipeline."""

from __future__ import annotations

from typing import Optional


class AnalysisError(ValueError):
    """Base error for any condition that aborts an analysis run."""


class TradeDataError(AnalysisError):
    """Raised when the trade record file cannot be loaded or validated."""

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        record: Optional[str] = None
    ) -> None:
        details = []
        if column is not None:
            details.append(f"column={column!r}")
        if record is not None:
            details.append(f"record={record}")
        rendered = f"{message} ({', '.join(details)})" if details else message
        super().__init__(rendered)
        self.column = column
        self.record = record


class BenchmarkFetchError(AnalysisError):
    """Raised when benchmark prices cannot be retrieved."""

    def __init__(self, symbols: str, start: str, end: str, reason: str) -> None:
        super().__init__(
            f"Benchmark fetch failed for {symbols} ({start} to {end}): {reason}"
        )
        self.symbols = symbols
        self.start = start
        self.end = end
