"""
Trade Record Loader

Reads the delimited backtest export into a pandas DataFrame with canonical
column names, parsed dates and numeric fields, sorted chronologically.

The loader is strict: a missing required column, an
unparseable date or a non-numeric value aborts the run with a
TradeDataError naming the offending column and record. There is no
row-level recovery.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from kpi_analytics.config import (
    INPUT,
    NUMERIC_FIELDS,
    REQUIRED_FIELDS,
    TRADE_RECORD_FIELDS,
    InputConfig,
    get_field_alternatives,
)
from kpi_analytics.errors import TradeDataError

logger = logging.getLogger(__name__)


# =============================================================================
# TRADE RECORD LOADER
# =============================================================================

class TradeRecordLoader:
    """
    Load and validate trade records.

    Handles:
    - Header normalization and mapping to canonical field names
    - Day/month/year date parsing
    - Numeric conversion of return, stop-loss and variation index fields
    - Chronological ordering (input order is never trusted)
    """

    def __init__(self, config: InputConfig = INPUT):
        """
        Initialize the loader.

        Args:
            config: Input file settings (separator, date format)
        """
        self.config = config

    def load(self, path: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        """
        Load a trade record file.

        Args:
            path: File to read (default: configured input path)

        Returns:
            DataFrame with canonical columns sorted by date
        """
        path = Path(path) if path is not None else self.config.path
        logger.info(f"Loading trade records: {path}")

        try:
            raw = pd.read_csv(
                path,
                sep=self.config.separator,
                dtype=str,
                skipinitialspace=True
            )
        except FileNotFoundError as e:
            raise TradeDataError(f"Trade record file not found: {path}") from e
        except pd.errors.EmptyDataError as e:
            raise TradeDataError(f"Trade record file is empty: {path}") from e
        except pd.errors.ParserError as e:
            raise TradeDataError(f"Malformed trade record file {path}: {e}") from e

        return self.prepare(raw)

    def prepare(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Validate and normalize an already-read table of raw string values.

        Args:
            raw: Table as read from disk

        Returns:
            DataFrame with canonical columns sorted by date
        """
        df = self._normalize_columns(raw)

        if len(df) == 0:
            raise TradeDataError("Trade record file contains no rows")

        if "trade_id" not in df.columns:
            df.insert(0, "trade_id", [str(i) for i in range(1, len(df) + 1)])

        # Line numbers refer to the file: header is line 1
        df["_line"] = range(2, len(df) + 2)

        df["date"] = self._parse_dates(df)
        for col in NUMERIC_FIELDS:
            if col in df.columns:
                df[col] = self._parse_numeric(df, col)

        if not df["date"].is_monotonic_increasing:
            logger.info("Input rows are not in date order - sorting chronologically")

        df = (
            df.sort_values("date", kind="mergesort")
            .drop(columns="_line")
            .reset_index(drop=True)
        )

        logger.info(
            f"Loaded {len(df)} trades "
            f"({df['date'].iloc[0]:%Y-%m-%d} to {df['date'].iloc[-1]:%Y-%m-%d})"
        )
        return df

    @staticmethod
    def normalize_header(name: str) -> str:
        """
        Normalize a column header to snake_case.

        'Return % Risk' -> 'return_pct_risk', 'Stop Loss (%)' -> 'stop_loss_pct'
        """
        text = str(name).strip().lower().replace("%", " pct ")
        text = re.sub(r"\bpercent(age)?\b", "pct", text)
        text = re.sub(r"[^0-9a-z]+", "_", text)
        return text.strip("_")

    def _normalize_columns(self, raw: pd.DataFrame) -> pd.DataFrame:
        """Rename raw headers to canonical field names."""
        normalized = [self.normalize_header(c) for c in raw.columns]

        duplicates = sorted({c for c in normalized if normalized.count(c) > 1})
        if duplicates:
            raise TradeDataError(
                f"Ambiguous column headers after normalization: {duplicates}"
            )

        df = raw.copy()
        df.columns = normalized

        renames: Dict[str, str] = {}
        claimed: List[str] = []
        # 'return_pct' is resolved before 'return_abs_pct' so the
        # risk-adjusted column wins any overlap
        order = ["return_pct"] + [f for f in TRADE_RECORD_FIELDS if f != "return_pct"]
        for canonical in order:
            for alt in get_field_alternatives(canonical):
                if alt in df.columns and alt not in claimed:
                    renames[alt] = canonical
                    claimed.append(alt)
                    break

        # Unmapped headers that collide with a canonical name would shadow it
        leftovers = [
            c for c in df.columns
            if c not in claimed and c in TRADE_RECORD_FIELDS
        ]
        df = df.drop(columns=leftovers).rename(columns=renames)

        missing = [f for f in REQUIRED_FIELDS if f not in df.columns]
        if missing:
            raise TradeDataError(
                f"Missing required columns {missing}; "
                f"found {list(raw.columns)}",
                column=missing[0]
            )

        absent = [f for f in TRADE_RECORD_FIELDS if f not in df.columns]
        if absent:
            logger.warning(
                f"Trade record file lacks optional columns {absent}; "
                "trade ids are numbered by file order when missing"
            )

        for col in df.columns:
            if pd.api.types.is_string_dtype(df[col]):
                df[col] = df[col].str.strip()

        return df

    def _parse_dates(self, df: pd.DataFrame) -> pd.Series:
        """Parse the date column, failing on the first bad value."""
        parsed = pd.to_datetime(
            df["date"], format=self.config.date_format, errors="coerce"
        )
        bad = parsed.isna()
        if bad.any():
            row = df.loc[bad].iloc[0]
            raise TradeDataError(
                f"Unparseable date {row['date']!r}, expected format "
                f"{self.config.date_format}",
                column="date",
                record=self._describe(row)
            )
        return parsed

    def _parse_numeric(self, df: pd.DataFrame, col: str) -> pd.Series:
        """Convert a column to float, failing on the first bad value."""
        parsed = pd.to_numeric(df[col], errors="coerce")
        bad = parsed.isna()
        if bad.any():
            row = df.loc[bad].iloc[0]
            raise TradeDataError(
                f"Non-numeric value {row[col]!r}",
                column=col,
                record=self._describe(row)
            )
        return parsed.astype(float)

    @staticmethod
    def _describe(row: pd.Series) -> str:
        """Identify a raw row for diagnostics."""
        return f"trade_id={row['trade_id']} line={row['_line']}"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def load_trade_records(
    path: Optional[Union[str, Path]] = None,
    config: InputConfig = INPUT
) -> pd.DataFrame:
    """
    Load, validate and chronologically sort a trade record file.

    Example:
        >>> trades = load_trade_records("data/data.csv")
        >>> trades[["date", "return_pct", "iv"]].head()
    """
    return TradeRecordLoader(config).load(path)
