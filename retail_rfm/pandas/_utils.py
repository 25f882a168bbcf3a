"""Shared utilities for pandas conversion operations."""

from decimal import Decimal

import pandas as pd  # type: ignore


def decimal_to_float(value: Decimal | None) -> float | None:
    """Convert Decimal to float for pandas compatibility; None stays None."""
    if value is None:
        return None
    return float(value)


def nulls_to_none(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with NaN/NaT cells replaced by None.

    Downstream validation treats None as missing, so no value is coerced
    to zero on the way out of pandas.
    """
    return df.astype(object).where(pd.notna(df), None)
