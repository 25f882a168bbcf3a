"""Synthetic sales ledger generation.

This package helps produce realistic-but-fake ledgers to exercise the
RFM segmentation pipeline without accessing production data.
"""

from .generator import (
    Customer,
    LedgerConfig,
    generate_customers,
    generate_sales_lines,
)

__all__ = [
    "Customer",
    "LedgerConfig",
    "generate_customers",
    "generate_sales_lines",
]
