"""Pandas DataFrame adapters for RFM segmentation components."""

from .sales import (
    ONLINE_RETAIL_COLUMNS,
    dataframe_to_sales_lines,
    sales_lines_to_dataframe,
)
from .rfm import (
    customer_metrics_to_dataframe,
    cutpoints_to_dataframe,
    invoices_to_dataframe,
    result_to_checkpoints,
    run_rfm_pipeline_df,
    scores_to_dataframe,
    segments_to_dataframe,
    summary_to_dataframe,
)

__all__ = [
    # Sales ledger adapters
    "ONLINE_RETAIL_COLUMNS",
    "dataframe_to_sales_lines",
    "sales_lines_to_dataframe",
    # Output and checkpoint adapters
    "customer_metrics_to_dataframe",
    "cutpoints_to_dataframe",
    "invoices_to_dataframe",
    "result_to_checkpoints",
    "run_rfm_pipeline_df",
    "scores_to_dataframe",
    "segments_to_dataframe",
    "summary_to_dataframe",
]
