"""Pandas DataFrame adapters for pipeline outputs and checkpoint tables."""

from typing import Dict, Optional, Sequence

import pandas as pd  # type: ignore

from retail_rfm.analyses.segment_summary import SegmentSummary
from retail_rfm.foundation.normalization import NormalizedMetrics
from retail_rfm.foundation.pipeline import (
    RFMConfig,
    RFMSegmentationPipeline,
    RFMSegmentationResult,
)
from retail_rfm.foundation.quantiles import QUINTILE_PERCENTILES, QuantileCutpoints
from retail_rfm.foundation.sales import InvoiceTotal
from retail_rfm.foundation.scoring import ScoredCustomer
from retail_rfm.foundation.segments import SegmentedCustomer
from ._utils import decimal_to_float
from .sales import dataframe_to_sales_lines

SEGMENT_COLUMNS = [
    "customer_id",
    "r_score",
    "f_score",
    "m_score",
    "fm_score",
    "recency",
    "frequency",
    "monetary",
    "segment",
]


def invoices_to_dataframe(invoices: Sequence[InvoiceTotal]) -> pd.DataFrame:
    """Convert invoice totals to the ``bill`` table: invoice_id, total."""
    if not invoices:
        return pd.DataFrame(columns=["invoice_id", "total"])
    return pd.DataFrame(
        [
            {"invoice_id": i.invoice_id, "total": decimal_to_float(i.total)}
            for i in invoices
        ]
    )


def customer_metrics_to_dataframe(
    normalized: Sequence[NormalizedMetrics],
) -> pd.DataFrame:
    """Convert normalized metrics to the ``rfm`` table.

    Columns: customer_id, first_purchase, recent_purchase, no_of_orders,
    monetary, reference_date, month_cnt, recency, frequency,
    missing_invoice_totals
    """
    columns = [
        "customer_id",
        "first_purchase",
        "recent_purchase",
        "no_of_orders",
        "monetary",
        "reference_date",
        "month_cnt",
        "recency",
        "frequency",
        "missing_invoice_totals",
    ]
    if not normalized:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            "customer_id": n.customer_id,
            "first_purchase": n.first_purchase_date,
            "recent_purchase": n.last_purchase_date,
            "no_of_orders": n.order_count,
            "monetary": decimal_to_float(n.monetary),
            "reference_date": n.reference_date,
            "month_cnt": n.months_active,
            "recency": n.recency,
            "frequency": n.frequency,
            "missing_invoice_totals": len(n.unmatched_invoices),
        }
        for n in normalized
    ]
    return pd.DataFrame(rows, columns=columns)


def cutpoints_to_dataframe(cutpoints: QuantileCutpoints) -> pd.DataFrame:
    """Convert cut-points to the ``quantile`` table.

    One row per metric (recency, frequency, monetary) with columns
    p20, p40, p60, p80, p100.
    """
    rows = []
    for metric, bounds in cutpoints.as_dict().items():
        row: Dict[str, object] = {"metric": metric}
        for key, bound in bounds.items():
            row[key] = float(bound)
        rows.append(row)
    return pd.DataFrame(
        rows, columns=["metric"] + [f"p{p}" for p in QUINTILE_PERCENTILES]
    )


def scores_to_dataframe(scores: Sequence[ScoredCustomer]) -> pd.DataFrame:
    """Convert scored customers to the ``score`` table."""
    columns = SEGMENT_COLUMNS[:-1]
    if not scores:
        return pd.DataFrame(columns=columns)
    rows = [
        {
            "customer_id": s.customer_id,
            "r_score": s.r_score,
            "f_score": s.f_score,
            "m_score": s.m_score,
            "fm_score": s.fm_score,
            "recency": s.recency,
            "frequency": s.frequency,
            "monetary": decimal_to_float(s.monetary),
        }
        for s in scores
    ]
    return pd.DataFrame(rows, columns=columns)


def segments_to_dataframe(segmented: Sequence[SegmentedCustomer]) -> pd.DataFrame:
    """Convert segmented customers to the final output table.

    Returns:
        DataFrame with columns: customer_id, r_score, f_score, m_score,
        fm_score, recency, frequency, monetary, segment; sorted by
        customer_id
    """
    if not segmented:
        return pd.DataFrame(columns=SEGMENT_COLUMNS)

    df = scores_to_dataframe([s.score for s in segmented])
    df["segment"] = [s.segment.value for s in segmented]
    return df.sort_values("customer_id").reset_index(drop=True)


def summary_to_dataframe(summaries: Sequence[SegmentSummary]) -> pd.DataFrame:
    """Convert segment summaries to a DataFrame (one row per segment)."""
    return pd.DataFrame(
        [
            {
                "segment": s.segment.value,
                "customers": s.customers,
                "customer_pct": float(s.customer_pct),
                "monetary": float(s.monetary),
                "monetary_pct": float(s.monetary_pct),
                "avg_recency": float(s.avg_recency),
                "avg_frequency": float(s.avg_frequency),
            }
            for s in summaries
        ],
        columns=[
            "segment",
            "customers",
            "customer_pct",
            "monetary",
            "monetary_pct",
            "avg_recency",
            "avg_frequency",
        ],
    )


def result_to_checkpoints(result: RFMSegmentationResult) -> Dict[str, pd.DataFrame]:
    """Return the intermediate tables of a run keyed by checkpoint name.

    Keys: bill, rfm, quantile (omitted for an empty ledger), score, segment
    """
    tables = {
        "bill": invoices_to_dataframe(result.invoices),
        "rfm": customer_metrics_to_dataframe(result.normalized),
        "score": scores_to_dataframe(result.scores),
        "segment": segments_to_dataframe(result.segments),
    }
    if result.cutpoints is not None:
        tables["quantile"] = cutpoints_to_dataframe(result.cutpoints)
    return tables


def run_rfm_pipeline_df(
    sales_df: pd.DataFrame,
    config: Optional[RFMConfig] = None,
    invoice_id_col: str = "invoice_id",
    customer_id_col: str = "customer_id",
    stock_code_col: str = "stock_code",
    quantity_col: str = "quantity",
    unit_price_col: str = "unit_price",
    invoice_date_col: str = "invoice_date",
    date_format: Optional[str] = None,
) -> pd.DataFrame:
    """Score and segment customers straight from a sales DataFrame.

    Convenience function that combines conversion and the pipeline run.

    Example:
        >>> sales_df = pd.read_csv('sales.csv', dtype={'customer_id': str})
        >>> segments_df = run_rfm_pipeline_df(sales_df)
        >>> segments_df.groupby('segment').size()
    """
    lines = dataframe_to_sales_lines(
        sales_df,
        invoice_id_col=invoice_id_col,
        customer_id_col=customer_id_col,
        stock_code_col=stock_code_col,
        quantity_col=quantity_col,
        unit_price_col=unit_price_col,
        invoice_date_col=invoice_date_col,
        date_format=date_format,
    )
    result = RFMSegmentationPipeline(config).run(lines)
    return segments_to_dataframe(result.segments)
