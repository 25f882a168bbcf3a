"""Foundational building blocks of the RFM segmentation pipeline.

This package exposes the sales ledger contract, the invoice and customer
aggregations, quantile cut-points, scoring and the persona rule table.
"""

from .customer_metrics import CustomerMetrics, aggregate_customer_metrics
from .errors import (
    DataIntegrityError,
    IncompleteRuleTableError,
    RFMPipelineError,
    UndefinedScoreError,
)
from .normalization import (
    NormalizedMetrics,
    compute_cutpoints,
    compute_reference_date,
    normalize_metrics,
)
from .pipeline import (
    RFMConfig,
    RFMSegmentationPipeline,
    RFMSegmentationResult,
    run_rfm_pipeline,
)
from .quantiles import MetricCutpoints, QuantileCutpoints, approx_quantiles
from .sales import (
    InvoiceTotal,
    LineItemAmount,
    SalesLine,
    aggregate_invoices,
    parse_sales_lines,
    value_line_items,
)
from .scoring import ScoredCustomer, combine_fm_score, score_customers
from .segments import (
    SEGMENT_RULES,
    Segment,
    SegmentedCustomer,
    assign_segments,
    build_segment_table,
    segment_for,
)

__all__ = [
    "CustomerMetrics",
    "aggregate_customer_metrics",
    "DataIntegrityError",
    "IncompleteRuleTableError",
    "RFMPipelineError",
    "UndefinedScoreError",
    "NormalizedMetrics",
    "compute_cutpoints",
    "compute_reference_date",
    "normalize_metrics",
    "RFMConfig",
    "RFMSegmentationPipeline",
    "RFMSegmentationResult",
    "run_rfm_pipeline",
    "MetricCutpoints",
    "QuantileCutpoints",
    "approx_quantiles",
    "InvoiceTotal",
    "LineItemAmount",
    "SalesLine",
    "aggregate_invoices",
    "parse_sales_lines",
    "value_line_items",
    "ScoredCustomer",
    "combine_fm_score",
    "score_customers",
    "SEGMENT_RULES",
    "Segment",
    "SegmentedCustomer",
    "assign_segments",
    "build_segment_table",
    "segment_for",
]
