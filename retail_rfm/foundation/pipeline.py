"""End-to-end RFM segmentation run over a static sales ledger.

Stages run in dependency order, each consuming the complete output of
the previous one:

1. invoice_totals   - line amounts summed per invoice
2. customer_metrics - first/last purchase, orders, monetary per customer
3. normalization    - recency and frequency against one reference date
4. quantiles        - population-wide quintile cut-points
5. scoring          - R, F, M and combined FM scores
6. segmentation     - persona lookup

Any failure aborts the run; no partial output is returned.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from retail_rfm.foundation.customer_metrics import (
    CustomerMetrics,
    aggregate_customer_metrics,
)
from retail_rfm.foundation.errors import RFMPipelineError
from retail_rfm.foundation.normalization import (
    NormalizedMetrics,
    compute_cutpoints,
    compute_reference_date,
    normalize_metrics,
)
from retail_rfm.foundation.quantiles import DEFAULT_QUANTILE_BUCKETS, QuantileCutpoints
from retail_rfm.foundation.sales import (
    InvoiceTotal,
    SalesLine,
    aggregate_invoices,
    parse_sales_lines,
)
from retail_rfm.foundation.scoring import ScoredCustomer, score_customers
from retail_rfm.foundation.segments import SegmentedCustomer, assign_segments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RFMConfig:
    """Configuration for an RFM segmentation run.

    Attributes
    ----------
    quantile_buckets:
        Buckets of the approximate quantile computation; must be a
        positive multiple of 5
    strict_invoice_totals:
        Fail on a sales line whose invoice has no total instead of
        flagging the customer
    parallel:
        Enable multiprocessing for the scoring stage
    parallel_threshold:
        Customer count from which scoring runs in parallel
    n_workers:
        Worker processes for parallel scoring (default: CPU count)
    """

    quantile_buckets: int = DEFAULT_QUANTILE_BUCKETS
    strict_invoice_totals: bool = False
    parallel: bool = True
    parallel_threshold: int = 10_000_000
    n_workers: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.quantile_buckets <= 0 or self.quantile_buckets % 5:
            raise ValueError(
                f"quantile_buckets must be a positive multiple of 5: {self.quantile_buckets}"
            )
        if self.parallel_threshold < 1:
            raise ValueError(
                f"parallel_threshold must be positive: {self.parallel_threshold}"
            )


@dataclass(frozen=True)
class RFMSegmentationResult:
    """All tables materialized by one pipeline run.

    The intermediate tables (invoices, customer_metrics, normalized,
    cutpoints, scores) can be persisted as checkpoints; ``segments`` is
    the final output. ``reference_date`` and ``cutpoints`` are None only
    for an empty ledger.
    """

    invoices: list[InvoiceTotal]
    customer_metrics: list[CustomerMetrics]
    reference_date: date | None
    normalized: list[NormalizedMetrics]
    cutpoints: QuantileCutpoints | None
    scores: list[ScoredCustomer]
    segments: list[SegmentedCustomer]

    @property
    def flagged_customers(self) -> list[str]:
        """Customers with at least one invoice lacking a total."""
        return [m.customer_id for m in self.customer_metrics if m.has_missing_totals]


@contextmanager
def _stage(name: str) -> Iterator[None]:
    try:
        yield
    except RFMPipelineError as exc:
        if exc.stage is None:
            exc.stage = name
        logger.error(
            f"RFM run failed in stage '{exc.stage}' "
            f"(entity={exc.entity_id}): {exc.message}"
        )
        raise


class RFMSegmentationPipeline:
    """Score and segment every customer of a sales ledger."""

    def __init__(self, config: RFMConfig | None = None) -> None:
        self.config = config or RFMConfig()

    def run_records(
        self, records: Iterable[Mapping[str, object]]
    ) -> RFMSegmentationResult:
        """Validate raw ledger records, then run the pipeline."""
        with _stage("load"):
            lines = parse_sales_lines(records)
        logger.info(f"Loaded {len(lines)} sales lines")
        return self.run(lines)

    def run(self, lines: Sequence[SalesLine]) -> RFMSegmentationResult:
        """Run all stages over validated sales lines."""
        config = self.config

        with _stage("invoice_totals"):
            invoices = aggregate_invoices(lines)
        logger.info(f"Aggregated {len(lines)} sales lines into {len(invoices)} invoices")

        with _stage("customer_metrics"):
            customer_metrics = aggregate_customer_metrics(
                lines, invoices, strict_invoice_totals=config.strict_invoice_totals
            )
        flagged = sum(1 for m in customer_metrics if m.has_missing_totals)
        logger.info(
            f"Computed metrics for {len(customer_metrics)} customers "
            f"({flagged} flagged for missing invoice totals)"
        )

        if not customer_metrics:
            logger.warning("Sales ledger is empty; no customers to segment")
            return RFMSegmentationResult(
                invoices=invoices,
                customer_metrics=[],
                reference_date=None,
                normalized=[],
                cutpoints=None,
                scores=[],
                segments=[],
            )

        with _stage("normalization"):
            reference_date = compute_reference_date(customer_metrics)
            normalized = normalize_metrics(customer_metrics, reference_date)
        logger.info(f"Normalized metrics against reference date {reference_date}")

        with _stage("quantiles"):
            cutpoints = compute_cutpoints(normalized, config.quantile_buckets)
        logger.info(
            f"Computed {config.quantile_buckets}-bucket cut-points over "
            f"{cutpoints.population_size} customers"
        )

        with _stage("scoring"):
            scores = score_customers(
                normalized,
                cutpoints,
                parallel=config.parallel,
                parallel_threshold=config.parallel_threshold,
                n_workers=config.n_workers,
            )
        logger.info(f"Scored {len(scores)} customers")

        with _stage("segmentation"):
            segments = assign_segments(scores)
        logger.info(f"Assigned segments to {len(segments)} customers")

        return RFMSegmentationResult(
            invoices=invoices,
            customer_metrics=customer_metrics,
            reference_date=reference_date,
            normalized=normalized,
            cutpoints=cutpoints,
            scores=scores,
            segments=segments,
        )


def run_rfm_pipeline(
    records: Iterable[Mapping[str, object]],
    config: RFMConfig | None = None,
) -> RFMSegmentationResult:
    """Convenience wrapper: validate raw records and run the full pipeline.

    Examples
    --------
    >>> from datetime import datetime
    >>> records = [
    ...     {"invoice_id": "I1", "customer_id": "C1", "stock_code": "S1",
    ...      "quantity": 2, "unit_price": "5.00", "invoice_date": datetime(2011, 1, 1)},
    ... ]
    >>> result = run_rfm_pipeline(records)
    >>> result.segments[0].segment.value
    'Recent Customers'
    """
    return RFMSegmentationPipeline(config).run_records(records)
