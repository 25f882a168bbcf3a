"""Recency/frequency normalization against a single global reference date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from retail_rfm.foundation.customer_metrics import CustomerMetrics
from retail_rfm.foundation.quantiles import (
    DEFAULT_QUANTILE_BUCKETS,
    MetricCutpoints,
    QuantileCutpoints,
)


@dataclass(frozen=True)
class NormalizedMetrics:
    """Customer metrics expressed relative to the run's reference date.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    first_purchase_date:
        Calendar date of the earliest invoice
    last_purchase_date:
        Calendar date of the most recent invoice
    order_count:
        Number of distinct invoice timestamps
    monetary:
        Sum of invoice totals (None when unknown)
    reference_date:
        Latest purchase across all customers plus one day
    recency:
        Days from last_purchase_date to reference_date
    months_active:
        Calendar months between first and last purchase, plus one
    frequency:
        order_count / months_active
    unmatched_invoices:
        Invoice ids without a total, carried from CustomerMetrics
    """

    customer_id: str
    first_purchase_date: date
    last_purchase_date: date
    order_count: int
    monetary: Decimal | None
    reference_date: date
    recency: int
    months_active: int
    frequency: float
    unmatched_invoices: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate normalized metrics."""
        if self.recency <= 0:
            raise ValueError(
                f"Recency must be positive: {self.recency} (customer_id={self.customer_id})"
            )
        if self.months_active <= 0:
            raise ValueError(
                f"Months active must be positive: {self.months_active} (customer_id={self.customer_id})"
            )


def compute_reference_date(metrics: Sequence[CustomerMetrics]) -> date:
    """Return the latest purchase date across all customers plus one day."""
    if not metrics:
        raise ValueError("Cannot compute a reference date without customers")
    return max(m.last_purchase_date for m in metrics) + timedelta(days=1)


def months_between(start: date, end: date) -> int:
    """Number of calendar month boundaries crossed going from start to end.

    >>> months_between(date(2011, 1, 31), date(2011, 2, 1))
    1
    >>> months_between(date(2011, 1, 1), date(2011, 1, 31))
    0
    """
    return (end.year - start.year) * 12 + (end.month - start.month)


def normalize_metrics(
    metrics: Sequence[CustomerMetrics],
    reference_date: date | None = None,
) -> list[NormalizedMetrics]:
    """Derive recency and frequency for every customer.

    Parameters
    ----------
    metrics:
        Raw per-customer metrics for the whole population
    reference_date:
        Shared recency anchor. Defaults to ``compute_reference_date(metrics)``.
        Must lie after every customer's last purchase.

    Returns
    -------
    list[NormalizedMetrics]
        One row per customer, in input order
    """
    if not metrics:
        return []
    if reference_date is None:
        reference_date = compute_reference_date(metrics)

    normalized: list[NormalizedMetrics] = []
    for m in metrics:
        months_active = months_between(m.first_purchase_date, m.last_purchase_date) + 1
        normalized.append(
            NormalizedMetrics(
                customer_id=m.customer_id,
                first_purchase_date=m.first_purchase_date,
                last_purchase_date=m.last_purchase_date,
                order_count=m.order_count,
                monetary=m.monetary,
                reference_date=reference_date,
                recency=(reference_date - m.last_purchase_date).days,
                months_active=months_active,
                frequency=m.order_count / months_active,
                unmatched_invoices=m.unmatched_invoices,
            )
        )
    return normalized


def compute_cutpoints(
    normalized: Sequence[NormalizedMetrics],
    buckets: int = DEFAULT_QUANTILE_BUCKETS,
) -> QuantileCutpoints:
    """Compute recency, frequency and monetary quintile cut-points.

    Must be called once on the complete population; cut-points depend on
    the global distribution of each metric.
    """
    if not normalized:
        raise ValueError("Cannot compute cut-points without customers")
    return QuantileCutpoints(
        recency=MetricCutpoints.from_values(
            "recency", [n.recency for n in normalized], buckets
        ),
        frequency=MetricCutpoints.from_values(
            "frequency", [n.frequency for n in normalized], buckets
        ),
        monetary=MetricCutpoints.from_values(
            "monetary", [n.monetary for n in normalized], buckets
        ),
        population_size=len(normalized),
    )
