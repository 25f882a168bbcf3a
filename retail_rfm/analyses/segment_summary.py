"""Population view of the persona assignment.

Answers the reporting questions that follow a segmentation run:
- How many customers fall in each persona?
- What share of revenue does each persona carry?
- How recent and how frequent is the typical customer of a persona?
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from retail_rfm.foundation.segments import SEGMENT_RULES, Segment, SegmentedCustomer

# Standard percentage precision: 2 decimal places (e.g., 45.67%)
PERCENTAGE_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class SegmentSummary:
    """Aggregate figures for one persona.

    Attributes
    ----------
    segment:
        Persona
    customers:
        Number of customers assigned to it
    customer_pct:
        Share of all customers (0-100)
    monetary:
        Sum of monetary values of its customers
    monetary_pct:
        Share of total monetary value (0-100)
    avg_recency:
        Mean recency in days (0 when empty)
    avg_frequency:
        Mean orders per active month (0 when empty)
    """

    segment: Segment
    customers: int
    customer_pct: Decimal
    monetary: Decimal
    monetary_pct: Decimal
    avg_recency: Decimal
    avg_frequency: Decimal

    def __post_init__(self) -> None:
        """Validate segment summary."""
        if self.customers < 0:
            raise ValueError(f"Customer count cannot be negative: {self.customers}")
        if not 0 <= self.customer_pct <= 100:
            raise ValueError(
                f"Customer percentage must be 0-100: {self.customer_pct} ({self.segment.value})"
            )


def _pct(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return Decimal("0.00")
    return (part / whole * 100).quantize(PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP)


def summarize_segments(segmented: Sequence[SegmentedCustomer]) -> list[SegmentSummary]:
    """Summarize customers per persona.

    Every persona appears in the result, in rule-table order, with zero
    counts when no customer was assigned to it.

    Examples
    --------
    >>> summary = summarize_segments([])
    >>> len(summary), summary[0].segment.value, summary[0].customers
    (11, 'Champions', 0)
    """
    groups: dict[Segment, list[SegmentedCustomer]] = {segment: [] for segment in SEGMENT_RULES}
    for customer in segmented:
        groups[customer.segment].append(customer)

    total_customers = Decimal(len(segmented))
    total_monetary = sum((c.score.monetary for c in segmented), Decimal("0"))

    summaries: list[SegmentSummary] = []
    for segment, members in groups.items():
        count = len(members)
        monetary = sum((c.score.monetary for c in members), Decimal("0"))
        if count:
            avg_recency = (
                Decimal(sum(c.score.recency for c in members)) / count
            ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            avg_frequency = (
                Decimal(str(sum(c.score.frequency for c in members))) / count
            ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        else:
            avg_recency = Decimal("0.00")
            avg_frequency = Decimal("0.00")

        summaries.append(
            SegmentSummary(
                segment=segment,
                customers=count,
                customer_pct=_pct(Decimal(count), total_customers),
                monetary=monetary,
                monetary_pct=_pct(monetary, total_monetary),
                avg_recency=avg_recency,
                avg_frequency=avg_frequency,
            )
        )
    return summaries


def render_segment_summary_markdown(summaries: Sequence[SegmentSummary]) -> str:
    """Render segment summaries as a Markdown table."""
    lines = [
        "| Segment | Customers | Customers % | Monetary | Monetary % | Avg recency (days) | Avg frequency |",
        "|---|---:|---:|---:|---:|---:|---:|",
    ]
    for s in summaries:
        lines.append(
            f"| {s.segment.value} | {s.customers} | {s.customer_pct}% | "
            f"{s.monetary.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)} | "
            f"{s.monetary_pct}% | {s.avg_recency} | {s.avg_frequency} |"
        )
    return "\n".join(lines)
