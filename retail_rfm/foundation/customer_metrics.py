"""Per-customer purchase metrics built from the sales ledger and invoice totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence

from retail_rfm.foundation.errors import DataIntegrityError
from retail_rfm.foundation.sales import InvoiceTotal, SalesLine, to_naive_utc

logger = logging.getLogger(__name__)

# Customer ids listed in the aggregate missing-total warning
MAX_LOGGED_CUSTOMERS = 5


@dataclass(frozen=True)
class CustomerMetrics:
    """Raw purchase metrics for a single customer.

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
        Sum of the customer's invoice totals, each invoice counted once.
        None when none of the customer's invoices has a total.
    unmatched_invoices:
        Invoice ids of this customer that had no invoice total. A non-empty
        tuple flags the row as incomplete.
    """

    customer_id: str
    first_purchase_date: date
    last_purchase_date: date
    order_count: int
    monetary: Decimal | None
    unmatched_invoices: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate customer metrics."""
        if self.first_purchase_date > self.last_purchase_date:
            raise ValueError(
                f"First purchase ({self.first_purchase_date}) cannot be after last "
                f"purchase ({self.last_purchase_date}) (customer_id={self.customer_id})"
            )
        if self.order_count <= 0:
            raise ValueError(
                f"Order count must be positive: {self.order_count} (customer_id={self.customer_id})"
            )

    @property
    def has_missing_totals(self) -> bool:
        return bool(self.unmatched_invoices)


def aggregate_customer_metrics(
    lines: Sequence[SalesLine],
    invoices: Sequence[InvoiceTotal],
    strict_invoice_totals: bool = False,
) -> list[CustomerMetrics]:
    """Aggregate sales lines, left-joined to invoice totals, per customer.

    Every customer present in ``lines`` yields exactly one row, even when
    some or all of its invoices are absent from ``invoices``. Such rows
    are flagged through ``unmatched_invoices`` instead of having the
    missing amounts treated as zero.

    Parameters
    ----------
    lines:
        Validated sales lines
    invoices:
        Invoice totals, typically from ``aggregate_invoices``
    strict_invoice_totals:
        Raise DataIntegrityError on the first invoice without a total
        instead of flagging it

    Returns
    -------
    list[CustomerMetrics]
        One row per customer, sorted by customer_id

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> from retail_rfm.foundation.sales import SalesLine, aggregate_invoices
    >>> lines = [
    ...     SalesLine("I1", "C1", "S1", 2, Decimal("5"), datetime(2011, 1, 1)),
    ...     SalesLine("I2", "C1", "S2", 1, Decimal("30"), datetime(2011, 2, 3)),
    ... ]
    >>> metrics = aggregate_customer_metrics(lines, aggregate_invoices(lines))
    >>> metrics[0].order_count, metrics[0].monetary
    (2, Decimal('40'))
    """
    totals = {invoice.invoice_id: invoice.total for invoice in invoices}

    invoice_owner: dict[str, str] = {}
    customer_data: dict[str, dict] = {}
    for line in lines:
        invoice_date = to_naive_utc(line.invoice_date)
        owner = invoice_owner.setdefault(line.invoice_id, line.customer_id)
        if owner != line.customer_id:
            raise DataIntegrityError(
                f"Invoice {line.invoice_id} is shared by customers {owner} "
                f"and {line.customer_id}",
                entity_id=line.invoice_id,
            )

        data = customer_data.setdefault(
            line.customer_id,
            {
                "first_purchase": invoice_date,
                "last_purchase": invoice_date,
                "order_dates": set(),
                "invoices": set(),
            },
        )
        data["first_purchase"] = min(data["first_purchase"], invoice_date)
        data["last_purchase"] = max(data["last_purchase"], invoice_date)
        data["order_dates"].add(invoice_date)
        data["invoices"].add(line.invoice_id)

    metrics: list[CustomerMetrics] = []
    flagged: list[str] = []
    for customer_id, data in customer_data.items():
        monetary: Decimal | None = None
        unmatched: list[str] = []
        for invoice_id in sorted(data["invoices"]):
            total = totals.get(invoice_id)
            if total is None:
                if strict_invoice_totals:
                    raise DataIntegrityError(
                        f"Invoice {invoice_id} of customer {customer_id} has no total",
                        entity_id=invoice_id,
                    )
                unmatched.append(invoice_id)
                continue
            monetary = total if monetary is None else monetary + total

        if unmatched:
            flagged.append(customer_id)
            logger.debug(
                f"Customer {customer_id} has {len(unmatched)} invoice(s) without a "
                f"total: {unmatched}"
            )

        metrics.append(
            CustomerMetrics(
                customer_id=customer_id,
                first_purchase_date=_as_date(data["first_purchase"]),
                last_purchase_date=_as_date(data["last_purchase"]),
                order_count=len(data["order_dates"]),
                monetary=monetary,
                unmatched_invoices=tuple(unmatched),
            )
        )

    if flagged:
        flagged.sort()
        logger.warning(
            f"{len(flagged)} customer(s) have invoices without a total; "
            f"first affected: {flagged[:MAX_LOGGED_CUSTOMERS]}"
        )

    metrics.sort(key=lambda m: m.customer_id)
    return metrics


def _as_date(value: datetime) -> date:
    return value.date()
