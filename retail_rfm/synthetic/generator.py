from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
import math
import random
from typing import List, Optional, Sequence

from retail_rfm.foundation.sales import SalesLine


@dataclass(frozen=True)
class Customer:
    customer_id: str
    acquisition_date: date


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration for synthetic sales ledgers.

    Attributes
    ----------
    churn_hazard: Monthly probability that an active customer stops buying.
    base_orders_per_month: Average invoices per active customer per month.
    mean_unit_price: Average unit price used to sample line items.
    price_variability: Coefficient in (0, 1] controlling price variance.
    quantity_mean: Average quantity per sales line.
    max_lines_per_invoice: Upper bound of sales lines per invoice.
    seed: Optional RNG seed for reproducibility.
    """

    churn_hazard: float = 0.08
    base_orders_per_month: float = 1.2
    mean_unit_price: float = 30.0
    price_variability: float = 0.4
    quantity_mean: float = 1.3
    max_lines_per_invoice: int = 3
    seed: Optional[int] = None


def _month_range(start: date, end: date) -> List[date]:
    cur = date(start.year, start.month, 1)
    last = date(end.year, end.month, 1)
    out: List[date] = []
    while cur <= last:
        out.append(cur)
        if cur.month == 12:
            cur = date(cur.year + 1, 1, 1)
        else:
            cur = date(cur.year, cur.month + 1, 1)
    return out


def generate_customers(
    n: int,
    start: date,
    end: date,
    *,
    seed: Optional[int] = None,
) -> List[Customer]:
    """Generate ``n`` customers with acquisition dates uniformly between start/end."""

    if n <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")
    rng = random.Random(seed)
    total_days = (end - start).days + 1

    customers: List[Customer] = []
    for i in range(n):
        offset = rng.randrange(total_days)
        acq = start + timedelta(days=offset)
        customers.append(Customer(customer_id=f"C-{i + 1}", acquisition_date=acq))
    return customers


def _invoices_for_customer_month(rng: random.Random, base_orders_per_month: float) -> int:
    # Poisson-like draw via Knuth's algorithm for small lambdas
    lam = max(0.0, base_orders_per_month)
    if lam <= 0:
        return 0
    L = math.exp(-lam)
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return max(0, k - 1)


def _sample_price(rng: random.Random, mean: float, variability: float) -> Decimal:
    variability = min(max(variability, 0.01), 1.0)
    # Log-normal-ish by exponentiating a normal draw for positivity
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    price = math.exp(rng.normalvariate(mu, sigma))
    return Decimal(str(round(max(price, 0.01), 2)))


def _sample_quantity(rng: random.Random, mean_q: float) -> int:
    # Discretized log-normal for positive integer quantities
    q = max(1.0, rng.lognormvariate(mu=math.log(max(mean_q, 0.1)), sigma=0.5))
    return max(1, int(round(q)))


def generate_sales_lines(
    customers: Sequence[Customer],
    start: date,
    end: date,
    *,
    config: Optional[LedgerConfig] = None,
    catalog: Optional[Sequence[str]] = None,
) -> List[SalesLine]:
    """Generate a sales ledger for ``customers`` between ``start`` and ``end``.

    Every customer buys at least once: the first invoice is placed on the
    acquisition date, later months draw a Poisson number of invoices until
    the customer churns. Each invoice holds 1 to ``max_lines_per_invoice``
    lines. The same ``config.seed`` always produces the same ledger.
    """

    if start > end:
        raise ValueError("start date must be <= end date")
    config = config or LedgerConfig()
    rng = random.Random(config.seed)
    product_catalog = list(catalog) if catalog else [f"SKU-{i + 1}" for i in range(20)]

    lines: List[SalesLine] = []
    invoice_seq = 1

    def add_invoice(customer_id: str, invoice_ts: datetime) -> None:
        nonlocal invoice_seq
        invoice_id = f"INV-{invoice_seq}"
        invoice_seq += 1
        for _line in range(1 + rng.randrange(max(1, config.max_lines_per_invoice))):
            lines.append(
                SalesLine(
                    invoice_id=invoice_id,
                    customer_id=customer_id,
                    stock_code=rng.choice(product_catalog),
                    quantity=_sample_quantity(rng, config.quantity_mean),
                    unit_price=_sample_price(
                        rng, config.mean_unit_price, config.price_variability
                    ),
                    invoice_date=invoice_ts,
                )
            )

    active = [c for c in customers if start <= c.acquisition_date <= end]
    for cust in active:
        acq = cust.acquisition_date
        add_invoice(
            cust.customer_id,
            datetime(acq.year, acq.month, acq.day, 9 + rng.randrange(0, 9), rng.randrange(0, 60)),
        )

    alive = {c.customer_id: c for c in active}
    for month_start in _month_range(start, end):
        if config.churn_hazard > 0:
            for cid in [cid for cid in alive if rng.random() < config.churn_hazard]:
                alive.pop(cid)

        for cust in list(alive.values()):
            num_invoices = _invoices_for_customer_month(rng, config.base_orders_per_month)
            for _ in range(num_invoices):
                invoice_day = date(
                    month_start.year, month_start.month, 1 + rng.randrange(0, 28)
                )
                if invoice_day <= cust.acquisition_date or invoice_day > end:
                    continue
                add_invoice(
                    cust.customer_id,
                    datetime(
                        invoice_day.year,
                        invoice_day.month,
                        invoice_day.day,
                        9 + rng.randrange(0, 9),
                        rng.randrange(0, 60),
                    ),
                )

    lines.sort(key=lambda line: (line.customer_id, line.invoice_date, line.invoice_id))
    return lines
