"""Shared sales ledgers for RFM segmentation tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from retail_rfm.foundation.sales import SalesLine


def make_line(invoice_id, customer_id, quantity, unit_price, invoice_date, stock_code="S1"):
    return SalesLine(
        invoice_id=invoice_id,
        customer_id=customer_id,
        stock_code=stock_code,
        quantity=quantity,
        unit_price=Decimal(str(unit_price)),
        invoice_date=invoice_date,
    )


@pytest.fixture
def five_customer_lines():
    """Ledger whose five customers land in five distinct quintiles per metric.

    Expected metrics (reference date 2011-02-01):

    ==== ======= ========= ========
    id   recency frequency monetary
    ==== ======= ========= ========
    C1   1       2.0       400
    C2   22      1.0       50
    C3   12      1.5       300
    C4   28      3.0       90
    C5   58      5.0       1000
    ==== ======= ========= ========
    """
    return [
        # C1: two invoices in January, 100 then 300
        make_line("I1", "C1", 2, "25.00", datetime(2011, 1, 1, 9, 0), "S1"),
        make_line("I1", "C1", 1, "50.00", datetime(2011, 1, 1, 9, 0), "S2"),
        make_line("I2", "C1", 3, "100.00", datetime(2011, 1, 31, 15, 30)),
        # C2: one-time buyer
        make_line("I3", "C2", 1, "50.00", datetime(2011, 1, 10, 11, 0)),
        # C3: three invoices across December and January
        make_line("I4", "C3", 1, "100.00", datetime(2010, 12, 1, 10, 0)),
        make_line("I5", "C3", 1, "100.00", datetime(2010, 12, 15, 10, 0)),
        make_line("I6", "C3", 1, "100.00", datetime(2011, 1, 20, 10, 0)),
        # C4: three small invoices in early January
        make_line("I7", "C4", 1, "30.00", datetime(2011, 1, 2, 12, 0)),
        make_line("I8", "C4", 1, "30.00", datetime(2011, 1, 3, 12, 0)),
        make_line("I9", "C4", 1, "30.00", datetime(2011, 1, 4, 12, 0)),
        # C5: five large invoices in early December
        make_line("I10", "C5", 2, "100.00", datetime(2010, 12, 1, 8, 0)),
        make_line("I11", "C5", 2, "100.00", datetime(2010, 12, 2, 8, 0)),
        make_line("I12", "C5", 2, "100.00", datetime(2010, 12, 3, 8, 0)),
        make_line("I13", "C5", 2, "100.00", datetime(2010, 12, 4, 8, 0)),
        make_line("I14", "C5", 2, "100.00", datetime(2010, 12, 5, 8, 0)),
    ]


@pytest.fixture
def five_customer_records(five_customer_lines):
    """The five-customer ledger as raw records (string prices, ISO dates)."""
    return [
        {
            "invoice_id": line.invoice_id,
            "customer_id": line.customer_id,
            "stock_code": line.stock_code,
            "quantity": line.quantity,
            "unit_price": str(line.unit_price),
            "invoice_date": line.invoice_date.isoformat(),
        }
        for line in five_customer_lines
    ]
