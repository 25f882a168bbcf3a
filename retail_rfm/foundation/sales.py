"""Sales ledger records, line valuation and invoice ("bill") aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping, Sequence

from retail_rfm.foundation.errors import DataIntegrityError

#: Keys every raw sales record must provide.
REQUIRED_FIELDS = (
    "invoice_id",
    "customer_id",
    "stock_code",
    "quantity",
    "unit_price",
    "invoice_date",
)


@dataclass(frozen=True)
class SalesLine:
    """One transaction line of the sales ledger.

    Attributes
    ----------
    invoice_id:
        Invoice the line belongs to
    customer_id:
        Customer who placed the invoice
    stock_code:
        Product identifier
    quantity:
        Units sold. Negative for returns/cancellations; kept as-is.
    unit_price:
        Price per unit
    invoice_date:
        Timestamp of the invoice
    """

    invoice_id: str
    customer_id: str
    stock_code: str
    quantity: int
    unit_price: Decimal
    invoice_date: datetime

    @property
    def amount(self) -> Decimal:
        """Line value: quantity x unit_price."""
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class LineItemAmount:
    """Valued sales line (output of the line-item valuator)."""

    invoice_id: str
    stock_code: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceTotal:
    """Monetary total of one invoice (the "bill")."""

    invoice_id: str
    total: Decimal


def _is_null(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    # NaN, Decimal("NaN") and pandas NaT are the only values unequal to themselves
    return value != value


def _parse_quantity(value: object, idx: int, invoice_id: str) -> int:
    if _is_null(value) or isinstance(value, bool):
        raise DataIntegrityError(
            f"Sales line at index {idx} has missing quantity: {value!r}",
            entity_id=invoice_id,
        )
    try:
        as_decimal = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise DataIntegrityError(
            f"Sales line at index {idx} has non-numeric quantity: {value!r}",
            entity_id=invoice_id,
        ) from exc
    if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
        raise DataIntegrityError(
            f"Sales line at index {idx} has non-integer quantity: {value!r}",
            entity_id=invoice_id,
        )
    return int(as_decimal)


def _parse_unit_price(value: object, idx: int, invoice_id: str) -> Decimal:
    if _is_null(value) or isinstance(value, bool):
        raise DataIntegrityError(
            f"Sales line at index {idx} has missing unit price: {value!r}",
            entity_id=invoice_id,
        )
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise DataIntegrityError(
            f"Sales line at index {idx} has non-numeric unit price: {value!r}",
            entity_id=invoice_id,
        ) from exc
    if not price.is_finite():
        raise DataIntegrityError(
            f"Sales line at index {idx} has non-finite unit price: {value!r}",
            entity_id=invoice_id,
        )
    return price


def to_naive_utc(value: datetime) -> datetime:
    """Express an offset-aware timestamp as naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_invoice_date(value: object, idx: int, invoice_id: str) -> datetime:
    if _is_null(value):
        raise DataIntegrityError(
            f"Sales line at index {idx} has missing invoice date",
            entity_id=invoice_id,
        )
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise DataIntegrityError(
                f"Sales line at index {idx} has unparseable invoice date: {value!r}",
                entity_id=invoice_id,
            ) from exc
        return to_naive_utc(parsed)
    raise DataIntegrityError(
        f"Sales line at index {idx} has invoice date of unsupported type "
        f"{type(value).__name__}",
        entity_id=invoice_id,
    )


def parse_sales_lines(records: Iterable[Mapping[str, object]]) -> list[SalesLine]:
    """Validate raw ledger records and return immutable SalesLine rows.

    Nothing is coerced silently: a missing or malformed quantity, price,
    date or identifier raises DataIntegrityError naming the record index
    and its invoice.
    Offset-aware invoice dates are converted to naive UTC so that a
    ledger mixing aware and naive timestamps compares consistently.
    """
    lines: list[SalesLine] = []
    for idx, record in enumerate(records):
        missing = [key for key in REQUIRED_FIELDS if key not in record]
        if missing:
            raise DataIntegrityError(
                f"Sales line at index {idx} missing fields: {missing}",
                entity_id=str(record.get("invoice_id")),
            )

        if _is_null(record["invoice_id"]):
            raise DataIntegrityError(f"Sales line at index {idx} has no invoice_id")
        invoice_id = str(record["invoice_id"]).strip()

        if _is_null(record["customer_id"]):
            raise DataIntegrityError(
                f"Sales line at index {idx} has no customer_id",
                entity_id=invoice_id,
            )

        lines.append(
            SalesLine(
                invoice_id=invoice_id,
                customer_id=str(record["customer_id"]).strip(),
                stock_code=str(record["stock_code"]),
                quantity=_parse_quantity(record["quantity"], idx, invoice_id),
                unit_price=_parse_unit_price(record["unit_price"], idx, invoice_id),
                invoice_date=_parse_invoice_date(
                    record["invoice_date"], idx, invoice_id
                ),
            )
        )
    return lines


def value_line_items(lines: Iterable[SalesLine]) -> list[LineItemAmount]:
    """Compute quantity x unit_price for every sales line."""
    return [
        LineItemAmount(
            invoice_id=line.invoice_id,
            stock_code=line.stock_code,
            quantity=line.quantity,
            unit_price=line.unit_price,
            amount=line.amount,
        )
        for line in lines
    ]


def aggregate_invoices(lines: Sequence[SalesLine]) -> list[InvoiceTotal]:
    """Sum line amounts into one total per invoice.

    Returns
    -------
    list[InvoiceTotal]
        One row per distinct invoice_id, sorted by invoice_id
    """
    totals: dict[str, Decimal] = {}
    for item in value_line_items(lines):
        totals[item.invoice_id] = totals.get(item.invoice_id, Decimal("0")) + item.amount

    return [
        InvoiceTotal(invoice_id=invoice_id, total=total)
        for invoice_id, total in sorted(totals.items())
    ]
