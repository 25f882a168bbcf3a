"""Pandas DataFrame adapters for the sales ledger."""

from typing import List, Optional

import pandas as pd  # type: ignore

from retail_rfm.foundation.errors import DataIntegrityError
from retail_rfm.foundation.sales import SalesLine, parse_sales_lines
from ._utils import nulls_to_none

#: Column names of the UCI Online Retail export, keyed by the
#: ``dataframe_to_sales_lines`` keyword they map to.
ONLINE_RETAIL_COLUMNS = {
    "invoice_id_col": "InvoiceNo",
    "customer_id_col": "CustomerID",
    "stock_code_col": "StockCode",
    "quantity_col": "Quantity",
    "unit_price_col": "UnitPrice",
    "invoice_date_col": "InvoiceDate",
}


def dataframe_to_sales_lines(
    sales_df: pd.DataFrame,
    invoice_id_col: str = "invoice_id",
    customer_id_col: str = "customer_id",
    stock_code_col: str = "stock_code",
    quantity_col: str = "quantity",
    unit_price_col: str = "unit_price",
    invoice_date_col: str = "invoice_date",
    date_format: Optional[str] = None,
) -> List[SalesLine]:
    """Convert pandas DataFrame to validated SalesLine rows.

    Args:
        sales_df: DataFrame with one row per sales line
        *_col: Column name mappings for flexibility
        date_format: Optional strptime format for string invoice dates
            (e.g. ``"%m/%d/%Y %H:%M"``). Parsed per value by pandas when
            omitted. Offset-aware dates are converted to naive UTC.

    Returns:
        List of SalesLine objects with schema:
        - invoice_id: str (from invoice_id_col)
        - customer_id: str (from customer_id_col)
        - stock_code: str (from stock_code_col)
        - quantity: int (from quantity_col)
        - unit_price: Decimal (from unit_price_col)
        - invoice_date: datetime (from invoice_date_col)

    Raises:
        ValueError: If DataFrame is missing required columns
        DataIntegrityError: If a row has a missing or malformed value

    Example:
        >>> sales_df = pd.read_csv('online_retail.csv', dtype=str)
        >>> lines = dataframe_to_sales_lines(sales_df, **ONLINE_RETAIL_COLUMNS)
    """
    mapping = {
        "invoice_id": invoice_id_col,
        "customer_id": customer_id_col,
        "stock_code": stock_code_col,
        "quantity": quantity_col,
        "unit_price": unit_price_col,
        "invoice_date": invoice_date_col,
    }

    missing_cols = set(mapping.values()) - set(sales_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if sales_df.empty:
        return []

    renamed = sales_df[list(mapping.values())].rename(
        columns={source: target for target, source in mapping.items()}
    )

    raw_dates = renamed["invoice_date"]
    # Offset-aware values become naive UTC; naive values are taken as UTC
    parsed_dates = pd.to_datetime(
        raw_dates, format=date_format or "mixed", errors="coerce", utc=True
    ).dt.tz_localize(None)
    unparsed = parsed_dates.isna() & raw_dates.notna()
    if unparsed.any():
        position = int(unparsed.to_numpy().nonzero()[0][0])
        raise DataIntegrityError(
            f"Sales line at index {position} has unparseable invoice date: "
            f"{raw_dates.iloc[position]!r}",
            entity_id=str(renamed["invoice_id"].iloc[position]),
        )
    renamed = renamed.assign(invoice_date=parsed_dates)

    records = nulls_to_none(renamed).to_dict("records")
    for record in records:
        if record["invoice_date"] is not None:
            record["invoice_date"] = pd.Timestamp(record["invoice_date"]).to_pydatetime()
    return parse_sales_lines(records)


def sales_lines_to_dataframe(lines: List[SalesLine]) -> pd.DataFrame:
    """Convert SalesLine rows to a DataFrame with an ``amount`` column."""
    columns = [
        "invoice_id",
        "customer_id",
        "stock_code",
        "quantity",
        "unit_price",
        "invoice_date",
        "amount",
    ]
    if not lines:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            "invoice_id": line.invoice_id,
            "customer_id": line.customer_id,
            "stock_code": line.stock_code,
            "quantity": line.quantity,
            "unit_price": float(line.unit_price),
            "invoice_date": line.invoice_date,
            "amount": float(line.amount),
        }
        for line in lines
    ]
    return pd.DataFrame(rows, columns=columns)
