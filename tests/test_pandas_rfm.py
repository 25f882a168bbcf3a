"""Tests for RFM pandas adapters."""

from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from retail_rfm.foundation.errors import DataIntegrityError
from retail_rfm.foundation.pipeline import RFMSegmentationPipeline
from retail_rfm.pandas import (
    ONLINE_RETAIL_COLUMNS,
    customer_metrics_to_dataframe,
    cutpoints_to_dataframe,
    dataframe_to_sales_lines,
    invoices_to_dataframe,
    result_to_checkpoints,
    run_rfm_pipeline_df,
    sales_lines_to_dataframe,
    segments_to_dataframe,
)


@pytest.fixture
def online_retail_df():
    """Three lines in the UCI Online Retail layout."""
    return pd.DataFrame(
        {
            "InvoiceNo": ["536365", "536365", "536366"],
            "StockCode": ["85123A", "71053", "22633"],
            "Quantity": [6, 6, 6],
            "InvoiceDate": ["12/01/2010 08:26", "12/01/2010 08:26", "12/01/2010 08:28"],
            "UnitPrice": [2.55, 3.39, 1.85],
            "CustomerID": ["17850", "17850", "17850"],
        }
    )


class TestDataFrameToSalesLines:
    """Test dataframe_to_sales_lines conversion."""

    def test_online_retail_columns(self, online_retail_df):
        """UCI headers map onto SalesLine fields."""
        lines = dataframe_to_sales_lines(
            online_retail_df, date_format="%m/%d/%Y %H:%M", **ONLINE_RETAIL_COLUMNS
        )

        assert len(lines) == 3
        first = lines[0]
        assert first.invoice_id == "536365"
        assert first.customer_id == "17850"
        assert first.stock_code == "85123A"
        assert first.quantity == 6
        assert first.unit_price == Decimal("2.55")
        assert first.invoice_date == datetime(2010, 12, 1, 8, 26)

    def test_default_columns(self, five_customer_records):
        """Default column names match the record keys."""
        lines = dataframe_to_sales_lines(pd.DataFrame(five_customer_records))
        assert len(lines) == 15
        assert lines[0].invoice_date == datetime(2011, 1, 1, 9, 0)
        assert lines[0].amount == Decimal("50.00")

    def test_missing_columns_raise(self):
        """Missing required columns raise ValueError."""
        df = pd.DataFrame({"invoice_id": ["I1"], "customer_id": ["C1"]})
        with pytest.raises(ValueError, match="missing required columns"):
            dataframe_to_sales_lines(df)

    def test_missing_customer_raises(self, online_retail_df):
        """A blank CustomerID is an integrity failure, not a dropped row."""
        online_retail_df.loc[1, "CustomerID"] = None
        with pytest.raises(DataIntegrityError, match="no customer_id") as excinfo:
            dataframe_to_sales_lines(
                online_retail_df, date_format="%m/%d/%Y %H:%M", **ONLINE_RETAIL_COLUMNS
            )
        assert excinfo.value.entity_id == "536365"

    def test_unparseable_date_raises(self, online_retail_df):
        """Dates that do not match the format name the offending invoice."""
        online_retail_df.loc[2, "InvoiceDate"] = "not a date"
        with pytest.raises(DataIntegrityError, match="unparseable invoice date") as excinfo:
            dataframe_to_sales_lines(
                online_retail_df, date_format="%m/%d/%Y %H:%M", **ONLINE_RETAIL_COLUMNS
            )
        assert excinfo.value.entity_id == "536366"

    def test_mixed_timezones_become_naive_utc(self, five_customer_records):
        """Different offsets and naive values in one column parse to naive UTC."""
        df = pd.DataFrame(five_customer_records)
        df.loc[0, "invoice_date"] = "2011-01-01T10:00:00+01:00"
        df.loc[1, "invoice_date"] = "2011-01-01T14:00:00+05:00"
        lines = dataframe_to_sales_lines(df)

        assert lines[0].invoice_date == datetime(2011, 1, 1, 9, 0)
        assert lines[1].invoice_date == datetime(2011, 1, 1, 9, 0)
        assert lines[2].invoice_date == datetime(2011, 1, 31, 15, 30)
        assert all(line.invoice_date.tzinfo is None for line in lines)

    def test_mixed_timezones_run_end_to_end(self, five_customer_records):
        """The DataFrame entry point segments a mixed-offset ledger."""
        df = pd.DataFrame(five_customer_records)
        df.loc[0, "invoice_date"] = "2011-01-01T10:00:00+01:00"
        df.loc[3, "invoice_date"] = "2011-01-10T16:00:00+05:00"
        segments = run_rfm_pipeline_df(df)
        assert dict(zip(segments["customer_id"], segments["segment"]))["C1"] == "Champions"

    def test_missing_quantity_raises(self, five_customer_records):
        """NaN quantities are never coerced to zero."""
        df = pd.DataFrame(five_customer_records)
        df.loc[0, "quantity"] = float("nan")
        with pytest.raises(DataIntegrityError, match="missing quantity"):
            dataframe_to_sales_lines(df)

    def test_empty_dataframe(self):
        """Empty DataFrame with the right columns yields no lines."""
        df = pd.DataFrame(
            columns=[
                "invoice_id",
                "customer_id",
                "stock_code",
                "quantity",
                "unit_price",
                "invoice_date",
            ]
        )
        assert dataframe_to_sales_lines(df) == []


class TestOutputTables:
    """Test conversion of pipeline outputs to DataFrames."""

    def test_sales_lines_to_dataframe(self, five_customer_lines):
        """Line amounts are exported as floats."""
        df = sales_lines_to_dataframe(five_customer_lines)
        assert len(df) == 15
        assert df.iloc[2]["amount"] == 300.0

    def test_invoices_table(self, five_customer_lines):
        """The bill table has one row per invoice."""
        result = RFMSegmentationPipeline().run(five_customer_lines)
        df = invoices_to_dataframe(result.invoices)
        assert list(df.columns) == ["invoice_id", "total"]
        assert len(df) == 14
        assert df.set_index("invoice_id").loc["I1", "total"] == 100.0

    def test_customer_metrics_table(self, five_customer_lines):
        """The rfm table carries raw and normalized metrics."""
        result = RFMSegmentationPipeline().run(five_customer_lines)
        df = customer_metrics_to_dataframe(result.normalized).set_index("customer_id")

        assert df.loc["C3", "no_of_orders"] == 3
        assert df.loc["C3", "month_cnt"] == 2
        assert df.loc["C3", "frequency"] == pytest.approx(1.5)
        assert df.loc["C5", "recency"] == 58
        assert df.loc["C1", "monetary"] == 400.0
        assert (df["missing_invoice_totals"] == 0).all()

    def test_cutpoints_table(self, five_customer_lines):
        """The quantile table has one row per metric."""
        result = RFMSegmentationPipeline().run(five_customer_lines)
        df = cutpoints_to_dataframe(result.cutpoints).set_index("metric")

        assert list(df.index) == ["recency", "frequency", "monetary"]
        assert list(df.columns) == ["p20", "p40", "p60", "p80", "p100"]
        assert df.loc["monetary", "p60"] == 300.0
        assert df.loc["recency", "p100"] == 58.0

    def test_segments_table(self, five_customer_lines):
        """The segment table is sorted by customer_id with persona labels."""
        result = RFMSegmentationPipeline().run(five_customer_lines)
        df = segments_to_dataframe(result.segments)

        assert list(df["customer_id"]) == ["C1", "C2", "C3", "C4", "C5"]
        assert df.iloc[0]["segment"] == "Champions"
        assert df.iloc[4]["segment"] == "Can't Lose Them"
        assert df.iloc[0]["fm_score"] == 4

    def test_empty_segments_table(self):
        """No customers gives an empty table with the output columns."""
        df = segments_to_dataframe([])
        assert df.empty
        assert list(df.columns)[-1] == "segment"

    def test_checkpoints(self, five_customer_lines):
        """Every intermediate table is available as a checkpoint."""
        result = RFMSegmentationPipeline().run(five_customer_lines)
        tables = result_to_checkpoints(result)
        assert set(tables) == {"bill", "rfm", "quantile", "score", "segment"}
        assert len(tables["score"]) == 5

    def test_checkpoints_for_empty_ledger(self):
        """An empty run has no quantile checkpoint."""
        tables = result_to_checkpoints(RFMSegmentationPipeline().run([]))
        assert "quantile" not in tables
        assert tables["bill"].empty


class TestRunRFMPipelineDF:
    """Test the one-call DataFrame entry point."""

    def test_segments_from_dataframe(self, five_customer_records):
        """Sales DataFrame in, segments DataFrame out."""
        df = run_rfm_pipeline_df(pd.DataFrame(five_customer_records))
        segments = dict(zip(df["customer_id"], df["segment"]))
        assert segments["C1"] == "Champions"
        assert segments["C4"] == "Customers Needing Attention"
