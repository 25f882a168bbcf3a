"""Command line entry points for the retail RFM segmentation toolkit."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import pandas as pd

from retail_rfm.analyses.segment_summary import (
    render_segment_summary_markdown,
    summarize_segments,
)
from retail_rfm.foundation.errors import RFMPipelineError
from retail_rfm.foundation.pipeline import RFMConfig, RFMSegmentationPipeline
from retail_rfm.foundation.quantiles import DEFAULT_QUANTILE_BUCKETS
from retail_rfm.pandas import (
    ONLINE_RETAIL_COLUMNS,
    dataframe_to_sales_lines,
    result_to_checkpoints,
    segments_to_dataframe,
)

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


def _load_sales_frame(path: Path, max_bytes: int, id_columns: list[str]) -> pd.DataFrame:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > max_bytes:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {max_bytes} bytes"
        )

    if resolved.suffix.lower() == ".json":
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError("Expected a list of sales records in the input file")
        return pd.DataFrame(payload)

    # Identifiers stay text so "17850" is not turned into 17850.0
    return pd.read_csv(path, dtype={column: str for column in id_columns})


def score_segments_cli(argv: list[str] | None = None) -> int:
    """Score customers and assign RFM segments from a sales ledger.

    This command runs the complete segmentation pipeline:
    1. Sums line amounts into invoice totals
    2. Aggregates first/last purchase, orders and monetary per customer
    3. Derives recency and frequency against one reference date
    4. Computes population quintile cut-points
    5. Scores R, F, M and combined FM, then maps them to a persona
    6. Exports one row per customer to CSV

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Compute RFM scores and segments from a sales ledger"
    )
    parser.add_argument(
        "input", type=Path, help="Path to CSV or JSON file with sales lines"
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for output CSV file with scores and segments",
    )
    parser.add_argument(
        "--checkpoint-dir",
        type=Path,
        help="Optional directory for bill/rfm/quantile/score checkpoint CSVs",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        help="Optional path for a Markdown segment summary",
    )
    parser.add_argument(
        "--online-retail-columns",
        action="store_true",
        help="Input uses UCI Online Retail headers (InvoiceNo, CustomerID, ...)",
    )
    parser.add_argument(
        "--date-format",
        type=str,
        help="strptime format of the invoice date column (default: inferred)",
    )
    parser.add_argument(
        "--quantile-buckets",
        type=int,
        default=DEFAULT_QUANTILE_BUCKETS,
        help=f"Approximate quantile buckets (default: {DEFAULT_QUANTILE_BUCKETS})",
    )
    parser.add_argument(
        "--strict-invoice-totals",
        action="store_true",
        help="Fail when a sales line's invoice has no total instead of flagging it",
    )
    parser.add_argument(
        "--max-input-bytes",
        type=int,
        default=MAX_INPUT_BYTES,
        help=f"Refuse inputs larger than this many bytes (default: {MAX_INPUT_BYTES})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    column_map = ONLINE_RETAIL_COLUMNS if args.online_retail_columns else {}
    id_columns = [
        column_map.get("invoice_id_col", "invoice_id"),
        column_map.get("customer_id_col", "customer_id"),
        column_map.get("stock_code_col", "stock_code"),
    ]

    # Load sales lines
    logger.info(f"Loading sales lines from {args.input}")
    sales_df = _load_sales_frame(args.input, args.max_input_bytes, id_columns)
    if sales_df.empty:
        logger.error("No sales lines found in input file")
        return 1

    try:
        config = RFMConfig(
            quantile_buckets=args.quantile_buckets,
            strict_invoice_totals=args.strict_invoice_totals,
        )
        lines = dataframe_to_sales_lines(
            sales_df, date_format=args.date_format, **column_map
        )
        result = RFMSegmentationPipeline(config).run(lines)
    except RFMPipelineError as exc:
        logger.error(
            f"Segmentation aborted: stage={exc.stage or 'load'}, "
            f"entity={exc.entity_id}: {exc.message}"
        )
        return 1
    except ValueError as exc:
        # Invalid configuration or missing input columns
        logger.error(f"Segmentation aborted: {exc}")
        return 1

    # Export segments
    output_path = args.output
    output_path.parent.mkdir(parents=True, exist_ok=True)
    segments_to_dataframe(result.segments).to_csv(output_path, index=False)
    logger.info(f"Segments for {len(result.segments)} customers exported to {output_path}")

    if args.checkpoint_dir:
        args.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        for name, table in result_to_checkpoints(result).items():
            if name == "segment":
                continue
            table.to_csv(args.checkpoint_dir / f"{name}.csv", index=False)
        logger.info(f"Checkpoint tables written to {args.checkpoint_dir}")

    if args.summary:
        args.summary.parent.mkdir(parents=True, exist_ok=True)
        report_lines = [
            "# RFM Segment Summary\n",
            f"**Reference date:** {result.reference_date}",
            f"**Customers:** {len(result.segments)}",
            f"**Customers flagged for missing invoice totals:** "
            f"{len(result.flagged_customers)}\n",
            render_segment_summary_markdown(summarize_segments(result.segments)),
        ]
        with args.summary.open("w", encoding="utf-8") as fh:
            fh.write("\n".join(report_lines) + "\n")
        logger.info(f"Segment summary exported to {args.summary}")

    return 0


def main() -> None:
    raise SystemExit(score_segments_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
