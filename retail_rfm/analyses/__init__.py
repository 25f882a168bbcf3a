"""Reporting analyses built on top of a segmentation run."""

from .segment_summary import (
    SegmentSummary,
    render_segment_summary_markdown,
    summarize_segments,
)

__all__ = [
    "SegmentSummary",
    "render_segment_summary_markdown",
    "summarize_segments",
]
