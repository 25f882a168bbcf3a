"""Approximate quantiles and the population-wide quintile cut-points.

Cut-points are computed once over the whole customer population and
passed around as immutable value objects; nothing here keeps state
between runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

import numpy as np
import pandas as pd

from retail_rfm.foundation.errors import UndefinedScoreError

DEFAULT_QUANTILE_BUCKETS = 100

# Percentile offsets of the five quintile upper bounds
QUINTILE_PERCENTILES = (20, 40, 60, 80, 100)


def is_missing(value: Any) -> bool:
    """True for None, float NaN and Decimal NaN."""
    if value is None:
        return True
    if isinstance(value, Decimal):
        return value.is_nan()
    if isinstance(value, float):
        return value != value
    return False


def approx_quantiles(values: Iterable[Any], buckets: int = DEFAULT_QUANTILE_BUCKETS) -> list:
    """Return ``buckets + 1`` cut-points over ``values``.

    Uses nearest rank on the sorted population: cut-point ``k`` is the
    element at rank ``ceil(k * n / buckets)`` (1-based, rank 0 clamps to
    the minimum). Index 0 is therefore the minimum and index ``buckets``
    the maximum, and the result depends only on the multiset of values.
    Missing values are ignored.

    Examples
    --------
    >>> cuts = approx_quantiles(range(1, 11), buckets=100)
    >>> cuts[0], cuts[20], cuts[50], cuts[100]
    (1, 2, 5, 10)
    """
    if buckets <= 0:
        raise ValueError(f"buckets must be positive: {buckets}")

    present = [value for value in values if not is_missing(value)]
    if not present:
        raise UndefinedScoreError("Cannot compute quantiles of an empty population")

    # mergesort keeps the ordering of equal values stable across runs
    ordered = pd.Series(present, dtype=object).sort_values(
        kind="mergesort", ignore_index=True
    )
    n = len(ordered)
    offsets = np.arange(buckets + 1, dtype=np.int64)
    ranks = (offsets * n + buckets - 1) // buckets
    positions = np.maximum(ranks - 1, 0)
    return [ordered.iloc[int(position)] for position in positions]


@dataclass(frozen=True)
class MetricCutpoints:
    """Quintile upper bounds (20th..100th percentile) for one metric.

    Attributes
    ----------
    metric:
        Metric name ("recency", "frequency" or "monetary")
    p20, p40, p60, p80, p100:
        Upper bound of each band; p100 is the population maximum
    """

    metric: str
    p20: Any
    p40: Any
    p60: Any
    p80: Any
    p100: Any

    def __post_init__(self) -> None:
        """Validate cut-points are non-decreasing."""
        bounds = self.bounds
        if any(is_missing(bound) for bound in bounds):
            raise ValueError(f"Cut-points for {self.metric} contain missing values")
        for lower, upper in zip(bounds, bounds[1:]):
            if lower > upper:
                raise ValueError(
                    f"Cut-points for {self.metric} must be non-decreasing: {bounds}"
                )

    @property
    def bounds(self) -> tuple:
        return (self.p20, self.p40, self.p60, self.p80, self.p100)

    @classmethod
    def from_values(
        cls,
        metric: str,
        values: Iterable[Any],
        buckets: int = DEFAULT_QUANTILE_BUCKETS,
    ) -> "MetricCutpoints":
        """Compute quintile bounds for ``metric`` from a population of values."""
        if buckets % 5:
            raise ValueError(f"buckets must be a multiple of 5: {buckets}")
        try:
            cuts = approx_quantiles(values, buckets)
        except UndefinedScoreError as exc:
            raise UndefinedScoreError(
                f"No {metric} values available for quantile computation"
            ) from exc
        step = buckets // 5
        return cls(
            metric,
            *(cuts[step * (i + 1)] for i in range(len(QUINTILE_PERCENTILES))),
        )


@dataclass(frozen=True)
class QuantileCutpoints:
    """Population-wide cut-points for recency, frequency and monetary."""

    recency: MetricCutpoints
    frequency: MetricCutpoints
    monetary: MetricCutpoints
    population_size: int

    def as_dict(self) -> dict[str, dict[str, object]]:
        """Return a JSON-friendly mapping of metric -> {"p20": ..., ...}."""
        payload: dict[str, dict[str, object]] = {}
        for cut in (self.recency, self.frequency, self.monetary):
            payload[cut.metric] = {
                f"p{percentile}": bound
                for percentile, bound in zip(QUINTILE_PERCENTILES, cut.bounds)
            }
        return payload
