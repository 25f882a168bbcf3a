"""Quintile scoring of recency, frequency and monetary values.

Bands are closed on the upper side: a value equal to a cut-point belongs
to the lower band, i.e. (-inf, p20], (p20, p40], (p40, p60], (p60, p80],
(p80, p100]. Frequency and monetary score 1..5 in band order; recency is
inverted so the most recent customers score 5.
"""

from __future__ import annotations

import multiprocessing
import os
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Sequence

from retail_rfm.foundation.errors import UndefinedScoreError
from retail_rfm.foundation.normalization import NormalizedMetrics
from retail_rfm.foundation.quantiles import MetricCutpoints, QuantileCutpoints, is_missing

MIN_SCORE = 1
MAX_SCORE = 5


def band_index(
    value: Any,
    cutpoints: MetricCutpoints,
    customer_id: str | None = None,
) -> int:
    """Return the 1-based quintile band containing ``value``.

    Raises
    ------
    UndefinedScoreError
        If ``value`` is missing or above the 100th-percentile cut-point.

    Examples
    --------
    >>> cuts = MetricCutpoints("monetary", 10, 20, 30, 40, 50)
    >>> band_index(30, cuts), band_index(30.5, cuts), band_index(1, cuts)
    (3, 4, 1)
    """
    if not is_missing(value):
        for index, upper in enumerate(cutpoints.bounds, start=1):
            if value <= upper:
                return index
    raise UndefinedScoreError(
        f"Undefined {cutpoints.metric} score for value {value!r} "
        f"(bands end at {cutpoints.p100!r})",
        entity_id=customer_id,
    )


def ascending_score(
    value: Any, cutpoints: MetricCutpoints, customer_id: str | None = None
) -> int:
    """Higher value, higher score (frequency, monetary)."""
    return band_index(value, cutpoints, customer_id)


def descending_score(
    value: Any, cutpoints: MetricCutpoints, customer_id: str | None = None
) -> int:
    """Lower value, higher score (recency)."""
    return MAX_SCORE + MIN_SCORE - band_index(value, cutpoints, customer_id)


def combine_fm_score(f_score: int, m_score: int) -> int:
    """Average of frequency and monetary scores, rounded half up.

    >>> combine_fm_score(3, 4), combine_fm_score(2, 3), combine_fm_score(1, 1)
    (4, 3, 1)
    """
    average = Decimal(f_score + m_score) / 2
    return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ScoredCustomer:
    """RFM scores (1-5 quintiles) and the underlying metrics for one customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    r_score:
        Recency score (5 = most recent)
    f_score:
        Frequency score (5 = most frequent)
    m_score:
        Monetary score (5 = highest spend)
    fm_score:
        Combined frequency/monetary score, ``round_half_up((f + m) / 2)``
    recency:
        Days since last purchase, relative to the reference date
    frequency:
        Orders per active month
    monetary:
        Sum of invoice totals
    """

    customer_id: str
    r_score: int
    f_score: int
    m_score: int
    fm_score: int
    recency: int
    frequency: float
    monetary: Decimal

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
            ("fm_score", self.fm_score),
        ]:
            if not MIN_SCORE <= score_value <= MAX_SCORE:
                raise ValueError(
                    f"{score_name} must be between {MIN_SCORE} and {MAX_SCORE}: "
                    f"{score_value} (customer_id={self.customer_id})"
                )
        expected_fm = combine_fm_score(self.f_score, self.m_score)
        if self.fm_score != expected_fm:
            raise ValueError(
                f"fm_score ({self.fm_score}) does not match f/m scores ({expected_fm}) "
                f"(customer_id={self.customer_id})"
            )


def score_customer(
    metrics: NormalizedMetrics, cutpoints: QuantileCutpoints
) -> ScoredCustomer:
    """Score a single customer against population cut-points."""
    customer_id = metrics.customer_id
    r_score = descending_score(metrics.recency, cutpoints.recency, customer_id)
    f_score = ascending_score(metrics.frequency, cutpoints.frequency, customer_id)
    m_score = ascending_score(metrics.monetary, cutpoints.monetary, customer_id)
    return ScoredCustomer(
        customer_id=customer_id,
        r_score=r_score,
        f_score=f_score,
        m_score=m_score,
        fm_score=combine_fm_score(f_score, m_score),
        recency=metrics.recency,
        frequency=metrics.frequency,
        monetary=metrics.monetary,
    )


def _score_chunk(
    chunk: Sequence[NormalizedMetrics], cutpoints: QuantileCutpoints
) -> list[ScoredCustomer]:
    """Score a subset of customers; runs inside multiprocessing workers."""
    return [score_customer(metrics, cutpoints) for metrics in chunk]


def score_customers(
    normalized: Sequence[NormalizedMetrics],
    cutpoints: QuantileCutpoints,
    parallel: bool = True,
    parallel_threshold: int = 10_000_000,
    n_workers: Optional[int] = None,
) -> list[ScoredCustomer]:
    """Score every customer against the shared cut-points.

    Each customer is scored independently, so for populations of at least
    ``parallel_threshold`` customers the work is split into chunks and
    scored with a multiprocessing pool. The result does not depend on the
    chunking.

    Parameters
    ----------
    normalized:
        Normalized metrics for the full population
    cutpoints:
        Cut-points computed over that same population
    parallel:
        Enable parallel scoring above ``parallel_threshold``
    parallel_threshold:
        Customer count from which parallel scoring is used
    n_workers:
        Worker processes (default: CPU count)

    Returns
    -------
    list[ScoredCustomer]
        One score per customer, sorted by customer_id
    """
    if not normalized:
        return []

    num_customers = len(normalized)
    use_parallel = parallel and num_customers >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        chunk_size = max(1, num_customers // workers)
        chunks = [
            (list(normalized[i : i + chunk_size]), cutpoints)
            for i in range(0, num_customers, chunk_size)
        ]
        with multiprocessing.Pool(processes=workers) as pool:
            chunk_results = pool.starmap(_score_chunk, chunks)

        scored: list[ScoredCustomer] = []
        for chunk_result in chunk_results:
            scored.extend(chunk_result)
    else:
        scored = _score_chunk(normalized, cutpoints)

    scored.sort(key=lambda s: s.customer_id)
    return scored
