"""Customer personas assigned from recency and combined frequency/monetary scores.

The eleven personas follow the UK Data & Marketing Association RFM
segments. Each persona lists the (r_score, fm_score) cells it owns; the
lookup table built from those lists is checked to cover the 5x5 grid
exactly once when this module is imported.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import product
from typing import Iterable, Mapping, Sequence

from retail_rfm.foundation.errors import IncompleteRuleTableError
from retail_rfm.foundation.scoring import MAX_SCORE, MIN_SCORE, ScoredCustomer


class Segment(str, Enum):
    """Marketing persona labels."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"
    RECENT_CUSTOMERS = "Recent Customers"
    PROMISING = "Promising"
    NEEDING_ATTENTION = "Customers Needing Attention"
    ABOUT_TO_SLEEP = "About to Sleep"
    AT_RISK = "At Risk"
    CANT_LOSE_THEM = "Can't Lose Them"
    HIBERNATING = "Hibernating"
    LOST = "Lost"


# (r_score, fm_score) cells owned by each persona
SEGMENT_RULES: dict[Segment, tuple[tuple[int, int], ...]] = {
    Segment.CHAMPIONS: ((5, 5), (5, 4), (4, 5)),
    Segment.LOYAL_CUSTOMERS: ((5, 3), (4, 4), (3, 5), (3, 4)),
    Segment.POTENTIAL_LOYALISTS: ((5, 2), (4, 2), (3, 3), (4, 3)),
    Segment.RECENT_CUSTOMERS: ((5, 1),),
    Segment.PROMISING: ((4, 1), (3, 1)),
    Segment.NEEDING_ATTENTION: ((3, 2), (2, 3), (2, 2)),
    Segment.ABOUT_TO_SLEEP: ((2, 1),),
    Segment.AT_RISK: ((2, 5), (2, 4), (1, 3)),
    Segment.CANT_LOSE_THEM: ((1, 5), (1, 4)),
    Segment.HIBERNATING: ((1, 2),),
    Segment.LOST: ((1, 1),),
}


def build_segment_table(
    rules: Mapping[Segment, Iterable[tuple[int, int]]],
) -> dict[tuple[int, int], Segment]:
    """Turn persona rules into an (r_score, fm_score) -> Segment lookup.

    Raises
    ------
    IncompleteRuleTableError
        If a cell lies outside the 1..5 grid, is claimed by two personas,
        or is not claimed at all.
    """
    table: dict[tuple[int, int], Segment] = {}
    for segment, cells in rules.items():
        for cell in cells:
            r_score, fm_score = cell
            if not (
                MIN_SCORE <= r_score <= MAX_SCORE and MIN_SCORE <= fm_score <= MAX_SCORE
            ):
                raise IncompleteRuleTableError(
                    f"Rule for {segment.value} references out-of-range cell {cell}"
                )
            if cell in table:
                raise IncompleteRuleTableError(
                    f"Cell {cell} is mapped to both {table[cell].value} and {segment.value}"
                )
            table[cell] = segment

    score_range = range(MIN_SCORE, MAX_SCORE + 1)
    missing = [cell for cell in product(score_range, score_range) if cell not in table]
    if missing:
        raise IncompleteRuleTableError(f"Rule table does not cover cells: {missing}")
    return table


SEGMENT_TABLE = build_segment_table(SEGMENT_RULES)


def segment_for(r_score: int, fm_score: int) -> Segment:
    """Look up the persona for a score pair.

    >>> segment_for(5, 4).value
    'Champions'
    >>> segment_for(1, 1).value
    'Lost'
    """
    try:
        return SEGMENT_TABLE[(r_score, fm_score)]
    except KeyError:
        raise ValueError(
            f"Scores out of range: r_score={r_score}, fm_score={fm_score}"
        ) from None


@dataclass(frozen=True)
class SegmentedCustomer:
    """A scored customer together with its persona."""

    score: ScoredCustomer
    segment: Segment

    @property
    def customer_id(self) -> str:
        return self.score.customer_id


def assign_segments(scored: Sequence[ScoredCustomer]) -> list[SegmentedCustomer]:
    """Attach a persona to every scored customer, preserving order."""
    return [
        SegmentedCustomer(score=s, segment=segment_for(s.r_score, s.fm_score))
        for s in scored
    ]
