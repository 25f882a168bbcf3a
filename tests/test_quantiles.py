"""Tests for approximate quantiles and cut-point value objects."""

import random
from decimal import Decimal

import pytest

from retail_rfm.foundation.errors import UndefinedScoreError
from retail_rfm.foundation.quantiles import (
    MetricCutpoints,
    QuantileCutpoints,
    approx_quantiles,
    is_missing,
)


class TestApproxQuantiles:
    """Test approx_quantiles nearest-rank behaviour."""

    def test_returns_buckets_plus_one_cutpoints(self):
        """100 buckets give 101 cut-points, indices 0-100."""
        cuts = approx_quantiles(range(1000))
        assert len(cuts) == 101

    def test_endpoints_are_min_and_max(self):
        """Index 0 is the minimum and the last index the maximum."""
        values = [7, 3, 9, 1, 5]
        cuts = approx_quantiles(values)
        assert cuts[0] == 1
        assert cuts[100] == 9

    def test_nearest_rank_on_ten_values(self):
        """Quintile cut-points of 1..10 are 2, 4, 6, 8, 10."""
        cuts = approx_quantiles(range(1, 11))
        assert [cuts[k] for k in (20, 40, 60, 80, 100)] == [2, 4, 6, 8, 10]

    def test_non_decreasing(self):
        """Cut-points never decrease."""
        rng = random.Random(7)
        values = [rng.uniform(0, 500) for _ in range(257)]
        cuts = approx_quantiles(values)
        assert all(a <= b for a, b in zip(cuts, cuts[1:]))

    def test_independent_of_input_order(self):
        """Shuffling the population does not change the cut-points."""
        rng = random.Random(3)
        values = [rng.randint(0, 50) for _ in range(120)]
        shuffled = list(values)
        rng.shuffle(shuffled)
        assert approx_quantiles(values) == approx_quantiles(shuffled)

    def test_decimal_values_preserved(self):
        """Decimal inputs come back as the same Decimal objects."""
        values = [Decimal("10.50"), Decimal("2.25"), Decimal("7.00")]
        cuts = approx_quantiles(values)
        assert cuts[100] == Decimal("10.50")
        assert isinstance(cuts[50], Decimal)

    def test_missing_values_ignored(self):
        """None and NaN do not take part in the ranking."""
        cuts = approx_quantiles([None, 4, float("nan"), 2, Decimal("NaN")])
        assert cuts[0] == 2
        assert cuts[100] == 4

    def test_empty_population_raises(self):
        """No values, no quantiles."""
        with pytest.raises(UndefinedScoreError):
            approx_quantiles([None])

    def test_non_positive_buckets_raise(self):
        """Bucket count must be positive."""
        with pytest.raises(ValueError, match="buckets must be positive"):
            approx_quantiles([1, 2, 3], buckets=0)


class TestMetricCutpoints:
    """Test MetricCutpoints validation and construction."""

    def test_decreasing_bounds_raise(self):
        """Bounds must be non-decreasing."""
        with pytest.raises(ValueError, match="non-decreasing"):
            MetricCutpoints("monetary", 1, 2, 5, 4, 6)

    def test_missing_bound_raises(self):
        """Bounds cannot contain missing values."""
        with pytest.raises(ValueError, match="missing"):
            MetricCutpoints("frequency", 1.0, float("nan"), 2.0, 3.0, 4.0)

    def test_from_values_picks_quintiles(self):
        """from_values takes offsets 20/40/60/80/100."""
        cut = MetricCutpoints.from_values("recency", range(1, 11))
        assert cut.bounds == (2, 4, 6, 8, 10)
        assert cut.metric == "recency"

    def test_p100_equals_population_max(self):
        """The last bound is the population maximum."""
        rng = random.Random(11)
        values = [rng.randint(1, 365) for _ in range(333)]
        assert MetricCutpoints.from_values("recency", values).p100 == max(values)

    def test_from_values_with_other_bucket_counts(self):
        """Any multiple of five works as bucket count."""
        cut = MetricCutpoints.from_values("recency", range(1, 11), buckets=10)
        assert cut.bounds == (2, 4, 6, 8, 10)

    def test_bucket_count_must_be_multiple_of_five(self):
        """Quintile offsets need a bucket count divisible by five."""
        with pytest.raises(ValueError, match="multiple of 5"):
            MetricCutpoints.from_values("recency", range(10), buckets=12)

    def test_all_missing_names_metric(self):
        """A metric without any value reports which metric failed."""
        with pytest.raises(UndefinedScoreError, match="No monetary values"):
            MetricCutpoints.from_values("monetary", [None, None])


class TestQuantileCutpoints:
    """Test QuantileCutpoints container."""

    def test_as_dict(self):
        """as_dict keys metrics and percentiles."""
        cuts = QuantileCutpoints(
            recency=MetricCutpoints("recency", 1, 2, 3, 4, 5),
            frequency=MetricCutpoints("frequency", 1.0, 1.0, 1.5, 2.0, 3.0),
            monetary=MetricCutpoints("monetary", 10, 20, 30, 40, 50),
            population_size=5,
        )
        payload = cuts.as_dict()
        assert payload["recency"]["p20"] == 1
        assert payload["monetary"]["p100"] == 50
        assert list(payload) == ["recency", "frequency", "monetary"]

    def test_is_missing(self):
        """is_missing recognises None and both NaN flavours only."""
        assert is_missing(None)
        assert is_missing(float("nan"))
        assert is_missing(Decimal("NaN"))
        assert not is_missing(0)
        assert not is_missing(Decimal("0"))
