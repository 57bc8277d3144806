"""
Tests for the running and windowed distributions and measured rates.
"""

import pytest

from clientlb.loadbalancer.stats import DataDistribution, Distribution, MeasuredRate


class TestDistribution:
    """Test running statistics."""

    def test_empty(self):
        """An empty distribution should report zeros."""
        distribution = Distribution()

        assert distribution.num_values == 0
        assert distribution.mean == 0.0
        assert distribution.variance == 0.0
        assert distribution.stddev == 0.0

    def test_values(self):
        """Mean, variance and extremes should match the noted values."""
        distribution = Distribution()
        for value in (2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0):
            distribution.note_value(value)

        assert distribution.num_values == 8
        assert distribution.mean == pytest.approx(5.0)
        assert distribution.variance == pytest.approx(4.0)
        assert distribution.stddev == pytest.approx(2.0)
        assert distribution.minimum == 2.0
        assert distribution.maximum == 9.0

    def test_clear(self):
        """Clearing should forget every value."""
        distribution = Distribution()
        distribution.note_value(3.0)
        distribution.clear()

        assert distribution.num_values == 0
        assert distribution.maximum == 0.0


class TestDataDistribution:
    """Test the windowed distribution."""

    def test_rejects_empty_buffer(self):
        """A buffer size below one should be rejected."""
        with pytest.raises(ValueError):
            DataDistribution(buffer_size=0)

    def test_window_keeps_recent_values(self):
        """Only the most recent buffer_size values should count."""
        distribution = DataDistribution(buffer_size=3)
        for value in (100.0, 1.0, 2.0, 3.0):
            distribution.note_value(value)

        sample = distribution.get_sample()

        assert sample.count == 3
        assert sample.maximum == 3.0
        assert sample.mean == pytest.approx(2.0)

    def test_percentile_interpolates(self):
        """Percentiles should interpolate between neighbouring values."""
        distribution = DataDistribution()
        for value in (10.0, 20.0, 30.0, 40.0):
            distribution.note_value(value)

        assert distribution.get_percentile(50) == pytest.approx(25.0)
        assert distribution.get_percentile(100) == pytest.approx(40.0)
        assert distribution.get_percentile(0) == pytest.approx(10.0)

    def test_empty_sample(self):
        """An empty window should report zero percentiles."""
        sample = DataDistribution().get_sample()

        assert sample.count == 0
        assert all(value == 0.0 for value in sample.percentiles.values())


class TestMeasuredRate:
    """Test interval counters."""

    def test_current_and_last_interval(self):
        """Counts should move to the last bucket when the interval ends."""
        rate = MeasuredRate(10)
        start = rate._threshold - 10

        rate.increment(current_time=start + 1)
        rate.increment(current_time=start + 2)

        assert rate.get_current_count(current_time=start + 3) == 2
        assert rate.get_count(current_time=start + 3) == 0

        assert rate.get_count(current_time=start + 11) == 2
        assert rate.get_current_count(current_time=start + 11) == 0

    def test_idle_interval_reports_zero(self):
        """After more than a whole idle interval the last count is zero."""
        rate = MeasuredRate(10)
        start = rate._threshold - 10

        rate.increment(current_time=start + 1)

        assert rate.get_count(current_time=start + 25) == 0
