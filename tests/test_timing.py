"""Tests for time distribution."""

import pytest

from gtfs_synthesis.transform.timing import distribute, offsets, round_half_up


def test_round_half_up() -> None:
    """Test halves round up."""
    assert round_half_up(0.5) == 1
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_distribute_proportional_with_remainder() -> None:
    """Test legs of 0.5, 0.5 and 1.0 km over 121s."""
    assert distribute([500, 500, 1000], 121) == [30, 30, 61]


def test_distribute_sums_to_duration() -> None:
    """Test the allocation always sums exactly to the duration."""
    for legs, duration in [([1, 1, 1], 100), ([300, 10, 7], 59), ([1], 42), ([5, 5], 1)]:
        result = distribute(legs, duration)
        assert sum(result) == duration
        assert all(leg >= 0 for leg in result)


def test_distribute_even_split() -> None:
    """Test zero distance splits evenly, remainder to earliest legs."""
    assert distribute([0, 0, 0], 100) == [34, 33, 33]
    assert distribute([0, 0], 0) == [0, 0]
    assert distribute([100, 200], 0) == [0, 0]


def test_distribute_negative_duration_floors() -> None:
    """Test negative durations are treated as zero."""
    assert distribute([100, 100], -30) == [0, 0]


def test_distribute_empty() -> None:
    """Test no legs."""
    assert distribute([], 60) == []


@pytest.mark.parametrize(
    ("durations", "expected"),
    [([], [0]), ([30, 30, 61], [0, 30, 60, 121])],
)
def test_offsets(durations: list[int], expected: list[int]) -> None:
    """Test cumulative offsets."""
    assert offsets(durations) == expected
