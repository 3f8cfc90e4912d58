"""Blind-level clock tests."""

from datetime import timedelta

import pytest
from hypothesis import given, strategies as st

from championship.tournament.clock import (
    current_blind,
    derive_level,
    seconds_remaining,
    total_elapsed,
)
from championship.utils.errors import ErrorCode, ValidationError

from tests.factories import T0, level

STRUCTURE = [level(1, 20), level(2, 20), level(3, 20)]


class TestDeriveLevel:
    def test_idle_clock_is_level_one(self):
        pos = derive_level(None, None, 0, STRUCTURE, now=T0)
        assert (pos.level, pos.seconds_into_level, pos.total_elapsed_seconds) == (1, 0, 0)

    def test_running_clock_adds_running_portion(self):
        pos = derive_level(T0, None, 0, STRUCTURE, now=T0 + timedelta(minutes=25))
        assert pos.level == 2
        assert pos.seconds_into_level == 300
        assert pos.total_elapsed_seconds == 1500

    def test_running_portion_added_to_frozen_elapsed(self):
        pos = derive_level(T0, None, 1000, STRUCTURE, now=T0 + timedelta(seconds=500))
        assert pos.total_elapsed_seconds == 1500
        assert pos.level == 2

    def test_paused_clock_ignores_wall_time(self):
        pos = derive_level(
            T0,
            T0 + timedelta(minutes=5),
            600,
            STRUCTURE,
            now=T0 + timedelta(hours=3),
        )
        assert pos.level == 1
        assert pos.seconds_into_level == 600

    def test_exact_boundary_moves_to_next_level(self):
        pos = derive_level(None, T0, 1200, STRUCTURE, now=T0)
        assert pos.level == 2
        assert pos.seconds_into_level == 0

    def test_clamps_to_last_level(self):
        pos = derive_level(None, T0, 10_000, STRUCTURE, now=T0)
        assert pos.level == 3
        assert pos.seconds_into_level == 1200
        assert pos.total_elapsed_seconds == 10_000

    def test_no_levels(self):
        pos = derive_level(T0, None, 30, [], now=T0 + timedelta(seconds=45))
        assert pos.level == 1
        assert pos.seconds_into_level == 75

    def test_levels_given_out_of_order(self):
        shuffled = [level(3, 20), level(1, 10), level(2, 15)]
        pos = derive_level(None, T0, 11 * 60, shuffled, now=T0)
        assert pos.level == 2
        assert pos.seconds_into_level == 60

    def test_sub_second_running_time_is_floored(self):
        pos = derive_level(T0, None, 0, STRUCTURE, now=T0 + timedelta(milliseconds=1999))
        assert pos.total_elapsed_seconds == 1

    def test_naive_timestamps_are_utc(self):
        naive_start = T0.replace(tzinfo=None)
        pos = derive_level(naive_start, None, 0, STRUCTURE, now=T0 + timedelta(seconds=90))
        assert pos.total_elapsed_seconds == 90

    @pytest.mark.parametrize("duration", [0, -5])
    def test_rejects_non_positive_duration(self, duration):
        with pytest.raises(ValidationError) as exc_info:
            derive_level(None, None, 0, [level(1, 20), level(2, duration)], now=T0)
        assert exc_info.value.code == ErrorCode.INVALID_BLIND_STRUCTURE.value


class TestHelpers:
    def test_total_elapsed_idle(self):
        assert total_elapsed(None, None, 42, now=T0) == 42

    def test_clock_behind_start_counts_zero(self):
        assert total_elapsed(T0, None, 10, now=T0 - timedelta(seconds=30)) == 10

    def test_current_blind(self):
        assert current_blind(STRUCTURE, 2) is STRUCTURE[1]
        assert current_blind(STRUCTURE, 9) is None

    def test_seconds_remaining(self):
        pos = derive_level(None, T0, 25 * 60, STRUCTURE, now=T0)
        assert seconds_remaining(STRUCTURE, pos) == 15 * 60


# =============================================================================
# Property Tests
# =============================================================================

durations = st.lists(st.integers(min_value=1, max_value=60), min_size=1, max_size=12)


class TestDeriveLevelProperties:
    @given(durations=durations, elapsed=st.integers(min_value=0, max_value=100_000))
    def test_never_beyond_last_level(self, durations, elapsed):
        levels = [level(i + 1, d) for i, d in enumerate(durations)]
        pos = derive_level(None, T0, elapsed, levels, now=T0)
        assert 1 <= pos.level <= len(levels)
        assert 0 <= pos.seconds_into_level <= durations[pos.level - 1] * 60

    @given(
        durations=durations,
        a=st.integers(min_value=0, max_value=50_000),
        b=st.integers(min_value=0, max_value=50_000),
    )
    def test_level_is_monotonic_in_elapsed(self, durations, a, b):
        levels = [level(i + 1, d) for i, d in enumerate(durations)]
        low, high = sorted((a, b))
        assert (
            derive_level(None, T0, low, levels, now=T0).level
            <= derive_level(None, T0, high, levels, now=T0).level
        )

    @given(durations=durations, elapsed=st.integers(min_value=0, max_value=100_000))
    def test_offset_reconstructs_elapsed_before_clamp(self, durations, elapsed):
        levels = [level(i + 1, d) for i, d in enumerate(durations)]
        pos = derive_level(None, T0, elapsed, levels, now=T0)
        before = sum(d * 60 for d in durations[: pos.level - 1])
        if elapsed < sum(d * 60 for d in durations):
            assert before + pos.seconds_into_level == elapsed
