"""Rebuy window policy tests."""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from championship.models.tournament import TournamentStatus
from championship.tournament.rebuy_policy import are_rebuys_open, rebuys_open_for

from tests.factories import T0, level

IN_PROGRESS = TournamentStatus.IN_PROGRESS.value


class TestAreRebuysOpen:
    @pytest.mark.parametrize(
        "status",
        [
            TournamentStatus.PLANNED.value,
            TournamentStatus.REGISTRATION.value,
            TournamentStatus.FINISHED.value,
            TournamentStatus.CANCELLED.value,
        ],
    )
    def test_closed_unless_in_progress(self, status):
        assert are_rebuys_open(status, 1, None, False) is False

    def test_unlimited_when_no_end_level(self):
        assert are_rebuys_open(IN_PROGRESS, 40, None, False) is True

    def test_open_through_end_level(self):
        assert are_rebuys_open(IN_PROGRESS, 4, 4, False) is True
        assert are_rebuys_open(IN_PROGRESS, 5, 4, False) is False

    def test_break_right_after_end_level_stays_open(self):
        assert are_rebuys_open(IN_PROGRESS, 5, 4, True) is True

    def test_later_break_is_closed(self):
        assert are_rebuys_open(IN_PROGRESS, 6, 4, True) is False

    def test_accepts_enum_status(self):
        assert are_rebuys_open(TournamentStatus.IN_PROGRESS, 1, 2, False) is True


class TestRebuysOpenFor:
    def _tournament(self, **overrides):
        fields = {
            "status": IN_PROGRESS,
            "timer_started_at": T0,
            "timer_paused_at": None,
            "timer_elapsed_seconds": 0,
            "rebuy_end_level": 2,
        }
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_uses_clock_derived_level(self):
        levels = [level(1, 10), level(2, 10), level(3, 10), level(4, 10)]
        tournament = self._tournament()
        assert rebuys_open_for(tournament, levels, now=T0 + timedelta(minutes=15)) is True
        assert rebuys_open_for(tournament, levels, now=T0 + timedelta(minutes=25)) is False

    def test_break_after_end_level(self):
        levels = [level(1, 10), level(2, 10), level(3, 10, is_break=True), level(4, 10)]
        tournament = self._tournament()
        assert rebuys_open_for(tournament, levels, now=T0 + timedelta(minutes=25)) is True
        assert rebuys_open_for(tournament, levels, now=T0 + timedelta(minutes=35)) is False
