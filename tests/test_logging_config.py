"""Logging helpers tests."""

import structlog

from championship.logging_config import enum_values, log_context
from championship.tournament.models import TournamentEventType
from championship.utils.errors import ErrorCode


def test_enum_values_are_flattened():
    event_dict = {
        "event": "bust_recorded",
        "event_type": TournamentEventType.BUST_RECORDED,
        "error_code": ErrorCode.REBUYS_CLOSED,
        "level": 3,
    }
    result = enum_values(None, "info", event_dict)
    assert result["event_type"] == "bust:player_busted"
    assert result["error_code"] == "REBUYS_CLOSED"
    assert result["level"] == 3


def test_log_context_is_scoped():
    structlog.contextvars.clear_contextvars()
    with log_context(request_id="req-1", tournament_id="t-1"):
        assert structlog.contextvars.get_contextvars() == {
            "request_id": "req-1",
            "tournament_id": "t-1",
        }
    assert structlog.contextvars.get_contextvars() == {}
