"""Tournament event bus tests."""

import asyncio
import json

import pytest

from championship.tournament.event_bus import TournamentEventBus
from championship.tournament.models import TournamentEvent, TournamentEventType


class TestLocalDispatch:
    @pytest.mark.asyncio
    async def test_handler_receives_matching_events(self):
        bus = TournamentEventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe({TournamentEventType.TIMER_STARTED}, handler)
        await bus.emit("t-1", TournamentEventType.TIMER_STARTED, {"currentLevel": 1})
        await bus.emit("t-1", TournamentEventType.TIMER_PAUSED, {})
        await bus.drain()

        assert len(received) == 1
        assert received[0].tournament_id == "t-1"
        assert received[0].data == {"currentLevel": 1}

    @pytest.mark.asyncio
    async def test_tournament_filter(self):
        bus = TournamentEventBus()
        received = []

        async def handler(event):
            received.append(event.tournament_id)

        bus.subscribe({TournamentEventType.BUST_RECORDED}, handler, tournament_id="t-2")
        await bus.emit("t-1", TournamentEventType.BUST_RECORDED)
        await bus.emit("t-2", TournamentEventType.BUST_RECORDED)
        await bus.drain()

        assert received == ["t-2"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = TournamentEventBus()
        received = []

        async def handler(event):
            received.append(event)

        sub_id = bus.subscribe({TournamentEventType.TIMER_RESET}, handler)
        assert bus.unsubscribe(sub_id) is True
        assert bus.unsubscribe(sub_id) is False

        await bus.emit("t-1", TournamentEventType.TIMER_RESET)
        await bus.drain()
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self):
        bus = TournamentEventBus()
        received = []

        async def broken(event):
            raise RuntimeError("observer crashed")

        async def healthy(event):
            received.append(event)

        bus.subscribe({TournamentEventType.ELIMINATION_RECORDED}, broken)
        bus.subscribe({TournamentEventType.ELIMINATION_RECORDED}, healthy)

        await bus.emit("t-1", TournamentEventType.ELIMINATION_RECORDED, {"rank": 5})
        await bus.drain()

        assert len(received) == 1
        metrics = bus.get_metrics()
        assert metrics.events_failed == 1
        assert metrics.events_processed == 1
        assert metrics.events_published == 1

    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_emit(self):
        bus = TournamentEventBus()
        release = asyncio.Event()
        received = []

        async def slow(event):
            await release.wait()
            received.append(event)

        bus.subscribe({TournamentEventType.BUST_RECORDED}, slow)
        await asyncio.wait_for(
            bus.emit("t-1", TournamentEventType.BUST_RECORDED), timeout=1
        )

        assert received == []
        assert bus.pending_handlers == 1

        release.set()
        await bus.drain()
        assert len(received) == 1
        assert bus.pending_handlers == 0

    @pytest.mark.asyncio
    async def test_inline_handler_runs_before_emit_returns(self):
        bus = TournamentEventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe({TournamentEventType.TIMER_STARTED}, handler, inline=True)
        await bus.emit("t-1", TournamentEventType.TIMER_STARTED)

        assert len(received) == 1
        assert bus.pending_handlers == 0

    @pytest.mark.asyncio
    async def test_close_cancels_pending_handlers(self):
        bus = TournamentEventBus()

        async def stuck(event):
            await asyncio.Event().wait()

        bus.subscribe({TournamentEventType.TIMER_RESET}, stuck)
        await bus.emit("t-1", TournamentEventType.TIMER_RESET)
        assert bus.pending_handlers == 1

        await asyncio.wait_for(bus.close(), timeout=1)
        await asyncio.sleep(0)
        assert bus.pending_handlers == 0

    @pytest.mark.asyncio
    async def test_emit_accepts_event_name(self):
        bus = TournamentEventBus()
        event = await bus.emit("t-1", "bust:player_busted", {"level": 2})
        assert event.event_type is TournamentEventType.BUST_RECORDED

    @pytest.mark.asyncio
    async def test_unknown_event_name_rejected(self):
        bus = TournamentEventBus()
        with pytest.raises(ValueError):
            await bus.emit("t-1", "timer:exploded", {})


class TestStreamMirror:
    @pytest.mark.asyncio
    async def test_events_appended_to_stream(self, mock_redis):
        bus = TournamentEventBus(redis_client=mock_redis)
        event = await bus.emit(
            "t-1", TournamentEventType.REBUY_APPLIED, {"playerId": "p-1", "rebuysCount": 3}
        )

        entries = mock_redis.streams[TournamentEventBus.STREAM_KEY]
        assert len(entries) == 1
        assert entries[0]["event_id"] == event.event_id
        assert entries[0]["event_type"] == "rebuy:applied"
        assert json.loads(entries[0]["data"]) == {"playerId": "p-1", "rebuysCount": 3}

    @pytest.mark.asyncio
    async def test_stream_failure_does_not_raise(self, mock_redis):
        mock_redis.fail = True
        bus = TournamentEventBus(redis_client=mock_redis)
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe({TournamentEventType.TIMER_PAUSED}, handler)
        await bus.emit("t-1", TournamentEventType.TIMER_PAUSED, {})
        await bus.drain()

        assert len(received) == 1
        assert bus.get_metrics().stream_failures == 1

    @pytest.mark.asyncio
    async def test_close_releases_client(self, mock_redis):
        bus = TournamentEventBus(redis_client=mock_redis)
        await bus.close()
        assert mock_redis.closed is True


class TestEventSerialization:
    def test_to_dict(self):
        event = TournamentEvent(
            event_type=TournamentEventType.TIMER_AUTO_RESUME,
            tournament_id="t-1",
            data={"delaySeconds": 30},
        )
        payload = event.to_dict()
        assert payload["event_type"] == "tournament:timer-auto-resume"
        assert payload["tournament_id"] == "t-1"
        assert payload["data"] == {"delaySeconds": 30}
        assert json.loads(event.to_json())["event_id"] == event.event_id
