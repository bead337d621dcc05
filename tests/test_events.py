"""Tests for event extraction."""
import pytest

from autoedit.pipeline.events import Event, EventExtractor, extract_events, numericize
from autoedit.pipeline.log_reader import read_state_updates
from autoedit.pipeline.state import (
    ReconstructionError,
    StateGroup,
    find_field,
    is_valid_session,
    session_reconstructor,
)

from conftest import BASE_TIME_MS, delta, keyframe, to_log


def events_for(records):
    return list(extract_events(read_state_updates(to_log(records))))


def seconds(value: float) -> float:
    return (BASE_TIME_MS + int(value * 1000)) / 1000


class TestNumericize:

    def test_flags(self):
        assert numericize(True) == 1
        assert numericize(False) == 0

    def test_integers(self):
        assert numericize(7) == 7

    def test_event_delta(self):
        life = find_field(StateGroup.PLAYER, "life")
        event = Event(field=life, timestamp=0.0, old_value=4, new_value=2)
        assert event.delta == -2
        assert event.value == 2

    def test_flag_event_delta(self):
        cursed = find_field(StateGroup.PLAYER, "isCursed")
        event = Event(field=cursed, timestamp=0.0, old_value=True, new_value=False)
        assert event.delta == -1
        assert event.value == 0


class TestInitialKeyframe:
    """Tests for stream seeding."""

    def test_delta_first_is_fatal(self):
        with pytest.raises(ReconstructionError):
            events_for([delta(0, player={"life": 3}), keyframe(1)])

    def test_empty_stream_is_fatal(self):
        with pytest.raises(ReconstructionError):
            list(extract_events([]))

    def test_keyframe_alone_yields_nothing(self):
        assert events_for([keyframe(0)]) == []


class TestExtraction:
    """Tests for field change detection."""

    def test_single_change(self):
        events = events_for([keyframe(0), delta(100, player={"life": 2})])

        assert len(events) == 1
        event = events[0]
        assert event.field.identifier == "Player.life"
        assert event.old_value == 4
        assert event.new_value == 2
        assert event.delta == -2
        assert event.timestamp == seconds(100)

    def test_unchanged_values_yield_nothing(self):
        events = events_for([keyframe(0), delta(1, player={"life": 4}), keyframe(2)])
        assert events == []

    def test_declared_order_session_first(self):
        events = events_for([
            keyframe(0),
            delta(1, game={"currentScore": 100, "world": 2}, player={"numRopes": 3, "life": 5}),
        ])

        assert [e.field.identifier for e in events] == [
            "Game.world",
            "Game.currentScore",
            "Player.life",
            "Player.numRopes",
        ]

    def test_flag_change(self):
        events = events_for([keyframe(0), delta(1, player={"isPoisoned": True})])
        assert len(events) == 1
        assert events[0].delta == 1

    def test_gate_and_timer_fields_never_emit(self):
        events = events_for([keyframe(0), delta(1, game={"igt": 60})])
        assert events == []


class TestValidityGate:
    """Tests for the pause/loading gate."""

    def test_changes_while_paused_are_attributed_on_resume(self):
        events = events_for([
            keyframe(0),
            delta(10, game={"pause": True}),
            delta(11, player={"life": 3}),
            delta(12, game={"pause": False}),
        ])

        assert len(events) == 1
        assert events[0].old_value == 4
        assert events[0].new_value == 3
        assert events[0].timestamp == seconds(12)

    def test_loading_does_not_move_baseline(self):
        events = events_for([
            keyframe(0),
            delta(10, game={"loading": True, "level": 2}),
            delta(11, game={"level": 3}),
            delta(12, game={"loading": False}),
        ])

        assert [(e.old_value, e.new_value) for e in events] == [(1, 3)]

    def test_invalid_keyframe_is_not_a_baseline(self):
        events = events_for([
            keyframe(0, game={"ingame": False, "world": 0}),
            delta(5, game={"ingame": True, "world": 1}),
            delta(6, player={"life": 3}),
        ])

        assert [e.field.identifier for e in events] == ["Player.life"]

    def test_no_event_touches_an_invalid_state(self):
        records = [
            keyframe(0),
            delta(1, player={"life": 3}),
            delta(2, game={"pause": True}),
            delta(3, player={"life": 2}),
            delta(4, game={"pause": False, "loading": True}),
            delta(5, player={"numBombs": 2}),
            delta(6, game={"loading": False}),
            delta(7, game={"playing": False}),
            delta(8, player={"life": 1}),
            delta(9, game={"playing": True}),
        ]
        updates = read_state_updates(to_log(records))

        # Timestamps of updates whose reconstructed session is valid
        reconstructor = session_reconstructor()
        valid_times = set()
        for update in updates:
            if is_valid_session(reconstructor.apply(update.session)):
                valid_times.add(update.timestamp)

        events = list(extract_events(updates))

        assert events
        assert all(e.timestamp in valid_times for e in events)
        assert seconds(3) not in {e.timestamp for e in events}
        assert seconds(8) not in {e.timestamp for e in events}


class TestExtractorCounters:

    def test_counts(self):
        extractor = EventExtractor()
        updates = read_state_updates(to_log([
            keyframe(0),
            delta(1, game={"pause": True}),
            delta(2, game={"pause": False}, player={"life": 3}),
        ]))

        events = list(extractor.extract(updates))

        assert len(events) == 1
        assert extractor.updates_seen == 3
        assert extractor.updates_skipped == 1
        assert extractor.events_emitted == 1

    def test_extraction_is_lazy(self):
        extractor = EventExtractor()
        updates = read_state_updates(to_log([keyframe(0), delta(1, player={"life": 3})]))

        iterator = extractor.extract(updates)
        assert extractor.updates_seen == 0

        next(iterator)
        assert extractor.updates_seen == 2
