"""Tests for state reconstruction."""
import pytest

from autoedit.pipeline.state import (
    SESSION_FIELDS,
    SUBJECT_FIELDS,
    FieldKind,
    SessionState,
    StateGroup,
    SubjectState,
    find_field,
    is_valid_session,
    merge_field,
    missing_fields,
    session_reconstructor,
    state_to_dict,
    subject_reconstructor,
)


class TestFieldTable:
    """Tests for the static field tables."""

    def test_every_field_maps_to_a_state_attribute(self):
        session_attrs = set(SessionState.__dataclass_fields__)
        subject_attrs = set(SubjectState.__dataclass_fields__)

        assert {spec.attr for spec in SESSION_FIELDS} == session_attrs
        assert {spec.attr for spec in SUBJECT_FIELDS} == subject_attrs

    def test_gate_fields_do_not_emit_events(self):
        silent = {spec.key for spec in SESSION_FIELDS if not spec.emits_events}
        assert silent == {"igt", "loading", "ingame", "playing", "pause"}

    def test_find_field(self):
        spec = find_field(StateGroup.GAME, "currentScore")
        assert spec.attr == "current_score"
        assert spec.identifier == "Game.currentScore"
        assert find_field(StateGroup.PLAYER, "currentScore") is None

    def test_coerce_flag_accepts_bytes(self):
        spec = find_field(StateGroup.GAME, "pause")
        assert spec.kind is FieldKind.FLAG
        assert spec.coerce(1) is True
        assert spec.coerce(0) is False
        assert spec.coerce(True) is True

    def test_coerce_rejects_wrong_kind(self):
        life = find_field(StateGroup.PLAYER, "life")
        with pytest.raises(TypeError):
            life.coerce(True)
        with pytest.raises(TypeError):
            life.coerce("4")

        poisoned = find_field(StateGroup.PLAYER, "isPoisoned")
        with pytest.raises(TypeError):
            poisoned.coerce(2)


class TestMerge:
    """Tests for delta overlay."""

    def test_present_value_overwrites(self):
        assert merge_field(4, 2) == 2

    def test_absent_value_keeps_prior(self):
        assert merge_field(4, None) == 4

    def test_false_is_a_value(self):
        assert merge_field(True, False) is False

    def test_reconstructor_keeps_unset_fields(self, start_subject_kwargs):
        reconstructor = subject_reconstructor()
        reconstructor.apply(SubjectState(**start_subject_kwargs))

        state = reconstructor.apply(SubjectState(life=3))

        assert state.life == 3
        assert state.num_bombs == 4
        assert state.has_ankh is False

    def test_field_never_unset_once_set(self, valid_session_kwargs):
        reconstructor = session_reconstructor()
        reconstructor.apply(SessionState(**valid_session_kwargs))

        for _ in range(3):
            state = reconstructor.apply(SessionState())

        assert missing_fields(state, SESSION_FIELDS) == []

    def test_apply_mutates_in_place_and_snapshot_copies(self):
        reconstructor = subject_reconstructor()
        first = reconstructor.apply(SubjectState(life=4))
        snapshot = reconstructor.snapshot()

        second = reconstructor.apply(SubjectState(life=1))

        assert first is second
        assert snapshot.life == 4

    def test_state_to_dict_uses_log_keys(self):
        data = state_to_dict(SessionState(current_score=10, world=2))
        assert data == {"world": 2, "currentScore": 10}


class TestValidity:
    """Tests for the validity gate."""

    def test_valid_session(self, valid_session_kwargs):
        assert is_valid_session(SessionState(**valid_session_kwargs))

    @pytest.mark.parametrize("field, value", [
        ("ingame", False),
        ("playing", False),
        ("pause", True),
        ("loading", True),
    ])
    def test_invalid_when_gate_fails(self, valid_session_kwargs, field, value):
        valid_session_kwargs[field] = value
        assert not is_valid_session(SessionState(**valid_session_kwargs))

    @pytest.mark.parametrize("field", ["ingame", "playing", "pause", "loading"])
    def test_invalid_when_gate_unset(self, valid_session_kwargs, field):
        valid_session_kwargs[field] = None
        assert not is_valid_session(SessionState(**valid_session_kwargs))
