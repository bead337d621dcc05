"""State reconstruction from sparse snapshot updates.

The snapshot producer writes a full keyframe now and then and deltas
carrying only the fields that changed in between. Reconstruction overlays
each delta on the persistent state field by field: a present value
overwrites, an absent one leaves the prior value in place.

Every tracked field is declared once in a static table per state group
(``SESSION_FIELDS`` / ``SUBJECT_FIELDS``). The tables drive log decoding,
delta merging and event comparison.
"""
import copy
import enum
import logging
from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, Optional, Tuple, Union

logger = logging.getLogger(__name__)

FieldValue = Union[int, bool]


class ReconstructionError(ValueError):
    """The snapshot stream cannot be reconstructed into full state."""
    pass


class StateGroup(str, enum.Enum):
    """State groups a field identifier can refer to."""
    GAME = "Game"
    PLAYER = "Player"


class FieldKind(str, enum.Enum):
    INTEGER = "integer"
    FLAG = "flag"


@dataclass(frozen=True)
class FieldSpec:
    """Static description of one tracked field."""
    group: StateGroup
    key: str  # Name used in the snapshot log and in rule identifiers
    attr: str  # Attribute on the state dataclass
    kind: FieldKind
    emits_events: bool = True

    @property
    def identifier(self) -> str:
        return f"{self.group.value}.{self.key}"

    def coerce(self, value) -> FieldValue:
        """Convert a decoded JSON value to this field's kind.

        Raises TypeError for values of the wrong shape.
        """
        if self.kind is FieldKind.FLAG:
            # Producers write flags either as JSON booleans or as 0/1 bytes
            if isinstance(value, bool):
                return value
            if isinstance(value, int) and value in (0, 1):
                return bool(value)
            raise TypeError(f"{self.identifier} expects a flag, got {value!r}")

        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{self.identifier} expects an integer, got {value!r}")
        return value


SESSION_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(StateGroup.GAME, "igt", "igt", FieldKind.INTEGER, emits_events=False),
    FieldSpec(StateGroup.GAME, "loading", "loading", FieldKind.FLAG, emits_events=False),
    FieldSpec(StateGroup.GAME, "ingame", "ingame", FieldKind.FLAG, emits_events=False),
    FieldSpec(StateGroup.GAME, "playing", "playing", FieldKind.FLAG, emits_events=False),
    FieldSpec(StateGroup.GAME, "pause", "pause", FieldKind.FLAG, emits_events=False),
    FieldSpec(StateGroup.GAME, "world", "world", FieldKind.INTEGER),
    FieldSpec(StateGroup.GAME, "level", "level", FieldKind.INTEGER),
    FieldSpec(StateGroup.GAME, "door", "door", FieldKind.INTEGER),
    FieldSpec(StateGroup.GAME, "currentScore", "current_score", FieldKind.INTEGER),
    FieldSpec(StateGroup.GAME, "udjatEyeAvailable", "udjat_eye_available", FieldKind.FLAG),
)

SUBJECT_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(StateGroup.PLAYER, "life", "life", FieldKind.INTEGER),
    FieldSpec(StateGroup.PLAYER, "numBombs", "num_bombs", FieldKind.INTEGER),
    FieldSpec(StateGroup.PLAYER, "numRopes", "num_ropes", FieldKind.INTEGER),
    FieldSpec(StateGroup.PLAYER, "hasAnkh", "has_ankh", FieldKind.FLAG),
    FieldSpec(StateGroup.PLAYER, "hasKapala", "has_kapala", FieldKind.FLAG),
    FieldSpec(StateGroup.PLAYER, "isPoisoned", "is_poisoned", FieldKind.FLAG),
    FieldSpec(StateGroup.PLAYER, "isCursed", "is_cursed", FieldKind.FLAG),
)

FIELDS_BY_GROUP: Dict[StateGroup, Tuple[FieldSpec, ...]] = {
    StateGroup.GAME: SESSION_FIELDS,
    StateGroup.PLAYER: SUBJECT_FIELDS,
}


def find_field(group: StateGroup, key: str) -> Optional[FieldSpec]:
    """Look up a field of ``group`` by its log key."""
    for spec in FIELDS_BY_GROUP[group]:
        if spec.key == key:
            return spec
    return None


@dataclass
class SessionState:
    """Session-level state (the ``game`` group). ``None`` means unset."""
    igt: Optional[int] = None
    loading: Optional[bool] = None
    ingame: Optional[bool] = None
    playing: Optional[bool] = None
    pause: Optional[bool] = None
    world: Optional[int] = None
    level: Optional[int] = None
    door: Optional[int] = None
    current_score: Optional[int] = None
    udjat_eye_available: Optional[bool] = None


@dataclass
class SubjectState:
    """State of the tracked player (the ``player0`` group)."""
    life: Optional[int] = None
    num_bombs: Optional[int] = None
    num_ropes: Optional[int] = None
    has_ankh: Optional[bool] = None
    has_kapala: Optional[bool] = None
    is_poisoned: Optional[bool] = None
    is_cursed: Optional[bool] = None


class UpdateKind(str, enum.Enum):
    KEYFRAME = "Keyframe"
    DELTA = "Delta"


@dataclass
class StateUpdate:
    """One record of the snapshot log.

    The deltas use the state dataclasses with unset fields left as ``None``.
    """
    kind: UpdateKind
    timestamp: float  # Seconds since the Unix epoch
    session: SessionState = field(default_factory=SessionState)
    subject: SubjectState = field(default_factory=SubjectState)

    @property
    def is_keyframe(self) -> bool:
        return self.kind is UpdateKind.KEYFRAME


def merge_field(old: Optional[FieldValue], delta: Optional[FieldValue]) -> Optional[FieldValue]:
    """Overlay one delta value on the prior value."""
    return delta if delta is not None else old


def missing_fields(state, specs: Iterable[FieldSpec]) -> list:
    """Keys of the fields that are still unset in ``state``."""
    return [spec.key for spec in specs if getattr(state, spec.attr) is None]


class StateReconstructor:
    """Holds the persistent full state of one state group."""

    def __init__(self, specs: Tuple[FieldSpec, ...], state):
        self.specs = specs
        self.state = state

    def apply(self, delta):
        """Merge ``delta`` into the persistent state and return it.

        The returned object is the persistent state itself, mutated in place.
        """
        for spec in self.specs:
            current = getattr(self.state, spec.attr)
            setattr(self.state, spec.attr, merge_field(current, getattr(delta, spec.attr)))
        return self.state

    def snapshot(self):
        return copy.copy(self.state)


def session_reconstructor() -> StateReconstructor:
    return StateReconstructor(SESSION_FIELDS, SessionState())


def subject_reconstructor() -> StateReconstructor:
    return StateReconstructor(SUBJECT_FIELDS, SubjectState())


def is_valid_session(state: SessionState) -> bool:
    """True when transitions in ``state`` are meaningful.

    The session must be in game, playing, not paused and not loading. Any
    unset gate field makes the state invalid.
    """
    return (
        state.ingame is True
        and state.playing is True
        and state.pause is False
        and state.loading is False
    )


def state_to_dict(state) -> dict:
    """Log-keyed dictionary of the set fields, for debug output."""
    specs = SESSION_FIELDS if isinstance(state, SessionState) else SUBJECT_FIELDS
    by_attr = {spec.attr: spec.key for spec in specs}
    return {
        by_attr[f.name]: getattr(state, f.name)
        for f in fields(state)
        if getattr(state, f.name) is not None
    }
