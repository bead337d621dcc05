"""Event extraction.

Compares the last valid reconstructed state with the current one and emits
an event for every tracked field whose value changed. Updates received while
the session is paused, loading or out of a run are skipped entirely, so a
transition is never attributed across such a gap.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .state import (
    SESSION_FIELDS,
    SUBJECT_FIELDS,
    FieldSpec,
    FieldValue,
    ReconstructionError,
    StateUpdate,
    is_valid_session,
    missing_fields,
    session_reconstructor,
    subject_reconstructor,
)

logger = logging.getLogger(__name__)

SESSION_EVENT_FIELDS = tuple(spec for spec in SESSION_FIELDS if spec.emits_events)
SUBJECT_EVENT_FIELDS = tuple(spec for spec in SUBJECT_FIELDS if spec.emits_events)


def numericize(value: FieldValue) -> int:
    """Flags count as 0/1."""
    if isinstance(value, bool):
        return 1 if value else 0
    return int(value)


@dataclass(frozen=True)
class Event:
    """A single field transition between two consecutive valid states."""
    field: FieldSpec
    timestamp: float  # Seconds since the Unix epoch
    old_value: FieldValue
    new_value: FieldValue

    @property
    def delta(self) -> int:
        return numericize(self.new_value) - numericize(self.old_value)

    @property
    def value(self) -> int:
        """The new value, numericized."""
        return numericize(self.new_value)

    def to_dict(self) -> dict:
        return {
            "field": self.field.identifier,
            "timestamp": self.timestamp,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "delta": self.delta,
        }


def compare_states(
    specs: Iterable[FieldSpec],
    previous,
    current,
    timestamp: float,
) -> Iterator[Event]:
    """Yield an event for each field that differs, in declared order."""
    for spec in specs:
        old = getattr(previous, spec.attr)
        new = getattr(current, spec.attr)

        # No delta can be computed against an unset value
        if old is None or new is None:
            continue

        if old != new:
            yield Event(field=spec, timestamp=timestamp, old_value=old, new_value=new)


class EventExtractor:
    """Turns an ordered stream of state updates into field change events.

    Usage::

        extractor = EventExtractor()
        for event in extractor.extract(updates):
            ...

    After ``extract`` is exhausted, ``updates_seen`` and ``updates_skipped``
    describe how much of the stream passed the validity gate.
    """

    def __init__(self):
        self.session = session_reconstructor()
        self.subject = subject_reconstructor()
        self.last_valid_session = None
        self.last_valid_subject = None
        self.baseline_valid = False
        self.updates_seen = 0
        self.updates_skipped = 0
        self.events_emitted = 0

    def _seed(self, update: StateUpdate):
        if not update.is_keyframe:
            raise ReconstructionError(
                f"Event log must start with a Keyframe, got {update.kind.value} "
                f"at {update.timestamp:.3f}"
            )

        self.session.apply(update.session)
        self.subject.apply(update.subject)

        unset = missing_fields(self.session.state, SESSION_FIELDS) + missing_fields(
            self.subject.state, SUBJECT_FIELDS
        )
        if unset:
            logger.warning(f"Initial keyframe is missing fields: {', '.join(unset)}")

        self.baseline_valid = is_valid_session(self.session.state)
        self.last_valid_session = self.session.snapshot()
        self.last_valid_subject = self.subject.snapshot()

    def extract(self, updates: Iterable[StateUpdate]) -> Iterator[Event]:
        """Lazily yield events for ``updates``.

        Raises ReconstructionError if the first update is not a keyframe or
        the stream is empty.
        """
        iterator = iter(updates)
        first: Optional[StateUpdate] = next(iterator, None)

        if first is None:
            raise ReconstructionError("Event log contains no state updates")

        self.updates_seen = 1
        self._seed(first)

        for update in iterator:
            self.updates_seen += 1

            current_session = self.session.apply(update.session)
            current_subject = self.subject.apply(update.subject)

            if not is_valid_session(current_session):
                self.updates_skipped += 1
                continue

            # A keyframe captured outside a run is not a valid baseline; the
            # first valid update replaces it without emitting anything.
            if self.baseline_valid:
                yield from self._emit(
                    compare_states(
                        SESSION_EVENT_FIELDS, self.last_valid_session, current_session, update.timestamp
                    )
                )
                yield from self._emit(
                    compare_states(
                        SUBJECT_EVENT_FIELDS, self.last_valid_subject, current_subject, update.timestamp
                    )
                )

            self.baseline_valid = True
            self.last_valid_session = self.session.snapshot()
            self.last_valid_subject = self.subject.snapshot()

        logger.info(
            f"Extracted {self.events_emitted} events from {self.updates_seen} updates "
            f"({self.updates_skipped} skipped by the validity gate)"
        )

    def _emit(self, events: Iterator[Event]) -> Iterator[Event]:
        for event in events:
            self.events_emitted += 1
            logger.debug(
                f"{event.field.identifier}: {event.old_value} -> {event.new_value} "
                f"at {event.timestamp:.3f}"
            )
            yield event


def extract_events(updates: Iterable[StateUpdate]) -> Iterator[Event]:
    """Convenience wrapper around ``EventExtractor().extract``."""
    return EventExtractor().extract(updates)
