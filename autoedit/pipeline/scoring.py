"""Event scoring.

Each rule watching the event's field may contribute to the score. A rule
contributes when the event passes its direction filter and the tested value
falls inside the rule's range. Contributing rules sum their scores and widen
the padding to the largest requested before/after times.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .events import Event
from .rules import DirectionFilter, EventCategory, ScoreType

logger = logging.getLogger(__name__)


@dataclass
class ScoreResult:
    """Aggregate score of one event."""
    score: float = 0.0
    before_padding: float = 0.0
    after_padding: float = 0.0
    matched_rules: List[int] = field(default_factory=list)  # Indices into the rule list

    @property
    def selected(self) -> bool:
        """Whether the event yields a clip."""
        return self.score > 0

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "before_padding": self.before_padding,
            "after_padding": self.after_padding,
            "matched_rules": self.matched_rules,
        }


def rule_test_value(event: Event, rule: EventCategory):
    """Value the rule's range is tested against, or None if filtered out.

    The direction filter runs first; a decrease rule sees the magnitude of
    the drop as a non-negative value.
    """
    d = event.delta

    if rule.filter is DirectionFilter.INCREASE:
        if d < 0:
            return None
    elif rule.filter is DirectionFilter.DECREASE:
        if d > 0:
            return None
        d = -d

    return event.value if rule.absolute else d


def rule_contribution(rule: EventCategory, test_value) -> float:
    if rule.score_type is ScoreType.LINEAR:
        return rule.score * abs(test_value)
    return rule.score


def score_event(event: Event, rules: Sequence[EventCategory]) -> ScoreResult:
    """Score ``event`` against every rule watching its field."""
    result = ScoreResult()

    for index, rule in enumerate(rules):
        if not rule.watches(event.field):
            continue

        test_value = rule_test_value(event, rule)
        if test_value is None:
            continue

        if not (rule.minimum <= test_value <= rule.maximum):
            continue

        result.before_padding = max(result.before_padding, rule.before_time)
        result.after_padding = max(result.after_padding, rule.after_time)
        result.score += rule_contribution(rule, test_value)
        result.matched_rules.append(index)

    if result.matched_rules:
        logger.debug(
            f"{event.field.identifier} at {event.timestamp:.3f} scored {result.score:.2f} "
            f"(rules {result.matched_rules})"
        )

    return result
