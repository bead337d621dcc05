"""Scoring rule configuration.

Rules are loaded from a JSON document::

    {
      "maxMergeTime": 5.0,
      "categories": [
        {"events": ["Player.life"], "filter": "Decrease",
         "scoreType": "Linear", "score": 1.0,
         "beforeTime": 3.0, "afterTime": 2.0}
      ]
    }
"""
import enum
import json
import logging
import math
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from autoedit.config import settings

from .state import FieldSpec, StateGroup, find_field

logger = logging.getLogger(__name__)

FIELD_ID_PATTERN = re.compile(
    r"^\s*(?P<group>[A-Za-z]+)\s*\.\s*(?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*$"
)


class RuleConfigError(ValueError):
    """Invalid scoring rule configuration."""
    pass


class DirectionFilter(str, enum.Enum):
    ANY = "Any"
    INCREASE = "Increase"
    DECREASE = "Decrease"


class ScoreType(str, enum.Enum):
    CONSTANT = "Constant"
    LINEAR = "Linear"


_FILTER_NAMES = {
    "any": DirectionFilter.ANY,
    "increase": DirectionFilter.INCREASE,
    "increaseonly": DirectionFilter.INCREASE,
    "decrease": DirectionFilter.DECREASE,
    "decreaseonly": DirectionFilter.DECREASE,
}

_SCORE_TYPE_NAMES = {
    "constant": ScoreType.CONSTANT,
    "linear": ScoreType.LINEAR,
    "linearinmagnitude": ScoreType.LINEAR,
}


def parse_field_identifier(identifier: str) -> FieldSpec:
    """Resolve ``"<Group>.<fieldName>"`` to an event-producing field.

    The group name is case-insensitive, the field name is not.
    """
    match = FIELD_ID_PATTERN.match(identifier)
    if not match:
        raise ValueError(f"Invalid field identifier {identifier!r}, expected '<Group>.<field>'")

    group_name = match.group("group").lower()
    group = next((g for g in StateGroup if g.value.lower() == group_name), None)
    if group is None:
        raise ValueError(f"Unknown state group in {identifier!r}")

    spec = find_field(group, match.group("field"))
    if spec is None:
        raise ValueError(f"Unknown field in {identifier!r}")
    if not spec.emits_events:
        raise ValueError(f"Field {spec.identifier} does not produce events")

    return spec


class EventCategory(BaseModel):
    """A scoring rule matching one or more fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    watched: List[str] = Field(..., alias="events", min_length=1)
    filter: DirectionFilter = DirectionFilter.ANY
    absolute: bool = False
    minimum: float = Field(-math.inf)
    maximum: float = Field(math.inf)
    exact_value: Optional[float] = Field(None, alias="exactValue")
    score_type: ScoreType = Field(ScoreType.CONSTANT, alias="scoreType")
    score: float = 1.0
    before_time: float = Field(default_factory=lambda: settings.default_before_time, alias="beforeTime", ge=0)
    after_time: float = Field(default_factory=lambda: settings.default_after_time, alias="afterTime", ge=0)

    @field_validator("watched", mode="before")
    @classmethod
    def parse_watched(cls, value):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return value
        return [parse_field_identifier(v).identifier if isinstance(v, str) else v for v in value]

    @field_validator("filter", mode="before")
    @classmethod
    def parse_filter(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            if key not in _FILTER_NAMES:
                raise ValueError(f"Unknown filter {value!r}")
            return _FILTER_NAMES[key]
        return value

    @field_validator("score_type", mode="before")
    @classmethod
    def parse_score_type(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            if key not in _SCORE_TYPE_NAMES:
                raise ValueError(f"Unknown score type {value!r}")
            return _SCORE_TYPE_NAMES[key]
        return value

    @model_validator(mode="after")
    def apply_bounds(self):
        if self.exact_value is not None:
            if "minimum" in self.model_fields_set or "maximum" in self.model_fields_set:
                raise ValueError("exactValue cannot be combined with minimum/maximum")
            self.minimum = self.exact_value
            self.maximum = self.exact_value
        if self.minimum > self.maximum:
            raise ValueError(f"minimum {self.minimum} is greater than maximum {self.maximum}")
        return self

    def watches(self, spec: FieldSpec) -> bool:
        return spec.identifier in self.watched

    def to_dict(self) -> dict:
        return {
            "events": list(self.watched),
            "filter": self.filter.value,
            "absolute": self.absolute,
            # Unbounded limits are null; JSON has no infinity
            "minimum": self.minimum if math.isfinite(self.minimum) else None,
            "maximum": self.maximum if math.isfinite(self.maximum) else None,
            "scoreType": self.score_type.value,
            "score": self.score,
            "beforeTime": self.before_time,
            "afterTime": self.after_time,
        }


class RulesConfig(BaseModel):
    """The whole rule document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    max_merge_time: float = Field(
        default_factory=lambda: settings.default_merge_margin, alias="maxMergeTime", ge=0
    )
    categories: List[EventCategory] = Field(default_factory=list)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_rules(data: dict) -> RulesConfig:
    """Validate a decoded rule document."""
    try:
        config = RulesConfig.model_validate(data)
    except ValidationError as e:
        raise RuleConfigError(f"Invalid rule configuration: {_format_validation_error(e)}")

    logger.info(
        f"Loaded {len(config.categories)} rule categories "
        f"(merge margin {config.max_merge_time:.1f}s)"
    )
    return config


def load_rules(path: str | Path) -> RulesConfig:
    """Load and validate a rule document from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rule configuration not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise RuleConfigError(f"Failed to parse {path}: {e}")

    return parse_rules(data)
