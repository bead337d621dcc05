"""Pipeline configuration."""
from dataclasses import dataclass, field
from typing import List

from autoedit.config import settings

from .rules import EventCategory, RulesConfig


@dataclass
class PipelineConfig:
    """Configuration threaded through every pipeline stage."""

    # Scoring rules
    rules: List[EventCategory] = field(default_factory=list)

    # Merging
    merge_margin: float = field(default_factory=lambda: settings.default_merge_margin)

    # Debug
    write_debug_json: bool = False

    @classmethod
    def from_rules(cls, rules_config: RulesConfig, **overrides) -> "PipelineConfig":
        """Build a config from a validated rule document."""
        return cls(
            rules=list(rules_config.categories),
            merge_margin=rules_config.max_merge_time,
            **overrides,
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "rules": [rule.to_dict() for rule in self.rules],
            "merge_margin": self.merge_margin,
            "write_debug_json": self.write_debug_json,
        }
