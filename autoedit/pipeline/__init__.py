# Clip selection pipeline
"""
Clip Selection Pipeline

Turns a log of sparse game state snapshots into a short list of clips
covering the moments a rule set finds interesting.

Pipeline stages:
1. State reconstruction: overlay keyframes and deltas into full state
2. Event extraction: field transitions between consecutive valid states
3. Scoring: match events against the rule set, pick padding
4. Interval building: padded range around each selected event
5. Merging: fuse near/overlapping ranges, truncate to the recording,
   attach each range to its source file
"""

__version__ = "1.0.0"

from .config import PipelineConfig
from .log_reader import LogParseError, load_state_updates, read_state_updates
from .rules import RuleConfigError, RulesConfig, load_rules, parse_rules
from .runner import PipelineResult, run_pipeline
from .state import ReconstructionError

__all__ = [
    "PipelineConfig",
    "PipelineResult",
    "RulesConfig",
    "LogParseError",
    "RuleConfigError",
    "ReconstructionError",
    "load_rules",
    "parse_rules",
    "load_state_updates",
    "read_state_updates",
    "run_pipeline",
    "__version__",
]
