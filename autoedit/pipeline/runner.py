"""Pipeline runner.

Orchestrates the full clip selection pipeline.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import PipelineConfig
from .debug_artifacts import write_debug_json
from .events import EventExtractor
from .intervals import (
    Clip,
    SourceSegment,
    TimeRange,
    assign_sources,
    build_interval,
    merge_ranges,
    truncate_ranges,
)
from .scoring import score_event
from .state import StateUpdate

logger = logging.getLogger(__name__)


@dataclass
class SelectedEvent:
    """An event that scored above zero and the range built for it."""
    event: dict
    score: float
    time_range: TimeRange

    def to_dict(self) -> dict:
        return {"event": self.event, "score": self.score, "range": self.time_range.to_dict()}


@dataclass
class PipelineResult:
    """Result from pipeline execution."""
    clips: List[Clip]
    selected_events: List[SelectedEvent]
    merged_ranges: List[TimeRange]
    origin: float  # Epoch seconds of timeline position 0
    total_duration: Optional[float]
    updates_seen: int
    updates_skipped: int
    event_count: int
    config: PipelineConfig
    sources: List[SourceSegment] = field(default_factory=list)

    @property
    def candidate_ranges(self) -> List[TimeRange]:
        return [s.time_range for s in self.selected_events]

    @property
    def total_clip_duration(self) -> float:
        return sum(clip.duration for clip in self.clips)

    def to_clip_list(self) -> List[dict]:
        """Convert to list of clip dictionaries for API response."""
        return [clip.to_dict() for clip in self.clips]

    def statistics(self) -> dict:
        return {
            "updates_seen": self.updates_seen,
            "updates_skipped": self.updates_skipped,
            "event_count": self.event_count,
            "selected_event_count": len(self.selected_events),
            "merged_range_count": len(self.merged_ranges),
            "clip_count": len(self.clips),
            "total_clip_duration": self.total_clip_duration,
        }


def place_sources(sources: Sequence[SourceSegment], origin: float) -> List[SourceSegment]:
    """Move source segments given in epoch seconds onto the timeline."""
    return [SourceSegment(s.path, s.start - origin, s.duration) for s in sources]


def run_pipeline(
    updates: Iterable[StateUpdate],
    config: PipelineConfig,
    sources: Optional[Sequence[SourceSegment]] = None,
    total_duration: Optional[float] = None,
    origin: Optional[float] = None,
    debug_dir: Optional[Path] = None,
) -> PipelineResult:
    """
    Run the full clip selection pipeline.

    Args:
        updates: Ordered state updates, starting with a keyframe
        config: Pipeline configuration
        sources: Recording files with their start in epoch seconds
        total_duration: Length of the usable timeline in seconds; defaults to
            the end of the last source segment
        origin: Epoch seconds of timeline position 0; defaults to the start
            of the first source segment, or the first update
        debug_dir: Where the debug JSON goes when enabled in the config

    Returns:
        PipelineResult with the final clips and per-stage data

    Raises:
        ReconstructionError: If the stream does not start with a keyframe
    """
    updates = list(updates)
    sources = list(sources or [])

    if origin is None:
        if sources:
            origin = min(s.start for s in sources)
        elif updates:
            origin = updates[0].timestamp
        else:
            origin = 0.0

    timeline_sources = place_sources(sources, origin)
    if total_duration is None and timeline_sources:
        total_duration = max(s.end for s in timeline_sources)

    logger.info(f"Running pipeline on {len(updates)} updates with {len(config.rules)} rules")

    # Stage 1-3: events, scoring, intervals
    extractor = EventExtractor()
    selected: List[SelectedEvent] = []

    for event in extractor.extract(updates):
        result = score_event(event, config.rules)
        if not result.selected:
            continue

        time_range = build_interval(
            event.timestamp - origin, result.before_padding, result.after_padding
        )
        selected.append(SelectedEvent(event=event.to_dict(), score=result.score, time_range=time_range))

    logger.info(f"Selected {len(selected)} of {extractor.events_emitted} events")

    # Stage 4: merge
    merged = merge_ranges([s.time_range for s in selected], config.merge_margin)
    logger.info(f"Merged into {len(merged)} ranges (margin {config.merge_margin:.1f}s)")

    # Stage 5: truncate to available material
    ranges = merged
    if total_duration is not None:
        ranges = truncate_ranges(merged, total_duration)
        logger.info(f"{len(ranges)} ranges within [0, {total_duration:.1f}s)")

    # Stage 6: tie ranges to source files
    if timeline_sources:
        clips = assign_sources(ranges, timeline_sources)
    else:
        clips = [Clip(time_range=r) for r in ranges]

    if not clips:
        logger.info("No clips selected")

    result = PipelineResult(
        clips=clips,
        selected_events=selected,
        merged_ranges=merged,
        origin=origin,
        total_duration=total_duration,
        updates_seen=extractor.updates_seen,
        updates_skipped=extractor.updates_skipped,
        event_count=extractor.events_emitted,
        config=config,
        sources=timeline_sources,
    )

    if config.write_debug_json and debug_dir is not None:
        write_debug_json(Path(debug_dir) / "autoedit_debug.json", result)

    return result
