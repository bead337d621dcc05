"""Time range construction, merging and truncation.

All times are seconds on the recording timeline (0 = start of the first
source segment).
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeRange:
    """Half-open range ``[start, start + duration)``."""
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration

    def extend(self, before: float, after: float) -> "TimeRange":
        return TimeRange(self.start - before, self.duration + before + after)

    def intersects(self, other: "TimeRange") -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and self.end >= other.end

    def union(self, other: "TimeRange") -> "TimeRange":
        start = min(self.start, other.start)
        end = max(self.end, other.end)
        return TimeRange(start, end - start)

    def intersection(self, other: "TimeRange") -> Optional["TimeRange"]:
        if not self.intersects(other):
            return None
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        return TimeRange(start, end - start)

    def __repr__(self):
        return f"TimeRange({self.start:.2f}-{self.end:.2f}, dur={self.duration:.2f}s)"

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "duration": self.duration}


def build_interval(timestamp: float, before_padding: float, after_padding: float) -> TimeRange:
    """Padded range around an event."""
    return TimeRange(timestamp - before_padding, before_padding + after_padding)


def merge_ranges(ranges: Sequence[TimeRange], margin: float = 0.0) -> List[TimeRange]:
    """
    Fuse overlapping ranges and ranges closer than ``margin``.

    Ranges are sorted by start and walked from the last pair backward. When
    the earlier range, extended forward by ``margin``, intersects the later
    one, both are replaced by their union and the union is compared again.

    Returns a sorted list of ranges where no two are within ``margin`` of
    each other.
    """
    merged = sorted(ranges, key=lambda r: (r.start, r.end))

    i = len(merged) - 2
    while i >= 0:
        if i + 1 >= len(merged):
            i -= 1
            continue

        current = merged[i]
        following = merged[i + 1]

        if current.extend(0, margin).intersects(following):
            merged[i] = current.union(following)
            del merged[i + 1]
            # The union may now reach ranges that were already settled
            continue

        i -= 1

    return merged


def truncate_ranges(ranges: Sequence[TimeRange], total_duration: float) -> List[TimeRange]:
    """Clip ranges to ``[0, total_duration)``, dropping ranges fully outside."""
    bounds = TimeRange(0.0, total_duration)
    result = []

    for r in ranges:
        if not r.intersects(bounds):
            logger.debug(f"Dropping {r}: outside of [0, {total_duration:.2f})")
            continue

        if r.start < bounds.start or r.end > bounds.end:
            r = r.intersection(bounds)

        result.append(r)

    return result


@dataclass(frozen=True)
class SourceSegment:
    """A recording file placed on the timeline."""
    path: Path
    start: float  # Timeline position of the first frame
    duration: float

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start, self.duration)

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict:
        return {"path": str(self.path), "start": self.start, "duration": self.duration}


@dataclass(frozen=True)
class Clip:
    """A selected range, optionally tied to the source file it is cut from."""
    time_range: TimeRange
    source: Optional[SourceSegment] = None

    @property
    def start(self) -> float:
        return self.time_range.start

    @property
    def end(self) -> float:
        return self.time_range.end

    @property
    def duration(self) -> float:
        return self.time_range.duration

    @property
    def source_offset(self) -> float:
        """Offset of the clip into its source file."""
        if self.source is None:
            return self.start
        return self.start - self.source.start

    def to_dict(self) -> dict:
        return {
            "start_time": self.start,
            "end_time": self.end,
            "duration": self.duration,
            "source": str(self.source.path) if self.source else None,
            "source_offset": self.source_offset,
        }


def assign_sources(ranges: Sequence[TimeRange], segments: Sequence[SourceSegment]) -> List[Clip]:
    """
    Attach each range to the one source segment that fully contains it.

    Ranges contained in no segment, or in more than one, are dropped.
    """
    clips = []

    for r in ranges:
        containing = [s for s in segments if s.time_range.contains(r)]

        if len(containing) != 1:
            # TODO: split ranges that cross a segment boundary into one clip per segment
            logger.warning(
                f"Dropping clip {r}: contained in {len(containing)} source segments"
            )
            continue

        clips.append(Clip(time_range=r, source=containing[0]))

    return clips
