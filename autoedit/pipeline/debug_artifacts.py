"""Debug artifact generation.

Writes a JSON file explaining what every pipeline stage kept.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import numpy as np

logger = logging.getLogger(__name__)


def summarize(values: List[float]) -> dict:
    """Min/max/mean summary of a list of numbers."""
    if not values:
        return {"count": 0, "min": None, "max": None, "mean": None}

    arr = np.asarray(values, dtype=float)
    return {
        "count": int(arr.size),
        "min": float(arr.min()),
        "max": float(arr.max()),
        "mean": float(arr.mean()),
    }


def build_debug_data(result) -> dict:
    """Debug document for a PipelineResult."""
    scores = [s.score for s in result.selected_events]
    paddings = [s.time_range.duration for s in result.selected_events]

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),

        # Configuration
        "config": result.config.to_dict(),

        # Timeline
        "origin": result.origin,
        "total_duration": result.total_duration,
        "sources": [s.to_dict() for s in result.sources],

        # Scored events and the ranges built for them
        "selected_events": [s.to_dict() for s in result.selected_events],
        "score_stats": summarize(scores),
        "range_duration_stats": summarize(paddings),

        # Ranges after merging, before truncation
        "merged_ranges": [r.to_dict() for r in result.merged_ranges],

        # Final clips
        "final_clips": result.to_clip_list(),

        # Statistics
        "statistics": result.statistics(),
    }


def write_debug_json(output_path: Path, result) -> Path:
    """
    Write comprehensive debug JSON file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        json.dump(build_debug_data(result), f, indent=2, allow_nan=False)

    logger.info(f"Debug JSON written to: {output_path}")
    return output_path
