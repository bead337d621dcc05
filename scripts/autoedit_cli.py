#!/usr/bin/env python3
"""
CLI tool to select highlight clips from a game state log.

Usage:
    python scripts/autoedit_cli.py <events.log> --rules <rules.json> [--video <file>]...

Example:
    python scripts/autoedit_cli.py "Spelunky 2 2020.10.01 - 12.34.56.78.DVR.log" \\
        --rules rules.json --video "Spelunky 2 2020.10.01 - 12.34.56.78.DVR.mp4" --export
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from autoedit.config import settings
from autoedit.pipeline import (
    PipelineConfig,
    load_rules,
    load_state_updates,
    run_pipeline,
)
from autoedit.pipeline.intervals import SourceSegment
from autoedit.utils.ffmpeg import FFmpegError, export_highlights, get_video_info, write_concat_script
from autoedit.utils.paths import format_path, parse_recording_start


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


def parse_start_time(value: str) -> float:
    """Epoch seconds or an ISO 8601 timestamp (UTC unless it carries an offset)."""
    try:
        return float(value)
    except ValueError:
        pass

    stamp = datetime.fromisoformat(value)
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp.timestamp()


async def locate_sources(videos: List[Path], starts: List[str]) -> List[SourceSegment]:
    """Place every video on the log timeline."""
    sources = []

    for i, video in enumerate(videos):
        if not video.exists():
            raise FileNotFoundError(f"Video not found: {video}")

        if i < len(starts):
            start = parse_start_time(starts[i])
        else:
            start = parse_recording_start(video)
            if start is None:
                raise ValueError(
                    f"Cannot tell when {video.name} starts; pass --video-start for it"
                )

        info = await get_video_info(video)
        logger.info(f"Source {video.name}: start {start:.3f}, duration {info.duration:.1f}s")
        sources.append(SourceSegment(path=video, start=start, duration=info.duration))

    return sources


async def edit_highlights(
    log_path: Path,
    rules_path: Path,
    output_dir: Path,
    videos: List[Path],
    video_starts: List[str],
    total_duration: Optional[float] = None,
    write_script: bool = False,
    export: bool = False,
    debug_json: bool = False,
):
    """
    Select clips from a log and write the requested outputs.

    Args:
        log_path: Snapshot log file
        rules_path: Rule document
        output_dir: Directory for output files
        videos: Recording files to cut clips from
        video_starts: Explicit start times for the first videos
        total_duration: Timeline length when no video is given
        write_script: Also write an ffmpeg concat script
        export: Also render the highlight video
        debug_json: Write the pipeline debug JSON
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    rules = load_rules(rules_path)
    updates = load_state_updates(log_path)
    sources = await locate_sources(videos, video_starts)

    config = PipelineConfig.from_rules(rules, write_debug_json=debug_json)
    result = run_pipeline(
        updates,
        config,
        sources=sources,
        total_duration=total_duration,
        debug_dir=output_dir / "debug",
    )

    output_file = output_dir / "clips.json"
    with open(output_file, 'w') as f:
        json.dump({
            "log_path": str(log_path),
            "origin": result.origin,
            "total_duration": result.total_duration,
            "statistics": result.statistics(),
            "clips": result.to_clip_list(),
        }, f, indent=2)

    logger.info(f"Clips written to: {output_file}")
    logger.info(
        f"Selected {len(result.clips)} clips ({result.total_clip_duration:.1f}s) "
        f"from {result.event_count} events"
    )

    for i, clip in enumerate(result.clips):
        source = clip.source.path.name if clip.source else "-"
        logger.info(
            f"  {i+1}. {clip.source_offset:.1f}s +{clip.duration:.1f}s ({source})"
        )

    if not result.clips:
        return

    if write_script:
        if not sources:
            logger.warning("No --video given, skipping concat script")
        else:
            write_concat_script(result.clips, output_dir / "clips.ffconcat")

    if export:
        if not sources:
            logger.warning("No --video given, nothing to export")
            return

        output_name = format_path(settings.output_file_name, {"name": log_path.stem})
        output_path = output_dir / output_name

        async def progress_callback(pct):
            logger.info(f"[{pct:.0f}%] Exporting...")

        await export_highlights(result.clips, output_path, progress_callback=progress_callback)
        logger.info(f"Highlights exported to: {output_path}")


def main():
    parser = argparse.ArgumentParser(
        description="Select highlight clips from a game state log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Print clips for a log, timeline starting at the first record
    python scripts/autoedit_cli.py run.log --rules rules.json

    # Cut clips from two recordings and render them
    python scripts/autoedit_cli.py run.log --rules rules.json \\
        --video part1.mp4 --video-start 2020-10-01T12:34:56 \\
        --video part2.mp4 --video-start 2020-10-01T13:10:00 --export
        """
    )

    parser.add_argument(
        "log_path",
        type=Path,
        help="Snapshot log to analyze"
    )

    parser.add_argument(
        "--rules", "-r",
        type=Path,
        required=True,
        help="Rule document (JSON)"
    )

    parser.add_argument(
        "--video", "-v",
        type=Path,
        action="append",
        default=[],
        help="Recording to cut clips from (repeatable)"
    )

    parser.add_argument(
        "--video-start",
        action="append",
        default=[],
        help="Start of the matching --video, epoch seconds or ISO 8601 (default: parsed from the file name)"
    )

    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=None,
        help="Timeline length in seconds (default: end of the last video)"
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help=f"Output directory (default: {settings.output_dir})"
    )

    parser.add_argument("--script", action="store_true", help="Write an ffmpeg concat script")
    parser.add_argument("--export", action="store_true", help="Render the highlight video")
    parser.add_argument("--debug-json", action="store_true", help="Write pipeline debug JSON")

    args = parser.parse_args()

    if args.output_dir is None:
        args.output_dir = settings.output_dir

    try:
        asyncio.run(edit_highlights(
            log_path=args.log_path,
            rules_path=args.rules,
            output_dir=args.output_dir,
            videos=args.video,
            video_starts=args.video_start,
            total_duration=args.duration,
            write_script=args.script,
            export=args.export,
            debug_json=args.debug_json,
        ))
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except ValueError as e:  # Log, rule and reconstruction errors included
        logger.error(str(e))
        sys.exit(1)
    except FFmpegError as e:
        logger.error(str(e))
        sys.exit(e.returncode or 1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
