"""FFmpeg and ffprobe utilities.

The pipeline only produces clip offsets; these helpers turn them into
ffmpeg invocations (a trim/concat filter graph) or a concat demuxer script.
"""
import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from autoedit.config import settings
from autoedit.pipeline.intervals import Clip

logger = logging.getLogger(__name__)

# Characters of ffmpeg's stderr kept in export error messages
STDERR_TAIL_CHARS = 2000


@dataclass
class VideoInfo:
    """Video metadata container."""
    duration: float
    width: int
    height: int
    fps: float
    video_codec: str
    audio_codec: Optional[str]


class FFmpegError(Exception):
    """FFmpeg related error."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


def parse_frame_rate(value: str) -> float:
    if "/" in value:
        num, den = value.split("/")
        return float(num) / float(den) if float(den) > 0 else 30.0
    return float(value)


async def get_video_info(video_path: str | Path) -> VideoInfo:
    """
    Get video metadata using ffprobe.

    Raises:
        FFmpegError: If ffprobe fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")

    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError(f"ffprobe failed: {stderr.decode()}", proc.returncode)

    try:
        data = json.loads(stdout.decode())
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")

    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    if not video_stream:
        raise FFmpegError(f"No video stream found in {video_path}")

    duration = float(data.get("format", {}).get("duration", 0))
    if duration == 0:
        duration = float(video_stream.get("duration", 0))

    return VideoInfo(
        duration=duration,
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        fps=parse_frame_rate(video_stream.get("r_frame_rate", "30/1")),
        video_codec=video_stream.get("codec_name", "unknown"),
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
    )


def clip_inputs(clips: Sequence[Clip]) -> Tuple[List[Path], Dict[Path, int]]:
    """Distinct source files in first-use order, with their input index."""
    inputs: List[Path] = []
    index: Dict[Path, int] = {}

    for clip in clips:
        if clip.source is None:
            raise FFmpegError(f"Clip {clip.time_range} has no source file")
        path = Path(clip.source.path)
        if path not in index:
            index[path] = len(inputs)
            inputs.append(path)

    return inputs, index


def format_seconds(value: float) -> str:
    return f"{value:.3f}"


def build_concat_filter(clips: Sequence[Clip], include_audio: bool = True) -> str:
    """
    Build a filter graph trimming every clip and concatenating the parts.

    Output pads are ``[outv]`` and, with audio, ``[outa]``.
    """
    if not clips:
        raise FFmpegError("No clips to concatenate")

    _, index = clip_inputs(clips)

    filter_parts = []
    concat_inputs = []

    for i, clip in enumerate(clips):
        n = index[Path(clip.source.path)]
        start = format_seconds(clip.source_offset)
        end = format_seconds(clip.source_offset + clip.duration)

        filter_parts.append(f"[{n}:v]trim=start={start}:end={end},setpts=PTS-STARTPTS[v{i}]")
        if include_audio:
            filter_parts.append(f"[{n}:a]atrim=start={start}:end={end},asetpts=PTS-STARTPTS[a{i}]")
            concat_inputs.append(f"[v{i}][a{i}]")
        else:
            concat_inputs.append(f"[v{i}]")

    audio_streams = 1 if include_audio else 0
    outputs = "[outv][outa]" if include_audio else "[outv]"
    filter_parts.append(
        f"{''.join(concat_inputs)}concat=n={len(clips)}:v=1:a={audio_streams}{outputs}"
    )

    return ";".join(filter_parts)


def build_export_command(
    clips: Sequence[Clip],
    output_path: str | Path,
    include_audio: bool = True,
) -> List[str]:
    """Full ffmpeg argument list exporting ``clips`` as one video."""
    inputs, _ = clip_inputs(clips)

    cmd = [settings.ffmpeg_path, "-y", "-nostats"]
    for path in inputs:
        cmd += ["-i", str(path)]

    cmd += [
        "-filter_complex", build_concat_filter(clips, include_audio),
        "-map", "[outv]",
    ]
    if include_audio:
        cmd += ["-map", "[outa]"]

    cmd += [
        "-c:v", settings.export_video_codec,
        "-preset", settings.export_video_preset,
        "-crf", str(settings.export_video_crf),
    ]
    if include_audio:
        cmd += [
            "-c:a", settings.export_audio_codec,
            "-b:a", settings.export_audio_bitrate,
        ]

    cmd += [
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        str(output_path)
    ]
    return cmd


def _quote_concat_path(path: Path) -> str:
    # Concat demuxer quoting: close the quote, escape, reopen
    return "'" + str(path).replace("'", "'\\''") + "'"


def build_concat_script(clips: Sequence[Clip]) -> str:
    """
    Serialize clips as an ffmpeg concat demuxer script.

    Usable with ``ffmpeg -f concat -safe 0 -i script.txt``.
    """
    lines = ["ffconcat version 1.0"]

    for clip in clips:
        if clip.source is None:
            raise FFmpegError(f"Clip {clip.time_range} has no source file")
        lines.append(f"file {_quote_concat_path(Path(clip.source.path))}")
        lines.append(f"inpoint {format_seconds(clip.source_offset)}")
        lines.append(f"outpoint {format_seconds(clip.source_offset + clip.duration)}")

    return "\n".join(lines) + "\n"


def write_concat_script(clips: Sequence[Clip], output_path: str | Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_concat_script(clips), encoding="utf-8")
    logger.info(f"Concat script written to: {output_path}")
    return output_path


async def export_highlights(
    clips: Sequence[Clip],
    output_path: str | Path,
    include_audio: bool = True,
    progress_callback=None
) -> Path:
    """
    Export clips concatenated into a single video.

    Args:
        clips: Clips with source files attached
        output_path: Path for output file
        include_audio: Whether sources carry an audio stream to keep
        progress_callback: Optional async callback(progress: float)

    Returns:
        Path to exported video

    Raises:
        FFmpegError: If ffmpeg exits with a non-zero status
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = build_export_command(clips, output_path, include_audio)
    total_duration = sum(clip.duration for clip in clips)

    logger.info(f"Exporting {len(clips)} clips ({total_duration:.1f}s) to {output_path}")

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    # ffmpeg blocks once the stderr pipe fills, so drain it alongside stdout
    stderr_task = asyncio.create_task(proc.stderr.read())

    last_progress = 0
    while True:
        line = await proc.stdout.readline()
        if not line:
            break

        line_str = line.decode("utf-8", errors="ignore").strip()

        if progress_callback and total_duration > 0 and line_str.startswith("out_time_ms="):
            try:
                out_time_us = int(line_str.split("=")[1])
                out_time_s = out_time_us / 1_000_000
                progress = min(100, (out_time_s / total_duration) * 100)
                if progress - last_progress >= 1:
                    await progress_callback(progress)
                    last_progress = progress
            except (ValueError, IndexError):
                pass

    await proc.wait()
    stderr = await stderr_task

    if proc.returncode != 0:
        tail = stderr.decode("utf-8", errors="ignore")[-STDERR_TAIL_CHARS:]
        raise FFmpegError(
            f"Export failed with exit status {proc.returncode}: {tail}",
            proc.returncode,
        )

    return output_path
