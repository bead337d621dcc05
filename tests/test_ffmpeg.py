"""Tests for ffmpeg command and script generation."""
import asyncio
import sys
from pathlib import Path

import pytest

from autoedit.config import settings
from autoedit.pipeline.intervals import Clip, SourceSegment, TimeRange
from autoedit.utils import ffmpeg
from autoedit.utils.ffmpeg import (
    FFmpegError,
    build_concat_filter,
    build_concat_script,
    build_export_command,
    export_highlights,
    parse_frame_rate,
)

FIRST = SourceSegment(Path("/videos/first.mp4"), start=0.0, duration=600.0)
SECOND = SourceSegment(Path("/videos/second.mp4"), start=610.0, duration=600.0)


@pytest.fixture
def clips():
    return [
        Clip(TimeRange(97.0, 5.0), FIRST),
        Clip(TimeRange(700.0, 12.5), SECOND),
        Clip(TimeRange(300.0, 4.0), FIRST),
    ]


def test_parse_frame_rate():
    assert parse_frame_rate("30/1") == 30.0
    assert parse_frame_rate("60000/1001") == pytest.approx(59.94, abs=0.01)
    assert parse_frame_rate("0/0") == 30.0
    assert parse_frame_rate("25") == 25.0


def test_concat_filter_trims_each_clip(clips):
    graph = build_concat_filter(clips)

    assert "[0:v]trim=start=97.000:end=102.000,setpts=PTS-STARTPTS[v0]" in graph
    assert "[1:v]trim=start=90.000:end=102.500,setpts=PTS-STARTPTS[v1]" in graph
    assert "[0:a]atrim=start=300.000:end=304.000,asetpts=PTS-STARTPTS[a2]" in graph
    assert graph.endswith("[v0][a0][v1][a1][v2][a2]concat=n=3:v=1:a=1[outv][outa]")


def test_concat_filter_without_audio(clips):
    graph = build_concat_filter(clips, include_audio=False)

    assert "atrim" not in graph
    assert graph.endswith("[v0][v1][v2]concat=n=3:v=1:a=0[outv]")


def test_concat_filter_rejects_empty():
    with pytest.raises(FFmpegError):
        build_concat_filter([])


def test_export_command_lists_each_source_once(clips):
    cmd = build_export_command(clips, "/out/highlights.mp4")

    assert cmd[0] == settings.ffmpeg_path
    assert [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"] == [
        str(FIRST.path),
        str(SECOND.path),
    ]
    assert "[outa]" in cmd
    assert cmd[-1] == "/out/highlights.mp4"


def test_clip_without_source_is_rejected():
    with pytest.raises(FFmpegError):
        build_export_command([Clip(TimeRange(0, 1))], "out.mp4")
    with pytest.raises(FFmpegError):
        build_concat_script([Clip(TimeRange(0, 1))])


def test_concat_script(clips):
    script = build_concat_script(clips[:2])

    assert script.splitlines() == [
        "ffconcat version 1.0",
        "file '/videos/first.mp4'",
        "inpoint 97.000",
        "outpoint 102.000",
        "file '/videos/second.mp4'",
        "inpoint 90.000",
        "outpoint 102.500",
    ]


def test_concat_script_quotes_apostrophes():
    source = SourceSegment(Path("/videos/it's a run.mp4"), start=0.0, duration=10.0)
    script = build_concat_script([Clip(TimeRange(1.0, 2.0), source)])
    assert "file '/videos/it'\\''s a run.mp4'" in script


class _FakeStream:
    def __init__(self, lines=(), data=b""):
        self._lines = list(lines)
        self._data = data

    async def readline(self):
        return self._lines.pop(0) if self._lines else b""

    async def read(self):
        return self._data


class _FakeProcess:
    def __init__(self, returncode, stdout_lines=(), stderr=b""):
        self.returncode = returncode
        self.stdout = _FakeStream(stdout_lines)
        self.stderr = _FakeStream(data=stderr)

    async def wait(self):
        return self.returncode


@pytest.mark.asyncio
async def test_export_reports_progress(monkeypatch, tmp_path, clips):
    calls = []

    async def _fake_exec(*cmd, **kwargs):
        calls.append(cmd)
        return _FakeProcess(0, [b"out_time_ms=10750000\n", b"progress=end\n"])

    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", _fake_exec)

    progress = []

    async def _on_progress(value):
        progress.append(value)

    output = await export_highlights(clips, tmp_path / "out" / "highlights.mp4", progress_callback=_on_progress)

    assert output == tmp_path / "out" / "highlights.mp4"
    assert len(calls) == 1
    assert progress == [pytest.approx(50.0)]


@pytest.mark.asyncio
async def test_export_failure_raises(monkeypatch, tmp_path, clips):
    async def _fake_exec(*cmd, **kwargs):
        return _FakeProcess(1, stderr=b"Invalid data found when processing input")

    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", _fake_exec)

    with pytest.raises(FFmpegError) as exc_info:
        await export_highlights(clips, tmp_path / "highlights.mp4")

    assert exc_info.value.returncode == 1
    assert "Invalid data" in str(exc_info.value)


@pytest.mark.asyncio
async def test_export_failure_with_large_stderr(monkeypatch, tmp_path, clips):
    real_exec = asyncio.create_subprocess_exec
    noisy_ffmpeg = "import sys; sys.stderr.write('frame= 1 fps=0.0\\n' * 20000); sys.exit(1)"

    async def _noisy_exec(*cmd, **kwargs):
        return await real_exec(sys.executable, "-c", noisy_ffmpeg, **kwargs)

    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", _noisy_exec)

    with pytest.raises(FFmpegError) as exc_info:
        await asyncio.wait_for(export_highlights(clips, tmp_path / "highlights.mp4"), timeout=10)

    assert exc_info.value.returncode == 1
    assert len(str(exc_info.value)) < 3000


def test_export_command_disables_stats(clips):
    cmd = build_export_command(clips, "out.mp4")
    assert "-nostats" in cmd
    assert cmd[cmd.index("-progress") + 1] == "pipe:1"
