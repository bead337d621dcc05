"""API routes."""
import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool

from autoedit.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ClipResponse,
    HealthResponse,
)
from autoedit.pipeline import (
    LogParseError,
    PipelineConfig,
    PipelineResult,
    ReconstructionError,
    RuleConfigError,
    parse_rules,
    read_state_updates,
    run_pipeline,
)
from autoedit.pipeline.intervals import SourceSegment
from autoedit.utils.ffmpeg import (
    build_concat_script,
    check_ffmpeg_available,
    check_ffprobe_available,
)

router = APIRouter()
logger = logging.getLogger(__name__)


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()

    message = None
    if not (ffmpeg_ok and ffprobe_ok):
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        message = f"Missing dependencies: {', '.join(missing)}. Clip selection still works; export does not."

    return HealthResponse(
        status="healthy" if ffmpeg_ok and ffprobe_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        message=message
    )


# =============================================================================
# Analysis
# =============================================================================

def _select_clips(request: AnalyzeRequest, sources: List[SourceSegment]) -> PipelineResult:
    rules = parse_rules(request.rules)
    updates = read_state_updates(request.log)
    return run_pipeline(
        updates,
        PipelineConfig.from_rules(rules),
        sources=sources,
        total_duration=request.total_duration,
    )


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest):
    """Select clips from a snapshot log."""
    sources = [
        SourceSegment(path=Path(s.path), start=s.start_time, duration=s.duration)
        for s in request.sources
    ]

    try:
        # Parsing and selection are CPU bound; keep them off the event loop
        result = await run_in_threadpool(_select_clips, request, sources)
    except (LogParseError, RuleConfigError, ReconstructionError) as e:
        logger.warning(f"Analysis rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    stats = result.statistics()

    return AnalyzeResponse(
        clips=[ClipResponse(**clip) for clip in result.to_clip_list()],
        clip_count=stats["clip_count"],
        total_clip_duration=stats["total_clip_duration"],
        updates_seen=stats["updates_seen"],
        updates_skipped=stats["updates_skipped"],
        event_count=stats["event_count"],
        selected_event_count=stats["selected_event_count"],
        concat_script=build_concat_script(result.clips) if sources and result.clips else None,
    )
