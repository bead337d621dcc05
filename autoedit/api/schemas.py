"""Pydantic schemas for API requests and responses."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Analysis Schemas
# =============================================================================

class SourceSegmentRequest(BaseModel):
    """A recording file placed on the log timeline."""
    path: str = Field(..., description="Path of the recording file")
    start_time: float = Field(..., description="Recording start in epoch seconds")
    duration: float = Field(..., ge=0, description="Recording length in seconds")


class AnalyzeRequest(BaseModel):
    """Request to select clips from a snapshot log."""
    log: str = Field(..., description="Snapshot log text")
    rules: Dict[str, Any] = Field(..., description="Rule document (maxMergeTime, categories)")
    total_duration: Optional[float] = Field(
        None, ge=0, description="Length of the recording in seconds"
    )
    sources: List[SourceSegmentRequest] = Field(
        default_factory=list, description="Recording files; clips are cut from these"
    )


class ClipResponse(BaseModel):
    """Selected clip."""
    start_time: float
    end_time: float
    duration: float
    source: Optional[str]
    source_offset: float


class AnalyzeResponse(BaseModel):
    """Clips and pipeline statistics."""
    clips: List[ClipResponse]
    clip_count: int
    total_clip_duration: float
    updates_seen: int
    updates_skipped: int
    event_count: int
    selected_event_count: int
    concat_script: Optional[str] = None


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    message: Optional[str] = None
