"""Application configuration."""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AUTOEDIT_",
    )

    # App settings
    app_name: str = "AutoEdit"
    debug: bool = False

    # Server settings
    host: str = "127.0.0.1"
    port: int = 8000

    # Output
    output_dir: Path = Path("./autoedit_output")
    output_file_name: str = "{name} - Highlights {utcNow:%Y.%m.%d - %H.%M.%S}.mp4"

    # Clip selection defaults (used when the rule document is silent)
    default_before_time: float = 3.0  # Seconds of footage kept before an event
    default_after_time: float = 2.0  # Seconds of footage kept after an event
    default_merge_margin: float = 5.0  # Max gap between clips that still fuses them

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Export settings
    export_video_codec: str = "libx264"
    export_video_preset: str = "veryfast"
    export_video_crf: int = 18
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "192k"


settings = Settings()
