"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Credentials have no hardcoded values; when unset, boto3 falls back to its
default credential chain.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

from cloudvideo.modules.transcoding.naming import (
    COUNT_PLACEHOLDER,
    NAME_PLACEHOLDER,
    validate_template,
)


# Default manifest extension per transcoder playlist format
PLAYLIST_FORMAT_EXTENSIONS = {
    "HLSv3": "m3u8",
    "HLSv4": "m3u8",
    "MPEG-DASH": "mpd",
    "Smooth": "ism",
}


class OutputPreset(BaseModel):
    """Output settings for one transcoder preset.

    ``{name}`` in ``key`` and ``thumbnail_pattern`` is replaced with the source
    filename (extension removed). The original transcoder spellings (``Key``,
    ``ThumbnailPattern``, ``SegmentDuration``) are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(validation_alias=AliasChoices("key", "Key"))
    thumbnail_pattern: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("thumbnail_pattern", "ThumbnailPattern"),
    )
    segment_duration: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("segment_duration", "SegmentDuration"),
    )

    @model_validator(mode="after")
    def _check_templates(self) -> "OutputPreset":
        validate_template(self.key, {NAME_PLACEHOLDER})
        if self.thumbnail_pattern:
            validate_template(
                self.thumbnail_pattern,
                {NAME_PLACEHOLDER, COUNT_PLACEHOLDER},
                required={COUNT_PLACEHOLDER},
            )
        return self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Cloud Video Transcoder"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/cloudvideo"

    # Redis (Celery broker and result backend)
    REDIS_URL: str = "redis://localhost:6379/0"

    # AWS credentials, the environment always wins over .env
    AWS_VIDEO_KEY: Optional[str] = None
    AWS_VIDEO_SECRET: Optional[str] = None
    AWS_REGION: str = "ap-southeast-2"

    # Storage Configuration
    # STORAGE_BACKEND: s3 (also aws, minio) or local
    STORAGE_BACKEND: str = "s3"
    LOCAL_STORAGE_PATH: str = "./storage"
    STORAGE_ENDPOINT_URL: Optional[str] = None

    # Buckets: uploaded sources are read from the first, renditions land in the second
    VIDEO_SOURCE_BUCKET: str = ""
    VIDEO_TRANSCODED_BUCKET: str = ""

    # Transcoder
    TRANSCODE_PIPELINE_ID: str = ""
    TRANSCODE_OUTPUTS: dict[str, OutputPreset] = {}
    TRANSCODE_PLAYLIST_FORMAT: Optional[str] = None
    TRANSCODE_PLAYLIST_OUTPUTS: list[str] = []
    TRANSCODE_PLAYLIST_NAME: str = "{name}"
    TRANSCODE_PLAYLIST_EXTENSION: Optional[str] = None
    TRANSCODE_THUMBNAIL_EXTENSION: str = "jpg"
    TRANSCODE_THUMBNAIL_NUMBER: int = Field(default=1, ge=1)
    TRANSCODE_DURATION_FIELD: str = "Duration"
    TRANSCODE_USE_DIRECTORY: bool = False

    # Polling
    TRANSCODE_CHECK_INTERVAL_SECONDS: int = Field(default=30, ge=0)
    TRANSCODE_MAX_CHECK_ATTEMPTS: int = Field(default=0, ge=0)  # 0 = no cap

    # Hosting
    VIDEO_BASE_URL: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @model_validator(mode="after")
    def _check_transcode_config(self) -> "Settings":
        validate_template(self.TRANSCODE_PLAYLIST_NAME, {NAME_PLACEHOLDER})

        unknown = set(self.TRANSCODE_PLAYLIST_OUTPUTS) - set(self.TRANSCODE_OUTPUTS)
        if unknown:
            raise ValueError(
                "TRANSCODE_PLAYLIST_OUTPUTS references presets missing from "
                f"TRANSCODE_OUTPUTS: {sorted(unknown)}"
            )

        if self.TRANSCODE_PLAYLIST_FORMAT and self.playlist_extension is None:
            raise ValueError(
                f"No playlist extension known for format {self.TRANSCODE_PLAYLIST_FORMAT!r}; "
                "set TRANSCODE_PLAYLIST_EXTENSION"
            )
        return self

    @property
    def playlist_extension(self) -> Optional[str]:
        """Extension appended to playlist names reported by the transcoder."""
        if self.TRANSCODE_PLAYLIST_EXTENSION:
            return self.TRANSCODE_PLAYLIST_EXTENSION
        if self.TRANSCODE_PLAYLIST_FORMAT:
            return PLAYLIST_FORMAT_EXTENSIONS.get(self.TRANSCODE_PLAYLIST_FORMAT)
        return None


settings = Settings()
