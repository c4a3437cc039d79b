"""Pydantic schemas for transcoding jobs.

Job results are validated straight from the transcoder's job description, so
field aliases follow its spelling (``Id``, ``Status``, ``Outputs``, ...).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from cloudvideo.core.config import OutputPreset, Settings


class TranscodeConfig(BaseModel):
    """Orchestrator configuration, usually built from the settings."""

    source_bucket: str
    transcoded_bucket: str
    pipeline_id: str
    outputs: dict[str, OutputPreset] = Field(default_factory=dict)
    playlist_format: Optional[str] = None
    playlist_outputs: frozenset[str] = frozenset()
    playlist_name: str = "{name}"
    playlist_extension: Optional[str] = None
    thumbnail_extension: Optional[str] = "jpg"
    thumbnail_number: int = Field(default=1, ge=1)
    duration_field: Optional[str] = "Duration"
    use_directory: bool = False
    max_check_attempts: int = Field(default=0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranscodeConfig":
        return cls(
            source_bucket=settings.VIDEO_SOURCE_BUCKET,
            transcoded_bucket=settings.VIDEO_TRANSCODED_BUCKET,
            pipeline_id=settings.TRANSCODE_PIPELINE_ID,
            outputs=settings.TRANSCODE_OUTPUTS,
            playlist_format=settings.TRANSCODE_PLAYLIST_FORMAT,
            playlist_outputs=frozenset(settings.TRANSCODE_PLAYLIST_OUTPUTS),
            playlist_name=settings.TRANSCODE_PLAYLIST_NAME,
            playlist_extension=settings.playlist_extension,
            thumbnail_extension=settings.TRANSCODE_THUMBNAIL_EXTENSION or None,
            thumbnail_number=settings.TRANSCODE_THUMBNAIL_NUMBER,
            duration_field=settings.TRANSCODE_DURATION_FIELD or None,
            use_directory=settings.TRANSCODE_USE_DIRECTORY,
            max_check_attempts=settings.TRANSCODE_MAX_CHECK_ATTEMPTS,
        )


# ============================================
# Job submission
# ============================================

class TranscodeOutputSpec(BaseModel):
    """One rendition requested from the transcoder."""
    preset_id: str
    key: str
    thumbnail_pattern: Optional[str] = None
    segment_duration: Optional[str] = None

    def to_request(self) -> dict[str, Any]:
        request = {"Key": self.key, "PresetId": self.preset_id}
        if self.thumbnail_pattern:
            request["ThumbnailPattern"] = self.thumbnail_pattern
        if self.segment_duration:
            request["SegmentDuration"] = self.segment_duration
        return request


class PlaylistSpec(BaseModel):
    """Streaming manifest referencing a subset of the renditions."""
    format: str
    name: str
    output_keys: list[str] = Field(default_factory=list)

    def to_request(self) -> dict[str, Any]:
        return {
            "Format": self.format,
            "Name": self.name,
            "OutputKeys": list(self.output_keys),
        }


class TranscodeJobSpec(BaseModel):
    """A transcoding request. Not persisted."""
    pipeline_id: str
    input_key: str
    outputs: list[TranscodeOutputSpec] = Field(default_factory=list)
    playlist: Optional[PlaylistSpec] = None

    def to_request(self) -> dict[str, Any]:
        """Keyword arguments for the transcoder's create-job call."""
        request: dict[str, Any] = {
            "PipelineId": self.pipeline_id,
            "Input": {"Key": self.input_key},
            "Outputs": [output.to_request() for output in self.outputs],
        }
        if self.playlist is not None:
            request["Playlists"] = [self.playlist.to_request()]
        return request


# ============================================
# Job results
# ============================================

class JobOutput(BaseModel):
    """One output entry of a job description."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    key: str = Field(alias="Key")
    preset_id: Optional[str] = Field(default=None, alias="PresetId")
    thumbnail_pattern: Optional[str] = Field(default=None, alias="ThumbnailPattern")
    status: Optional[str] = Field(default=None, alias="Status")
    status_detail: Optional[str] = Field(default=None, alias="StatusDetail")


class JobPlaylist(BaseModel):
    """One playlist entry of a job description."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(alias="Name")
    format: Optional[str] = Field(default=None, alias="Format")
    output_keys: list[str] = Field(default_factory=list, alias="OutputKeys")


class TranscodeJobResult(BaseModel):
    """Job status as read from the transcoder."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="Id")
    status: str = Field(alias="Status")
    outputs: list[JobOutput] = Field(default_factory=list, alias="Outputs")
    playlists: list[JobPlaylist] = Field(default_factory=list, alias="Playlists")
    output: Optional[dict[str, Any]] = Field(default=None, alias="Output")

    @property
    def primary_output(self) -> Optional[dict[str, Any]]:
        """Metadata of the job's primary output."""
        if self.output:
            return self.output
        if self.outputs:
            return self.outputs[0].model_dump(by_alias=True)
        return None

    @property
    def status_details(self) -> list[str]:
        return [o.status_detail for o in self.outputs if o.status_detail]


class CompletionResult(BaseModel):
    """Artifacts extracted from a completed job."""
    outputs: list[str] = Field(default_factory=list)
    playlist: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: int = 0

    @property
    def published_keys(self) -> list[str]:
        """Every key that is made public after completion."""
        keys = list(self.outputs)
        if self.playlist:
            keys.append(self.playlist)
        if self.thumbnail:
            keys.append(self.thumbnail)
        return keys
