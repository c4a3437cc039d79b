"""Pydantic schemas for the video API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from cloudvideo.modules.video.models import ProcessingState, VideoRecord


class VideoCreate(BaseModel):
    """Request schema for registering a stored source file."""

    source_path: str = Field(..., min_length=1, max_length=1024)
    delete_source_on_complete: bool = True

    @field_validator("source_path")
    @classmethod
    def validate_source_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("source_path must not be blank")
        return v


class VideoRecordResponse(BaseModel):
    """Response schema for a video record."""

    id: int
    original: Optional[str] = None
    source_path: Optional[str] = None
    delete_source_on_complete: bool
    submitted: bool
    state: ProcessingState
    job_id: Optional[str] = None
    check_attempts: int = 0
    error_message: Optional[str] = None
    outputs: list[str] = Field(default_factory=list)
    playlist: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: int = 0
    hosted_playlist_url: Optional[str] = None
    hosted_thumbnail_url: Optional[str] = None
    fallbacks: dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record: VideoRecord, **hosted: Any) -> "VideoRecordResponse":
        """Build a response from a record plus its hosted artifact URLs."""
        return cls(
            id=record.id,
            original=record.original,
            source_path=record.source_path,
            delete_source_on_complete=record.delete_source_on_complete,
            submitted=record.submitted,
            state=ProcessingState(record.state),
            job_id=record.job_id,
            check_attempts=record.check_attempts or 0,
            error_message=record.error_message,
            outputs=list(record.outputs or []),
            playlist=record.playlist,
            thumbnail=record.thumbnail,
            duration=record.duration or 0,
            created_at=record.created_at,
            updated_at=record.updated_at,
            **hosted,
        )


class VideoListResponse(BaseModel):
    """Response schema for a list of video records."""

    items: list[VideoRecordResponse]
    total: int
