"""Video record model.

One row per video: the attached source file, the submission flag, the
transcoder job handle and the recorded output artifacts.
"""

import os
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from cloudvideo.core.database import Base


class ProcessingState(str, Enum):
    """Processing state of a video record."""

    NEW = "new"
    SUBMITTED = "submitted"
    AWAITING_TRANSCODE = "awaiting_transcode"
    COMPLETE = "complete"
    FAILED = "failed"
    STUCK = "stuck"


class VideoRecord(Base):
    """Persisted state for one video."""

    __tablename__ = "video_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Source upload
    source_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    original: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delete_source_on_complete: Mapped[bool] = mapped_column(Boolean, default=True)

    # Submission and job tracking
    submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    state: Mapped[str] = mapped_column(
        String(32), default=ProcessingState.NEW.value, index=True
    )
    job_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    check_attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Outputs, overwritten as a whole on each completion
    outputs: Mapped[list[str]] = mapped_column(JSON, default=list)
    playlist: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    thumbnail: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<VideoRecord {self.id} - {self.original} - {self.state}>"

    @classmethod
    def new(
        cls,
        source_path: Optional[str] = None,
        delete_source_on_complete: bool = True,
    ) -> "VideoRecord":
        """Build an unsaved record with every column initialised.

        Column defaults only apply on flush; callers inspect fresh records
        before that.
        """
        return cls(
            source_path=source_path,
            original=os.path.basename(source_path) if source_path else None,
            delete_source_on_complete=delete_source_on_complete,
            submitted=False,
            state=ProcessingState.NEW.value,
            job_data=None,
            check_attempts=0,
            error_message=None,
            outputs=[],
            playlist=None,
            thumbnail=None,
            duration=0,
        )

    @property
    def job_id(self) -> Optional[str]:
        """Transcoder job identifier from the stored job data."""
        if not self.job_data:
            return None
        return self.job_data.get("Id") or None
