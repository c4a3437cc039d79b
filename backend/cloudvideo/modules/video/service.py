"""Video record service.

The write path of video records. Attaching a source to a record whose
``submitted`` flag is still false enqueues exactly one submit operation; the
flag is flipped by an atomic check-and-set in the record store, so concurrent
writers cannot both enqueue.
"""

import logging
import os
from typing import Optional

from cloudvideo.core.config import Settings, settings as default_settings
from cloudvideo.core.logging import log_error, log_info
from cloudvideo.modules.transcoding.interfaces import JobScheduler, Operation
from cloudvideo.modules.video.models import ProcessingState, VideoRecord
from cloudvideo.modules.video.repository import VideoRecordRepository
from cloudvideo.modules.video.state import is_terminal

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_TYPE = "video/mp4"
VIDEO_TYPES = {
    "webm": "video/webm",
}


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    pass


class VideoNotFoundError(VideoServiceError):
    """Raised when a video record is not found."""

    pass


class SourceRequiredError(VideoServiceError):
    """Raised when an operation needs an attached source file."""

    pass


class TranscodeInProgressError(VideoServiceError):
    """Raised when a record is resubmitted while its transcode is still running."""

    pass


def type_from_ext(key: str) -> str:
    """MIME type of a rendition from its file extension."""
    _, ext = os.path.splitext(key)
    return VIDEO_TYPES.get(ext.lstrip(".").lower(), DEFAULT_VIDEO_TYPE)


def can_resubmit(record: VideoRecord) -> bool:
    """A record can be resubmitted once it is terminal or was never queued."""
    state = ProcessingState(record.state)
    if is_terminal(state):
        return True
    return state == ProcessingState.NEW and not record.submitted


def hosted_url(key: Optional[str], base_url: str) -> Optional[str]:
    """Public URL of a transcoded object."""
    if not key:
        return None
    return f"{base_url.rstrip('/')}/{key.lstrip('/')}"


def fallbacks(outputs: list[str], base_url: str) -> dict[str, str]:
    """Hosted rendition URL per MIME type, first output of each type wins."""
    sources: dict[str, str] = {}
    for key in outputs or []:
        sources.setdefault(type_from_ext(key), hosted_url(key, base_url))
    return sources


class VideoService:
    """Service for registering and resubmitting video records."""

    def __init__(
        self,
        records: VideoRecordRepository,
        scheduler: JobScheduler,
        app_settings: Optional[Settings] = None,
    ):
        self.records = records
        self.scheduler = scheduler
        self.settings = app_settings or default_settings

    async def _enqueue_submit(self, record: VideoRecord) -> bool:
        """Claim the record's submission and enqueue it if the claim succeeds."""
        if not await self.records.claim_submission(record.id):
            return False

        record.submitted = True
        record.state = ProcessingState.SUBMITTED.value
        try:
            self.scheduler.enqueue(Operation.SUBMIT, record.id)
        except Exception as e:
            log_error(
                logger,
                f"Could not queue video {record.id}, releasing its submission",
                e,
                video_id=record.id,
                source_path=record.source_path,
            )
            await self.records.reset_submission(record)
            raise
        log_info(
            logger,
            f"Queued video {record.id} for transcoding",
            video_id=record.id,
            source_path=record.source_path,
        )
        return True

    async def register(
        self,
        source_path: Optional[str] = None,
        delete_source_on_complete: bool = True,
    ) -> VideoRecord:
        """Create a record and queue it when a source is attached.

        Args:
            source_path: Path of an already stored source file
            delete_source_on_complete: Remove the source once transcoded

        Returns:
            VideoRecord: Created record
        """
        record = await self.records.create(
            source_path=source_path,
            delete_source_on_complete=delete_source_on_complete,
        )
        if record.source_path:
            await self._enqueue_submit(record)
        return record

    async def attach_source(self, video_id: int, source_path: str) -> VideoRecord:
        """Attach a source file to an existing record and queue it.

        A record that was already submitted is not queued again.

        Raises:
            VideoNotFoundError: If the record doesn't exist
        """
        record = await self.get(video_id)
        await self.records.attach_source(record, source_path)
        await self._enqueue_submit(record)
        return record

    async def resubmit(self, video_id: int) -> VideoRecord:
        """Reset a record and queue it again.

        Raises:
            VideoNotFoundError: If the record doesn't exist
            SourceRequiredError: If the record has no source file
            TranscodeInProgressError: If a transcode is queued or running
        """
        record = await self.get(video_id)
        if not record.source_path:
            raise SourceRequiredError(f"Video {video_id} has no source file to resubmit")
        if not can_resubmit(record):
            raise TranscodeInProgressError(
                f"Video {video_id} is {record.state}, wait for its transcode to finish"
            )

        await self.records.reset_submission(record)
        await self._enqueue_submit(record)
        return record

    async def get(self, video_id: int) -> VideoRecord:
        """Get a video record by ID.

        Raises:
            VideoNotFoundError: If the record doesn't exist
        """
        record = await self.records.get_by_id(video_id)
        if not record:
            raise VideoNotFoundError(f"Video {video_id} not found")
        return record

    async def list_videos(
        self,
        state: Optional[ProcessingState] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[VideoRecord]:
        return await self.records.list_records(state=state, limit=limit, offset=offset)

    # ============================================
    # Hosted artifacts
    # ============================================

    def hosted_url(self, key: Optional[str]) -> Optional[str]:
        return hosted_url(key, self.settings.VIDEO_BASE_URL)

    def hosted_thumbnail_url(self, record: VideoRecord) -> Optional[str]:
        return self.hosted_url(record.thumbnail)

    def hosted_playlist_url(self, record: VideoRecord) -> Optional[str]:
        return self.hosted_url(record.playlist)

    def fallbacks(self, record: VideoRecord) -> dict[str, str]:
        return fallbacks(record.outputs, self.settings.VIDEO_BASE_URL)
