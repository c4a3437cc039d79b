"""Video record repository for database operations.

Every mutating method commits, so each write is durable before the caller
schedules follow-up work.
"""

from pathlib import Path
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cloudvideo.modules.video.models import ProcessingState, VideoRecord
from cloudvideo.modules.video.state import reset


class VideoRecordRepository:
    """Repository for VideoRecord persistence."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        source_path: Optional[str] = None,
        delete_source_on_complete: bool = True,
    ) -> VideoRecord:
        """Create a new video record.

        Args:
            source_path: Local path of the source file, if already attached
            delete_source_on_complete: Remove the local source once transcoded

        Returns:
            VideoRecord: Created record
        """
        record = VideoRecord.new(
            source_path=source_path,
            delete_source_on_complete=delete_source_on_complete,
        )
        self.session.add(record)
        await self.session.flush()
        await self.session.commit()
        return record

    async def get_by_id(self, video_id: int) -> Optional[VideoRecord]:
        """Get video record by ID.

        Args:
            video_id: Record ID

        Returns:
            Optional[VideoRecord]: Record if found, None otherwise
        """
        result = await self.session.execute(
            select(VideoRecord).where(VideoRecord.id == video_id)
        )
        return result.scalar_one_or_none()

    async def list_records(
        self,
        state: Optional[ProcessingState] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[VideoRecord]:
        """List video records, newest first.

        Args:
            state: Only records in this state
            limit: Maximum number of records
            offset: Number of records to skip

        Returns:
            list[VideoRecord]: Matching records
        """
        query = select(VideoRecord)
        if state is not None:
            query = query.where(VideoRecord.state == state.value)
        query = query.order_by(VideoRecord.id.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def persist(self, record: VideoRecord) -> None:
        """Write pending changes of a record."""
        self.session.add(record)
        await self.session.commit()

    async def attach_source(self, record: VideoRecord, source_path: str) -> None:
        """Attach a source file to a record."""
        record.source_path = source_path
        record.original = Path(source_path).name
        await self.persist(record)

    async def claim_submission(self, video_id: int) -> bool:
        """Atomically flip ``submitted`` from false to true.

        The guarded UPDATE matches at most once per submission cycle, so only
        one concurrent caller sees a row count of 1.

        Returns:
            bool: True if this call claimed the submission
        """
        result = await self.session.execute(
            update(VideoRecord)
            .where(
                VideoRecord.id == video_id,
                VideoRecord.submitted.is_(False),
                VideoRecord.source_path.is_not(None),
            )
            .values(submitted=True, state=ProcessingState.SUBMITTED.value)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount == 1

    async def reset_submission(self, record: VideoRecord) -> None:
        """Return a record to NEW so it can be claimed again."""
        reset(record)
        await self.persist(record)

    async def set_job_data(self, record: VideoRecord, job_data: dict[str, Any]) -> None:
        """Store the transcoder job handle."""
        record.job_data = job_data
        await self.persist(record)

    async def set_outputs(
        self,
        record: VideoRecord,
        outputs: list[str],
        playlist: Optional[str],
        thumbnail: Optional[str],
        duration: int,
    ) -> None:
        """Overwrite all output fields in one write."""
        record.outputs = list(outputs)
        record.playlist = playlist
        record.thumbnail = thumbnail
        record.duration = duration
        await self.persist(record)

    async def on_processing_complete(self, record: VideoRecord) -> None:
        """Remove the local source file if the record asks for it."""
        if not record.delete_source_on_complete or not record.source_path:
            return

        Path(record.source_path).unlink(missing_ok=True)
        record.source_path = None
        await self.persist(record)
