"""Video API router.

Registers stored source files for transcoding and exposes the processing
state of video records.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cloudvideo.core.database import get_db
from cloudvideo.modules.transcoding.tasks import CeleryJobScheduler
from cloudvideo.modules.video.models import ProcessingState, VideoRecord
from cloudvideo.modules.video.repository import VideoRecordRepository
from cloudvideo.modules.video.schemas import (
    VideoCreate,
    VideoListResponse,
    VideoRecordResponse,
)
from cloudvideo.modules.video.service import (
    SourceRequiredError,
    TranscodeInProgressError,
    VideoNotFoundError,
    VideoService,
)

router = APIRouter(prefix="/videos", tags=["videos"])


def get_video_service(db: AsyncSession = Depends(get_db)) -> VideoService:
    """Video service bound to a request's database session."""
    return VideoService(VideoRecordRepository(db), CeleryJobScheduler())


def to_response(service: VideoService, record: VideoRecord) -> VideoRecordResponse:
    return VideoRecordResponse.from_record(
        record,
        hosted_playlist_url=service.hosted_playlist_url(record),
        hosted_thumbnail_url=service.hosted_thumbnail_url(record),
        fallbacks=service.fallbacks(record),
    )


@router.post("", response_model=VideoRecordResponse, status_code=status.HTTP_201_CREATED)
async def register_video(
    request: VideoCreate,
    service: VideoService = Depends(get_video_service),
):
    """Register a stored source file and queue it for transcoding."""
    record = await service.register(
        source_path=request.source_path,
        delete_source_on_complete=request.delete_source_on_complete,
    )
    return to_response(service, record)


@router.get("", response_model=VideoListResponse)
async def list_videos(
    state: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    service: VideoService = Depends(get_video_service),
):
    """List video records, newest first."""
    processing_state = None
    if state:
        try:
            processing_state = ProcessingState(state)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid state: {state}",
            )

    records = await service.list_videos(processing_state, limit, offset)
    items = [to_response(service, record) for record in records]
    return VideoListResponse(items=items, total=len(items))


@router.get("/{video_id}", response_model=VideoRecordResponse)
async def get_video(
    video_id: int,
    service: VideoService = Depends(get_video_service),
):
    """Get a video record by ID."""
    try:
        record = await service.get(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return to_response(service, record)


@router.post("/{video_id}/resubmit", response_model=VideoRecordResponse)
async def resubmit_video(
    video_id: int,
    service: VideoService = Depends(get_video_service),
):
    """Reset a video record and queue it for transcoding again."""
    try:
        record = await service.resubmit(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceRequiredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TranscodeInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return to_response(service, record)
