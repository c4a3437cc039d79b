"""Celery tasks for the transcode lifecycle.

``submit_video_task`` uploads a source and creates the transcoder job,
``check_video_task`` polls it. Each invocation is isolated: orchestration
errors are logged and reported in the task result without a retry, gateway
errors propagate and are left to Celery's delivery semantics.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from celery import Task
from sqlalchemy.ext.asyncio import async_sessionmaker

from cloudvideo.core.celery_app import celery_app
from cloudvideo.core.config import settings
from cloudvideo.core.database import create_worker_engine
from cloudvideo.core.logging import clear_correlation_id, log_error, set_correlation_id
from cloudvideo.core.storage import ObjectStore
from cloudvideo.modules.transcoding.gateway import ElasticTranscoderGateway
from cloudvideo.modules.transcoding.interfaces import Operation
from cloudvideo.modules.transcoding.schemas import TranscodeConfig
from cloudvideo.modules.transcoding.service import (
    TranscodeOrchestrator,
    TranscodeServiceError,
    report_failure,
)
from cloudvideo.modules.video.repository import VideoRecordRepository

logger = logging.getLogger(__name__)


class CeleryJobScheduler:
    """Job scheduler that defers orchestrator operations to Celery."""

    def __init__(self, check_interval: Optional[int] = None):
        if check_interval is None:
            check_interval = settings.TRANSCODE_CHECK_INTERVAL_SECONDS
        self.check_interval = check_interval

    def enqueue(self, operation: Operation, video_id: int) -> None:
        if operation == Operation.SUBMIT:
            submit_video_task.delay(video_id)
        elif operation == Operation.CHECK:
            check_video_task.apply_async(args=[video_id], countdown=self.check_interval)
        else:
            raise ValueError(f"Unknown operation: {operation}")


class TranscodeTask(Task):
    """Base task for transcode operations."""

    abstract = True

    def before_start(self, task_id: str, args: tuple, kwargs: dict) -> None:
        set_correlation_id(task_id)

    def after_return(self, status, retval, task_id, args, kwargs, einfo) -> None:
        clear_correlation_id()

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        """Log failures escaping the task (gateway and infrastructure errors)."""
        video_id = args[0] if args else kwargs.get("video_id")
        log_error(
            logger,
            f"Task {self.name} failed for video {video_id}: {exc}",
            exc,
            video_id=video_id,
            task_id=task_id,
        )


OrchestratorCall = Callable[[TranscodeOrchestrator], Awaitable[Any]]


async def _run_with_orchestrator(call: OrchestratorCall) -> Any:
    """Build an orchestrator on a fresh database session and run ``call``."""
    worker_engine = create_worker_engine()
    session_maker = async_sessionmaker(worker_engine, expire_on_commit=False)
    try:
        async with session_maker() as session:
            orchestrator = TranscodeOrchestrator(
                records=VideoRecordRepository(session),
                scheduler=CeleryJobScheduler(),
                storage=ObjectStore(),
                transcoder=ElasticTranscoderGateway(),
                config=TranscodeConfig.from_settings(settings),
                logger=logger,
            )
            return await call(orchestrator)
    finally:
        await worker_engine.dispose()


def run_operation(operation: Operation, video_id: int, call: OrchestratorCall) -> dict:
    """Run an orchestrator operation, turning fatal errors into a result.

    Returns:
        dict: Operation result
    """
    try:
        value = asyncio.run(_run_with_orchestrator(call))
    except TranscodeServiceError as e:
        report_failure(logger, e, video_id, operation)
        return {
            "status": "error",
            "operation": operation.value,
            "video_id": video_id,
            "error": str(e),
        }

    return {
        "status": "success",
        "operation": operation.value,
        "video_id": video_id,
        "result": value,
    }


@celery_app.task(bind=True, base=TranscodeTask)
def submit_video_task(self: TranscodeTask, video_id: int) -> dict:
    """Upload a video's source and create its transcoder job.

    Args:
        video_id: ID of the video record

    Returns:
        dict: Submission result with the job handle
    """
    return run_operation(
        Operation.SUBMIT,
        video_id,
        lambda orchestrator: orchestrator.submit(video_id),
    )


@celery_app.task(bind=True, base=TranscodeTask)
def check_video_task(self: TranscodeTask, video_id: int) -> dict:
    """Poll the transcoder job of a video.

    Args:
        video_id: ID of the video record

    Returns:
        dict: Check result with the reported job status
    """
    return run_operation(
        Operation.CHECK,
        video_id,
        lambda orchestrator: orchestrator.check(video_id),
    )
