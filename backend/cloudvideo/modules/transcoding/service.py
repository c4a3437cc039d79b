"""Transcode orchestration.

Moves a video record through its lifecycle: upload the source, submit a
transcoder job, poll the job and record the produced artifacts.

``submit`` and ``check`` are run by the job scheduler as independent units of
work. Both are safe to redeliver: uploads are skipped when the source object
already exists, completion overwrites the record's outputs and publishing
only touches objects that exist.
"""

import logging
from typing import Any, Optional

from pydantic_core import to_jsonable_python

from cloudvideo.core import metrics
from cloudvideo.core.logging import log_error, log_info, log_warning
from cloudvideo.core.storage import content_type_for
from cloudvideo.modules.transcoding.interfaces import (
    JobScheduler,
    Operation,
    RecordStore,
    StorageGateway,
    TranscoderGateway,
)
from cloudvideo.modules.transcoding.naming import (
    base_name,
    render_output_key,
    render_thumbnail_name,
    set_extension,
    source_name,
)
from cloudvideo.modules.transcoding.schemas import (
    CompletionResult,
    PlaylistSpec,
    TranscodeConfig,
    TranscodeJobResult,
    TranscodeJobSpec,
    TranscodeOutputSpec,
)
from cloudvideo.modules.video.models import ProcessingState, VideoRecord
from cloudvideo.modules.video.state import InvalidTransitionError, is_terminal, transition

STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"


class TranscodeServiceError(Exception):
    """Base exception for transcode orchestration errors."""

    pass


class NotFoundError(TranscodeServiceError):
    """Raised when no record exists for an id."""

    def __init__(self, video_id: int):
        self.video_id = video_id
        super().__init__(f"Could not find a video with ID {video_id}")


class InvalidStateError(TranscodeServiceError):
    """Raised when a record is not in a state the operation needs."""

    pass


class TranscodeFailedError(TranscodeServiceError):
    """Raised when the transcoder reports a job as failed."""

    def __init__(self, video_id: int, source_path: Optional[str], detail: str = ""):
        self.video_id = video_id
        self.source_path = source_path
        message = f"Transcoding failed for video {video_id} ({source_path})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TranscodeTimeoutError(TranscodeServiceError):
    """Raised when a job is still running after the poll attempt cap."""

    def __init__(self, video_id: int, source_path: Optional[str], attempts: int):
        self.video_id = video_id
        self.source_path = source_path
        self.attempts = attempts
        super().__init__(
            f"Transcoding of video {video_id} ({source_path}) did not finish "
            f"after {attempts} status checks"
        )


def _advance(record: VideoRecord, to_state: ProcessingState) -> None:
    try:
        transition(record, to_state)
    except InvalidTransitionError as e:
        raise InvalidStateError(f"Video {record.id}: {e}") from e


def read_path(data: Optional[dict[str, Any]], path: Optional[str]) -> Any:
    """Value at a dotted key path in nested dicts, or None."""
    if not data or not path:
        return None
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def extract_video_outputs(job: TranscodeJobResult, playlist_outputs: frozenset[str]) -> list[str]:
    """Keys of the job's outputs, in order, without playlist-only renditions."""
    return [
        output.key
        for output in job.outputs
        if output.preset_id not in playlist_outputs
    ]


def extract_duration(job: TranscodeJobResult, duration_field: Optional[str]) -> int:
    """Duration in whole seconds from the primary output, 0 when unknown."""
    value = read_path(job.primary_output, duration_field)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def extract_thumbnail(
    job: TranscodeJobResult,
    number: int,
    extension: Optional[str],
) -> Optional[str]:
    """Name of the configured thumbnail of the first output that has one."""
    for output in job.outputs:
        if output.thumbnail_pattern:
            return render_thumbnail_name(
                output.thumbnail_pattern, output.key, number, extension
            )
    return None


def extract_playlist(job: TranscodeJobResult, extension: Optional[str]) -> Optional[str]:
    """Key of the first playlist the job produced."""
    if not job.playlists:
        return None
    return set_extension(job.playlists[0].name, extension)


class TranscodeOrchestrator:
    """Runs the submit and check operations for video records."""

    def __init__(
        self,
        records: RecordStore,
        scheduler: JobScheduler,
        storage: StorageGateway,
        transcoder: TranscoderGateway,
        config: TranscodeConfig,
        logger: Optional[logging.Logger] = None,
    ):
        self.records = records
        self.scheduler = scheduler
        self.storage = storage
        self.transcoder = transcoder
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    async def _get_record(self, video_id: int) -> VideoRecord:
        record = await self.records.get_by_id(video_id)
        if record is None:
            raise NotFoundError(video_id)
        return record

    # ============================================
    # Submit
    # ============================================

    async def submit(self, video_id: int) -> dict[str, Any]:
        """Upload the source, create a transcoder job and schedule a check.

        Returns:
            The job handle stored on the record.

        Raises:
            NotFoundError: No record for ``video_id``.
            InvalidStateError: The record has no source file or is in a
                terminal state.
        """
        record = await self._get_record(video_id)

        state = ProcessingState(record.state)
        if is_terminal(state):
            raise InvalidStateError(
                f"Video {video_id} is {state.value}; resubmit it to transcode again"
            )
        if not record.source_path:
            raise InvalidStateError(f"Video {video_id} has no source file")

        input_key = self.upload_source(record.source_path)
        spec = self.build_job_spec(record.source_path)

        job = self.transcoder.create_job(spec)
        metrics.TRANSCODE_JOBS_SUBMITTED_TOTAL.inc()

        _advance(record, ProcessingState.AWAITING_TRANSCODE)
        record.check_attempts = 0
        record.error_message = None
        await self.records.set_job_data(record, to_jsonable_python(job))

        log_info(
            self.logger,
            f"Submitted transcode job for video {video_id}",
            video_id=video_id,
            input_key=input_key,
            job_id=job.get("Id"),
        )

        self.scheduler.enqueue(Operation.CHECK, video_id)
        return record.job_data

    def upload_source(self, source_path: str) -> str:
        """Upload a source file unless an object with its filename exists.

        Existing objects are never overwritten.

        Returns:
            The key of the source object.
        """
        key = base_name(source_path)
        bucket = self.config.source_bucket

        if self.storage.exists(bucket, key):
            metrics.SOURCE_UPLOADS_TOTAL.labels(result="already_present").inc()
            return key

        with open(source_path, "rb") as stream:
            self.storage.put_stream(bucket, key, stream, content_type_for(source_path))
        metrics.SOURCE_UPLOADS_TOTAL.labels(result="uploaded").inc()
        return key

    def build_job_spec(self, source_path: str) -> TranscodeJobSpec:
        """Transcoding request for a source file from the configured presets."""
        input_key = base_name(source_path)
        name = source_name(source_path)
        use_directory = self.config.use_directory

        outputs = []
        for preset_id, preset in self.config.outputs.items():
            thumbnail_pattern = None
            if preset.thumbnail_pattern:
                thumbnail_pattern = render_output_key(
                    preset.thumbnail_pattern, name, use_directory
                )
            outputs.append(
                TranscodeOutputSpec(
                    preset_id=preset_id,
                    key=render_output_key(preset.key, name, use_directory),
                    thumbnail_pattern=thumbnail_pattern,
                    segment_duration=preset.segment_duration,
                )
            )

        playlist = None
        if self.config.playlist_format:
            playlist = PlaylistSpec(
                format=self.config.playlist_format,
                name=render_output_key(self.config.playlist_name, name, use_directory),
                output_keys=[
                    output.key
                    for output in outputs
                    if output.preset_id in self.config.playlist_outputs
                ],
            )

        return TranscodeJobSpec(
            pipeline_id=self.config.pipeline_id,
            input_key=input_key,
            outputs=outputs,
            playlist=playlist,
        )

    # ============================================
    # Check
    # ============================================

    async def check(self, video_id: int) -> str:
        """Poll the record's transcoder job and act on its status.

        Returns:
            The status reported by the transcoder.

        Raises:
            NotFoundError: No record for ``video_id``.
            InvalidStateError: The record holds no job identifier.
            TranscodeFailedError: The transcoder reported an error.
            TranscodeTimeoutError: The poll attempt cap was reached.
        """
        record = await self._get_record(video_id)

        job_id = record.job_id
        if not job_id:
            raise InvalidStateError(f"No job data could be found for video {video_id}")

        job = self.transcoder.read_job(job_id)
        status = (job.status or "").lower()

        if status == STATUS_COMPLETE:
            metrics.TRANSCODE_STATUS_CHECKS_TOTAL.labels(outcome="complete").inc()
            await self.complete(record, job)
        elif status == STATUS_ERROR:
            metrics.TRANSCODE_STATUS_CHECKS_TOTAL.labels(outcome="error").inc()
            await self._fail(record, job)
        else:
            metrics.TRANSCODE_STATUS_CHECKS_TOTAL.labels(outcome="pending").inc()
            await self._requeue(record, job)

        return job.status

    async def _fail(self, record: VideoRecord, job: TranscodeJobResult) -> None:
        error = TranscodeFailedError(
            record.id, record.source_path, "; ".join(job.status_details)
        )
        _advance(record, ProcessingState.FAILED)
        record.error_message = str(error)
        await self.records.persist(record)
        metrics.TRANSCODE_JOBS_FAILED_TOTAL.labels(reason="error").inc()
        raise error

    async def _requeue(self, record: VideoRecord, job: TranscodeJobResult) -> None:
        record.check_attempts = (record.check_attempts or 0) + 1
        cap = self.config.max_check_attempts

        if cap and record.check_attempts >= cap:
            error = TranscodeTimeoutError(record.id, record.source_path, record.check_attempts)
            _advance(record, ProcessingState.STUCK)
            record.error_message = str(error)
            await self.records.persist(record)
            metrics.TRANSCODE_JOBS_FAILED_TOTAL.labels(reason="stuck").inc()
            raise error

        await self.records.persist(record)
        log_info(
            self.logger,
            f"Transcode job for video {record.id} is {job.status}, checking again",
            video_id=record.id,
            job_id=job.id,
            attempt=record.check_attempts,
        )
        self.scheduler.enqueue(Operation.CHECK, record.id)

    # ============================================
    # Complete
    # ============================================

    def extract_completion(self, job: TranscodeJobResult) -> CompletionResult:
        """Artifacts of a completed job according to the configuration."""
        return CompletionResult(
            outputs=extract_video_outputs(job, self.config.playlist_outputs),
            playlist=extract_playlist(job, self.config.playlist_extension),
            thumbnail=extract_thumbnail(
                job, self.config.thumbnail_number, self.config.thumbnail_extension
            ),
            duration=extract_duration(job, self.config.duration_field),
        )

    async def complete(self, record: VideoRecord, job: TranscodeJobResult) -> CompletionResult:
        """Record the artifacts of a completed job, publish them and signal the record."""
        result = self.extract_completion(job)

        _advance(record, ProcessingState.COMPLETE)
        record.error_message = None

        await self.records.set_outputs(
            record,
            result.outputs,
            result.playlist,
            result.thumbnail,
            result.duration,
        )

        for key in result.published_keys:
            self.publish(key)

        await self.records.on_processing_complete(record)
        metrics.TRANSCODE_JOBS_COMPLETED_TOTAL.inc()

        log_info(
            self.logger,
            f"Transcoding complete for video {record.id}",
            video_id=record.id,
            job_id=job.id,
            outputs=result.outputs,
        )
        return result

    def publish(self, key: str) -> bool:
        """Make a transcoded object public if it exists.

        Returns:
            True if the object was published, False if it does not exist.
        """
        bucket = self.config.transcoded_bucket
        if not self.storage.exists(bucket, key):
            metrics.ARTIFACTS_PUBLISHED_TOTAL.labels(result="missing").inc()
            log_warning(
                self.logger,
                f"Skipping publish of missing object {key}",
                bucket=bucket,
                key=key,
            )
            return False

        self.storage.set_public(bucket, key)
        metrics.ARTIFACTS_PUBLISHED_TOTAL.labels(result="published").inc()
        return True


def report_failure(
    logger: logging.Logger,
    error: TranscodeServiceError,
    video_id: int,
    operation: Operation,
) -> None:
    """Log a fatal orchestration error with enough context to diagnose it."""
    log_error(
        logger,
        f"Transcode {operation.value} failed for video {video_id}: {error}",
        error,
        video_id=video_id,
        source_path=getattr(error, "source_path", None),
        operation=operation.value,
    )
