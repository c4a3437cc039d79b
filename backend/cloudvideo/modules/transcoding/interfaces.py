"""Collaborators of the transcode orchestrator.

The orchestrator receives each of these through its constructor. Production
implementations: ``VideoRecordRepository`` (records), ``CeleryJobScheduler``
(scheduling), ``ObjectStore`` (storage) and ``ElasticTranscoderGateway``
(transcoder).
"""

from enum import Enum
from typing import Any, BinaryIO, Optional, Protocol

from cloudvideo.modules.transcoding.schemas import TranscodeJobResult, TranscodeJobSpec
from cloudvideo.modules.video.models import VideoRecord


class Operation(str, Enum):
    """Deferred orchestrator operations."""

    SUBMIT = "submit"
    CHECK = "check"


class RecordStore(Protocol):
    """Persistent storage of video records."""

    async def get_by_id(self, video_id: int) -> Optional[VideoRecord]:
        ...

    async def persist(self, record: VideoRecord) -> None:
        ...

    async def claim_submission(self, video_id: int) -> bool:
        """Atomically flip ``submitted`` from false to true.

        Returns True only for the caller that performed the flip.
        """
        ...

    async def reset_submission(self, record: VideoRecord) -> None:
        ...

    async def set_job_data(self, record: VideoRecord, job_data: dict[str, Any]) -> None:
        ...

    async def set_outputs(
        self,
        record: VideoRecord,
        outputs: list[str],
        playlist: Optional[str],
        thumbnail: Optional[str],
        duration: int,
    ) -> None:
        """Overwrite all output fields in one write."""
        ...

    async def on_processing_complete(self, record: VideoRecord) -> None:
        ...


class JobScheduler(Protocol):
    """Deferred, at-least-once execution of orchestrator operations."""

    def enqueue(self, operation: Operation, video_id: int) -> None:
        ...


class StorageGateway(Protocol):
    """Object storage addressed by bucket and key."""

    def exists(self, bucket: str, key: str) -> bool:
        ...

    def put_stream(self, bucket: str, key: str, stream: BinaryIO, content_type: str = ...) -> Any:
        ...

    def set_public(self, bucket: str, key: str) -> None:
        ...


class TranscoderGateway(Protocol):
    """Managed transcoding service."""

    def create_job(self, spec: TranscodeJobSpec) -> dict[str, Any]:
        """Create a job and return its handle (contains at least ``Id``)."""
        ...

    def read_job(self, job_id: str) -> TranscodeJobResult:
        ...
