"""Property-based tests for transcode status polling.

**Feature: cloud-video-transcoder, Property 5: Status Routing**
**Feature: cloud-video-transcoder, Property 6: Poll Attempt Cap**

Tests that check() routes on the transcoder status case-insensitively and
that a configured attempt cap moves a record to the stuck state.
"""

from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
from hypothesis import given, settings, strategies as st

from cloudvideo.core.config import OutputPreset
from cloudvideo.modules.transcoding.interfaces import Operation
from cloudvideo.modules.transcoding.schemas import TranscodeConfig, TranscodeJobResult
from cloudvideo.modules.transcoding.service import (
    InvalidStateError,
    NotFoundError,
    TranscodeFailedError,
    TranscodeOrchestrator,
    TranscodeTimeoutError,
)
from cloudvideo.modules.video.models import ProcessingState, VideoRecord


class InMemoryRecordStore:
    """Record store keeping records in a dict."""

    def __init__(self, *records: VideoRecord):
        self.records = {record.id: record for record in records}
        self.persisted: list[int] = []
        self.completed: list[int] = []

    async def get_by_id(self, video_id: int) -> Optional[VideoRecord]:
        return self.records.get(video_id)

    async def persist(self, record: VideoRecord) -> None:
        self.persisted.append(record.id)

    async def set_job_data(self, record: VideoRecord, job_data: dict[str, Any]) -> None:
        record.job_data = job_data

    async def set_outputs(self, record, outputs, playlist, thumbnail, duration) -> None:
        record.outputs = list(outputs)
        record.playlist = playlist
        record.thumbnail = thumbnail
        record.duration = duration

    async def on_processing_complete(self, record: VideoRecord) -> None:
        self.completed.append(record.id)


def casing(word: str) -> st.SearchStrategy[str]:
    """Strategy producing every upper/lower case mix of a word."""
    return st.lists(st.booleans(), min_size=len(word), max_size=len(word)).map(
        lambda flags: "".join(c.upper() if upper else c for c, upper in zip(word, flags))
    )


pending_status_strategy = st.one_of(
    st.sampled_from(["Submitted", "Progressing", "Canceled", "pending"]),
    st.text(min_size=1, max_size=20).filter(lambda s: s.lower() not in ("complete", "error")),
)


def awaiting_record(video_id: int = 7, attempts: int = 0) -> VideoRecord:
    record = VideoRecord.new(source_path="/var/uploads/clip.mov")
    record.id = video_id
    record.submitted = True
    record.state = ProcessingState.AWAITING_TRANSCODE.value
    record.job_data = {"Id": "job-1"}
    record.check_attempts = attempts
    return record


def make_orchestrator(
    store: InMemoryRecordStore,
    status: str,
    max_check_attempts: int = 0,
) -> TranscodeOrchestrator:
    transcoder = MagicMock()
    transcoder.read_job.return_value = TranscodeJobResult.model_validate({
        "Id": "job-1",
        "Status": status,
        "Outputs": [
            {"Key": "clip.mp4", "PresetId": "720p", "StatusDetail": "Bad input"},
        ],
    })
    storage = MagicMock()
    storage.exists.return_value = True
    return TranscodeOrchestrator(
        records=store,
        scheduler=MagicMock(),
        storage=storage,
        transcoder=transcoder,
        config=TranscodeConfig(
            source_bucket="sources",
            transcoded_bucket="renditions",
            pipeline_id="pipe-1",
            outputs={"720p": OutputPreset(key="{name}.mp4")},
            max_check_attempts=max_check_attempts,
        ),
    )


class TestStatusRouting:
    """Property tests for status routing.

    **Feature: cloud-video-transcoder, Property 5: Status Routing**
    """

    @given(status=casing("complete"))
    @settings(max_examples=50)
    @pytest.mark.asyncio
    async def test_complete_in_any_case_completes(self, status: str) -> None:
        """**Feature: cloud-video-transcoder, Property 5: Status Routing**"""
        store = InMemoryRecordStore(awaiting_record())
        orchestrator = make_orchestrator(store, status)

        result = await orchestrator.check(7)

        record = store.records[7]
        assert result == status
        assert record.state == ProcessingState.COMPLETE.value
        assert record.outputs == ["clip.mp4"]
        assert store.completed == [7]
        orchestrator.scheduler.enqueue.assert_not_called()

    @given(status=casing("error"))
    @settings(max_examples=30)
    @pytest.mark.asyncio
    async def test_error_in_any_case_raises(self, status: str) -> None:
        """**Feature: cloud-video-transcoder, Property 5: Status Routing**"""
        store = InMemoryRecordStore(awaiting_record())
        orchestrator = make_orchestrator(store, status)

        with pytest.raises(TranscodeFailedError) as exc_info:
            await orchestrator.check(7)

        record = store.records[7]
        assert exc_info.value.video_id == 7
        assert exc_info.value.source_path == "/var/uploads/clip.mov"
        assert "Bad input" in str(exc_info.value)
        assert record.state == ProcessingState.FAILED.value
        assert record.error_message == str(exc_info.value)
        orchestrator.scheduler.enqueue.assert_not_called()
        assert store.completed == []

    @given(status=pending_status_strategy)
    @settings(max_examples=100)
    @pytest.mark.asyncio
    async def test_other_statuses_requeue_check(self, status: str) -> None:
        """**Feature: cloud-video-transcoder, Property 5: Status Routing**"""
        store = InMemoryRecordStore(awaiting_record())
        orchestrator = make_orchestrator(store, status)

        result = await orchestrator.check(7)

        record = store.records[7]
        assert result == status
        assert record.state == ProcessingState.AWAITING_TRANSCODE.value
        assert record.check_attempts == 1
        orchestrator.scheduler.enqueue.assert_called_once_with(Operation.CHECK, 7)

    @pytest.mark.asyncio
    async def test_check_without_job_data_raises(self) -> None:
        record = awaiting_record()
        record.job_data = None
        orchestrator = make_orchestrator(InMemoryRecordStore(record), "Complete")

        with pytest.raises(InvalidStateError):
            await orchestrator.check(7)

        orchestrator.transcoder.read_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_check_with_job_data_lacking_id_raises(self) -> None:
        record = awaiting_record()
        record.job_data = {"Status": "Submitted"}
        orchestrator = make_orchestrator(InMemoryRecordStore(record), "Complete")

        with pytest.raises(InvalidStateError):
            await orchestrator.check(7)

    @pytest.mark.asyncio
    async def test_check_unknown_record_raises_not_found(self) -> None:
        orchestrator = make_orchestrator(InMemoryRecordStore(), "Complete")

        with pytest.raises(NotFoundError) as exc_info:
            await orchestrator.check(404)

        assert exc_info.value.video_id == 404

    @pytest.mark.asyncio
    async def test_redelivered_check_of_completed_record_is_safe(self) -> None:
        store = InMemoryRecordStore(awaiting_record())
        orchestrator = make_orchestrator(store, "Complete")

        await orchestrator.check(7)
        await orchestrator.check(7)

        record = store.records[7]
        assert record.state == ProcessingState.COMPLETE.value
        assert record.outputs == ["clip.mp4"]


class TestPollAttemptCap:
    """Property tests for the poll attempt cap.

    **Feature: cloud-video-transcoder, Property 6: Poll Attempt Cap**
    """

    @given(attempts=st.integers(min_value=0, max_value=100000))
    @settings(max_examples=50)
    @pytest.mark.asyncio
    async def test_no_cap_requeues_forever(self, attempts: int) -> None:
        """**Feature: cloud-video-transcoder, Property 6: Poll Attempt Cap**"""
        store = InMemoryRecordStore(awaiting_record(attempts=attempts))
        orchestrator = make_orchestrator(store, "Progressing", max_check_attempts=0)

        await orchestrator.check(7)

        assert store.records[7].check_attempts == attempts + 1
        orchestrator.scheduler.enqueue.assert_called_once_with(Operation.CHECK, 7)

    @given(cap=st.integers(min_value=1, max_value=50), data=st.data())
    @settings(max_examples=50)
    @pytest.mark.asyncio
    async def test_requeues_below_cap(self, cap: int, data) -> None:
        """**Feature: cloud-video-transcoder, Property 6: Poll Attempt Cap**"""
        attempts = data.draw(st.integers(min_value=0, max_value=max(cap - 2, 0)))
        if attempts + 1 >= cap:
            return
        store = InMemoryRecordStore(awaiting_record(attempts=attempts))
        orchestrator = make_orchestrator(store, "Progressing", max_check_attempts=cap)

        await orchestrator.check(7)

        assert store.records[7].state == ProcessingState.AWAITING_TRANSCODE.value
        orchestrator.scheduler.enqueue.assert_called_once_with(Operation.CHECK, 7)

    @pytest.mark.asyncio
    async def test_reaching_cap_marks_record_stuck(self) -> None:
        store = InMemoryRecordStore(awaiting_record(attempts=2))
        orchestrator = make_orchestrator(store, "Progressing", max_check_attempts=3)

        with pytest.raises(TranscodeTimeoutError) as exc_info:
            await orchestrator.check(7)

        record = store.records[7]
        assert exc_info.value.attempts == 3
        assert record.state == ProcessingState.STUCK.value
        assert record.error_message == str(exc_info.value)
        assert 7 in store.persisted
        orchestrator.scheduler.enqueue.assert_not_called()
