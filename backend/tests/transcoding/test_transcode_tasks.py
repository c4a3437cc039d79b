"""Tests for the transcode Celery tasks and scheduler."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cloudvideo.modules.transcoding import tasks
from cloudvideo.modules.transcoding.interfaces import Operation
from cloudvideo.modules.transcoding.service import NotFoundError, TranscodeFailedError


def fake_runner(**orchestrator_methods):
    """Replacement for the orchestrator runner using a mocked orchestrator."""
    orchestrator = MagicMock()
    for name, mock in orchestrator_methods.items():
        setattr(orchestrator, name, mock)

    async def run(call):
        return await call(orchestrator)

    return run, orchestrator


class TestCeleryJobScheduler:
    """Tests for mapping operations onto tasks."""

    def test_submit_is_sent_immediately(self) -> None:
        scheduler = tasks.CeleryJobScheduler(check_interval=5)

        with patch.object(tasks.submit_video_task, "delay") as delay:
            scheduler.enqueue(Operation.SUBMIT, 42)

        delay.assert_called_once_with(42)

    def test_check_is_deferred_by_interval(self) -> None:
        scheduler = tasks.CeleryJobScheduler(check_interval=5)

        with patch.object(tasks.check_video_task, "apply_async") as apply_async:
            scheduler.enqueue(Operation.CHECK, 42)

        apply_async.assert_called_once_with(args=[42], countdown=5)

    def test_interval_defaults_to_settings(self) -> None:
        scheduler = tasks.CeleryJobScheduler()

        assert scheduler.check_interval == tasks.settings.TRANSCODE_CHECK_INTERVAL_SECONDS


class TestTranscodeTasks:
    """Tests for task results and failure isolation."""

    def test_submit_task_returns_job(self) -> None:
        run, orchestrator = fake_runner(submit=AsyncMock(return_value={"Id": "job-1"}))

        with patch.object(tasks, "_run_with_orchestrator", run):
            result = tasks.submit_video_task.run(42)

        orchestrator.submit.assert_awaited_once_with(42)
        assert result == {
            "status": "success",
            "operation": "submit",
            "video_id": 42,
            "result": {"Id": "job-1"},
        }

    def test_check_task_returns_status(self) -> None:
        run, orchestrator = fake_runner(check=AsyncMock(return_value="Progressing"))

        with patch.object(tasks, "_run_with_orchestrator", run):
            result = tasks.check_video_task.run(42)

        orchestrator.check.assert_awaited_once_with(42)
        assert result["status"] == "success"
        assert result["result"] == "Progressing"

    def test_fatal_error_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        error = TranscodeFailedError(42, "/var/uploads/clip.mov", "Bad input")
        run, _ = fake_runner(check=AsyncMock(side_effect=error))

        with patch.object(tasks, "_run_with_orchestrator", run):
            with caplog.at_level(logging.ERROR, logger=tasks.logger.name):
                result = tasks.check_video_task.run(42)

        assert result["status"] == "error"
        assert result["operation"] == "check"
        assert "Bad input" in result["error"]
        record = caplog.records[-1]
        assert record.video_id == 42
        assert record.source_path == "/var/uploads/clip.mov"
        assert record.operation == "check"

    def test_not_found_is_reported(self, caplog: pytest.LogCaptureFixture) -> None:
        run, _ = fake_runner(submit=AsyncMock(side_effect=NotFoundError(9)))

        with patch.object(tasks, "_run_with_orchestrator", run):
            with caplog.at_level(logging.ERROR, logger=tasks.logger.name):
                result = tasks.submit_video_task.run(9)

        assert result["status"] == "error"
        assert caplog.records[-1].video_id == 9

    def test_gateway_errors_propagate(self) -> None:
        run, _ = fake_runner(submit=AsyncMock(side_effect=ConnectionError("broker down")))

        with patch.object(tasks, "_run_with_orchestrator", run):
            with pytest.raises(ConnectionError):
                tasks.submit_video_task.run(42)

    def test_on_failure_logs_video_id(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger=tasks.logger.name):
            tasks.check_video_task.on_failure(
                ConnectionError("timeout"), "task-1", (42,), {}, None
            )

        record = caplog.records[-1]
        assert record.video_id == 42
        assert record.task_id == "task-1"


class TestWorkerEngineLifecycle:
    """Tests for the per-task database engine."""

    @pytest.fixture
    def worker_engine(self):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        session_maker = MagicMock(return_value=MagicMock())
        with patch.object(tasks, "create_worker_engine", return_value=engine), \
                patch.object(tasks, "async_sessionmaker", return_value=session_maker), \
                patch.object(tasks, "TranscodeOrchestrator") as orchestrator_class:
            yield engine, orchestrator_class

    @pytest.mark.asyncio
    async def test_engine_disposed_after_operation(self, worker_engine) -> None:
        engine, orchestrator_class = worker_engine
        call = AsyncMock(return_value={"job_id": "job-1"})

        result = await tasks._run_with_orchestrator(call)

        assert result == {"job_id": "job-1"}
        call.assert_awaited_once_with(orchestrator_class.return_value)
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_engine_disposed_when_operation_raises(self, worker_engine) -> None:
        engine, _ = worker_engine
        call = AsyncMock(side_effect=TranscodeFailedError(42, "/var/uploads/clip.mov"))

        with pytest.raises(TranscodeFailedError):
            await tasks._run_with_orchestrator(call)

        engine.dispose.assert_awaited_once()
