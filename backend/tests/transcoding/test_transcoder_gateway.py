"""Tests for the Elastic Transcoder gateway."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cloudvideo.modules.transcoding.gateway import ElasticTranscoderGateway, TranscoderError
from cloudvideo.modules.transcoding.schemas import (
    PlaylistSpec,
    TranscodeJobSpec,
    TranscodeOutputSpec,
)


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def spec() -> TranscodeJobSpec:
    return TranscodeJobSpec(
        pipeline_id="pipe-1",
        input_key="clip.mov",
        outputs=[
            TranscodeOutputSpec(preset_id="A", key="clip.mp4", thumbnail_pattern="clip-{count}"),
            TranscodeOutputSpec(preset_id="B", key="clip-1m.ts", segment_duration="10"),
        ],
        playlist=PlaylistSpec(format="HLSv3", name="clip", output_keys=["clip-1m.ts"]),
    )


class TestElasticTranscoderGateway:
    """Tests for job creation and status reads."""

    def test_create_job_sends_request_and_returns_job(self, spec: TranscodeJobSpec) -> None:
        client = MagicMock()
        client.create_job.return_value = {"Job": {"Id": "job-1", "Status": "Submitted"}}
        gateway = ElasticTranscoderGateway(client=client)

        job = gateway.create_job(spec)

        assert job == {"Id": "job-1", "Status": "Submitted"}
        client.create_job.assert_called_once_with(
            PipelineId="pipe-1",
            Input={"Key": "clip.mov"},
            Outputs=[
                {"Key": "clip.mp4", "PresetId": "A", "ThumbnailPattern": "clip-{count}"},
                {"Key": "clip-1m.ts", "PresetId": "B", "SegmentDuration": "10"},
            ],
            Playlists=[{"Format": "HLSv3", "Name": "clip", "OutputKeys": ["clip-1m.ts"]}],
        )

    def test_create_job_without_id_raises(self, spec: TranscodeJobSpec) -> None:
        client = MagicMock()
        client.create_job.return_value = {"Job": {"Status": "Submitted"}}
        gateway = ElasticTranscoderGateway(client=client)

        with pytest.raises(TranscoderError, match="no job id"):
            gateway.create_job(spec)

    def test_create_job_wraps_client_errors(self, spec: TranscodeJobSpec) -> None:
        client = MagicMock()
        client.create_job.side_effect = client_error("ValidationException", "CreateJob")
        gateway = ElasticTranscoderGateway(client=client)

        with pytest.raises(TranscoderError) as exc_info:
            gateway.create_job(spec)

        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_read_job_parses_description(self) -> None:
        client = MagicMock()
        client.read_job.return_value = {
            "Job": {
                "Id": "job-1",
                "Status": "Complete",
                "Output": {"Key": "clip.mp4", "Duration": 12},
                "Outputs": [{"Key": "clip.mp4", "PresetId": "A", "Width": 1280}],
                "Playlists": [{"Name": "clip", "Format": "HLSv3", "OutputKeys": []}],
            }
        }
        gateway = ElasticTranscoderGateway(client=client)

        job = gateway.read_job("job-1")

        client.read_job.assert_called_once_with(Id="job-1")
        assert job.id == "job-1"
        assert job.status == "Complete"
        assert job.outputs[0].preset_id == "A"
        assert job.playlists[0].name == "clip"
        assert job.primary_output == {"Key": "clip.mp4", "Duration": 12}

    def test_read_job_wraps_client_errors(self) -> None:
        client = MagicMock()
        client.read_job.side_effect = client_error("ResourceNotFoundException", "ReadJob")
        gateway = ElasticTranscoderGateway(client=client)

        with pytest.raises(TranscoderError):
            gateway.read_job("missing")
