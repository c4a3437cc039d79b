"""Managed transcoder client.

Wraps the Elastic Transcoder API: create a job from a ``TranscodeJobSpec``
and read its status back as a ``TranscodeJobResult``.
"""

from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cloudvideo.core.config import Settings, settings as default_settings
from cloudvideo.modules.transcoding.schemas import TranscodeJobResult, TranscodeJobSpec


class TranscoderError(Exception):
    """Raised when the transcoding service fails a request."""

    pass


class ElasticTranscoderGateway:
    """Transcoder gateway backed by boto3."""

    def __init__(self, app_settings: Optional[Settings] = None, client=None):
        self.settings = app_settings or default_settings
        self._client = client

    def _get_client(self):
        """Get or create the transcoder client."""
        if self._client is None:
            self._client = boto3.client(
                "elastictranscoder",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_VIDEO_KEY or None,
                aws_secret_access_key=self.settings.AWS_VIDEO_SECRET or None,
            )
        return self._client

    def create_job(self, spec: TranscodeJobSpec) -> dict[str, Any]:
        """Create a transcoding job.

        Returns:
            The job description returned by the service; ``Id`` identifies it.
        """
        try:
            response = self._get_client().create_job(**spec.to_request())
        except (BotoCoreError, ClientError) as e:
            raise TranscoderError(
                f"Could not create transcode job for {spec.input_key}: {e}"
            ) from e

        job = response.get("Job") or {}
        if not job.get("Id"):
            raise TranscoderError(
                f"Transcoder returned no job id for {spec.input_key}"
            )
        return job

    def read_job(self, job_id: str) -> TranscodeJobResult:
        """Read the current description of a job."""
        try:
            response = self._get_client().read_job(Id=job_id)
        except (BotoCoreError, ClientError) as e:
            raise TranscoderError(f"Could not read transcode job {job_id}: {e}") from e

        return TranscodeJobResult.model_validate(response["Job"])
