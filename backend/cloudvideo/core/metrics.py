"""Prometheus metrics for the transcoding lifecycle.

Tracks source uploads, transcoder job submissions, status polls, completions,
failures and published artifacts.
"""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Info,
    generate_latest,
    multiprocess,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "PROMETHEUS_MULTIPROC_DIR" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "cloudvideo_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Transcoding Metrics
# ============================================
SOURCE_UPLOADS_TOTAL = Counter(
    "cloudvideo_source_uploads_total",
    "Source files handled at submit time",
    ["result"],  # uploaded, already_present
    registry=REGISTRY,
)

TRANSCODE_JOBS_SUBMITTED_TOTAL = Counter(
    "cloudvideo_transcode_jobs_submitted_total",
    "Transcoder jobs created",
    registry=REGISTRY,
)

TRANSCODE_STATUS_CHECKS_TOTAL = Counter(
    "cloudvideo_transcode_status_checks_total",
    "Transcoder job status polls by outcome",
    ["outcome"],  # complete, error, pending
    registry=REGISTRY,
)

TRANSCODE_JOBS_COMPLETED_TOTAL = Counter(
    "cloudvideo_transcode_jobs_completed_total",
    "Transcoder jobs whose outputs were recorded",
    registry=REGISTRY,
)

TRANSCODE_JOBS_FAILED_TOTAL = Counter(
    "cloudvideo_transcode_jobs_failed_total",
    "Transcoder jobs that ended in a terminal failure",
    ["reason"],  # error, stuck
    registry=REGISTRY,
)

ARTIFACTS_PUBLISHED_TOTAL = Counter(
    "cloudvideo_artifacts_published_total",
    "Transcoded artifacts made public",
    ["result"],  # published, missing
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
