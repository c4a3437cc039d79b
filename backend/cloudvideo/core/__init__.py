"""Core module for configuration and utilities."""

from cloudvideo.core.celery_app import celery_app
from cloudvideo.core.config import settings
from cloudvideo.core.database import Base, get_db

__all__ = [
    "celery_app",
    "settings",
    "Base",
    "get_db",
]
