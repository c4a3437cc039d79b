"""Transcoding module.

Submits uploaded videos to a managed transcoding service, polls job status and
records the produced renditions, thumbnail, playlist and duration.
"""
