"""Orchestration - the ingest pipeline and background maintenance."""

from shieldwatch.orchestration.maintenance import MaintenanceScheduler
from shieldwatch.orchestration.pipeline import IngestResult, LoginPipeline, create_pipeline

__all__ = [
    "MaintenanceScheduler",
    "IngestResult",
    "LoginPipeline",
    "create_pipeline",
]
