"""
Job module factory.

Factory functions that build the job pipeline services. Routes take them
as FastAPI dependencies so tests can swap in fakes through
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from app.jobs.protocols import ArtifactStore, JobStore, UsageRecorder
from app.jobs.services.artifact_store import get_artifact_store as build_artifact_store
from app.jobs.services.job_store import PostgresJobStore
from app.jobs.services.processing import ProcessingInvoker
from app.jobs.services.upload_area import UploadArea
from app.jobs.services.usage_recorder import PostgresUsageRecorder
from pixdrop_core.auth.entitlements import EntitlementGate


@lru_cache()
def get_job_store() -> JobStore:
    """Get the job store instance."""
    return PostgresJobStore()


@lru_cache()
def get_artifact_store() -> ArtifactStore:
    """Get the configured artifact store instance."""
    return build_artifact_store()


@lru_cache()
def get_upload_area() -> UploadArea:
    """Get the upload staging area."""
    return UploadArea()


@lru_cache()
def get_usage_recorder() -> UsageRecorder:
    """Get the usage recorder instance."""
    return PostgresUsageRecorder()


@lru_cache()
def get_entitlement_gate() -> EntitlementGate:
    """Get the entitlement gate."""
    return EntitlementGate()


@lru_cache()
def get_processing_invoker() -> ProcessingInvoker:
    """Get the processing invoker wired to the shared stores."""
    return ProcessingInvoker(
        job_store=get_job_store(),
        artifact_store=get_artifact_store(),
        upload_area=get_upload_area(),
    )
