"""Orchestrator package - upload workflows."""
from .core import UploadOrchestrator
from .multipart import MultipartUploadCoordinator
from .single_upload import SingleUploadHandler

__all__ = ["UploadOrchestrator", "MultipartUploadCoordinator", "SingleUploadHandler"]
