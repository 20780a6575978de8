"""
pdrive - upload files to a pdrive server from the command line.

Small files go up in a single request; files larger than the configured
part size are split into parts and uploaded by a bounded worker pool
(init -> upload parts -> finish).

Usage:
    from pdrive import UploadOrchestrator, ClientConfig

    config = ClientConfig(token="secret", api_url="https://drive.example.com")
    async with UploadOrchestrator(config) as uploader:
        outcome = await uploader.upload(path)
"""
from .orchestrator import UploadOrchestrator, MultipartUploadCoordinator, SingleUploadHandler
from .models import (
    ClientConfig,
    CompletedPart,
    PartFailure,
    PartJob,
    PartSuccess,
    UploadOutcome,
    UploadSession,
    UploadState,
)
from .errors import (
    ConfigError,
    LogicFatal,
    PartUploadError,
    ProtocolError,
    RemoteError,
    TransportError,
    UploadError,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "MultipartUploadCoordinator",
    "SingleUploadHandler",
    # Models
    "ClientConfig",
    "CompletedPart",
    "PartFailure",
    "PartJob",
    "PartSuccess",
    "UploadOutcome",
    "UploadSession",
    "UploadState",
    # Errors
    "ConfigError",
    "LogicFatal",
    "PartUploadError",
    "ProtocolError",
    "RemoteError",
    "TransportError",
    "UploadError",
]
