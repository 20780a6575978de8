"""Error taxonomy for pdrive uploads."""
from typing import Optional


class UploadError(RuntimeError):
    """Base class for every failure surfaced by an upload."""


class ConfigError(UploadError):
    """Configuration could not be loaded or is invalid."""


class TransportError(UploadError):
    """Request could not be sent or the response was not received."""


class ProtocolError(UploadError):
    """Response body could not be parsed into the expected structure."""


class RemoteError(UploadError):
    """Remote service answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Unexpected status code ({status_code}): {body}")


class LogicFatal(UploadError):
    """Internal invariant violated (e.g. a planned part never reported)."""


class PartUploadError(UploadError):
    """A single part failed; wraps the underlying cause."""

    def __init__(self, part_number: int, cause: BaseException):
        self.part_number = part_number
        self.cause = cause
        super().__init__(f"Part {part_number} failed: {cause}")
