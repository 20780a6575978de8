"""
Models for pdrive uploads.

Immutable dataclasses: configuration, session handle, part jobs,
per-part results and the final outcome of an upload.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


MIB = 1024 * 1024
DEFAULT_PART_SIZE = 50 * MIB
DEFAULT_CONCURRENT_REQUESTS = 2


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration handed to the orchestrator."""
    token: str
    api_url: str
    concurrent_requests: int = DEFAULT_CONCURRENT_REQUESTS
    part_size: int = DEFAULT_PART_SIZE
    cancel_on_failure: bool = False
    timeout: float = 60.0

    def __post_init__(self):
        if self.concurrent_requests < 1:
            raise ValueError("concurrent_requests must be at least 1")
        if self.part_size <= 0:
            raise ValueError("part_size must be positive")

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")

    def resource_url(self, key: str) -> str:
        """Public locator of an uploaded object."""
        return f"{self.base_url}/{key.lstrip('/')}"


@dataclass(frozen=True)
class UploadSession:
    """Server-assigned multipart context."""
    key: str
    upload_id: str


@dataclass(frozen=True)
class PartJob:
    """One contiguous byte range of the source file."""
    part_number: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class CompletedPart:
    """Part metadata echoed back to the finish call."""
    part_number: int
    etag: str

    def to_payload(self) -> dict:
        return {"partNumber": self.part_number, "etag": self.etag}


@dataclass(frozen=True)
class PartSuccess:
    part_number: int
    etag: str

    @property
    def completed(self) -> CompletedPart:
        return CompletedPart(self.part_number, self.etag)


@dataclass(frozen=True)
class PartFailure:
    part_number: int
    cause: BaseException


PartResult = Union[PartSuccess, PartFailure]


class UploadState(Enum):
    """Multipart coordinator states."""
    INIT = "init"
    PLANNING = "planning"
    SESSION_OPEN = "session_open"
    PARTS_IN_FLIGHT = "parts_in_flight"
    AGGREGATING = "aggregating"
    FINISHING = "finishing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UploadState.DONE, UploadState.FAILED)


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable result of an upload: a resource URL or a failure cause."""
    filename: str
    state: UploadState
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state == UploadState.DONE

    @classmethod
    def ok(cls, filename: str, url: str):
        return cls(filename=filename, state=UploadState.DONE, url=url)

    @classmethod
    def fail(cls, filename: str, error: str):
        return cls(filename=filename, state=UploadState.FAILED, error=error)
