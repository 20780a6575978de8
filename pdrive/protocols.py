"""
Protocols (Interfaces) for Dependency Inversion.

The coordinator and handlers depend on these, not on the httpx adapter.
"""
from typing import AsyncIterable, Iterable, Protocol, runtime_checkable

from .models import CompletedPart, PartJob, UploadSession


@runtime_checkable
class IUploadAPI(Protocol):
    """Interface for the remote upload service."""

    async def upload_single(self, filename: str, content: AsyncIterable[bytes], size: int) -> str:
        """Upload a whole file, returning its object key."""
        ...

    async def init_upload(self, filename: str) -> UploadSession:
        """Open a multipart session."""
        ...

    async def upload_part(
        self,
        session: UploadSession,
        job: PartJob,
        content: AsyncIterable[bytes],
    ) -> CompletedPart:
        """Upload one part."""
        ...

    async def finish_upload(self, session: UploadSession, parts: Iterable[CompletedPart]) -> str:
        """Complete a multipart session, returning the resource URL."""
        ...
