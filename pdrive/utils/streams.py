"""Byte-range readers used as streaming request bodies."""
import asyncio
import threading
from pathlib import Path
from typing import AsyncIterator, Optional

from .events import ProgressCallback, TransferProgress, notify

CHUNK_SIZE = 1024 * 1024  # 1MB


class SourceFile:
    """
    A file opened once and shared by concurrent range readers.

    Each read is a seek+read pair guarded by a lock, so readers working on
    disjoint ranges never observe each other's file position.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._handle = open(self.path, "rb")
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def read_at(self, offset: int, size: int) -> bytes:
        with self._lock:
            self._handle.seek(offset)
            return self._handle.read(size)

    def close(self) -> None:
        with self._lock:
            self._handle.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


async def iter_range(
    source: SourceFile,
    offset: int,
    length: int,
    label: str,
    part_number: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield ``length`` bytes of ``source`` starting at ``offset``."""
    sent = 0
    while sent < length:
        size = min(chunk_size, length - sent)
        chunk = await asyncio.to_thread(source.read_at, offset + sent, size)
        if not chunk:
            raise OSError(
                f"Unexpected end of file {source.path} at byte {offset + sent} "
                f"(expected {length} bytes from offset {offset})"
            )
        sent += len(chunk)
        yield chunk
        notify(progress_callback, TransferProgress(label, part_number, sent, length))
