"""Bounded pool of part-upload workers."""
import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, List

from ..models import CompletedPart, PartFailure, PartJob, PartResult, PartSuccess

logger = logging.getLogger(__name__)

PartUploader = Callable[[PartJob], Awaitable[CompletedPart]]

# End-of-stream marker for both queues
_CLOSED = object()


class UploadWorkerPool:
    """
    Fixed-size pool of upload workers fed from a shared job queue.

    - A producer task puts every job on a bounded job queue, then one close
      marker per worker.
    - Each worker pulls jobs until it sees a close marker. A failing part is
      reported as ``PartFailure`` and the worker moves on to the next job.
    - A barrier task waits for all workers to exit before closing the result
      queue, so ``results()`` always ends after the last result.
    """

    def __init__(self, upload_part: PartUploader, workers: int = 2):
        if workers < 1:
            raise ValueError(f"worker count must be at least 1, got {workers}")
        self._upload_part = upload_part
        self._workers = workers
        self._jobs: asyncio.Queue = asyncio.Queue(maxsize=workers)
        self._results: asyncio.Queue = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []
        self._closed = False

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self, jobs: Iterable[PartJob]) -> None:
        """Launch producer, workers and the closing barrier."""
        if self._tasks:
            raise RuntimeError("UploadWorkerPool can only be started once")

        workers = [
            asyncio.create_task(self._worker(worker_id), name=f"upload-worker-{worker_id}")
            for worker_id in range(1, self._workers + 1)
        ]
        producer = asyncio.create_task(self._produce(list(jobs)), name="upload-producer")
        barrier = asyncio.create_task(self._close_when_drained(workers), name="upload-barrier")
        self._tasks = [producer, *workers, barrier]

    async def results(self) -> AsyncIterator[PartResult]:
        """Yield part results in completion order until every worker has exited."""
        while True:
            item = await self._results.get()
            if item is _CLOSED:
                return
            yield item

    async def aclose(self) -> None:
        """Cancel outstanding work (including in-flight requests) and wait for it."""
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"Cancelling {len(pending)} upload task(s)")
            await asyncio.gather(*pending, return_exceptions=True)
        self._close_results()

    async def _produce(self, jobs: List[PartJob]) -> None:
        for job in jobs:
            await self._jobs.put(job)
        for _ in range(self._workers):
            await self._jobs.put(_CLOSED)

    async def _worker(self, worker_id: int) -> None:
        while True:
            job = await self._jobs.get()
            if job is _CLOSED:
                return
            result = await self._run(job, worker_id)
            self._results.put_nowait(result)

    async def _run(self, job: PartJob, worker_id: int) -> PartResult:
        logger.debug(f"[worker {worker_id}] Uploading part {job.part_number} ({job.length} bytes at {job.offset})")
        try:
            part = await self._upload_part(job)
        except Exception as e:
            logger.warning(f"[worker {worker_id}] Part {job.part_number} failed: {e}")
            return PartFailure(part_number=job.part_number, cause=e)

        logger.debug(f"[worker {worker_id}] Part {job.part_number} done (etag {part.etag})")
        return PartSuccess(part_number=part.part_number, etag=part.etag)

    async def _close_when_drained(self, workers: List[asyncio.Task]) -> None:
        await asyncio.gather(*workers, return_exceptions=True)
        self._close_results()

    def _close_results(self) -> None:
        if not self._closed:
            self._closed = True
            self._results.put_nowait(_CLOSED)
