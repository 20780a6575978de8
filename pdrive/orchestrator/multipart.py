"""Multipart upload coordinator."""
import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import UploadError
from ..models import (
    ClientConfig,
    CompletedPart,
    PartJob,
    UploadOutcome,
    UploadSession,
    UploadState,
)
from ..protocols import IUploadAPI
from ..utils.events import ProgressCallback
from ..utils.streams import SourceFile, iter_range
from .aggregator import ResultAggregator
from .planner import plan_parts
from .worker_pool import UploadWorkerPool

logger = logging.getLogger(__name__)


class MultipartUploadCoordinator:
    """
    Drives one multipart upload: plan -> init -> upload parts -> finish.

    States follow ``UploadState``; ``DONE`` carries the resource URL and
    ``FAILED`` the first cause encountered. No step is retried.

    With ``cancel_on_failure`` disabled, a part failure returns immediately
    and the remaining workers keep running until ``aclose()``.

    Usage:
        coordinator = MultipartUploadCoordinator(api, config)
        outcome = await coordinator.upload(path)
        await coordinator.aclose()
    """

    def __init__(
        self,
        api: IUploadAPI,
        config: ClientConfig,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self._api = api
        self._config = config
        self._progress_callback = progress_callback
        self._state = UploadState.INIT
        self._filename = ""
        self._background: List[Tuple[UploadWorkerPool, SourceFile]] = []

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def has_background_work(self) -> bool:
        """True while part uploads left behind by a failure still need closing."""
        return bool(self._background)

    async def upload(self, path: Path) -> UploadOutcome:
        """Upload ``path`` in parts; never raises for upload failures."""
        path = Path(path)
        self._filename = path.name

        try:
            url = await self._run(path)
        except UploadError as e:
            return self._fail(str(e))
        except OSError as e:
            return self._fail(f"Cannot open file: {e}")
        except ValueError as e:
            return self._fail(str(e))

        self._transition(UploadState.DONE)
        logger.info(f"Uploaded {path.name} -> {url}")
        return UploadOutcome.ok(path.name, url)

    async def aclose(self) -> None:
        """Cancel part uploads left running after a failure."""
        while self._background:
            pool, source = self._background.pop()
            await pool.aclose()
            source.close()

    async def _run(self, path: Path) -> str:
        self._transition(UploadState.PLANNING)
        size = path.stat().st_size
        jobs = plan_parts(size, self._config.part_size)
        logger.info(
            f"Uploading {path.name} ({size} bytes) in {len(jobs)} part(s) "
            f"with {self._config.concurrent_requests} worker(s)"
        )

        source = SourceFile(path)
        try:
            session = await self._api.init_upload(path.name)
        except BaseException:
            source.close()
            raise
        logger.debug(f"Session for {path.name}: key={session.key} upload_id={session.upload_id}")
        self._transition(UploadState.SESSION_OPEN)

        parts = await self._upload_parts(session, source, jobs)

        self._transition(UploadState.FINISHING)
        return await self._api.finish_upload(session, parts)

    async def _upload_parts(
        self,
        session: UploadSession,
        source: SourceFile,
        jobs: List[PartJob],
    ) -> List[CompletedPart]:
        pool = UploadWorkerPool(
            partial(self._upload_part, session, source),
            workers=self._config.concurrent_requests,
        )
        aggregator = ResultAggregator(jobs)

        pool.start(jobs)
        self._transition(UploadState.PARTS_IN_FLIGHT)
        self._transition(UploadState.AGGREGATING)

        try:
            parts = await aggregator.collect(pool.results())
        except UploadError:
            if self._config.cancel_on_failure:
                await pool.aclose()
                source.close()
            else:
                self._background.append((pool, source))
            raise
        except asyncio.CancelledError:
            await pool.aclose()
            source.close()
            raise

        source.close()
        return parts

    async def _upload_part(
        self,
        session: UploadSession,
        source: SourceFile,
        job: PartJob,
    ) -> CompletedPart:
        body = iter_range(
            source,
            job.offset,
            job.length,
            label=f"Part {job.part_number}",
            part_number=job.part_number,
            progress_callback=self._progress_callback,
        )
        return await self._api.upload_part(session, job, body)

    def _transition(self, state: UploadState) -> None:
        logger.debug(f"{self._filename}: {self._state.value} -> {state.value}")
        self._state = state

    def _fail(self, error: str) -> UploadOutcome:
        logger.error(f"Upload of {self._filename} failed during {self._state.value}: {error}")
        self._transition(UploadState.FAILED)
        return UploadOutcome.fail(self._filename, error)
