"""Core orchestrator - routes a file to the single or multipart workflow."""
import logging
from pathlib import Path
from typing import List, Optional

import httpx

from ..models import ClientConfig, UploadOutcome
from ..services.api_client import PDriveAPIClient
from ..utils.events import ProgressCallback
from .multipart import MultipartUploadCoordinator
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Uploads files to the pdrive service.

    Files larger than ``config.part_size`` go through the multipart
    coordinator, everything else through one POST.

    Usage:
        async with UploadOrchestrator(config) as uploader:
            outcome = await uploader.upload(path)
            if outcome.success:
                print(outcome.url)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Immutable client configuration
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self._config = config
        self._api = PDriveAPIClient(config, transport=transport)
        self._single_handler: Optional[SingleUploadHandler] = None
        self._coordinators: List[MultipartUploadCoordinator] = []

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def __aenter__(self):
        await self._api.__aenter__()
        self._single_handler = SingleUploadHandler(self._api, self._config)
        return self

    async def __aexit__(self, *args):
        """Stop leftover part uploads, then close the HTTP client."""
        for coordinator in self._coordinators:
            await coordinator.aclose()
        self._coordinators.clear()
        await self._api.__aexit__(*args)

    def uses_multipart(self, size: int) -> bool:
        return size > self._config.part_size

    async def upload(
        self,
        path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadOutcome:
        """Upload ``path`` and return its outcome."""
        if not self._single_handler:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")

        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError as e:
            return UploadOutcome.fail(path.name, f"Unable to get filesize: {e}")

        if self.uses_multipart(size):
            logger.debug(f"{path.name}: {size} bytes > {self._config.part_size}, using multipart")
            coordinator = MultipartUploadCoordinator(self._api, self._config, progress_callback)
            outcome = await coordinator.upload(path)
            if coordinator.has_background_work:
                self._coordinators.append(coordinator)
            return outcome

        logger.debug(f"{path.name}: {size} bytes, using single upload")
        return await self._single_handler.upload(path, progress_callback)
