"""Single-request upload handler."""
import logging
from pathlib import Path
from typing import Optional

from ..errors import UploadError
from ..models import ClientConfig, UploadOutcome
from ..protocols import IUploadAPI
from ..utils.events import ProgressCallback
from ..utils.streams import SourceFile, iter_range

logger = logging.getLogger(__name__)


class SingleUploadHandler:
    """Uploads a whole file with one POST."""

    def __init__(self, api: IUploadAPI, config: ClientConfig):
        self._api = api
        self._config = config

    async def upload(
        self,
        path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadOutcome:
        path = Path(path)

        try:
            size = path.stat().st_size
            with SourceFile(path) as source:
                body = iter_range(
                    source,
                    0,
                    size,
                    label=path.name,
                    progress_callback=progress_callback,
                )
                key = await self._api.upload_single(path.name, body, size)
        except UploadError as e:
            logger.error(f"Upload of {path.name} failed: {e}")
            return UploadOutcome.fail(path.name, str(e))
        except OSError as e:
            logger.error(f"Unable to open {path}: {e}")
            return UploadOutcome.fail(path.name, f"Unable to open file: {e}")

        url = self._config.resource_url(key)
        logger.info(f"Uploaded {path.name} -> {url}")
        return UploadOutcome.ok(path.name, url)
