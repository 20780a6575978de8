from dataclasses import dataclass
from typing import Callable, Optional
import logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferProgress:
    """Progress information for one uploaded byte stream."""
    label: str
    part_number: Optional[int]
    uploaded_bytes: int
    total_bytes: int

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return (self.uploaded_bytes / self.total_bytes) * 100


ProgressCallback = Callable[[TransferProgress], None]


def notify(callback: Optional[ProgressCallback], progress: TransferProgress) -> None:
    """Deliver a progress event; a failing sink never affects the transfer."""
    if callback is None:
        return
    try:
        callback(progress)
    except Exception as e:
        logger.debug(f"Progress callback error for {progress.label}: {e}")
