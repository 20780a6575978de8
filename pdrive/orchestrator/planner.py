"""Part planning for multipart uploads."""
from typing import List

from ..models import PartJob


def part_count(size: int, part_size: int) -> int:
    """Number of parts needed to cover ``size`` bytes."""
    return -(-size // part_size)


def plan_parts(size: int, part_size: int) -> List[PartJob]:
    """
    Split ``size`` bytes into ordered, 1-indexed parts of at most ``part_size``.

    Parts are contiguous and cover [0, size) exactly; only the last one may
    be shorter than ``part_size``.
    """
    if part_size <= 0:
        raise ValueError(f"part size must be positive, got {part_size}")
    if size <= 0:
        raise ValueError(f"multipart upload needs a non-empty file, got {size} bytes")

    jobs = []
    offset = 0
    part_number = 1
    while offset < size:
        length = min(part_size, size - offset)
        jobs.append(PartJob(part_number=part_number, offset=offset, length=length))
        offset += length
        part_number += 1
    return jobs
