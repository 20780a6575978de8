"""Collects worker results into the completed-part set."""
from typing import AsyncIterable, Dict, Iterable, List

from ..errors import LogicFatal, PartUploadError
from ..models import CompletedPart, PartFailure, PartJob, PartResult


class ResultAggregator:
    """
    Consumes the result stream of an upload pool.

    The first ``PartFailure`` ends aggregation with ``PartUploadError``.
    A clean drain must yield exactly one success per planned part, otherwise
    ``LogicFatal`` is raised.
    """

    def __init__(self, jobs: Iterable[PartJob]):
        self._expected = {job.part_number for job in jobs}

    async def collect(self, results: AsyncIterable[PartResult]) -> List[CompletedPart]:
        collected: Dict[int, CompletedPart] = {}

        async for result in results:
            if isinstance(result, PartFailure):
                raise PartUploadError(result.part_number, result.cause) from result.cause
            if result.part_number not in self._expected:
                raise LogicFatal(f"Received result for unplanned part {result.part_number}")
            if result.part_number in collected:
                raise LogicFatal(f"Received duplicate result for part {result.part_number}")
            collected[result.part_number] = result.completed

        missing = sorted(self._expected - collected.keys())
        if missing:
            raise LogicFatal(f"Upload finished without results for part(s) {missing}")

        return [collected[number] for number in sorted(collected)]
