"""Tests for the multipart upload coordinator."""
import asyncio

import httpx
import pytest

from pdrive.errors import RemoteError
from pdrive.models import ClientConfig, CompletedPart, UploadSession, UploadState
from pdrive.orchestrator.multipart import MultipartUploadCoordinator
from pdrive.services.api_client import PDriveAPIClient

KIB = 1024


def _with(config, **changes):
    values = dict(
        token=config.token,
        api_url=config.api_url,
        concurrent_requests=config.concurrent_requests,
        part_size=config.part_size,
        cancel_on_failure=config.cancel_on_failure,
    )
    values.update(changes)
    return ClientConfig(**values)


async def _upload(config, server, path, transport=None):
    async with PDriveAPIClient(config, transport=transport or server.transport) as api:
        coordinator = MultipartUploadCoordinator(api, config)
        try:
            outcome = await coordinator.upload(path)
        finally:
            await coordinator.aclose()
    return coordinator, outcome


def _replace_part(server, part_number, respond):
    """Transport that answers the PUT of one part with ``respond(request)``."""
    def handle(request):
        if request.url.path.startswith("/upload-part/put/") and request.url.params["partNumber"] == str(part_number):
            server.requests.append(request)
            return respond(request)
        return server.handle(request)
    return httpx.MockTransport(handle)


class SlowPartsAPI:
    """Upload API whose parts take a while; ``failing`` parts fail at once."""

    def __init__(self, failing=(1,), delay=0.05):
        self.failing = set(failing)
        self.delay = delay
        self.started = []
        self.finished = []
        self.finish_calls = 0

    async def upload_single(self, filename, content, size):
        raise AssertionError("single upload not expected")

    async def init_upload(self, filename):
        return UploadSession(key="k", upload_id="u")

    async def upload_part(self, session, job, content):
        self.started.append(job.part_number)
        async for _ in content:
            pass
        if job.part_number in self.failing:
            raise RemoteError(500, "storage backend exploded")
        await asyncio.sleep(self.delay)
        self.finished.append(job.part_number)
        return CompletedPart(part_number=job.part_number, etag=f"etag-{job.part_number}")

    async def finish_upload(self, session, parts):
        self.finish_calls += 1
        return "http://pdrive.test/k"


def _upload_tasks():
    return [
        task for task in asyncio.all_tasks()
        if task.get_name().startswith("upload-") and not task.done()
    ]


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestMultipartUploadCoordinator:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("workers", [1, 2, 3])
    async def test_three_part_upload(self, config, server, make_file, workers):
        path = make_file(120 * KIB)
        config = _with(config, concurrent_requests=workers)

        coordinator, outcome = await _upload(config, server, path)

        assert outcome.success is True
        assert outcome.url == f"http://pdrive.test/{server.key}"
        assert coordinator.state == UploadState.DONE
        assert {n: len(body) for n, body in server.parts.items()} == {
            1: 50 * KIB,
            2: 50 * KIB,
            3: 20 * KIB,
        }
        assert b"".join(server.parts[n] for n in (1, 2, 3)) == path.read_bytes()
        assert server.finish_payloads == [
            [
                {"partNumber": 1, "etag": "etag-1"},
                {"partNumber": 2, "etag": "etag-2"},
                {"partNumber": 3, "etag": "etag-3"},
            ]
        ]

    @pytest.mark.asyncio
    async def test_phases_run_in_order(self, config, server, make_file):
        path = make_file(120 * KIB)

        await _upload(config, server, path)

        paths = [r.url.path for r in server.requests]
        assert paths[0].startswith("/upload-part/init/")
        assert paths[-1].startswith("/upload-part/finish/")
        assert all(p.startswith("/upload-part/put/") for p in paths[1:-1])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cancel_on_failure", [False, True])
    async def test_part_failure_fails_upload_without_finish(
        self, config, server, make_file, cancel_on_failure
    ):
        server.part_status[2] = 500
        config = _with(config, cancel_on_failure=cancel_on_failure)

        coordinator, outcome = await _upload(config, server, make_file(120 * KIB))

        assert outcome.success is False
        assert outcome.state == UploadState.FAILED
        assert coordinator.state == UploadState.FAILED
        assert "Part 2" in outcome.error
        assert "500" in outcome.error
        assert server.finish_payloads == []
        assert server.paths("/upload-part/finish/") == []

    @pytest.mark.asyncio
    async def test_init_failure_uploads_nothing(self, config, server, make_file):
        server.token = "another-token"

        coordinator, outcome = await _upload(config, server, make_file(120 * KIB))

        assert outcome.success is False
        assert "401" in outcome.error
        assert server.paths("/upload-part/put/") == []
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_finish_failure_reports_status_and_body(self, config, server, make_file):
        server.finish_status = 500

        coordinator, outcome = await _upload(config, server, make_file(120 * KIB))

        assert outcome.success is False
        assert outcome.error == "Unexpected status code (500): cannot finish"
        assert len(server.parts) == 3

    @pytest.mark.asyncio
    async def test_missing_file_fails_in_planning(self, config, server, tmp_path):
        coordinator, outcome = await _upload(config, server, tmp_path / "missing.bin")

        assert outcome.success is False
        assert "Cannot open file" in outcome.error
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_retry_after_failure_opens_new_session(self, config, server, make_file):
        path = make_file(120 * KIB)
        server.part_status[1] = 500

        _, first = await _upload(config, server, path)
        server.part_status.clear()
        _, second = await _upload(config, server, path)

        assert first.success is False
        assert second.success is True
        assert server.init_calls == 2
        assert server.paths("/upload-part/finish/") == [f"/upload-part/finish/{server.key}/upload-2"]

    @pytest.mark.asyncio
    async def test_reports_part_progress(self, config, server, make_file):
        events = []
        path = make_file(120 * KIB)

        async with PDriveAPIClient(config, transport=server.transport) as api:
            coordinator = MultipartUploadCoordinator(api, config, progress_callback=events.append)
            outcome = await coordinator.upload(path)

        assert outcome.success is True
        finals = {e.label: e for e in events if e.uploaded_bytes == e.total_bytes}
        assert set(finals) == {"Part 1", "Part 2", "Part 3"}
        assert finals["Part 3"].total_bytes == 20 * KIB

    @pytest.mark.asyncio
    async def test_malformed_part_response_fails_upload(self, config, server, make_file):
        transport = _replace_part(server, 2, lambda request: httpx.Response(200, text="not json"))

        coordinator, outcome = await _upload(config, server, make_file(120 * KIB), transport)

        assert outcome.success is False
        assert coordinator.state == UploadState.FAILED
        assert "Part 2" in outcome.error
        assert "Failed to parse JSON" in outcome.error
        assert server.paths("/upload-part/finish/") == []

    @pytest.mark.asyncio
    async def test_connection_error_on_part_fails_upload(self, config, server, make_file):
        def reset(request):
            raise httpx.ConnectError("connection reset", request=request)

        transport = _replace_part(server, 2, reset)

        coordinator, outcome = await _upload(config, server, make_file(120 * KIB), transport)

        assert outcome.success is False
        assert coordinator.state == UploadState.FAILED
        assert "Part 2" in outcome.error
        assert "connection reset" in outcome.error
        assert server.paths("/upload-part/finish/") == []


class TestCancelOnFailure:
    """Five 10-byte parts, three workers, part 1 fails immediately."""

    @pytest.mark.asyncio
    async def test_remaining_parts_keep_uploading_until_close(self, config, make_file):
        api = SlowPartsAPI()
        config = _with(config, part_size=10, concurrent_requests=3, cancel_on_failure=False)
        coordinator = MultipartUploadCoordinator(api, config)

        try:
            outcome = await coordinator.upload(make_file(50))

            assert outcome.success is False
            assert "Part 1" in outcome.error
            assert coordinator.has_background_work is True
            assert _upload_tasks() != []

            await _wait_for(lambda: len(api.finished) == 4)
            assert sorted(api.finished) == [2, 3, 4, 5]
        finally:
            await coordinator.aclose()

        assert coordinator.has_background_work is False
        assert _upload_tasks() == []
        assert api.finish_calls == 0

    @pytest.mark.asyncio
    async def test_workers_are_stopped_before_returning(self, config, make_file):
        api = SlowPartsAPI()
        config = _with(config, part_size=10, concurrent_requests=3, cancel_on_failure=True)
        coordinator = MultipartUploadCoordinator(api, config)

        outcome = await coordinator.upload(make_file(50))

        assert outcome.success is False
        assert "Part 1" in outcome.error
        assert coordinator.has_background_work is False
        assert _upload_tasks() == []
        assert api.finished == []

        started = list(api.started)
        await asyncio.sleep(api.delay * 3)
        assert api.started == started
        assert api.finished == []
        assert api.finish_calls == 0
