"""Shared fixtures: an in-memory pdrive server behind httpx.MockTransport."""
import json
from typing import Dict, List

import httpx
import pytest

from pdrive.models import ClientConfig

API_URL = "http://pdrive.test"
TOKEN = "secret-token"


class FakePDriveServer:
    """Records every request and answers like the pdrive API."""

    def __init__(self, token: str = TOKEN, key: str = "f00d-big.bin"):
        self.token = token
        self.key = key
        self.requests: List[httpx.Request] = []
        self.parts: Dict[int, bytes] = {}
        self.part_status: Dict[int, int] = {}
        self.finish_payloads: List[list] = []
        self.single_bodies: List[bytes] = []
        self.init_calls = 0
        self.init_response = None
        self.finish_status = 200
        self.single_status = 200
        self.single_text = "f00d-small.bin"

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self, prefix: str) -> List[str]:
        return [r.url.path for r in self.requests if r.url.path.startswith(prefix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, text="unauthorized")

        if path.startswith("/upload-part/init/"):
            self.init_calls += 1
            if self.init_response is not None:
                return self.init_response
            return httpx.Response(
                200,
                json={"Key": self.key, "UploadId": f"upload-{self.init_calls}"},
            )

        if path.startswith("/upload-part/put/"):
            part_number = int(request.url.params["partNumber"])
            status = self.part_status.get(part_number, 200)
            if status != 200:
                return httpx.Response(status, text="storage backend exploded")
            self.parts[part_number] = request.content
            return httpx.Response(
                200,
                json={"partNumber": part_number, "etag": f"etag-{part_number}"},
            )

        if path.startswith("/upload-part/finish/"):
            self.finish_payloads.append(json.loads(request.content))
            return httpx.Response(self.finish_status, text="" if self.finish_status == 200 else "cannot finish")

        if path.startswith("/upload/"):
            self.single_bodies.append(request.content)
            return httpx.Response(self.single_status, text=self.single_text)

        return httpx.Response(404, text="not found")


@pytest.fixture
def server():
    return FakePDriveServer()


@pytest.fixture
def config():
    return ClientConfig(
        token=TOKEN,
        api_url=API_URL,
        concurrent_requests=2,
        part_size=50 * 1024,
    )


@pytest.fixture
def make_file(tmp_path):
    """Create a file with non-repeating content of the given size."""
    def _make(size: int, name: str = "big.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path
    return _make
