"""HTTP adapter for the pdrive upload API."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterable, Dict, Iterable, Optional
from urllib.parse import quote

import httpx

from ..errors import ProtocolError, RemoteError, TransportError
from ..models import ClientConfig, CompletedPart, PartJob, UploadSession

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="/")


def _field(data: Dict[str, Any], *names: str) -> Any:
    """Look up a JSON field accepting several spellings of its name."""
    for name in names:
        if name in data:
            return data[name]
    lowered = {str(k).lower(): v for k, v in data.items()}
    for name in names:
        if name.lower() in lowered:
            return lowered[name.lower()]
    return None


class PDriveAPIClient:
    """
    HTTP client adapter for the upload service.

    One ``httpx.AsyncClient`` per lifetime, authenticated with a bearer token.
    Every call is a single attempt: transport failures become
    ``TransportError``, non-2xx answers ``RemoteError`` and unparsable
    bodies ``ProtocolError``.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            headers={"Authorization": f"Bearer {self._config.token}"},
            timeout=self._config.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        method: str,
        endpoint: str,
        what: str,
        **kwargs,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("PDriveAPIClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"Unable to send {what} request to server: {exc}") from exc
        logger.debug(f"{method} {endpoint} -> {response.status_code}")
        return response

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProtocolError(f"Failed to parse JSON while {what}: {exc}") from exc

    async def upload_single(
        self,
        filename: str,
        content: AsyncIterable[bytes],
        size: int,
    ) -> str:
        """POST a whole file; returns the object key from the response body."""
        response = await self._send(
            "POST",
            f"upload/{_segment(filename)}",
            "upload",
            content=content,
            headers={"Content-Length": str(size)},
        )
        body = response.text
        status = response.status_code

        if status == 200:
            return body.strip()
        if status == 400:
            raise RemoteError(status, body, f"Bad request: {body}")
        if status == 401:
            raise RemoteError(status, body, "Unauthorized response from server, wrong token?")
        if status == 500:
            raise RemoteError(status, body, f"Server error: {body}")
        raise RemoteError(status, body)

    async def init_upload(self, filename: str) -> UploadSession:
        """Open a multipart session for ``filename``."""
        response = await self._send(
            "POST",
            f"upload-part/init/{_segment(filename)}",
            "init",
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text)

        data = self._json(response, "initializing multipart upload")
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected JSON object from init, got: {response.text}")

        key = _field(data, "Key", "key")
        upload_id = _field(data, "UploadId", "uploadId", "upload_id")
        if not isinstance(key, str) or not key or not isinstance(upload_id, str) or not upload_id:
            raise ProtocolError(f"Init response is missing Key/UploadId: {response.text}")
        return UploadSession(key=key, upload_id=upload_id)

    async def upload_part(
        self,
        session: UploadSession,
        job: PartJob,
        content: AsyncIterable[bytes],
    ) -> CompletedPart:
        """PUT one byte range; returns its part number and etag."""
        response = await self._send(
            "PUT",
            f"upload-part/put/{_segment(session.key)}/{_segment(session.upload_id)}",
            f"part {job.part_number}",
            params={"partNumber": str(job.part_number)},
            content=content,
            headers={"Content-Length": str(job.length)},
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text)

        data = self._json(response, f"uploading part {job.part_number}")
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected JSON object for part {job.part_number}, got: {response.text}")

        etag = _field(data, "etag", "ETag")
        part_number = _field(data, "partNumber", "PartNumber")
        if not isinstance(etag, str) or not etag:
            raise ProtocolError(f"Part {job.part_number} response is missing etag: {response.text}")
        if part_number is None:
            part_number = job.part_number
        try:
            part_number = int(part_number)
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Part {job.part_number} response has invalid partNumber: {exc}") from exc
        if part_number != job.part_number:
            raise ProtocolError(
                f"Part {job.part_number} response reports part number {part_number}"
            )
        return CompletedPart(part_number=job.part_number, etag=etag)

    async def finish_upload(
        self,
        session: UploadSession,
        parts: Iterable[CompletedPart],
    ) -> str:
        """Complete the session; returns the public resource URL."""
        payload = [part.to_payload() for part in sorted(parts, key=lambda p: p.part_number)]
        response = await self._send(
            "POST",
            f"upload-part/finish/{_segment(session.key)}/{_segment(session.upload_id)}",
            "finishing",
            json=payload,
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text)
        return self._config.resource_url(session.key)
