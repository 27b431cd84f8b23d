"""upload collaborator for info-popup images.

two calls: ask the upload service for a signed url, then PUT the bytes
there. on success the caller appends the returned object path to a step.
the graph is never touched here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


# --- configuration ---

UPLOAD_TIMEOUT = 30.0  # seconds, per request
UPLOAD_REQUEST_PATH = "/api/uploads/request-url"


class UploadError(RuntimeError):
    """the upload service or the transfer failed."""

    pass


@dataclass
class UploadRequest:
    name: str
    size: int
    content_type: str

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size, "contentType": self.content_type}


@dataclass
class UploadTicket:
    """where to send the bytes, and the opaque reference to keep."""

    upload_url: str
    object_path: str

    @classmethod
    def from_dict(cls, d: dict) -> UploadTicket:
        return cls(upload_url=d["uploadURL"], object_path=d["objectPath"])


@runtime_checkable
class UploadProtocol(Protocol):
    """protocol for upload clients (real or mock)."""

    async def request_upload(self, request: UploadRequest) -> UploadTicket:
        ...

    async def transfer(self, ticket: UploadTicket, data: bytes, content_type: str) -> None:
        ...


class MockUploader:
    """in-memory uploader for tests and --mock mode."""

    def __init__(self, fail_transfer: bool = False):
        self.fail_transfer = fail_transfer
        self.requests: list[UploadRequest] = []
        self.stored: dict[str, bytes] = {}

    async def request_upload(self, request: UploadRequest) -> UploadTicket:
        self.requests.append(request)
        n = len(self.requests)
        return UploadTicket(
            upload_url=f"mock://uploads/{n}",
            object_path=f"/objects/uploads/{n}-{request.name}",
        )

    async def transfer(self, ticket: UploadTicket, data: bytes, content_type: str) -> None:
        if self.fail_transfer:
            raise UploadError(f"mock transfer failed for {ticket.upload_url}")
        self.stored[ticket.object_path] = data


class HttpUploader:
    """uploader backed by an http upload service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = UPLOAD_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport  # injectable for tests

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def request_upload(self, request: UploadRequest) -> UploadTicket:
        url = f"{self.base_url}{UPLOAD_REQUEST_PATH}"
        try:
            async with self._client() as client:
                response = await client.post(url, json=request.to_dict())
                response.raise_for_status()
                return UploadTicket.from_dict(response.json())
        except httpx.HTTPError as e:
            raise UploadError(f"upload url request failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise UploadError(f"malformed upload url response: {e}") from e

    async def transfer(self, ticket: UploadTicket, data: bytes, content_type: str) -> None:
        try:
            async with self._client() as client:
                response = await client.put(
                    ticket.upload_url,
                    content=data,
                    headers={"Content-Type": content_type},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise UploadError(f"upload transfer failed: {e}") from e


async def upload_image(
    uploader: UploadProtocol,
    name: str,
    data: bytes,
    content_type: str,
) -> str:
    """upload bytes and return the object path to store on the step.

    raises UploadError on any failure.
    """
    request = UploadRequest(name=name, size=len(data), content_type=content_type)
    ticket = await uploader.request_upload(request)
    await uploader.transfer(ticket, data, content_type)
    logger.info(f"uploaded {name} ({len(data)} bytes) -> {ticket.object_path}")
    return ticket.object_path
