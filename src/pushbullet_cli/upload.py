"""Two-step file upload used ahead of creating a file push."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import filetype

from .builder import MultipartFile, RequestDescriptor
from .errors import (
    ResponseReadError,
    TransportError,
    UploadNegotiationFailed,
    UploadTransferFailed,
)
from .logging import get_logger
from .transport import Transport


UPLOAD_REQUEST_ENDPOINT = "/v2/upload-request"
_SNIFF_BYTES = 8192


@dataclass(frozen=True)
class UploadTicket:
    """Server-assigned file metadata plus a single-use upload destination."""

    file_name: str
    file_type: str
    file_url: str
    upload_url: str

    @classmethod
    def from_payload(cls, payload: Any) -> "UploadTicket":
        if not isinstance(payload, Mapping):
            raise ValueError("upload-request response is not a JSON object")
        missing = [
            key
            for key in ("file_name", "file_type", "file_url", "upload_url")
            if not isinstance(payload.get(key), str)
        ]
        if missing:
            raise ValueError(f"upload-request response is missing {', '.join(missing)}")
        return cls(
            file_name=payload["file_name"],
            file_type=payload["file_type"],
            file_url=payload["file_url"],
            upload_url=payload["upload_url"],
        )


def _read_head(path: Path) -> bytes:
    with path.open("rb") as handle:
        return handle.read(_SNIFF_BYTES)


def detect_mime_type(path: Path, head: Optional[bytes] = None) -> str:
    """Determine a MIME type from the file's leading bytes.

    Recognised binary signatures win; otherwise content that decodes as UTF-8
    without NUL bytes is ``text/plain``. ``head`` skips re-reading the file
    when the caller already holds its first bytes.
    """

    if head is None:
        head = _read_head(path)
    kind = filetype.guess(head)
    if kind is not None:
        return kind.mime
    if b"\x00" not in head:
        try:
            codecs.getincrementaldecoder("utf-8")().decode(head, final=False)
        except UnicodeDecodeError:
            pass
        else:
            return "text/plain"
    raise ValueError(f"could not determine the MIME type of {path}")


class FileUploader:
    """Negotiates an upload destination and transfers file bytes to it."""

    def __init__(self, transport: Transport, base_url: str) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self._logger = get_logger("pushbullet.upload")

    def upload_file(self, path: Path, file_type: Optional[str] = None) -> UploadTicket:
        """Request a ticket, then transfer the file; returns the ticket once both succeed."""

        ticket = self.request_upload(path, file_type)
        self.upload(path, ticket)
        return ticket

    def request_upload(self, path: Path, file_type: Optional[str] = None) -> UploadTicket:
        if not path.is_file():
            raise UploadNegotiationFailed(f"{path} is not a readable file")
        try:
            head = _read_head(path)
        except OSError as exc:
            raise UploadNegotiationFailed(f"{path} is not a readable file: {exc}") from exc
        if not file_type:
            try:
                file_type = detect_mime_type(path, head)
            except ValueError as exc:
                raise UploadNegotiationFailed(f"MIME type detection failed: {exc}") from exc

        descriptor = RequestDescriptor(
            method="POST",
            url=f"{self.base_url}{UPLOAD_REQUEST_ENDPOINT}",
            json={"file_name": path.name, "file_type": file_type},
        )
        try:
            response = self.transport.send(descriptor)
        except (TransportError, ResponseReadError) as exc:
            raise UploadNegotiationFailed(f"upload-request failed: {exc}") from exc
        if not response.is_success:
            raise UploadNegotiationFailed(
                f"upload-request returned {response.status_code}: {response.text}"
            )
        try:
            ticket = UploadTicket.from_payload(response.json())
        except ValueError as exc:
            raise UploadNegotiationFailed(f"Malformed upload-request response: {exc}") from exc

        self._logger.info(
            "Upload ticket obtained",
            extra={"file_name": ticket.file_name, "file_type": ticket.file_type},
        )
        return ticket

    def upload(self, path: Path, ticket: UploadTicket) -> None:
        descriptor = RequestDescriptor(
            method="POST",
            url=ticket.upload_url,
            upload=MultipartFile(path=path, file_name=ticket.file_name, file_type=ticket.file_type),
        )
        try:
            response = self.transport.send(descriptor)
        except (TransportError, ResponseReadError, OSError) as exc:
            raise UploadTransferFailed(f"File transfer failed: {exc}") from exc
        if not response.is_success:
            raise UploadTransferFailed(
                f"File transfer returned {response.status_code}: {response.text}"
            )
        self._logger.info("File uploaded", extra={"file_url": ticket.file_url})
