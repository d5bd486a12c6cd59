"""Turn commands into fully specified outbound HTTP requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .commands import Command, PushCreate
from .errors import MissingRequiredField
from .logging import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from .upload import FileUploader


@dataclass(frozen=True)
class MultipartFile:
    """A local file sent as the ``file`` field of a multipart body."""

    path: Path
    file_name: str
    file_type: str


@dataclass(frozen=True)
class RequestDescriptor:
    """Method, absolute URL, query parameters and at most one body."""

    method: str
    url: str
    params: Tuple[Tuple[str, str], ...] = ()
    json: Optional[Dict[str, Any]] = None
    upload: Optional[MultipartFile] = field(default=None)

    def __post_init__(self) -> None:
        if self.json is not None and self.upload is not None:
            raise ValueError("A request carries either a JSON body or a multipart upload, not both")


class RequestBuilder:
    """Single dispatcher mapping any :class:`Command` to a :class:`RequestDescriptor`.

    File pushes are the only commands with a side effect at build time: the
    file is uploaded through ``uploader`` before the push body is produced, so
    that the body can reference the server-assigned file URL.
    """

    def __init__(self, base_url: str, uploader: Optional["FileUploader"] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.uploader = uploader
        self._logger = get_logger("pushbullet.builder")

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def build(self, command: Command) -> RequestDescriptor:
        if isinstance(command, PushCreate) and command.needs_upload:
            command = self._attach_upload(command)

        descriptor = RequestDescriptor(
            method=command.method,
            url=self.url_for(command.endpoint()),
            params=tuple(command.to_query()),
            json=command.to_body(),
        )
        self._logger.debug(
            "Built request",
            extra={
                "command": type(command).__name__,
                "method": descriptor.method,
                "url": descriptor.url,
            },
        )
        return descriptor

    def _attach_upload(self, command: PushCreate) -> PushCreate:
        if not command.file_name:
            raise MissingRequiredField("file_name is required for pushes of type 'file'")
        if self.uploader is None:
            raise MissingRequiredField("An uploader is required to send file pushes")
        ticket = self.uploader.upload_file(Path(command.file_name), command.file_type)
        return command.with_upload(ticket)
