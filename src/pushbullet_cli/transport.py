"""HTTP execution of built requests."""

from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Dict, Optional

import httpx

from . import __version__
from .builder import RequestDescriptor
from .errors import ResponseReadError, TransportError
from .logging import get_logger, redact_mapping


ACCESS_TOKEN_HEADER = "Access-Token"


class Transport:
    """Sends :class:`RequestDescriptor` objects with the access token attached.

    One call is one round trip: no retries, and redirects and timeouts are left
    at the httpx defaults. Non-2xx responses are returned like any other.
    """

    def __init__(
        self,
        access_token: str,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {
            ACCESS_TOKEN_HEADER: access_token,
            "User-Agent": f"pushbullet-cli/{__version__}",
        }
        self._client = httpx.Client(headers=headers, transport=transport)
        self._logger = get_logger("pushbullet.http")

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Perform the exchange and return the fully read response."""

        with ExitStack() as stack:
            kwargs: Dict[str, Any] = {"params": list(descriptor.params) or None}
            if descriptor.json is not None:
                kwargs["json"] = descriptor.json
            elif descriptor.upload is not None:
                upload = descriptor.upload
                handle = stack.enter_context(upload.path.open("rb"))
                kwargs["files"] = {"file": (upload.file_name, handle, upload.file_type)}
            request = self._client.build_request(descriptor.method, descriptor.url, **kwargs)

            self._logger.debug(
                "Sending request",
                extra={
                    "method": request.method,
                    "url": str(request.url),
                    "headers": redact_mapping(request.headers),
                },
            )
            try:
                response = self._client.send(request, stream=True)
            except httpx.RequestError as exc:
                raise TransportError(
                    f"{descriptor.method} {descriptor.url} failed: {exc}"
                ) from exc
            try:
                response.read()
            except (httpx.HTTPError, httpx.StreamError) as exc:
                raise ResponseReadError(
                    f"Failed reading response from {descriptor.url}: {exc}"
                ) from exc
            finally:
                response.close()

        self._logger.debug(
            "Received response",
            extra={"status_code": response.status_code, "url": descriptor.url},
        )
        return response

    def execute(self, descriptor: RequestDescriptor) -> str:
        """Send ``descriptor`` and return the response body as text, verbatim."""

        response = self.send(descriptor)
        encoding = response.encoding or "utf-8"
        try:
            return response.content.decode(encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            raise ResponseReadError(
                f"Response from {descriptor.url} is not valid {encoding} text: {exc}"
            ) from exc
