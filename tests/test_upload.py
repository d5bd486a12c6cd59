import json
from pathlib import Path
from typing import Callable, Dict, List

import httpx
import pytest

from pushbullet_cli.builder import RequestBuilder
from pushbullet_cli.commands import PushCreate
from pushbullet_cli.errors import UploadNegotiationFailed, UploadTransferFailed
from pushbullet_cli.transport import Transport
from pushbullet_cli.upload import FileUploader, UploadTicket, detect_mime_type


BASE_URL = "https://api.test"
UPLOAD_URL = "https://upload.test/upload-legacy/yWNUm6EX"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00"

TICKET_PAYLOAD = {
    "file_name": "cat.png",
    "file_type": "image/png",
    "file_url": "https://dl.test/034f197e/cat.png",
    "upload_url": UPLOAD_URL,
}

Route = Callable[[httpx.Request], httpx.Response]


def _transport(calls: List[httpx.Request], routes: Dict[str, Route]) -> Transport:
    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return routes[str(request.url)](request)

    return Transport("o.secret", transport=httpx.MockTransport(_handler))


def _ok(payload: object = None, status: int = 200) -> Route:
    return lambda request: httpx.Response(status, json=payload if payload is not None else {})


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    path = tmp_path / "photos" / "cat.png"
    path.parent.mkdir()
    path.write_bytes(PNG_BYTES)
    return path


def test_detect_mime_type_from_content(tmp_path: Path) -> None:
    image = tmp_path / "no-extension"
    image.write_bytes(PNG_BYTES)
    text = tmp_path / "notes.bin"
    text.write_text("plain words, héllo\n", encoding="utf-8")

    assert detect_mime_type(image) == "image/png"
    assert detect_mime_type(text) == "text/plain"


def test_detect_mime_type_failure(tmp_path: Path) -> None:
    blob = tmp_path / "blob.txt"
    blob.write_bytes(b"zz\x00\x00zz-binary\x00")

    with pytest.raises(ValueError, match="MIME"):
        detect_mime_type(blob)


def test_upload_file_requests_ticket_then_transfers(png_file: Path) -> None:
    calls: List[httpx.Request] = []
    routes = {
        f"{BASE_URL}/v2/upload-request": _ok(TICKET_PAYLOAD),
        UPLOAD_URL: _ok(status=204),
    }

    with _transport(calls, routes) as transport:
        ticket = FileUploader(transport, BASE_URL).upload_file(png_file)

    assert ticket == UploadTicket(**TICKET_PAYLOAD)
    assert [str(call.url) for call in calls] == [f"{BASE_URL}/v2/upload-request", UPLOAD_URL]
    assert all(call.headers["Access-Token"] == "o.secret" for call in calls)

    negotiation, transfer = calls
    assert json.loads(negotiation.content) == {"file_name": "cat.png", "file_type": "image/png"}
    assert transfer.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="file"' in transfer.content
    assert PNG_BYTES in transfer.content


def test_caller_file_type_skips_detection(tmp_path: Path) -> None:
    blob = tmp_path / "blob.dat"
    blob.write_bytes(b"zz\x00\x00zz-binary\x00")
    calls: List[httpx.Request] = []
    routes = {f"{BASE_URL}/v2/upload-request": _ok(TICKET_PAYLOAD)}

    with _transport(calls, routes) as transport:
        FileUploader(transport, BASE_URL).request_upload(blob, "application/x-custom")

    assert json.loads(calls[0].content)["file_type"] == "application/x-custom"


def test_missing_file_fails_without_requests(tmp_path: Path) -> None:
    calls: List[httpx.Request] = []

    with _transport(calls, {}) as transport:
        with pytest.raises(UploadNegotiationFailed, match="not a readable file"):
            FileUploader(transport, BASE_URL).upload_file(tmp_path / "missing.png")

    assert calls == []


def test_unreadable_file_with_caller_type_fails_without_requests(monkeypatch, png_file: Path) -> None:
    real_open = Path.open

    def _open(self, *args, **kwargs):
        if self == png_file:
            raise PermissionError("denied")
        return real_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", _open)
    calls: List[httpx.Request] = []

    with _transport(calls, {}) as transport:
        with pytest.raises(UploadNegotiationFailed, match="denied"):
            FileUploader(transport, BASE_URL).upload_file(png_file, "application/x-custom")

    assert calls == []


def test_undetectable_mime_type_fails_without_requests(tmp_path: Path) -> None:
    blob = tmp_path / "blob.txt"
    blob.write_bytes(b"zz\x00\x00zz-binary\x00")
    calls: List[httpx.Request] = []

    with _transport(calls, {}) as transport:
        with pytest.raises(UploadNegotiationFailed, match="MIME"):
            FileUploader(transport, BASE_URL).upload_file(blob)

    assert calls == []


def test_rejected_upload_request_stops_before_transfer(png_file: Path) -> None:
    calls: List[httpx.Request] = []
    routes = {
        f"{BASE_URL}/v2/upload-request": _ok({"error": {"message": "Access token is missing"}}, 401),
    }

    with _transport(calls, routes) as transport:
        with pytest.raises(UploadNegotiationFailed, match="401"):
            FileUploader(transport, BASE_URL).upload_file(png_file)

    assert len(calls) == 1


def test_malformed_ticket_is_negotiation_failure(png_file: Path) -> None:
    calls: List[httpx.Request] = []
    payload = {key: value for key, value in TICKET_PAYLOAD.items() if key != "upload_url"}
    routes = {f"{BASE_URL}/v2/upload-request": _ok(payload)}

    with _transport(calls, routes) as transport:
        with pytest.raises(UploadNegotiationFailed, match="upload_url"):
            FileUploader(transport, BASE_URL).upload_file(png_file)

    assert len(calls) == 1


def test_failed_transfer_prevents_push_creation(png_file: Path) -> None:
    calls: List[httpx.Request] = []
    routes = {
        f"{BASE_URL}/v2/upload-request": _ok(TICKET_PAYLOAD),
        UPLOAD_URL: _ok(status=500),
    }

    with _transport(calls, routes) as transport:
        builder = RequestBuilder(BASE_URL, FileUploader(transport, BASE_URL))
        with pytest.raises(UploadTransferFailed, match="500"):
            builder.build(PushCreate(push_type="file", file_name=str(png_file)))

    assert [str(call.url) for call in calls] == [f"{BASE_URL}/v2/upload-request", UPLOAD_URL]


def test_file_push_end_to_end(png_file: Path) -> None:
    calls: List[httpx.Request] = []
    routes = {
        f"{BASE_URL}/v2/upload-request": _ok(TICKET_PAYLOAD),
        UPLOAD_URL: _ok(status=204),
        f"{BASE_URL}/v2/pushes": _ok({"iden": "push1", "type": "file"}),
    }

    with _transport(calls, routes) as transport:
        builder = RequestBuilder(BASE_URL, FileUploader(transport, BASE_URL))
        descriptor = builder.build(
            PushCreate(push_type="file", file_name=str(png_file), file_type="image/x-guess")
        )
        text = transport.execute(descriptor)

    assert json.loads(text) == {"iden": "push1", "type": "file"}
    assert [str(call.url) for call in calls] == [
        f"{BASE_URL}/v2/upload-request",
        UPLOAD_URL,
        f"{BASE_URL}/v2/pushes",
    ]
    assert json.loads(calls[2].content) == {
        "type": "file",
        "file_name": "cat.png",
        "file_type": "image/png",
        "file_url": "https://dl.test/034f197e/cat.png",
    }
