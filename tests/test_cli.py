import json
from pathlib import Path
from typing import Any, List

import httpx
import pytest
import yaml

from pushbullet_cli import cli
from pushbullet_cli.cli import _build_parser, main
from pushbullet_cli.commands import ChatList, ChatUpdate, DeviceCreate, PushList
from pushbullet_cli.transport import Transport


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("CONFIG", "BASE_URL", "TOKEN_PATH", "OUTPUT", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"PUSHBULLET_{name}", raising=False)


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    path = tmp_path / "pbr" / "config"
    path.parent.mkdir()
    path.write_text("o.stored")
    return path


def _patch_transport(monkeypatch, calls: List[httpx.Request], status: int = 200, response_json: Any = None) -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        payload = response_json if response_json is not None else {}
        return httpx.Response(
            status,
            content=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )

    def _factory(access_token: str) -> Transport:
        return Transport(access_token, transport=httpx.MockTransport(_handler))

    monkeypatch.setattr(cli, "Transport", _factory)


def test_parser_builds_list_command_with_default_limit() -> None:
    args = _build_parser().parse_args(["chat", "list"])

    assert args.factory(args) == ChatList()
    assert args.factory(args).to_query() == [("limit", "500")]


def test_parser_tristate_boolean_flags() -> None:
    parser = _build_parser()

    muted = parser.parse_args(["chat", "update", "abc123", "--muted"])
    unmuted = parser.parse_args(["chat", "update", "abc123", "--no-muted"])
    untouched = parser.parse_args(["chat", "update", "abc123"])

    assert muted.factory(muted) == ChatUpdate(iden="abc123", muted=True)
    assert unmuted.factory(unmuted) == ChatUpdate(iden="abc123", muted=False)
    assert untouched.factory(untouched).to_body() == {}


def test_parser_device_fields() -> None:
    args = _build_parser().parse_args(
        ["device", "create", "--nickname", "Test", "--model", "X", "--app-version", "8623"]
    )

    assert args.factory(args) == DeviceCreate(nickname="Test", model="X", app_version=8623)


def test_parser_rejects_non_positive_limit(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        _build_parser().parse_args(["device", "list", "--limit", "0"])

    assert exc_info.value.code == 2
    assert "positive" in capsys.readouterr().err


def test_access_token_set_twice_keeps_second(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "pbr" / "config"

    main(["--token-file", str(path), "access-token", "o.first"])
    main(["--token-file", str(path), "access-token", "o.second"])

    assert path.read_text() == "o.second"


def test_chat_update_prints_raw_body(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls, response_json={"iden": "abc123", "muted": True})

    main(
        [
            "--token-file",
            str(token_file),
            "--base-url",
            "https://api.test",
            "chat",
            "update",
            "abc123",
            "--muted",
        ]
    )

    assert capsys.readouterr().out == json.dumps({"iden": "abc123", "muted": True}) + "\n"
    (request,) = calls
    assert request.method == "POST"
    assert str(request.url) == "https://api.test/v2/chats/abc123"
    assert request.headers["Access-Token"] == "o.stored"
    assert json.loads(request.content) == {"muted": True}


def test_error_response_is_printed_as_output(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    error = {"error": {"code": "not_found", "message": "Object not found"}}
    _patch_transport(monkeypatch, calls, status=404, response_json=error)

    main(["--token-file", str(token_file), "device", "delete", "missing"])

    assert json.loads(capsys.readouterr().out) == error
    assert calls[0].method == "DELETE"


def test_push_list_query(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls, response_json={"pushes": []})

    main(
        [
            "--token-file",
            str(token_file),
            "push",
            "list",
            "--active",
            "--cursor",
            "c1",
            "--limit",
            "10",
        ]
    )

    params = calls[0].url.params
    assert params["active"] == "true"
    assert params["cursor"] == "c1"
    assert params["limit"] == "10"
    assert "modified_after" not in params


def test_yaml_output(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls, response_json={"name": "Elon Musk", "iden": "ujpah72o0"})

    main(["--token-file", str(token_file), "--output", "yaml", "user", "get"])

    assert yaml.safe_load(capsys.readouterr().out) == {"name": "Elon Musk", "iden": "ujpah72o0"}
    assert str(calls[0].url).endswith("/v2/users/me")


def test_missing_token_exits_with_error(monkeypatch, capsys, tmp_path: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls)

    with pytest.raises(SystemExit) as exc_info:
        main(["--token-file", str(tmp_path / "absent"), "user", "get"])

    assert exc_info.value.code == 1
    assert "CredentialIoError" in capsys.readouterr().err
    assert calls == []


def test_malformed_override_makes_no_request(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls)

    with pytest.raises(SystemExit) as exc_info:
        main(["--token-file", str(token_file), "device", "create", "--data-binary", "{oops"])

    assert exc_info.value.code == 1
    assert "MalformedOverride" in capsys.readouterr().err
    assert calls == []


def test_file_push_without_file_name_makes_no_request(monkeypatch, capsys, token_file: Path) -> None:
    calls: List[httpx.Request] = []
    _patch_transport(monkeypatch, calls)

    with pytest.raises(SystemExit) as exc_info:
        main(["--token-file", str(token_file), "push", "create", "--type", "file", "--body", "hi"])

    assert exc_info.value.code == 1
    assert "MissingRequiredField" in capsys.readouterr().err
    assert calls == []


def test_invalid_config_file_exits(capsys, tmp_path: Path) -> None:
    config_file = tmp_path / "pushbullet.toml"
    config_file.write_text("config_version = 99\n")

    with pytest.raises(SystemExit) as exc_info:
        main(["--config", str(config_file), "user", "get"])

    assert exc_info.value.code == 1
    assert "newer than supported" in capsys.readouterr().err


def test_push_list_factory_uses_push_pagination() -> None:
    args = _build_parser().parse_args(["push", "list", "--modified-after", "1.4e9", "--no-active"])
    command = args.factory(args)

    assert isinstance(command, PushList)
    assert command.to_query() == [
        ("modified_after", "1.4e9"),
        ("active", "false"),
        ("limit", "500"),
    ]


def test_channel_info_recent_pushes_is_tristate() -> None:
    parser = _build_parser()

    hidden = parser.parse_args(["subscription", "channel-info", "--tag", "news", "--no-recent-pushes"])
    shown = parser.parse_args(["subscription", "channel-info", "--tag", "news", "--recent-pushes"])
    untouched = parser.parse_args(["subscription", "channel-info", "--tag", "news"])

    assert hidden.factory(hidden).to_query() == [("tag", "news"), ("no_recent_pushes", "true")]
    assert shown.factory(shown).to_query() == [("tag", "news"), ("no_recent_pushes", "false")]
    assert untouched.factory(untouched).to_query() == [("tag", "news")]
