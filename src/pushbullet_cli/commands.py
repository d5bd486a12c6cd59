"""Typed commands for each Pushbullet resource.

Every request-producing command exposes the same small capability set used by
:class:`pushbullet_cli.builder.RequestBuilder`:

* ``method``: HTTP verb
* ``endpoint()``: path below the API base URL
* ``to_query()``: ordered query parameters
* ``to_body()``: JSON object to send, or ``None`` for no body

Create and update commands accept ``data_binary``, a raw JSON document that
replaces field-by-field body construction entirely when present.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from .errors import MalformedOverride

if TYPE_CHECKING:  # pragma: no cover
    from .upload import UploadTicket


DEFAULT_PAGE_LIMIT = 500

QueryParams = List[Tuple[str, str]]


def parse_override(raw: str) -> Dict[str, Any]:
    """Parse a raw JSON body override; it must be a JSON object."""

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedOverride(f"Invalid JSON body override: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedOverride(
            f"JSON body override must be an object; got {type(parsed).__name__}"
        )
    return parsed


def compact(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop unset (``None``) entries so they are absent from the wire body."""

    return {key: value for key, value in values.items() if value is not None}


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _query(pairs: List[Tuple[str, Any]]) -> QueryParams:
    return [(key, _query_value(value)) for key, value in pairs if value is not None]


@dataclass(frozen=True)
class Pagination:
    """Cursor/limit pair forwarded verbatim on list requests."""

    cursor: Optional[str] = None
    limit: Optional[int] = DEFAULT_PAGE_LIMIT

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 1:
            raise ValueError(f"limit must be a positive integer; got {self.limit}.")

    def to_query(self) -> QueryParams:
        return _query([("cursor", self.cursor), ("limit", self.limit)])


@dataclass(frozen=True)
class PushPagination(Pagination):
    """Pagination plus the push history filters."""

    modified_after: Optional[str] = None
    active: Optional[bool] = None

    def to_query(self) -> QueryParams:
        return _query(
            [
                ("modified_after", self.modified_after),
                ("active", self.active),
                ("cursor", self.cursor),
                ("limit", self.limit),
            ]
        )


class Command:
    """Base class for commands that map onto exactly one API request."""

    method: ClassVar[str] = "GET"
    resource: ClassVar[str] = ""

    def endpoint(self) -> str:
        return f"/v2/{self.resource}"

    def to_query(self) -> QueryParams:
        return []

    def to_body(self) -> Optional[Dict[str, Any]]:
        return None


@dataclass(frozen=True)
class ListCommand(Command):
    pagination: Pagination = field(default_factory=Pagination)

    def to_query(self) -> QueryParams:
        return self.pagination.to_query()


@dataclass(frozen=True)
class WriteCommand(Command):
    """Shared body handling for create and update commands."""

    method: ClassVar[str] = "POST"

    def fields(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_body(self) -> Dict[str, Any]:
        override = getattr(self, "data_binary", None)
        if override is not None:
            return parse_override(override)
        return compact(self.fields())


@dataclass(frozen=True)
class CreateCommand(WriteCommand):
    data_binary: Optional[str] = None


@dataclass(frozen=True)
class UpdateCommand(WriteCommand):
    iden: str = ""
    data_binary: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.iden:
            raise ValueError(f"{type(self).__name__} requires an iden")

    def endpoint(self) -> str:
        return f"/v2/{self.resource}/{self.iden}"


@dataclass(frozen=True)
class DeleteCommand(Command):
    method: ClassVar[str] = "DELETE"

    iden: str = ""

    def __post_init__(self) -> None:
        if not self.iden:
            raise ValueError(f"{type(self).__name__} requires an iden")

    def endpoint(self) -> str:
        return f"/v2/{self.resource}/{self.iden}"


# Chats


@dataclass(frozen=True)
class ChatList(ListCommand):
    resource: ClassVar[str] = "chats"


@dataclass(frozen=True)
class ChatCreate(CreateCommand):
    resource: ClassVar[str] = "chats"

    email: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        return {"email": self.email}


@dataclass(frozen=True)
class ChatUpdate(UpdateCommand):
    resource: ClassVar[str] = "chats"

    muted: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {"muted": self.muted}


@dataclass(frozen=True)
class ChatDelete(DeleteCommand):
    resource: ClassVar[str] = "chats"


# Devices


@dataclass(frozen=True)
class DeviceFields:
    nickname: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    push_token: Optional[str] = None
    app_version: Optional[int] = None
    icon: Optional[str] = None
    has_sms: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {
            "nickname": self.nickname,
            "model": self.model,
            "manufacturer": self.manufacturer,
            "push_token": self.push_token,
            "app_version": self.app_version,
            "icon": self.icon,
            "has_sms": self.has_sms,
        }


@dataclass(frozen=True)
class DeviceList(ListCommand):
    resource: ClassVar[str] = "devices"


@dataclass(frozen=True)
class DeviceCreate(DeviceFields, CreateCommand):
    resource: ClassVar[str] = "devices"


@dataclass(frozen=True)
class DeviceUpdate(DeviceFields, UpdateCommand):
    resource: ClassVar[str] = "devices"


@dataclass(frozen=True)
class DeviceDelete(DeleteCommand):
    resource: ClassVar[str] = "devices"


# Pushes


@dataclass(frozen=True)
class PushList(ListCommand):
    resource: ClassVar[str] = "pushes"

    pagination: Pagination = field(default_factory=PushPagination)


@dataclass(frozen=True)
class PushCreate(CreateCommand):
    """Send a push; ``push_type`` is serialized as ``type``.

    For ``file`` pushes, ``file_name`` is the local path of the file to upload.
    """

    resource: ClassVar[str] = "pushes"

    push_type: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    source_device_iden: Optional[str] = None
    device_iden: Optional[str] = None
    client_iden: Optional[str] = None
    channel_tag: Optional[str] = None
    email: Optional[str] = None
    guid: Optional[str] = None

    @property
    def needs_upload(self) -> bool:
        return self.data_binary is None and self.push_type == "file"

    def with_upload(self, ticket: "UploadTicket") -> "PushCreate":
        """Return a copy whose file fields come from the server-assigned ticket."""

        return replace(
            self,
            file_name=ticket.file_name,
            file_type=ticket.file_type,
            file_url=ticket.file_url,
        )

    def fields(self) -> Dict[str, Any]:
        return {
            "type": self.push_type,
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_url": self.file_url,
            "source_device_iden": self.source_device_iden,
            "device_iden": self.device_iden,
            "client_iden": self.client_iden,
            "channel_tag": self.channel_tag,
            "email": self.email,
            "guid": self.guid,
        }


@dataclass(frozen=True)
class PushUpdate(UpdateCommand):
    resource: ClassVar[str] = "pushes"

    dismissed: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {"dismissed": self.dismissed}


@dataclass(frozen=True)
class PushDelete(DeleteCommand):
    resource: ClassVar[str] = "pushes"


@dataclass(frozen=True)
class PushDeleteAll(Command):
    """Delete every push; the server completes this asynchronously."""

    method: ClassVar[str] = "DELETE"
    resource: ClassVar[str] = "pushes"


# Channels


@dataclass(frozen=True)
class ChannelCreate(CreateCommand):
    resource: ClassVar[str] = "channels"

    tag: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    website_url: Optional[str] = None
    feed_url: Optional[str] = None
    subscribe: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "website_url": self.website_url,
            "feed_url": self.feed_url,
            "subscribe": self.subscribe,
        }


# Subscriptions


@dataclass(frozen=True)
class SubscriptionList(ListCommand):
    resource: ClassVar[str] = "subscriptions"


@dataclass(frozen=True)
class SubscriptionCreate(CreateCommand):
    resource: ClassVar[str] = "subscriptions"

    channel_tag: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        return {"channel_tag": self.channel_tag}


@dataclass(frozen=True)
class SubscriptionUpdate(UpdateCommand):
    resource: ClassVar[str] = "subscriptions"

    muted: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {"muted": self.muted}


@dataclass(frozen=True)
class SubscriptionDelete(DeleteCommand):
    resource: ClassVar[str] = "subscriptions"


@dataclass(frozen=True)
class ChannelInfo(Command):
    """Look up a channel by tag, optionally without its recent pushes."""

    resource: ClassVar[str] = "channel-info"

    tag: Optional[str] = None
    no_recent_pushes: Optional[bool] = None

    def to_query(self) -> QueryParams:
        return _query([("tag", self.tag), ("no_recent_pushes", self.no_recent_pushes)])


# Texts


@dataclass(frozen=True)
class TextData:
    """Fields nested under ``data`` in a text request."""

    target_device_iden: Optional[str] = None
    address: Optional[str] = None
    message: Optional[str] = None
    guid: Optional[str] = None
    status: Optional[str] = None
    file_type: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        return compact(
            {
                "target_device_iden": self.target_device_iden,
                "address": self.address,
                "message": self.message,
                "guid": self.guid,
                "status": self.status,
                "file_type": self.file_type,
            }
        )


@dataclass(frozen=True)
class TextCreate(CreateCommand):
    resource: ClassVar[str] = "texts"

    data: TextData = field(default_factory=TextData)
    file_url: Optional[str] = None
    skip_delete_file: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {
            "data": self.data.fields() or None,
            "file_url": self.file_url,
            "skip_delete_file": self.skip_delete_file,
        }


@dataclass(frozen=True)
class TextUpdate(UpdateCommand):
    resource: ClassVar[str] = "texts"

    data: TextData = field(default_factory=TextData)
    skip_delete_file: Optional[bool] = None

    def fields(self) -> Dict[str, Any]:
        return {
            "data": self.data.fields() or None,
            "skip_delete_file": self.skip_delete_file,
        }


@dataclass(frozen=True)
class TextDelete(DeleteCommand):
    resource: ClassVar[str] = "texts"


# Users


@dataclass(frozen=True)
class UserGet(Command):
    resource: ClassVar[str] = "users/me"


@dataclass(frozen=True)
class SetAccessToken:
    """Store a new access token locally; issues no request."""

    access_token: str
