"""Command-line client for the Pushbullet REST API."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union

import yaml

from . import __version__
from .builder import RequestBuilder
from .commands import (
    DEFAULT_PAGE_LIMIT,
    ChannelCreate,
    ChannelInfo,
    ChatCreate,
    ChatDelete,
    ChatList,
    ChatUpdate,
    Command,
    DeviceCreate,
    DeviceDelete,
    DeviceList,
    DeviceUpdate,
    Pagination,
    PushCreate,
    PushDelete,
    PushDeleteAll,
    PushList,
    PushPagination,
    PushUpdate,
    SetAccessToken,
    SubscriptionCreate,
    SubscriptionDelete,
    SubscriptionList,
    SubscriptionUpdate,
    TextCreate,
    TextData,
    TextDelete,
    TextUpdate,
    UserGet,
)
from .config import CONFIG_ENV_PREFIX, LOG_FORMATS, LOG_LEVELS, OUTPUT_FORMATS, Config
from .credentials import CredentialStore
from .errors import PushbulletError
from .logging import configure_logging, get_logger
from .transport import Transport
from .upload import FileUploader


Factory = Callable[[argparse.Namespace], Union[Command, SetAccessToken]]

DATA_BINARY_HELP = (
    "Raw JSON request body, e.g. '{\"nickname\": \"Laptop\"}'. When given, it is "
    "sent as-is and every other body flag is ignored."
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pushbullet",
        description=(
            "CLI for the Pushbullet REST API. Each subcommand sends one request and "
            "prints the raw JSON response. Store a token first with "
            "`pushbullet access-token <token>`, then e.g. `pushbullet push create "
            "--type note --title Hi --body Hello`."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Path to a TOML config file (env: {CONFIG_ENV_PREFIX}CONFIG).",
    )
    parser.add_argument(
        "--base-url",
        help=f"API base URL (env: {CONFIG_ENV_PREFIX}BASE_URL). Defaults to https://api.pushbullet.com.",
    )
    parser.add_argument(
        "--token-file",
        dest="token_path",
        type=Path,
        help=f"File holding the access token (env: {CONFIG_ENV_PREFIX}TOKEN_PATH).",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        help=(
            f"Output format (env: {CONFIG_ENV_PREFIX}OUTPUT). 'raw' (default) prints the "
            "body untouched; 'json' re-indents it; 'yaml' converts it."
        ),
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Log verbosity (logs go to stderr).")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Log record format.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _add_access_token_commands(subparsers)
    _add_chat_commands(subparsers)
    _add_device_commands(subparsers)
    _add_push_commands(subparsers)
    _add_channel_commands(subparsers)
    _add_subscription_commands(subparsers)
    _add_text_commands(subparsers)
    _add_user_commands(subparsers)

    return parser


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def _add_bool_flag(parser: argparse.ArgumentParser, name: str, help: str) -> None:
    """Add ``--name``/``--no-name``; the value stays None when neither is given."""

    dest = name.replace("-", "_")
    parser.add_argument(f"--{name}", dest=dest, action="store_true", help=help)
    parser.add_argument(
        f"--no-{name}",
        dest=dest,
        action="store_false",
        help=f"Send {dest}=false",
    )
    parser.set_defaults(**{dest: None})


def _add_pagination_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cursor",
        help="Cursor from a previous response; requests the next page of results.",
    )
    parser.add_argument(
        "--limit",
        type=_positive_int,
        default=DEFAULT_PAGE_LIMIT,
        help=f"Maximum number of objects per page (default: {DEFAULT_PAGE_LIMIT}).",
    )


def _add_data_binary(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data-binary", help=DATA_BINARY_HELP)


def _add_iden(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("iden", help="Unique identifier for this object")


def _add_access_token_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    access_token = subparsers.add_parser(
        "access-token",
        help="Store the access token used for every request",
        description=(
            "Writes the token to the token file, replacing any previous value. "
            "You can get a token from your Account Settings page."
        ),
    )
    access_token.add_argument("access_token", help="Access token")
    access_token.set_defaults(factory=lambda args: SetAccessToken(args.access_token))


def _add_chat_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    chats = subparsers.add_parser(
        "chat",
        help="Chat commands (list/create/update/delete)",
        description=(
            "Chats are created whenever you send a message to someone or receive a "
            "message from them and there is no existing chat between you."
        ),
    )
    chat_sub = chats.add_subparsers(dest="chat_command", required=True)

    list_cmd = chat_sub.add_parser("list", help="List chats (GET /v2/chats)")
    _add_pagination_args(list_cmd)
    list_cmd.set_defaults(factory=lambda args: ChatList(pagination=_pagination(args)))

    create = chat_sub.add_parser(
        "create",
        help="Create a chat (POST /v2/chats)",
        description="Create a chat with another user or email address if one does not already exist.",
    )
    create.add_argument(
        "--email",
        help="Email of person to create chat with (does not have to be a Pushbullet user)",
    )
    _add_data_binary(create)
    create.set_defaults(
        factory=lambda args: ChatCreate(email=args.email, data_binary=args.data_binary)
    )

    update = chat_sub.add_parser("update", help="Update a chat (POST /v2/chats/{iden})")
    _add_iden(update)
    _add_bool_flag(update, "muted", "Mute the chat")
    _add_data_binary(update)
    update.set_defaults(
        factory=lambda args: ChatUpdate(
            iden=args.iden, muted=args.muted, data_binary=args.data_binary
        )
    )

    delete = chat_sub.add_parser("delete", help="Delete a chat (DELETE /v2/chats/{iden})")
    _add_iden(delete)
    delete.set_defaults(factory=lambda args: ChatDelete(iden=args.iden))


def _add_device_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--nickname", help="Name to use when displaying the device")
    parser.add_argument("--model", help="Model of the device")
    parser.add_argument("--manufacturer", help="Manufacturer of the device")
    parser.add_argument(
        "--push-token",
        help=(
            "Platform-specific push token. If you are making your own device, leave "
            "this blank and listen on the Realtime Event Stream."
        ),
    )
    parser.add_argument(
        "--app-version",
        type=int,
        help="Version of the Pushbullet application installed on the device",
    )
    parser.add_argument(
        "--icon",
        help=(
            "Icon to use for this device. Common values: desktop, browser, website, "
            "laptop, tablet, phone, watch, system"
        ),
    )
    _add_bool_flag(parser, "has-sms", "Device has SMS capability (android only)")
    _add_data_binary(parser)


def _device_fields(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "nickname": args.nickname,
        "model": args.model,
        "manufacturer": args.manufacturer,
        "push_token": args.push_token,
        "app_version": args.app_version,
        "icon": args.icon,
        "has_sms": args.has_sms,
        "data_binary": args.data_binary,
    }


def _add_device_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    devices = subparsers.add_parser(
        "device",
        help="Device commands (list/create/update/delete)",
        description="Manage the devices that can receive pushes.",
    )
    device_sub = devices.add_subparsers(dest="device_command", required=True)

    list_cmd = device_sub.add_parser("list", help="List devices (GET /v2/devices)")
    _add_pagination_args(list_cmd)
    list_cmd.set_defaults(factory=lambda args: DeviceList(pagination=_pagination(args)))

    create = device_sub.add_parser("create", help="Create a device (POST /v2/devices)")
    _add_device_fields(create)
    create.set_defaults(factory=lambda args: DeviceCreate(**_device_fields(args)))

    update = device_sub.add_parser(
        "update", help="Update a device (POST /v2/devices/{iden})"
    )
    _add_iden(update)
    _add_device_fields(update)
    update.set_defaults(
        factory=lambda args: DeviceUpdate(iden=args.iden, **_device_fields(args))
    )

    delete = device_sub.add_parser("delete", help="Delete a device (DELETE /v2/devices/{iden})")
    _add_iden(delete)
    delete.set_defaults(factory=lambda args: DeviceDelete(iden=args.iden))


def _add_push_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    pushes = subparsers.add_parser(
        "push",
        help="Push commands (list/create/update/delete/delete-all)",
        description="Send pushes to devices, people and channels, and manage push history.",
    )
    push_sub = pushes.add_subparsers(dest="push_command", required=True)

    list_cmd = push_sub.add_parser("list", help="Request push history (GET /v2/pushes)")
    list_cmd.add_argument(
        "--modified-after",
        help="Request pushes modified after this timestamp",
    )
    _add_bool_flag(list_cmd, "active", "Don't return deleted pushes")
    _add_pagination_args(list_cmd)
    list_cmd.set_defaults(factory=_push_list)

    create = push_sub.add_parser(
        "create",
        help="Send a push (POST /v2/pushes)",
        description=(
            "Send a push to a device or another person. With --type file, --file-name "
            "is a local path; the file is uploaded first and the push references it."
        ),
    )
    create.add_argument(
        "--type",
        dest="push_type",
        help="Type of the push: note, link or file. Other values are sent unchanged.",
    )
    create.add_argument("--title", help="Title of the push, used for all types of pushes")
    create.add_argument("--body", help="Body of the push, used for all types of pushes")
    create.add_argument("--url", help="URL field, used for type=link pushes")
    create.add_argument(
        "--file-name",
        help="Local file to upload, used for type=file pushes",
    )
    create.add_argument(
        "--file-type",
        help="MIME type of the file; detected from the file content when omitted",
    )
    create.add_argument("--file-url", help="File download url, used for type=file pushes")
    create.add_argument("--source-device-iden", help="Device iden of the sending device")
    create.add_argument(
        "--device-iden",
        help="Device iden of the target device, if sending to a single device",
    )
    create.add_argument(
        "--client-iden",
        help="Client iden of the target client; pushes to every user who granted it access",
    )
    create.add_argument(
        "--channel-tag",
        help="Channel tag of the target channel; pushes to all of its subscribers",
    )
    create.add_argument(
        "--email",
        help="Email address to send the push to; non-users receive an email",
    )
    create.add_argument(
        "--guid",
        help="Client-chosen unique value making repeated creates mostly idempotent",
    )
    _add_data_binary(create)
    create.set_defaults(factory=_push_create)

    update = push_sub.add_parser("update", help="Update a push (POST /v2/pushes/{iden})")
    _add_iden(update)
    _add_bool_flag(
        update,
        "dismissed",
        "Mark the push as dismissed, hiding its notifications where possible",
    )
    _add_data_binary(update)
    update.set_defaults(
        factory=lambda args: PushUpdate(
            iden=args.iden, dismissed=args.dismissed, data_binary=args.data_binary
        )
    )

    delete = push_sub.add_parser("delete", help="Delete a push (DELETE /v2/pushes/{iden})")
    _add_iden(delete)
    delete.set_defaults(factory=lambda args: PushDelete(iden=args.iden))

    delete_all = push_sub.add_parser(
        "delete-all",
        help="Delete all pushes (DELETE /v2/pushes)",
        description="Deletes all pushes asynchronously; they disappear after the call returns.",
    )
    delete_all.set_defaults(factory=lambda args: PushDeleteAll())


def _push_list(args: argparse.Namespace) -> PushList:
    return PushList(
        pagination=PushPagination(
            cursor=args.cursor,
            limit=args.limit,
            modified_after=args.modified_after,
            active=args.active,
        )
    )


def _push_create(args: argparse.Namespace) -> PushCreate:
    return PushCreate(
        push_type=args.push_type,
        title=args.title,
        body=args.body,
        url=args.url,
        file_name=args.file_name,
        file_type=args.file_type,
        file_url=args.file_url,
        source_device_iden=args.source_device_iden,
        device_iden=args.device_iden,
        client_iden=args.client_iden,
        channel_tag=args.channel_tag,
        email=args.email,
        guid=args.guid,
        data_binary=args.data_binary,
    )


def _add_channel_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    channels = subparsers.add_parser(
        "channel",
        help="Channel commands (create)",
        description="Channels let you broadcast pushes to every subscriber.",
    )
    channel_sub = channels.add_subparsers(dest="channel_command", required=True)

    create = channel_sub.add_parser("create", help="Create a channel (POST /v2/channels)")
    create.add_argument(
        "--tag",
        help="Globally unique identifier for this channel, chosen by the channel creator",
    )
    create.add_argument("--name", help="Name of the channel")
    create.add_argument("--description", help="Description of the channel")
    create.add_argument("--image-url", help="Image to display for the channel")
    create.add_argument("--website-url", help="Website for the channel")
    create.add_argument(
        "--feed-url",
        help="RSS feed used to automatically create posts for this channel",
    )
    _add_bool_flag(create, "subscribe", "Subscribe to the channel as soon as it is created")
    _add_data_binary(create)
    create.set_defaults(
        factory=lambda args: ChannelCreate(
            tag=args.tag,
            name=args.name,
            description=args.description,
            image_url=args.image_url,
            website_url=args.website_url,
            feed_url=args.feed_url,
            subscribe=args.subscribe,
            data_binary=args.data_binary,
        )
    )


def _add_subscription_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    subscriptions = subparsers.add_parser(
        "subscription",
        help="Subscription commands (list/create/update/delete/channel-info)",
        description="Subscribe to channels and manage existing subscriptions.",
    )
    subscription_sub = subscriptions.add_subparsers(dest="subscription_command", required=True)

    list_cmd = subscription_sub.add_parser(
        "list", help="List subscriptions (GET /v2/subscriptions)"
    )
    _add_pagination_args(list_cmd)
    list_cmd.set_defaults(factory=lambda args: SubscriptionList(pagination=_pagination(args)))

    create = subscription_sub.add_parser(
        "create", help="Subscribe to a channel (POST /v2/subscriptions)"
    )
    create.add_argument("--channel-tag", help="Unique tag for the channel to subscribe to")
    _add_data_binary(create)
    create.set_defaults(
        factory=lambda args: SubscriptionCreate(
            channel_tag=args.channel_tag, data_binary=args.data_binary
        )
    )

    update = subscription_sub.add_parser(
        "update", help="Update a subscription (POST /v2/subscriptions/{iden})"
    )
    _add_iden(update)
    _add_bool_flag(update, "muted", "Mute the subscription")
    _add_data_binary(update)
    update.set_defaults(
        factory=lambda args: SubscriptionUpdate(
            iden=args.iden, muted=args.muted, data_binary=args.data_binary
        )
    )

    delete = subscription_sub.add_parser(
        "delete", help="Unsubscribe (DELETE /v2/subscriptions/{iden})"
    )
    _add_iden(delete)
    delete.set_defaults(factory=lambda args: SubscriptionDelete(iden=args.iden))

    channel_info = subscription_sub.add_parser(
        "channel-info",
        help="Get information about a channel (GET /v2/channel-info)",
    )
    channel_info.add_argument("--tag", help="Tag of the channel to get information for")
    channel_info.add_argument(
        "--no-recent-pushes",
        dest="no_recent_pushes",
        action="store_true",
        help="Don't show recent pushes",
    )
    channel_info.add_argument(
        "--recent-pushes",
        dest="no_recent_pushes",
        action="store_false",
        help="Send no_recent_pushes=false",
    )
    channel_info.set_defaults(no_recent_pushes=None)
    channel_info.set_defaults(
        factory=lambda args: ChannelInfo(tag=args.tag, no_recent_pushes=args.no_recent_pushes)
    )


def _add_text_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--target-device-iden",
        help="Device that sends the message; it must have SMS permissions granted",
    )
    parser.add_argument("--address", help="Phone number to send this message to")
    parser.add_argument("--message", help="The text content of the text message")
    parser.add_argument(
        "--guid",
        help="Client-chosen identifier preventing the message from being sent twice",
    )
    parser.add_argument("--status", help="Status of the text message")
    parser.add_argument(
        "--file-type",
        help="MIME type of the file_url being sent; only for messages with a file",
    )
    _add_bool_flag(
        parser,
        "skip-delete-file",
        "Keep the attached file when the text is deleted",
    )
    _add_data_binary(parser)


def _text_data(args: argparse.Namespace) -> TextData:
    return TextData(
        target_device_iden=args.target_device_iden,
        address=args.address,
        message=args.message,
        guid=args.guid,
        status=args.status,
        file_type=args.file_type,
    )


def _add_text_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    texts = subparsers.add_parser(
        "text",
        help="Text message commands (create/update/delete)",
        description="Send SMS/MMS messages through one of your phones.",
    )
    text_sub = texts.add_subparsers(dest="text_command", required=True)

    create = text_sub.add_parser(
        "create",
        help="Create a text (POST /v2/texts)",
        description="Create a text; it is deleted after an hour whether it has been sent or not.",
    )
    _add_text_fields(create)
    create.add_argument(
        "--file-url",
        help="File download url for an image to send with the text message",
    )
    create.set_defaults(
        factory=lambda args: TextCreate(
            data=_text_data(args),
            file_url=args.file_url,
            skip_delete_file=args.skip_delete_file,
            data_binary=args.data_binary,
        )
    )

    update = text_sub.add_parser(
        "update",
        help="Update a text (POST /v2/texts/{iden})",
        description="Update a text. Texts that were already sent are not affected.",
    )
    _add_iden(update)
    _add_text_fields(update)
    update.set_defaults(
        factory=lambda args: TextUpdate(
            iden=args.iden,
            data=_text_data(args),
            skip_delete_file=args.skip_delete_file,
            data_binary=args.data_binary,
        )
    )

    delete = text_sub.add_parser(
        "delete",
        help="Delete a text (DELETE /v2/texts/{iden})",
        description="Delete a text, canceling it if it has not been sent yet.",
    )
    _add_iden(delete)
    delete.set_defaults(factory=lambda args: TextDelete(iden=args.iden))


def _add_user_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    users = subparsers.add_parser("user", help="User commands (get)")
    user_sub = users.add_subparsers(dest="user_command", required=True)

    get = user_sub.add_parser("get", help="Get the current user (GET /v2/users/me)")
    get.set_defaults(factory=lambda args: UserGet())


def _pagination(args: argparse.Namespace) -> Pagination:
    return Pagination(cursor=args.cursor, limit=args.limit)


def _load_config(args: argparse.Namespace) -> Config:
    overrides = {
        "base_url": args.base_url,
        "token_path": args.token_path,
        "output": args.output,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    return Config.from_sources(overrides, config_path=args.config)


def run_command(command: Command, config: Config, transport: Transport) -> str:
    """Build the request for ``command``, send it, and return the response text."""

    uploader = FileUploader(transport, config.base_url)
    builder = RequestBuilder(config.base_url, uploader)
    descriptor = builder.build(command)
    return transport.execute(descriptor)


def _print_output(text: str, output: str) -> None:
    if output != "raw":
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        else:
            if output == "yaml":
                yaml.safe_dump(data, sys.stdout, sort_keys=False, allow_unicode=True)
            else:
                json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
                sys.stdout.write("\n")
            return
    sys.stdout.write(text)
    sys.stdout.write("\n")


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(args=argv)

    try:
        config = _load_config(args)
    except (ValueError, OSError) as exc:
        sys.stderr.write(f"Error: invalid configuration: {exc}\n")
        sys.exit(1)

    configure_logging(config)
    logger = get_logger("pushbullet.cli")
    logger.debug("Configuration loaded", extra={"config": config.logging_dict()})

    factory: Factory = args.factory
    try:
        command = factory(args)
    except ValueError as exc:
        parser.error(str(exc))

    store = CredentialStore(config.token_path)
    try:
        if isinstance(command, SetAccessToken):
            store.write(command.access_token)
            return
        token = store.read()
        with Transport(token) as transport:
            text = run_command(command, config, transport)
    except PushbulletError as exc:
        logger.debug("Command failed", exc_info=True)
        sys.stderr.write(f"Error: {type(exc).__name__}: {exc}\n")
        sys.exit(1)

    _print_output(text, config.output)


if __name__ == "__main__":
    main()
