"""Error kinds raised while building and executing API requests."""

from __future__ import annotations


class PushbulletError(Exception):
    """Base class for every error that terminates an invocation."""


class CredentialIoError(PushbulletError):
    """The access token file could not be read or written."""


class MalformedOverride(PushbulletError):
    """A raw JSON body override failed to parse or was not a JSON object."""


class MissingRequiredField(PushbulletError):
    """A command was missing a field needed to build its request."""


class UploadNegotiationFailed(PushbulletError):
    """Requesting an upload destination for a file push failed."""


class UploadTransferFailed(PushbulletError):
    """Transferring file bytes to the upload destination failed."""


class TransportError(PushbulletError):
    """The HTTP exchange could not be completed."""


class ResponseReadError(PushbulletError):
    """The response body could not be read or decoded as text."""
