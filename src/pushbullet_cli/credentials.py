"""On-disk storage for the API access token."""

from __future__ import annotations

from pathlib import Path

from .errors import CredentialIoError
from .logging import get_logger


class CredentialStore:
    """Reads and writes a single access token stored as plain text."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._logger = get_logger("pushbullet.credentials")

    def read(self) -> str:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError as exc:
            raise CredentialIoError(
                f"No access token found at {self.path}; run `pushbullet access-token <token>` first"
            ) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise CredentialIoError(f"Failed to read access token from {self.path}: {exc}") from exc
        if not token:
            raise CredentialIoError(f"Access token file {self.path} is empty")
        self._logger.debug("Loaded access token", extra={"path": str(self.path)})
        return token

    def write(self, token: str) -> None:
        """Persist `token`, replacing any previously stored value."""

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(token, encoding="utf-8")
        except OSError as exc:
            raise CredentialIoError(f"Failed to write access token to {self.path}: {exc}") from exc
        self._logger.info("Stored access token", extra={"path": str(self.path)})
