"""Command-line client for the Pushbullet REST API."""

__all__ = ["builder", "cli", "commands", "config", "credentials", "errors", "transport", "upload"]
__version__ = "0.3.0"
