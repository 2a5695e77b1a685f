"""chat-archive command-line interface (``chat-archive``)."""

from chatarchive.cli.app import app

__all__ = ["app"]
