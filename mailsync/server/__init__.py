"""HTTP trigger for scheduled sync runs."""

from mailsync.server.app import create_app

__all__ = ["create_app"]
