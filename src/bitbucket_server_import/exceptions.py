"""
Custom exception classes for the Bitbucket Server import tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for import errors."""


class ConfigurationError(MigrationError):
    """Raised when a required setting or credential is missing."""


class MirrorError(MigrationError):
    """Raised when the git mirror cannot be created or fetched."""


class BitbucketServerError(MigrationError):
    """Raised when a Bitbucket Server REST call fails."""

    def __init__(self, method: str, url: str, status_code: int, body: str) -> None:
        self.method: str = method
        self.url: str = url
        self.status_code: int = status_code
        self.body: str = body
        super().__init__(f"{method} {url} failed with {status_code}: {body[:200]}")
