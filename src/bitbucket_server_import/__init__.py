"""
Bitbucket Server Import Tool

Imports a Bitbucket Server repository into GitLab: git content, pull requests
as merge requests, and their discussions including inline diff comments.
"""

from __future__ import annotations

from .bitbucket_client import BitbucketServerClient
from .cli import main
from .exceptions import BitbucketServerError, ConfigurationError, MigrationError, MirrorError
from .git_mirror import GitMirror
from .gitlab_store import GitLabStore
from .importer import Importer, ImportStats
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "BitbucketServerClient",
    "BitbucketServerError",
    "ConfigurationError",
    "GitLabStore",
    "GitMirror",
    "ImportStats",
    "Importer",
    "MigrationError",
    "MirrorError",
    "main",
    "setup_logging",
]
