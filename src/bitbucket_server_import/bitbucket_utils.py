from __future__ import annotations

import logging
import os
from typing import Final

from . import utils
from .bitbucket_client import BitbucketServerClient
from .exceptions import ConfigurationError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_URL_ENV_VAR: Final[str] = "BITBUCKET_SERVER_URL"
_USER_ENV_VAR: Final[str] = "BITBUCKET_SERVER_USER"
_TOKEN_ENV_VAR: Final[str] = "BITBUCKET_SERVER_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "bitbucket/server/token"  # noqa: S105


def get_token(pass_path: str | None = None) -> str | None:
    """Get Bitbucket Server token from pass path, env var BITBUCKET_SERVER_TOKEN, or default pass location."""
    return utils.get_secret(_TOKEN_ENV_VAR, _DEFAULT_TOKEN_PASS_PATH, pass_path)


def get_url(url: str | None = None) -> str:
    """Return the server URL from the argument or env var BITBUCKET_SERVER_URL."""
    resolved = url or os.environ.get(_URL_ENV_VAR)
    if not resolved:
        msg = f"Bitbucket Server URL not given and {_URL_ENV_VAR} is not set"
        raise ConfigurationError(msg)
    return resolved


def get_username(username: str | None = None) -> str:
    """Return the user name from the argument or env var BITBUCKET_SERVER_USER."""
    resolved = username or os.environ.get(_USER_ENV_VAR)
    if not resolved:
        msg = f"Bitbucket Server user not given and {_USER_ENV_VAR} is not set"
        raise ConfigurationError(msg)
    return resolved


def get_client(url: str, username: str, token: str, *, timeout: float = 30) -> BitbucketServerClient:
    """Get a Bitbucket Server client using basic authentication."""
    return BitbucketServerClient(base_url=url, username=username, token=token, timeout=timeout)
