from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from gitlab import Gitlab
from gitlab.exceptions import GitlabAuthenticationError, GitlabGetError

from . import utils
from .exceptions import MigrationError
from .git_mirror import inject_credentials

if TYPE_CHECKING:
    from gitlab.v4.objects.projects import Project as GitlabProject

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITLAB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "gitlab/cli/token"  # noqa: S105
DEFAULT_URL: Final[str] = "https://gitlab.com"


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitLab token from pass path, env var GITLAB_TOKEN, or default pass location."""
    return utils.get_secret(_TOKEN_ENV_VAR, _DEFAULT_TOKEN_PASS_PATH, pass_path)


def get_client(url: str = DEFAULT_URL, token: str | None = None) -> Gitlab:
    """Get a GitLab client using the token."""
    return Gitlab(url, private_token=token)


def get_project(client: Gitlab, project_path: str) -> GitlabProject:
    """Fetch the target project, turning API errors into MigrationError."""
    try:
        return client.projects.get(project_path)
    except GitlabAuthenticationError as e:
        msg = f"GitLab authentication failed: {e}"
        raise MigrationError(msg) from e
    except GitlabGetError as e:
        msg = f"GitLab project {project_path} not found: {e}"
        raise MigrationError(msg) from e


def get_push_url(project: GitlabProject, token: str | None) -> str:
    """Return the HTTPS URL used to push git content into ``project``."""
    return inject_credentials(project.http_url_to_repo, "oauth2", token)
