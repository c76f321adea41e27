"""Restore pull request branches that are no longer reachable.

Bitbucket Server keeps refs for open pull requests, but closed and merged
pull requests move into hidden internal refs. Unless their SHAs are at the
tip of a branch or tag, the commits cannot be fetched. The remote API is used
to re-create a temporary branch at each missing SHA; the caller then fetches
once for the whole batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from .exceptions import MirrorError

if TYPE_CHECKING:
    from .models import PullRequest
    from .protocols import MirrorRepository, RemoteClient

logger: logging.Logger = logging.getLogger(__name__)

TEMP_BRANCH_NAMESPACE = "gitlab"


def temp_branch_name(pull_request_iid: int, role: Literal["from", "to"]) -> str:
    return f"{TEMP_BRANCH_NAMESPACE}/import/pull-request/{pull_request_iid}/{role}"


class BranchRestorer:
    """Creates temporary remote branches for SHAs missing from the local mirror."""

    def __init__(
        self,
        client: RemoteClient,
        project_key: str,
        repo_slug: str,
        repository: MirrorRepository,
    ) -> None:
        self._client: RemoteClient = client
        self._project_key: str = project_key
        self._repo_slug: str = repo_slug
        self._repository: MirrorRepository = repository

    @staticmethod
    def branch_specs(pull_requests: Sequence[PullRequest]) -> list[dict[str, str]]:
        """Return one ``{branch name: sha}`` mapping per pull request."""
        return [
            {
                temp_branch_name(pull_request.iid, "from"): pull_request.source_branch_sha,
                temp_branch_name(pull_request.iid, "to"): pull_request.target_branch_sha,
            }
            for pull_request in pull_requests
        ]

    def restore_branches(self, pull_requests: Sequence[PullRequest]) -> list[str]:
        """Create the missing branches and return the names that were created."""
        created: list[str] = []

        for specs in self.branch_specs(pull_requests):
            for branch_name, sha in specs.items():
                if self._repository.commit(sha):
                    continue

                response = self._client.create_branch(self._project_key, self._repo_slug, branch_name, sha)
                if response.success:
                    created.append(branch_name)
                else:
                    logger.warning(f"Unable to recreate branch for SHA {sha}: {response.code}")

        if created:
            logger.info(f"Restored {len(created)} branches for {len(pull_requests)} pull requests")
        return created

    def delete_branches(self, branch_names: Sequence[str]) -> None:
        """Remove temporary branches from the remote server and the local mirror."""
        for branch_name in branch_names:
            response = self._client.delete_branch(self._project_key, self._repo_slug, branch_name)
            if not response.success:
                logger.warning(f"Unable to delete remote branch {branch_name}: {response.code}")
            try:
                self._repository.delete_branch(branch_name)
            except MirrorError as e:
                logger.warning(f"Unable to delete local branch {branch_name}: {e}")
