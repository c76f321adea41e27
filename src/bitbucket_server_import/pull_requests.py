"""Translate remote pull requests into local change requests."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import ChangeRequest

if TYPE_CHECKING:
    from .models import PullRequest
    from .protocols import MirrorRepository, ProjectStore
    from .users import UserResolver

logger: logging.Logger = logging.getLogger(__name__)


def author_line(author: str) -> str:
    """Attribution line prepended to content whose author is unknown locally."""
    return f"*Created by: {author}*\n\n"


def ref_name(ref: str) -> str:
    """Return the short branch name of a fully qualified ref."""
    return ref.removeprefix("refs/heads/")


class PullRequestTranslator:
    """Creates one local change request per remote pull request.

    Any existing change request with the same iid is destroyed first, so
    importing the same pull request twice leaves exactly one behind.
    """

    def __init__(self, store: ProjectStore, repository: MirrorRepository, users: UserResolver) -> None:
        self._store: ProjectStore = store
        self._repository: MirrorRepository = repository
        self._users: UserResolver = users

    def _resolve_sha(self, sha: str) -> str:
        commit = self._repository.commit(sha)
        return commit.sha if commit else sha

    def build(self, pull_request: PullRequest) -> ChangeRequest:
        """Build the unpersisted change request for ``pull_request``."""
        description = ""
        if self._users.resolve(pull_request.author_email) is None:
            description += author_line(pull_request.author)
        description += pull_request.description

        target_branch_sha = self._resolve_sha(pull_request.target_branch_sha)

        return ChangeRequest(
            iid=pull_request.iid,
            title=pull_request.title,
            description=description,
            source_branch=ref_name(pull_request.source_branch_name),
            source_branch_sha=self._resolve_sha(pull_request.source_branch_sha),
            target_branch=ref_name(pull_request.target_branch_name),
            target_branch_sha=target_branch_sha,
            state=pull_request.state,
            author_id=self._users.author_for(pull_request.author_email),
            created_at=pull_request.created_at,
            updated_at=pull_request.updated_at,
            merge_commit_sha=target_branch_sha if pull_request.merged else None,
        )

    def translate(self, pull_request: PullRequest) -> ChangeRequest:
        change_request = self.build(pull_request)
        self._store.destroy_change_request(pull_request.iid)
        persisted = self._store.create_change_request(change_request)
        logger.debug(f"Created change request for pull request #{pull_request.iid}")
        return persisted
