"""Protocols defining the contracts the importer depends on.

The import architecture separates concerns into four components:

1. RemoteClient: Reads pull requests from the remote server and creates
   temporary branches there (Bitbucket Server REST API)
2. MirrorRepository: Keeps a local git mirror of the remote repository
3. ProjectStore: Persists merge requests, notes and the error report locally
   (GitLab)
4. Importer: Orchestrates the flow, handles batching and error isolation

This separation allows:
- Testing the import pipeline in isolation with in-memory fakes
- Swapping the persistence target without touching the pipeline
- Clear boundaries for remote-specific logic (paging, payload shapes)
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from .models import (
        Activity,
        BranchResponse,
        ChangeRequest,
        Commit,
        DiscussionNote,
        PullRequest,
        RemoteRepository,
    )


class RemoteClient(Protocol):
    """Protocol for the remote source-control server.

    All methods block until the server answers. Read methods raise on HTTP
    errors; branch methods report failure through BranchResponse instead, so
    callers can decide whether a failure matters.
    """

    def repo(self, project_key: str, repo_slug: str) -> RemoteRepository:
        """Return repository metadata, including its clone URL."""
        ...

    def pull_requests(self, project_key: str, repo_slug: str) -> Iterator[PullRequest]:
        """Yield every pull request of the repository, in any state."""
        ...

    def activities(self, project_key: str, repo_slug: str, pull_request_iid: int) -> Iterator[Activity]:
        """Yield the activity stream of one pull request."""
        ...

    def create_branch(self, project_key: str, repo_slug: str, name: str, sha: str) -> BranchResponse:
        """Create a branch named ``name`` pointing at ``sha`` on the server."""
        ...

    def delete_branch(self, project_key: str, repo_slug: str, name: str) -> BranchResponse:
        """Delete a branch on the server."""
        ...


class MirrorRepository(Protocol):
    """Protocol for the local git repository that mirrors the remote.

    The importer calls methods in a specific order:
    1. ensure_repository() - Create the repository if missing
    2. fetch_as_mirror() - Fetch all mapped refs from the remote
    3. commit() - Check reachability of SHAs, any number of times
    4. delete_branch() - Drop temporary branches at the end of the run
    """

    def exists(self) -> bool:
        """Return whether the repository has been created."""
        ...

    def ensure_repository(self) -> None:
        """Create the repository when it does not exist yet."""
        ...

    def fetch_as_mirror(self, url: str, refmap: Sequence[str], remote_name: str) -> None:
        """Fetch ``url`` into the repository using ``refmap``.

        Raises:
            MirrorError: If the transport fails
        """
        ...

    def commit(self, sha: str) -> Commit | None:
        """Return the commit for ``sha`` when it is reachable, else None."""
        ...

    def expire_content_cache(self) -> None:
        """Forget cached reachability results."""
        ...

    def delete_branch(self, name: str) -> None:
        """Delete a local branch."""
        ...


class ProjectStore(Protocol):
    """Protocol for the local persistence layer of one project.

    Create methods return persisted copies of the given models, carrying
    store-assigned identifiers. They raise on any persistence failure.
    """

    @property
    def creator_id(self) -> int:
        """Id of the user who owns the import."""
        ...

    def find_user_id(self, email: str) -> int | None:
        """Return the id of the user with this email, or None."""
        ...

    def ghost_user_id(self) -> int | None:
        """Return the id of the placeholder user for unknown authors."""
        ...

    def destroy_change_request(self, iid: int) -> None:
        """Delete the change request imported from pull request ``iid``, if any."""
        ...

    def create_change_request(self, change_request: ChangeRequest) -> ChangeRequest:
        """Persist a change request."""
        ...

    def create_note(self, change_request: ChangeRequest, note: DiscussionNote) -> DiscussionNote:
        """Persist a note on ``change_request``.

        A note with ``discussion_id`` is added to that discussion. A note with a
        position and no ``discussion_id`` starts a new diff discussion.
        """
        ...

    def upsert_merge_metrics(
        self,
        change_request: ChangeRequest,
        merged_by_id: int | None,
        merged_at: datetime | None,
    ) -> None:
        """Record who merged the change request and when."""
        ...

    def save_import_error(self, report: str) -> None:
        """Persist the JSON error report against the project."""
        ...
