"""Data models exchanged between the remote client, the importer and the store.

Remote-side models (PullRequest, Activity, Comment) are parsed once from the
Bitbucket Server payloads in representation.py and are immutable for the rest
of the run. Local-side models (ChangeRequest, DiscussionNote) are built by the
importer and handed to a ProjectStore, which returns persisted copies carrying
store-assigned identifiers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

PullRequestState = Literal["opened", "merged", "closed"]


@dataclass(frozen=True)
class RemoteRepository:
    """A repository on the remote server."""

    project_key: str
    slug: str
    name: str
    clone_url: str  # HTTP(S) clone URL without credentials


@dataclass(frozen=True)
class BranchResponse:
    """Outcome of a remote branch create/delete call."""

    success: bool
    code: int


@dataclass(frozen=True)
class Commit:
    """A commit that is reachable in the local repository."""

    sha: str


@dataclass(frozen=True)
class PullRequest:
    """A pull request as reported by the remote server."""

    iid: int
    title: str
    description: str
    author: str  # Display name, used for attribution when the email is unknown
    author_email: str | None
    state: PullRequestState
    source_branch_name: str
    source_branch_sha: str
    target_branch_name: str
    target_branch_sha: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def merged(self) -> bool:
        return self.state == "merged"


@dataclass(frozen=True)
class CommentAnchor:
    """File and line coordinates of an inline comment."""

    file_path: str
    old_line: int | None = None
    new_line: int | None = None


@dataclass(frozen=True)
class Comment:
    """A pull request comment.

    Inline comments carry an anchor. Replies are flattened into a single
    ordered tuple and never carry an anchor of their own.
    """

    id: int
    note: str
    author_email: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    kind: Literal["inline", "standalone"] = "standalone"
    anchor: CommentAnchor | None = None
    replies: tuple[Comment, ...] = ()

    @property
    def is_inline(self) -> bool:
        return self.kind == "inline"


@dataclass(frozen=True)
class MergeEvent:
    """Who merged a pull request, and when."""

    committer_email: str | None
    merge_timestamp: datetime | None


@dataclass(frozen=True)
class Activity:
    """One entry of a pull request's activity stream.

    ``kind`` is the discriminator: exactly one of ``comment`` and
    ``merge_event`` is set for the matching kind, neither for ``other``.
    """

    id: int
    kind: Literal["comment", "merge_event", "other"]
    action: str = ""
    comment: Comment | None = None
    merge_event: MergeEvent | None = None

    @property
    def is_comment(self) -> bool:
        return self.kind == "comment"

    @property
    def is_merge_event(self) -> bool:
        return self.kind == "merge_event"


@dataclass(frozen=True)
class DiffRefs:
    """The three SHAs that identify a merge request diff."""

    base_sha: str | None
    start_sha: str | None
    head_sha: str | None


@dataclass(frozen=True)
class DiffPosition:
    """Anchor of a diff note within a merge request diff."""

    diff_refs: DiffRefs | None
    old_path: str
    new_path: str
    old_line: int | None
    new_line: int | None

    def to_dict(self) -> dict[str, Any]:
        """Return the position payload understood by the GitLab discussions API."""
        payload: dict[str, Any] = {
            "position_type": "text",
            "old_path": self.old_path,
            "new_path": self.new_path,
        }
        if self.diff_refs is not None:
            payload["base_sha"] = self.diff_refs.base_sha
            payload["start_sha"] = self.diff_refs.start_sha
            payload["head_sha"] = self.diff_refs.head_sha
        if self.old_line is not None:
            payload["old_line"] = self.old_line
        if self.new_line is not None:
            payload["new_line"] = self.new_line
        return payload


@dataclass(frozen=True)
class ChangeRequest:
    """A local merge request built from a remote pull request.

    ``id`` and ``diff_refs`` are only known once the store has persisted it.
    """

    iid: int
    title: str
    description: str
    source_branch: str
    source_branch_sha: str
    target_branch: str
    target_branch_sha: str
    state: PullRequestState
    author_id: int | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merge_commit_sha: str | None = None
    id: int | None = None
    diff_refs: DiffRefs | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None


@dataclass(frozen=True)
class DiscussionNote:
    """A local note on a merge request.

    Notes with a position are diff notes. Replies to a diff note reuse the
    parent's ``discussion_id`` and ``position``.
    """

    note: str
    author_id: int | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    position: DiffPosition | None = None
    discussion_id: str | None = None
    type: Literal["DiffNote"] | None = None
    id: int | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None


@dataclass
class ErrorRecord:
    """One failure captured during the import."""

    type: Literal["pull_request", "comment"]
    message: str
    iid: int | None = None
    id: int | None = None
    trace: str | None = None
    raw_response: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"type": self.type}
        if self.iid is not None:
            entry["iid"] = self.iid
        if self.id is not None:
            entry["id"] = self.id
        entry["errors"] = self.message
        if self.trace is not None:
            entry["trace"] = self.trace
        if self.raw_response is not None:
            entry["raw_response"] = self.raw_response
        return entry
