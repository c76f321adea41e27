"""
Pytest configuration and in-memory fakes of the import protocols.

The fakes record every call so tests can assert on what the importer asked
the remote server, the mirror and the store to do.
"""

from __future__ import annotations

import datetime as dt
import itertools
from collections.abc import Callable, Iterator, Sequence
from dataclasses import replace
from typing import Any

import pytest

from bitbucket_server_import.models import (
    Activity,
    BranchResponse,
    ChangeRequest,
    Comment,
    CommentAnchor,
    Commit,
    DiffRefs,
    DiscussionNote,
    MergeEvent,
    PullRequest,
    PullRequestState,
    RemoteRepository,
)

BASE_TIME = dt.datetime(2024, 1, 15, 10, 0, 0, tzinfo=dt.UTC)


class FakeClient:
    """RemoteClient double."""

    def __init__(self) -> None:
        self.pull_request_list: list[PullRequest] = []
        self.activity_map: dict[int, list[Activity]] = {}
        self.failing_branches: set[str] = set()
        self.created_branches: list[tuple[str, str]] = []
        self.deleted_branches: list[str] = []
        self.activity_calls: list[int] = []
        self.repo_calls: int = 0

    def repo(self, project_key: str, repo_slug: str) -> RemoteRepository:
        self.repo_calls += 1
        return RemoteRepository(
            project_key=project_key,
            slug=repo_slug,
            name=repo_slug,
            clone_url=f"https://bitbucket.example.test/scm/{project_key.lower()}/{repo_slug}.git",
        )

    def pull_requests(self, project_key: str, repo_slug: str) -> Iterator[PullRequest]:
        yield from self.pull_request_list

    def activities(self, project_key: str, repo_slug: str, pull_request_iid: int) -> Iterator[Activity]:
        self.activity_calls.append(pull_request_iid)
        yield from self.activity_map.get(pull_request_iid, [])

    def create_branch(self, project_key: str, repo_slug: str, name: str, sha: str) -> BranchResponse:
        self.created_branches.append((name, sha))
        if name in self.failing_branches:
            return BranchResponse(success=False, code=409)
        return BranchResponse(success=True, code=200)

    def delete_branch(self, project_key: str, repo_slug: str, name: str) -> BranchResponse:
        self.deleted_branches.append(name)
        return BranchResponse(success=True, code=204)


class FakeRepository:
    """MirrorRepository double.

    SHAs in ``restorable`` become reachable on the next fetch, the way a
    restored remote branch does.
    """

    def __init__(self, shas: Sequence[str] = ()) -> None:
        self.shas: set[str] = set(shas)
        self.restorable: set[str] = set()
        self.created: bool = False
        self.fetches: list[tuple[str, list[str], str]] = []
        self.fetch_error: Exception | None = None
        self.cache_expirations: int = 0
        self.deleted_branches: list[str] = []

    def exists(self) -> bool:
        return self.created

    def ensure_repository(self) -> None:
        self.created = True

    def fetch_as_mirror(self, url: str, refmap: Sequence[str], remote_name: str) -> None:
        self.fetches.append((url, list(refmap), remote_name))
        if self.fetch_error is not None:
            raise self.fetch_error
        self.shas |= self.restorable

    def commit(self, sha: str) -> Commit | None:
        if sha in self.shas:
            return Commit(sha=sha)
        return None

    def expire_content_cache(self) -> None:
        self.cache_expirations += 1

    def delete_branch(self, name: str) -> None:
        self.deleted_branches.append(name)


class FakeStore:
    """ProjectStore double keeping everything in dictionaries."""

    def __init__(self, users: dict[str, int] | None = None, *, creator_id: int = 1, ghost_id: int | None = 99) -> None:
        self.users: dict[str, int] = dict(users or {})
        self._creator_id: int = creator_id
        self.ghost_id: int | None = ghost_id
        self.change_requests: dict[int, ChangeRequest] = {}
        self.notes: list[tuple[int, DiscussionNote]] = []
        self.merge_metrics: dict[int, tuple[int | None, dt.datetime | None]] = {}
        self.import_error: str | None = None
        self.user_lookups: list[str] = []
        self.destroyed: list[int] = []
        self.failing_change_requests: set[int] = set()
        self.fail_note: Callable[[DiscussionNote], bool] = lambda note: False
        self._ids: Iterator[int] = itertools.count(1)

    @property
    def creator_id(self) -> int:
        return self._creator_id

    def find_user_id(self, email: str) -> int | None:
        self.user_lookups.append(email)
        return self.users.get(email)

    def ghost_user_id(self) -> int | None:
        return self.ghost_id

    def destroy_change_request(self, iid: int) -> None:
        if self.change_requests.pop(iid, None) is not None:
            self.destroyed.append(iid)
            self.notes = [(cr_iid, note) for cr_iid, note in self.notes if cr_iid != iid]

    def create_change_request(self, change_request: ChangeRequest) -> ChangeRequest:
        if change_request.iid in self.failing_change_requests:
            raise RuntimeError(f"Validation failed for change request {change_request.iid}")
        if change_request.iid in self.change_requests:
            raise RuntimeError(f"Duplicate iid {change_request.iid}")
        persisted = replace(
            change_request,
            id=next(self._ids),
            diff_refs=DiffRefs(base_sha="base", start_sha="start", head_sha="head"),
        )
        self.change_requests[change_request.iid] = persisted
        return persisted

    def create_note(self, change_request: ChangeRequest, note: DiscussionNote) -> DiscussionNote:
        if self.fail_note(note):
            raise RuntimeError(f"Note rejected: {note.note}")
        note_id = next(self._ids)
        persisted = replace(note, id=note_id, discussion_id=note.discussion_id or f"discussion-{note_id}")
        self.notes.append((change_request.iid, persisted))
        return persisted

    def upsert_merge_metrics(
        self,
        change_request: ChangeRequest,
        merged_by_id: int | None,
        merged_at: dt.datetime | None,
    ) -> None:
        self.merge_metrics[change_request.iid] = (merged_by_id, merged_at)

    def save_import_error(self, report: str) -> None:
        self.import_error = report

    def notes_for(self, iid: int) -> list[DiscussionNote]:
        return [note for cr_iid, note in self.notes if cr_iid == iid]


def make_pull_request(iid: int = 1, *, state: PullRequestState = "opened", **overrides: Any) -> PullRequest:
    values: dict[str, Any] = {
        "iid": iid,
        "title": f"Pull request {iid}",
        "description": f"Description of {iid}",
        "author": "Alice Author",
        "author_email": "alice@example.test",
        "state": state,
        "source_branch_name": f"refs/heads/feature-{iid}",
        "source_branch_sha": f"source{iid:04d}",
        "target_branch_name": "refs/heads/main",
        "target_branch_sha": f"target{iid:04d}",
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME + dt.timedelta(hours=1),
        "raw": {"id": iid},
    }
    values.update(overrides)
    return PullRequest(**values)


def make_comment(
    comment_id: int,
    *,
    note: str | None = None,
    author_email: str | None = "alice@example.test",
    anchor: CommentAnchor | None = None,
    replies: Sequence[Comment] = (),
) -> Comment:
    return Comment(
        id=comment_id,
        note=note if note is not None else f"comment {comment_id}",
        author_email=author_email,
        created_at=BASE_TIME + dt.timedelta(minutes=comment_id),
        updated_at=BASE_TIME + dt.timedelta(minutes=comment_id),
        kind="inline" if anchor else "standalone",
        anchor=anchor,
        replies=tuple(replies),
    )


def comment_activity(comment: Comment) -> Activity:
    return Activity(id=comment.id, kind="comment", action="COMMENTED", comment=comment)


def merge_activity(committer_email: str | None, merged_at: dt.datetime = BASE_TIME) -> Activity:
    return Activity(
        id=0,
        kind="merge_event",
        action="MERGED",
        merge_event=MergeEvent(committer_email=committer_email, merge_timestamp=merged_at),
    )


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(users={"alice@example.test": 10, "bob@example.test": 20})
