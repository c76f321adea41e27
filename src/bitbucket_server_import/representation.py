"""Parse Bitbucket Server REST payloads into models.

Every payload is classified exactly once here; the rest of the import only
looks at the ``kind`` discriminators on the resulting models.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from .models import (
    Activity,
    Comment,
    CommentAnchor,
    MergeEvent,
    PullRequest,
    PullRequestState,
    RemoteRepository,
)

_STATE_MAP: dict[str, PullRequestState] = {
    "MERGED": "merged",
    "DECLINED": "closed",
}


def parse_timestamp(millis: int | None) -> dt.datetime | None:
    """Convert a Bitbucket epoch-milliseconds value to an aware UTC datetime."""
    if millis is None:
        return None
    return dt.datetime.fromtimestamp(millis / 1000, tz=dt.UTC)


def parse_repository(data: dict[str, Any]) -> RemoteRepository:
    clone_url = ""
    for link in data.get("links", {}).get("clone", []):
        if link.get("name") in ("http", "https"):
            clone_url = link.get("href", "")
            break

    return RemoteRepository(
        project_key=data.get("project", {}).get("key", ""),
        slug=data["slug"],
        name=data.get("name", data["slug"]),
        clone_url=clone_url,
    )


def parse_pull_request(data: dict[str, Any]) -> PullRequest:
    user = data.get("author", {}).get("user", {})
    from_ref = data.get("fromRef", {})
    to_ref = data.get("toRef", {})

    return PullRequest(
        iid=int(data["id"]),
        title=data.get("title", ""),
        description=data.get("description") or "",
        author=user.get("displayName") or user.get("name") or "",
        author_email=user.get("emailAddress"),
        state=_STATE_MAP.get(data.get("state", ""), "opened"),
        source_branch_name=from_ref.get("id", ""),
        source_branch_sha=from_ref.get("latestCommit", ""),
        target_branch_name=to_ref.get("id", ""),
        target_branch_sha=to_ref.get("latestCommit", ""),
        created_at=parse_timestamp(data.get("createdDate")),
        updated_at=parse_timestamp(data.get("updatedDate")),
        raw=data,
    )


def _parse_anchor(anchor: dict[str, Any]) -> CommentAnchor:
    # Bitbucket reports one line number plus the side of the diff it belongs to.
    line = anchor.get("line")
    if anchor.get("fileType") == "FROM":
        return CommentAnchor(file_path=anchor["path"], old_line=line)
    return CommentAnchor(file_path=anchor["path"], new_line=line)


def _flatten_replies(comment: dict[str, Any]) -> tuple[Comment, ...]:
    """Flatten a tree of nested replies into one list ordered by creation time.

    Bitbucket Server lets users reply to any reply, while a GitLab discussion
    is a single thread.
    """
    replies: list[Comment] = []
    workset = list(comment.get("comments") or [])
    while workset:
        reply = workset.pop()
        replies.append(
            Comment(
                id=int(reply["id"]),
                note=reply.get("text", ""),
                author_email=reply.get("author", {}).get("emailAddress"),
                created_at=parse_timestamp(reply.get("createdDate")),
                updated_at=parse_timestamp(reply.get("updatedDate")),
            )
        )
        workset.extend(reply.get("comments") or [])

    epoch = dt.datetime.min.replace(tzinfo=dt.UTC)
    replies.sort(key=lambda c: (c.created_at or epoch, c.id))
    return tuple(replies)


def parse_comment(comment: dict[str, Any], anchor: dict[str, Any] | None = None) -> Comment:
    return Comment(
        id=int(comment["id"]),
        note=comment.get("text", ""),
        author_email=comment.get("author", {}).get("emailAddress"),
        created_at=parse_timestamp(comment.get("createdDate")),
        updated_at=parse_timestamp(comment.get("updatedDate")),
        kind="inline" if anchor else "standalone",
        anchor=_parse_anchor(anchor) if anchor else None,
        replies=_flatten_replies(comment),
    )


def parse_activity(data: dict[str, Any]) -> Activity:
    action = data.get("action", "")
    activity_id = int(data.get("id", 0))

    if action == "COMMENTED" and "comment" in data:
        return Activity(
            id=activity_id,
            kind="comment",
            action=action,
            comment=parse_comment(data["comment"], data.get("commentAnchor")),
        )

    if action == "MERGED":
        commit = data.get("commit") or {}
        return Activity(
            id=activity_id,
            kind="merge_event",
            action=action,
            merge_event=MergeEvent(
                committer_email=(commit.get("committer") or {}).get("emailAddress"),
                merge_timestamp=parse_timestamp(commit.get("committerTimestamp")),
            ),
        )

    return Activity(id=activity_id, kind="other", action=action)
