"""GitLab-backed persistence for imported merge requests and notes.

The GitLab REST API cannot set every attribute an import carries, so a few
are mapped:

- Imported merge requests are found again through a per-pull-request label,
  since GitLab assigns its own iids.
- Declined and merged pull requests become closed merge requests.
- Merge metadata is recorded as a note authored by the merger.
- The error report is stored as a private project snippet.

Author impersonation (``sudo``) and ``created_at`` require an administrator
token; without one, notes are authored by the token owner.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final

from gitlab.exceptions import GitlabGetError

from .branches import temp_branch_name
from .models import DiffRefs

if TYPE_CHECKING:
    from datetime import datetime

    from gitlab import Gitlab
    from gitlab.v4.objects import ProjectMergeRequest
    from gitlab.v4.objects.projects import Project as GitlabProject

    from .models import ChangeRequest, DiscussionNote

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

IMPORT_LABEL_PREFIX: Final[str] = "bitbucket-server-pr-"
IMPORT_ERROR_SNIPPET_TITLE: Final[str] = "Bitbucket Server import errors"
IMPORT_ERROR_FILE: Final[str] = "import_error.json"
GHOST_USERNAME: Final[str] = "ghost"


def import_label(pull_request_iid: int) -> str:
    return f"{IMPORT_LABEL_PREFIX}{pull_request_iid}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _diff_refs(merge_request: ProjectMergeRequest) -> DiffRefs | None:
    refs: dict[str, str] | None = getattr(merge_request, "diff_refs", None)
    if not refs:
        return None
    return DiffRefs(base_sha=refs.get("base_sha"), start_sha=refs.get("start_sha"), head_sha=refs.get("head_sha"))


class GitLabStore:
    """ProjectStore implementation for one GitLab project."""

    def __init__(self, client: Gitlab, project: GitlabProject, *, impersonate: bool = False) -> None:
        self._client: Gitlab = client
        self._project: GitlabProject = project
        self._impersonate: bool = impersonate
        self._ghost_id: int | None = None
        self._ghost_looked_up: bool = False

    @property
    def creator_id(self) -> int:
        return int(self._project.creator_id)

    def _sudo(self, user_id: int | None) -> dict[str, Any]:
        if not self._impersonate or user_id is None:
            return {}
        return {"sudo": user_id}

    def find_user_id(self, email: str) -> int | None:
        wanted = email.lower()
        for user in self._client.users.list(search=email, get_all=False):
            emails = {
                (getattr(user, "email", None) or "").lower(),
                (getattr(user, "public_email", None) or "").lower(),
            }
            if wanted in emails:
                return int(user.id)
        return None

    def ghost_user_id(self) -> int | None:
        if not self._ghost_looked_up:
            users = self._client.users.list(username=GHOST_USERNAME, get_all=False)
            self._ghost_id = int(users[0].id) if users else None
            self._ghost_looked_up = True
        return self._ghost_id

    def destroy_change_request(self, iid: int) -> None:
        existing = self._project.mergerequests.list(labels=[import_label(iid)], state="all", get_all=True)
        for merge_request in existing:
            logger.debug(f"Deleting merge request !{merge_request.iid} imported from pull request #{iid}")
            self._project.mergerequests.delete(merge_request.iid)

    def _branch_exists(self, name: str) -> bool:
        try:
            self._project.branches.get(name)
        except GitlabGetError:
            return False
        return True

    def create_change_request(self, change_request: ChangeRequest) -> ChangeRequest:
        source_branch = change_request.source_branch
        if not self._branch_exists(source_branch):
            # Source branch gone: open from the temp branch, created at the source SHA when missing.
            source_branch = temp_branch_name(change_request.iid, "from")
            if not self._branch_exists(source_branch):
                logger.debug(f"Creating branch {source_branch} at {change_request.source_branch_sha}")
                self._project.branches.create({"branch": source_branch, "ref": change_request.source_branch_sha})

        data: dict[str, Any] = {
            "source_branch": source_branch,
            "target_branch": change_request.target_branch,
            "title": change_request.title,
            "description": change_request.description,
            "labels": import_label(change_request.iid),
        }
        merge_request = self._project.mergerequests.create(data, **self._sudo(change_request.author_id))

        if change_request.state != "opened":
            merge_request.state_event = "close"
            merge_request.save()

        return replace(change_request, id=int(merge_request.iid), diff_refs=_diff_refs(merge_request))

    def create_note(self, change_request: ChangeRequest, note: DiscussionNote) -> DiscussionNote:
        merge_request = self._project.mergerequests.get(change_request.id, lazy=True)
        data: dict[str, Any] = {"body": note.note}
        if note.created_at:
            data["created_at"] = _iso(note.created_at)
        sudo = self._sudo(note.author_id)

        if note.discussion_id:
            discussion = merge_request.discussions.get(note.discussion_id, lazy=True)
            created = discussion.notes.create(data, **sudo)
            return replace(note, id=int(created.id))

        if note.position is not None:
            data["position"] = note.position.to_dict()
            discussion = merge_request.discussions.create(data, **sudo)
            first_note = discussion.attributes["notes"][0]
            return replace(note, id=int(first_note["id"]), discussion_id=discussion.id)

        created = merge_request.notes.create(data, **sudo)
        return replace(note, id=int(created.id))

    def upsert_merge_metrics(
        self,
        change_request: ChangeRequest,
        merged_by_id: int | None,
        merged_at: datetime | None,
    ) -> None:
        merge_request = self._project.mergerequests.get(change_request.id, lazy=True)
        body = "*Merged*"
        if merged_at:
            body = f"*Merged at {merged_at.isoformat(sep=' ', timespec='seconds')}*"
        data: dict[str, Any] = {"body": body}
        if merged_at:
            data["created_at"] = _iso(merged_at)
        merge_request.notes.create(data, **self._sudo(merged_by_id))

    def save_import_error(self, report: str) -> None:
        for snippet in self._project.snippets.list(get_all=True):
            if snippet.title == IMPORT_ERROR_SNIPPET_TITLE:
                snippet.delete()

        self._project.snippets.create(
            {
                "title": IMPORT_ERROR_SNIPPET_TITLE,
                "visibility": "private",
                "files": [{"file_path": IMPORT_ERROR_FILE, "content": report}],
            }
        )
        logger.info(f"Saved import error report to snippet '{IMPORT_ERROR_SNIPPET_TITLE}'")
