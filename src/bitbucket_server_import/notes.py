"""Import pull request activity as merge request notes.

Activity is split the same way for every pull request:

    activities ──► comments ──► inline ──► diff discussion per comment,
         │                 │              replies join the discussion
         │                 └──► standalone ──► one note per comment,
         │                                     replies as sibling notes
         └──► other ──► first merge event ──► merge metrics

Failures are recorded in the run's ErrorLog and never stop sibling comments.
A failed inline parent skips its replies so no reply is left without its
discussion.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import DiscussionNote
from .positions import build_position

if TYPE_CHECKING:
    from .error_log import ErrorLog
    from .models import ChangeRequest, Comment, DiffPosition, MergeEvent, PullRequest
    from .protocols import ProjectStore, RemoteClient
    from .users import UserResolver

logger: logging.Logger = logging.getLogger(__name__)


class CommentImporter:
    """Creates the discussion of one change request from its pull request activity."""

    def __init__(
        self,
        client: RemoteClient,
        project_key: str,
        repo_slug: str,
        *,
        store: ProjectStore,
        users: UserResolver,
        errors: ErrorLog,
    ) -> None:
        self._client: RemoteClient = client
        self._project_key: str = project_key
        self._repo_slug: str = repo_slug
        self._store: ProjectStore = store
        self._users: UserResolver = users
        self._errors: ErrorLog = errors
        self.notes_created: int = 0

    def import_comments(self, pull_request: PullRequest, change_request: ChangeRequest) -> None:
        activities = list(self._client.activities(self._project_key, self._repo_slug, pull_request.iid))
        comments = [a.comment for a in activities if a.is_comment and a.comment is not None]
        others = [a for a in activities if not a.is_comment]

        merge_event = next((a.merge_event for a in others if a.is_merge_event), None)
        if merge_event is not None:
            self.import_merge_event(change_request, merge_event)

        inline_comments = [c for c in comments if c.is_inline]
        standalone_comments = [c for c in comments if not c.is_inline]

        self.import_inline_comments(inline_comments, change_request)
        self.import_standalone_comments(standalone_comments, change_request)

    def import_merge_event(self, change_request: ChangeRequest, merge_event: MergeEvent) -> None:
        merged_by_id = self._users.resolve(merge_event.committer_email)
        if merged_by_id is None:
            merged_by_id = self._store.ghost_user_id()
        self._store.upsert_merge_metrics(change_request, merged_by_id, merge_event.merge_timestamp)

    def _note(
        self,
        comment: Comment,
        *,
        position: DiffPosition | None = None,
        discussion_id: str | None = None,
    ) -> DiscussionNote:
        return DiscussionNote(
            note=comment.note,
            author_id=self._users.author_for(comment.author_email),
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            position=position,
            discussion_id=discussion_id,
            type="DiffNote" if position is not None else None,
        )

    def _create(self, change_request: ChangeRequest, note: DiscussionNote) -> DiscussionNote:
        created = self._store.create_note(change_request, note)
        self.notes_created += 1
        return created

    def _create_diff_note(self, change_request: ChangeRequest, comment: Comment) -> DiscussionNote | None:
        try:
            position = build_position(change_request, comment)
            return self._create(change_request, self._note(comment, position=position))
        except Exception as e:  # noqa: BLE001
            self._errors.add_comment_error(comment, e)
            return None

    def import_inline_comments(self, comments: list[Comment], change_request: ChangeRequest) -> None:
        for comment in comments:
            parent = self._create_diff_note(change_request, comment)
            if parent is None or not parent.persisted:
                continue

            for reply in comment.replies:
                try:
                    note = self._note(reply, position=parent.position, discussion_id=parent.discussion_id)
                    self._create(change_request, note)
                except Exception as e:  # noqa: BLE001
                    self._errors.add_comment_error(reply, e)

    def import_standalone_comments(self, comments: list[Comment], change_request: ChangeRequest) -> None:
        for comment in comments:
            try:
                self._create(change_request, self._note(comment))
                for reply in comment.replies:
                    self._create(change_request, self._note(reply))
            except Exception as e:  # noqa: BLE001
                self._errors.add_comment_error(comment, e)
