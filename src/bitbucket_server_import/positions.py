"""Build diff positions for inline comments."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import DiffPosition

if TYPE_CHECKING:
    from .models import ChangeRequest, Comment


def build_position(change_request: ChangeRequest, comment: Comment) -> DiffPosition:
    """Map an inline comment onto the diff of ``change_request``.

    The file path is used on both sides of the diff; Bitbucket anchors do not
    track renames.

    Raises:
        ValueError: If the comment has no anchor
    """
    anchor = comment.anchor
    if anchor is None:
        msg = f"Comment {comment.id} has no file anchor"
        raise ValueError(msg)

    return DiffPosition(
        diff_refs=change_request.diff_refs,
        old_path=anchor.file_path,
        new_path=anchor.file_path,
        old_line=anchor.old_line,
        new_line=anchor.new_line,
    )
