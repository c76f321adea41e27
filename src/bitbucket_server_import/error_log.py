"""Run-scoped collection of recoverable import failures."""

from __future__ import annotations

import json
import logging
import traceback
from typing import TYPE_CHECKING, Any

from .models import ErrorRecord

if TYPE_CHECKING:
    from .models import Comment, PullRequest

logger: logging.Logger = logging.getLogger(__name__)

REPORT_MESSAGE = "The remote data could not be fully imported."


class ErrorLog:
    """Accumulates ErrorRecords for one import run.

    Records are only ever appended; the report is built once at the end.
    """

    def __init__(self) -> None:
        self.records: list[ErrorRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def add_pull_request_error(self, pull_request: PullRequest, error: Exception) -> None:
        logger.error(f"Failed to import pull request #{pull_request.iid}: {error}")
        self.records.append(
            ErrorRecord(
                type="pull_request",
                iid=pull_request.iid,
                message=str(error),
                trace="".join(traceback.format_exception(error)),
                raw_response=pull_request.raw or None,
            )
        )

    def add_comment_error(self, comment: Comment, error: Exception) -> None:
        logger.error(f"Failed to import comment {comment.id}: {error}")
        self.records.append(ErrorRecord(type="comment", id=comment.id, message=str(error)))

    def to_report(self) -> dict[str, Any]:
        return {
            "message": REPORT_MESSAGE,
            "errors": [record.to_dict() for record in self.records],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_report(), default=str)
