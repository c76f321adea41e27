"""Tests for the import error log."""

from __future__ import annotations

import json

import pytest
from conftest import make_comment, make_pull_request

from bitbucket_server_import.error_log import REPORT_MESSAGE, ErrorLog


def _raise(message: str) -> Exception:
    try:
        raise RuntimeError(message)
    except RuntimeError as e:
        return e


@pytest.mark.unit
class TestErrorLog:
    def test_empty_log_is_falsy(self) -> None:
        errors = ErrorLog()
        assert not errors
        assert len(errors) == 0

    def test_pull_request_error(self) -> None:
        errors = ErrorLog()

        errors.add_pull_request_error(make_pull_request(3), _raise("boom"))

        entry = errors.to_report()["errors"][0]
        assert entry["type"] == "pull_request"
        assert entry["iid"] == 3
        assert entry["errors"] == "boom"
        assert "RuntimeError: boom" in entry["trace"]
        assert entry["raw_response"] == {"id": 3}
        assert "id" not in entry

    def test_comment_error(self) -> None:
        errors = ErrorLog()

        errors.add_comment_error(make_comment(42), ValueError("bad position"))

        assert errors.to_report()["errors"] == [{"type": "comment", "id": 42, "errors": "bad position"}]

    def test_json_report_keeps_order(self) -> None:
        errors = ErrorLog()
        errors.add_comment_error(make_comment(1), ValueError("first"))
        errors.add_pull_request_error(make_pull_request(2), _raise("second"))

        report = json.loads(errors.to_json())

        assert report["message"] == REPORT_MESSAGE
        assert [e["errors"] for e in report["errors"]] == ["first", "second"]
        assert len(errors) == 2
