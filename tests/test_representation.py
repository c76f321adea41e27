"""Tests for parsing Bitbucket Server payloads."""

from __future__ import annotations

import datetime as dt

import pytest

from bitbucket_server_import.representation import (
    parse_activity,
    parse_comment,
    parse_pull_request,
    parse_repository,
    parse_timestamp,
)


def _pull_request_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": 7,
        "title": "Add widgets",
        "description": "Widgets everywhere",
        "state": "OPEN",
        "createdDate": 1700000000000,
        "updatedDate": 1700000360000,
        "author": {"user": {"name": "alice", "displayName": "Alice A.", "emailAddress": "alice@example.test"}},
        "fromRef": {"id": "refs/heads/feature/widgets", "latestCommit": "a" * 40},
        "toRef": {"id": "refs/heads/main", "latestCommit": "b" * 40},
    }
    payload.update(overrides)
    return payload


@pytest.mark.unit
class TestParseTimestamp:
    def test_milliseconds_to_utc(self) -> None:
        assert parse_timestamp(1700000000000) == dt.datetime(2023, 11, 14, 22, 13, 20, tzinfo=dt.UTC)

    def test_none(self) -> None:
        assert parse_timestamp(None) is None


@pytest.mark.unit
class TestParseRepository:
    def test_http_clone_link_is_used(self) -> None:
        repo = parse_repository(
            {
                "slug": "repo",
                "name": "Repo",
                "project": {"key": "PROJ"},
                "links": {
                    "clone": [
                        {"name": "ssh", "href": "ssh://git@bitbucket.example.test:7999/proj/repo.git"},
                        {"name": "http", "href": "https://bitbucket.example.test/scm/proj/repo.git"},
                    ]
                },
            }
        )

        assert repo.project_key == "PROJ"
        assert repo.slug == "repo"
        assert repo.name == "Repo"
        assert repo.clone_url == "https://bitbucket.example.test/scm/proj/repo.git"

    def test_missing_links(self) -> None:
        repo = parse_repository({"slug": "repo"})
        assert repo.clone_url == ""
        assert repo.name == "repo"


@pytest.mark.unit
class TestParsePullRequest:
    def test_fields(self) -> None:
        pr = parse_pull_request(_pull_request_payload())

        assert pr.iid == 7
        assert pr.title == "Add widgets"
        assert pr.description == "Widgets everywhere"
        assert pr.author == "Alice A."
        assert pr.author_email == "alice@example.test"
        assert pr.state == "opened"
        assert pr.source_branch_name == "refs/heads/feature/widgets"
        assert pr.source_branch_sha == "a" * 40
        assert pr.target_branch_name == "refs/heads/main"
        assert pr.target_branch_sha == "b" * 40
        assert pr.created_at == parse_timestamp(1700000000000)
        assert pr.raw["id"] == 7

    @pytest.mark.parametrize(
        ("state", "expected"),
        [("OPEN", "opened"), ("MERGED", "merged"), ("DECLINED", "closed")],
    )
    def test_state_mapping(self, state: str, expected: str) -> None:
        assert parse_pull_request(_pull_request_payload(state=state)).state == expected

    def test_merged_property(self) -> None:
        assert parse_pull_request(_pull_request_payload(state="MERGED")).merged
        assert not parse_pull_request(_pull_request_payload(state="DECLINED")).merged

    def test_author_falls_back_to_user_name(self) -> None:
        pr = parse_pull_request(_pull_request_payload(author={"user": {"name": "alice"}}))
        assert pr.author == "alice"
        assert pr.author_email is None

    def test_missing_description(self) -> None:
        payload = _pull_request_payload()
        del payload["description"]
        assert parse_pull_request(payload).description == ""


@pytest.mark.unit
class TestParseComment:
    def test_standalone_comment(self) -> None:
        comment = parse_comment({"id": 1, "text": "LGTM", "author": {"emailAddress": "bob@example.test"}})

        assert comment.kind == "standalone"
        assert not comment.is_inline
        assert comment.anchor is None
        assert comment.note == "LGTM"
        assert comment.author_email == "bob@example.test"

    def test_inline_comment_on_new_side(self) -> None:
        comment = parse_comment(
            {"id": 1, "text": "nit"},
            {"path": "src/app.py", "line": 12, "lineType": "ADDED", "fileType": "TO"},
        )

        assert comment.is_inline
        assert comment.anchor is not None
        assert comment.anchor.file_path == "src/app.py"
        assert comment.anchor.new_line == 12
        assert comment.anchor.old_line is None

    def test_inline_comment_on_old_side(self) -> None:
        comment = parse_comment(
            {"id": 1, "text": "why removed?"},
            {"path": "src/app.py", "line": 3, "lineType": "REMOVED", "fileType": "FROM"},
        )

        assert comment.anchor is not None
        assert comment.anchor.old_line == 3
        assert comment.anchor.new_line is None

    def test_nested_replies_are_flattened_by_creation_time(self) -> None:
        comment = parse_comment(
            {
                "id": 1,
                "text": "top",
                "comments": [
                    {
                        "id": 2,
                        "text": "first reply",
                        "createdDate": 1000,
                        "comments": [{"id": 4, "text": "reply to reply", "createdDate": 3000}],
                    },
                    {"id": 3, "text": "second reply", "createdDate": 2000},
                ],
            }
        )

        assert [reply.id for reply in comment.replies] == [2, 3, 4]
        assert all(reply.anchor is None for reply in comment.replies)
        assert all(reply.replies == () for reply in comment.replies)


@pytest.mark.unit
class TestParseActivity:
    def test_comment_activity(self) -> None:
        activity = parse_activity(
            {
                "id": 11,
                "action": "COMMENTED",
                "commentAction": "ADDED",
                "comment": {"id": 5, "text": "hello"},
                "commentAnchor": {"path": "README.md", "line": 1, "fileType": "TO"},
            }
        )

        assert activity.is_comment
        assert activity.comment is not None
        assert activity.comment.is_inline
        assert activity.merge_event is None

    def test_merge_activity(self) -> None:
        activity = parse_activity(
            {
                "id": 12,
                "action": "MERGED",
                "commit": {
                    "id": "c" * 40,
                    "committer": {"emailAddress": "merger@example.test"},
                    "committerTimestamp": 1700000000000,
                },
            }
        )

        assert activity.is_merge_event
        assert activity.merge_event is not None
        assert activity.merge_event.committer_email == "merger@example.test"
        assert activity.merge_event.merge_timestamp == parse_timestamp(1700000000000)

    def test_merge_activity_without_commit(self) -> None:
        activity = parse_activity({"id": 12, "action": "MERGED"})
        assert activity.merge_event is not None
        assert activity.merge_event.committer_email is None

    def test_other_activity(self) -> None:
        activity = parse_activity({"id": 13, "action": "APPROVED"})

        assert activity.kind == "other"
        assert not activity.is_comment
        assert not activity.is_merge_event
