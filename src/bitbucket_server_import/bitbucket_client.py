"""Bitbucket Server REST client."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import requests

from .exceptions import BitbucketServerError
from .models import Activity, BranchResponse, PullRequest, RemoteRepository
from .representation import parse_activity, parse_pull_request, parse_repository

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_DEFAULT_PAGE_LIMIT = 100


class BitbucketServerClient:
    """Thin client for the handful of Bitbucket Server endpoints the import needs.

    Reads go to ``/rest/api/1.0``, branch writes to ``/rest/branch-utils/1.0``.
    Authentication is HTTP basic with a username and a password or HTTP access
    token.
    """

    def __init__(
        self,
        *,
        base_url: str,
        username: str,
        token: str,
        session: requests.Session | None = None,
        timeout: float = 30,
        page_limit: int = _DEFAULT_PAGE_LIMIT,
    ) -> None:
        self._base_url: str = base_url.rstrip("/")
        self._session: requests.Session = session or requests.Session()
        self._session.auth = (username, token)
        self._session.headers.update({"Accept": "application/json"})
        self._timeout: float = timeout
        self._page_limit: int = page_limit

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            msg = f"path must start with '/': {path!r}"
            raise ValueError(msg)
        return f"{self._base_url}{path}"

    @staticmethod
    def _repo_path(project_key: str, repo_slug: str) -> str:
        return f"/projects/{project_key}/repos/{repo_slug}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> requests.Response:
        url = self._url(path)
        resp = self._session.request(method, url, params=params, json=json, timeout=self._timeout)
        if resp.status_code >= 400:
            raise BitbucketServerError(method=method, url=url, status_code=resp.status_code, body=resp.text)
        return resp

    def _get_json(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params).json()

    def _paged(self, path: str, *, params: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Yield every value of a paged collection endpoint."""
        start = 0
        while True:
            page_params = {**(params or {}), "start": start, "limit": self._page_limit}
            page = self._get_json(path, params=page_params)
            yield from page.get("values", [])
            if page.get("isLastPage", True) or "nextPageStart" not in page:
                return
            start = page["nextPageStart"]

    def repo(self, project_key: str, repo_slug: str) -> RemoteRepository:
        data = self._get_json(f"/rest/api/1.0{self._repo_path(project_key, repo_slug)}")
        return parse_repository(data)

    def pull_requests(self, project_key: str, repo_slug: str) -> Iterator[PullRequest]:
        path = f"/rest/api/1.0{self._repo_path(project_key, repo_slug)}/pull-requests"
        for data in self._paged(path, params={"state": "ALL", "order": "OLDEST"}):
            yield parse_pull_request(data)

    def activities(self, project_key: str, repo_slug: str, pull_request_iid: int) -> Iterator[Activity]:
        path = f"/rest/api/1.0{self._repo_path(project_key, repo_slug)}/pull-requests/{pull_request_iid}/activities"
        for data in self._paged(path):
            yield parse_activity(data)

    def create_branch(self, project_key: str, repo_slug: str, name: str, sha: str) -> BranchResponse:
        path = f"/rest/branch-utils/1.0{self._repo_path(project_key, repo_slug)}/branches"
        payload = {"name": name, "startPoint": sha, "message": "Creating branch for pull request import"}
        try:
            resp = self._request("POST", path, json=payload)
        except BitbucketServerError as e:
            logger.debug(f"Create branch {name} failed: {e}")
            return BranchResponse(success=False, code=e.status_code)
        except requests.RequestException as e:
            logger.debug(f"Create branch {name} failed: {e}")
            return BranchResponse(success=False, code=0)
        return BranchResponse(success=True, code=resp.status_code)

    def delete_branch(self, project_key: str, repo_slug: str, name: str) -> BranchResponse:
        path = f"/rest/branch-utils/1.0{self._repo_path(project_key, repo_slug)}/branches"
        try:
            resp = self._request("DELETE", path, json={"name": name, "dryRun": False})
        except BitbucketServerError as e:
            logger.debug(f"Delete branch {name} failed: {e}")
            return BranchResponse(success=False, code=e.status_code)
        except requests.RequestException as e:
            logger.debug(f"Delete branch {name} failed: {e}")
            return BranchResponse(success=False, code=0)
        return BranchResponse(success=True, code=resp.status_code)
