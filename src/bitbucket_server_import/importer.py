"""Import orchestrator for one Bitbucket Server repository.

The Importer is the central coordinator. It:
1. Mirrors the remote git repository locally
2. Enumerates all pull requests and processes them in batches
3. Restores unreachable pull request branches before each batch
4. Translates pull requests and imports their discussions
5. Persists one aggregated error report

Import Flow
-----------
    ensure_repository + fetch_as_mirror
           │
           ▼
    pull_requests() ──► list, split into batches of BATCH_SIZE
           │
           ▼  for each batch
    ┌──────────────────────┐
    │ restore_branches()   │ ──► created any? ──► fetch_as_mirror again
    └──────────────────────┘
           │
           ▼  for each pull request
    ┌──────────────────────┐
    │ translate()          │ ──► ChangeRequest
    │ import_comments()    │ ──► DiscussionNotes, merge metrics
    └──────────────────────┘
           │
           ▼
    delete temp branches, save_import_error() if anything failed

At most one extra fetch runs per batch, and only when the batch restored
branches.

Error Handling
--------------
- Mirror failures (MirrorError) abort the run after expiring the commit cache
- Branch restoration failures are logged as warnings only
- Pull request, note and reply failures become ErrorRecords and the run
  moves on to the next sibling
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from .branches import BranchRestorer
from .error_log import ErrorLog
from .exceptions import MirrorError
from .notes import CommentImporter
from .pull_requests import PullRequestTranslator
from .users import UserResolver

if TYPE_CHECKING:
    from .models import PullRequest, RemoteRepository
    from .protocols import MirrorRepository, ProjectStore, RemoteClient

logger: logging.Logger = logging.getLogger(__name__)

REMOTE_NAME = "bitbucket_server"
BATCH_SIZE = 100
REFMAP: tuple[str, ...] = ("heads", "tags", "+refs/pull-requests/*/to:refs/merge-requests/*/head")

T = TypeVar("T")


def iter_batches(items: Sequence[T], *, batch_size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``items`` with at most ``batch_size`` elements."""
    if batch_size < 1:
        msg = f"batch_size must be >= 1, got {batch_size}"
        raise ValueError(msg)
    for i in range(0, len(items), batch_size):
        yield list(items[i : i + batch_size])


@dataclass
class ImportStats:
    """Statistics collected during an import run."""

    pull_requests_total: int = 0
    pull_requests_imported: int = 0
    batches: int = 0
    branches_restored: int = 0
    notes_created: int = 0
    errors: int = 0


class Importer:
    """Imports the pull requests of one remote repository into a local project.

    Usage:
        client = BitbucketServerClient(base_url=..., username=..., token=...)
        importer = Importer(client, "PROJ", "repo", repository=GitMirror(path), store=store)
        importer.execute()

    Each instance owns the state of a single run: the user cache, the list of
    temporary branches and the error log.
    """

    def __init__(
        self,
        client: RemoteClient,
        project_key: str,
        repo_slug: str,
        *,
        repository: MirrorRepository,
        store: ProjectStore,
        import_url: str | None = None,
        batch_size: int = BATCH_SIZE,
        delete_temp_branches: bool = True,
    ) -> None:
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise ValueError(msg)

        self.client: RemoteClient = client
        self.project_key: str = project_key
        self.repo_slug: str = repo_slug
        self.repository: MirrorRepository = repository
        self.store: ProjectStore = store
        self.batch_size: int = batch_size
        self.delete_temp_branches: bool = delete_temp_branches
        self._import_url: str | None = import_url
        self._repo: RemoteRepository | None = None

        self.errors: ErrorLog = ErrorLog()
        self.users: UserResolver = UserResolver(store)
        self.temp_branches: list[str] = []
        self.stats: ImportStats = ImportStats()

        self.branches: BranchRestorer = BranchRestorer(client, project_key, repo_slug, repository)
        self.translator: PullRequestTranslator = PullRequestTranslator(store, repository, self.users)
        self.comments: CommentImporter = CommentImporter(
            client, project_key, repo_slug, store=store, users=self.users, errors=self.errors
        )

    @staticmethod
    def refmap() -> list[str]:
        return list(REFMAP)

    @property
    def repo(self) -> RemoteRepository:
        if self._repo is None:
            self._repo = self.client.repo(self.project_key, self.repo_slug)
        return self._repo

    @property
    def import_url(self) -> str:
        return self._import_url or self.repo.clone_url

    def execute(self) -> bool:
        """Run the whole import. Only mirror failures propagate."""
        logger.info(f"Starting import of {self.project_key}/{self.repo_slug}")

        self.import_repository()
        self.import_pull_requests()
        if self.delete_temp_branches:
            self.branches.delete_branches(self.temp_branches)
        self.handle_errors()

        self.stats.notes_created = self.comments.notes_created
        self.stats.errors = len(self.errors)
        logger.info(
            f"Imported {self.stats.pull_requests_imported}/{self.stats.pull_requests_total} pull requests "
            f"with {self.stats.errors} errors"
        )
        return True

    def import_repository(self) -> None:
        try:
            self.repository.ensure_repository()
            self.repository.fetch_as_mirror(self.import_url, self.refmap(), REMOTE_NAME)
        except MirrorError:
            # A half-fetched repository may look complete to the next attempt.
            if self.repository.exists():
                self.repository.expire_content_cache()
            raise

    def import_pull_requests(self) -> None:
        # Materialized up front: branch restoration needs whole batches.
        pull_requests = list(self.client.pull_requests(self.project_key, self.repo_slug))
        self.stats.pull_requests_total = len(pull_requests)
        total_batches = -(-len(pull_requests) // self.batch_size)

        for idx, batch in enumerate(iter_batches(pull_requests, batch_size=self.batch_size), start=1):
            logger.info(f"Pull request batch {idx}/{total_batches} ({len(batch)} pull requests)")
            self.stats.batches += 1
            self.restore_branches(batch)

            for pull_request in batch:
                try:
                    self.import_pull_request(pull_request)
                except Exception as e:  # noqa: BLE001
                    self.errors.add_pull_request_error(pull_request, e)

    def restore_branches(self, batch: Sequence[PullRequest]) -> None:
        created = self.branches.restore_branches(batch)
        self.temp_branches.extend(created)
        self.stats.branches_restored += len(created)
        if created:
            self.import_repository()

    def import_pull_request(self, pull_request: PullRequest) -> None:
        change_request = self.translator.translate(pull_request)
        self.stats.pull_requests_imported += 1
        if change_request.persisted:
            self.comments.import_comments(pull_request, change_request)

    def handle_errors(self) -> None:
        if not self.errors:
            return
        logger.warning(f"{len(self.errors)} items could not be imported, saving error report")
        self.store.save_import_error(self.errors.to_json())
