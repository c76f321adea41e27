"""
Command-line interface for the Bitbucket Server import tool.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from . import bitbucket_utils as bbu
from . import gitlab_utils as glu
from .exceptions import ConfigurationError
from .git_mirror import GitMirror, inject_credentials
from .gitlab_store import GitLabStore
from .importer import BATCH_SIZE, Importer, ImportStats
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Import a Bitbucket Server repository with its pull requests into a GitLab project"
    )

    # Positional arguments
    _ = parser.add_argument("project_key", help="Bitbucket Server project key (e.g. PROJ)")
    _ = parser.add_argument("repo_slug", help="Bitbucket Server repository slug")
    _ = parser.add_argument("gitlab_project", help="GitLab project path (namespace/project)")

    _ = parser.add_argument("--bitbucket-url", help="Bitbucket Server base URL (default: $BITBUCKET_SERVER_URL)")
    _ = parser.add_argument("--bitbucket-user", help="Bitbucket Server user name (default: $BITBUCKET_SERVER_USER)")
    _ = parser.add_argument(
        "--bitbucket-pass-token", help="Path for Bitbucket Server token in pass utility (default: bitbucket/server/token)"
    )
    _ = parser.add_argument("--gitlab-url", help=f"GitLab base URL (default: $GITLAB_URL or {glu.DEFAULT_URL})")
    _ = parser.add_argument("--gitlab-pass-token", help="Path for GitLab token in pass utility (default: gitlab/cli/token)")

    _ = parser.add_argument(
        "--mirror-path", help="Local bare repository used as mirror (default: ./<project_key>-<repo_slug>.git)"
    )
    _ = parser.add_argument("--no-push", action="store_true", help="Do not push branches and tags to GitLab")
    _ = parser.add_argument(
        "--keep-temp-branches", action="store_true", help="Keep the temporary branches created for pull requests"
    )
    _ = parser.add_argument(
        "--impersonate", action="store_true", help="Create merge requests and notes as their authors (admin token)"
    )
    _ = parser.add_argument(
        "--batch-size", type=int, default=BATCH_SIZE, help=f"Pull requests per batch (default: {BATCH_SIZE})"
    )
    _ = parser.add_argument("--timeout", type=float, default=30, help="HTTP timeout in seconds (default: 30)")
    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v info, -vv debug)"
    )

    return parser.parse_args(argv)


def _print_stats(stats: ImportStats) -> None:
    print(f"Pull requests: {stats.pull_requests_imported}/{stats.pull_requests_total} imported")  # noqa: T201
    print(f"Batches: {stats.batches}, branches restored: {stats.branches_restored}")  # noqa: T201
    print(f"Notes created: {stats.notes_created}")  # noqa: T201
    if stats.errors:
        print(f"Errors: {stats.errors} (see the import error report on the GitLab project)")  # noqa: T201


def build_importer(args: argparse.Namespace) -> Importer:
    """Wire clients, mirror and store from parsed arguments."""
    bitbucket_url = bbu.get_url(args.bitbucket_url)
    bitbucket_user = bbu.get_username(args.bitbucket_user)
    bitbucket_token = bbu.get_token(args.bitbucket_pass_token)
    if not bitbucket_token:
        msg = "No Bitbucket Server token found"
        raise ConfigurationError(msg)
    client = bbu.get_client(bitbucket_url, bitbucket_user, bitbucket_token, timeout=args.timeout)

    gitlab_url = args.gitlab_url or os.environ.get("GITLAB_URL") or glu.DEFAULT_URL
    gitlab_token = glu.get_token(args.gitlab_pass_token)
    gitlab_client = glu.get_client(gitlab_url, gitlab_token)
    gitlab_project = glu.get_project(gitlab_client, args.gitlab_project)

    push_url = None if args.no_push else glu.get_push_url(gitlab_project, gitlab_token)
    mirror_path = Path(args.mirror_path or f"{args.project_key}-{args.repo_slug}.git")
    repository = GitMirror(mirror_path, push_url=push_url, secrets=[bitbucket_token, gitlab_token])

    remote_repo = client.repo(args.project_key, args.repo_slug)
    import_url = inject_credentials(remote_repo.clone_url, bitbucket_user, bitbucket_token)

    return Importer(
        client,
        args.project_key,
        args.repo_slug,
        repository=repository,
        store=GitLabStore(gitlab_client, gitlab_project, impersonate=args.impersonate),
        import_url=import_url,
        batch_size=args.batch_size,
        delete_temp_branches=not args.keep_temp_branches,
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        importer = build_importer(args)
        importer.execute()
    except Exception:
        logger.exception("Import failed")
        sys.exit(1)

    _print_stats(importer.stats)
    sys.exit(0)
