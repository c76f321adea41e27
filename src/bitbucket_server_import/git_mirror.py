"""Local git mirror operations using git CLI."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

from .exceptions import MirrorError
from .models import Commit

logger: logging.Logger = logging.getLogger(__name__)

# Shorthands accepted in a refmap, in addition to raw refspecs.
_REFMAP_ALIASES: dict[str, str] = {
    "heads": "+refs/heads/*:refs/heads/*",
    "tags": "+refs/tags/*:refs/tags/*",
}

_PUSH_REFSPECS: list[str] = [_REFMAP_ALIASES["heads"], _REFMAP_ALIASES["tags"]]


def inject_credentials(url: str, username: str | None, token: str | None) -> str:
    """Inject basic-auth credentials into an HTTPS URL.

    Args:
        url: The URL to modify
        username: User name placed before the token (if None, only the token is used)
        token: Token to inject (if None, returns original URL)

    Returns:
        URL with credentials injected, or original if not HTTP(S) or no token
    """
    if not token:
        return url
    userinfo = f"{username}:{token}" if username else token
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            return url.replace(scheme, f"{scheme}{userinfo}@", 1)
    return url


def strip_credentials(url: str) -> str:
    """Remove any userinfo part from an HTTP(S) URL."""
    return re.sub(r"^(https?://)[^/@]*@", r"\1", url)


def _sanitize_error(error: str, tokens: Sequence[str | None]) -> str:
    """Remove tokens from error message to prevent leakage.

    Args:
        error: Error message that may contain tokens
        tokens: List of tokens to redact (None values are ignored)

    Returns:
        Error message with tokens replaced by ***TOKEN***
    """
    result = error
    for token in tokens:
        if token:
            result = result.replace(token, "***TOKEN***")
    return result


def expand_refmap(refmap: Sequence[str]) -> list[str]:
    """Expand refmap shorthands (``heads``, ``tags``) into refspecs."""
    return [_REFMAP_ALIASES.get(entry, entry) for entry in refmap]


class GitMirror:
    """A bare repository on local disk kept in sync with a remote.

    When ``push_url`` is given, branches and tags are pushed on to it after
    every fetch, so the persistence target sees the same refs as the mirror.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        push_url: str | None = None,
        secrets: Sequence[str | None] = (),
    ) -> None:
        self.path: Path = Path(path)
        self.push_url: str | None = push_url
        self._secrets: list[str | None] = list(secrets)
        self._commit_cache: dict[str, Commit | None] = {}

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return subprocess.run(  # noqa: S603
            ["git", "-C", str(self.path), *args],
            check=check,
            capture_output=True,
            text=True,
        )

    def _error(self, action: str, e: subprocess.CalledProcessError | OSError) -> MirrorError:
        detail = e.stderr if isinstance(e, subprocess.CalledProcessError) and e.stderr else str(e)
        return MirrorError(f"Failed to {action}: {_sanitize_error(detail.strip(), self._secrets)}")

    def exists(self) -> bool:
        return (self.path / "HEAD").is_file()

    def ensure_repository(self) -> None:
        if self.exists():
            return
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            self._git("init", "--bare")
        except (subprocess.CalledProcessError, OSError) as e:
            raise self._error(f"create repository at {self.path}", e) from e
        logger.info(f"Created bare repository at {self.path}")

    def fetch_as_mirror(self, url: str, refmap: Sequence[str], remote_name: str) -> None:
        refspecs = expand_refmap(refmap)
        try:
            if self._git("remote", "get-url", remote_name, check=False).returncode == 0:
                self._git("remote", "set-url", remote_name, url)
            else:
                self._git("remote", "add", remote_name, url)

            self._git("fetch", "--prune", "--force", "--quiet", remote_name, *refspecs)
        except (subprocess.CalledProcessError, OSError) as e:
            raise self._error(f"fetch {strip_credentials(url)}", e) from e
        finally:
            # Keep the token out of the git config
            self._git("remote", "set-url", remote_name, strip_credentials(url), check=False)

        self.expire_content_cache()
        logger.info(f"Fetched {strip_credentials(url)} into {self.path}")

        if self.push_url:
            self.push()

    def push(self) -> None:
        """Push branches and tags to ``push_url``."""
        if not self.push_url:
            return
        try:
            self._git("push", "--force", "--quiet", self.push_url, *_PUSH_REFSPECS)
        except (subprocess.CalledProcessError, OSError) as e:
            raise self._error(f"push to {strip_credentials(self.push_url)}", e) from e
        logger.info(f"Pushed branches and tags to {strip_credentials(self.push_url)}")

    def commit(self, sha: str) -> Commit | None:
        if not sha:
            return None
        if sha in self._commit_cache:
            return self._commit_cache[sha]

        result = self._git("rev-parse", "--verify", "--quiet", f"{sha}^{{commit}}", check=False)
        commit = Commit(sha=result.stdout.strip()) if result.returncode == 0 else None
        self._commit_cache[sha] = commit
        return commit

    def expire_content_cache(self) -> None:
        self._commit_cache.clear()

    def delete_branch(self, name: str) -> None:
        ref = f"refs/heads/{name}"
        try:
            self._git("update-ref", "-d", ref)
            if self.push_url:
                self._git("push", "--quiet", self.push_url, f":{ref}")
        except (subprocess.CalledProcessError, OSError) as e:
            raise self._error(f"delete branch {name}", e) from e
