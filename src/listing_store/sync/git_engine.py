"""Git CLI wrapper for cloning and refreshing the content repository."""

from __future__ import annotations

import base64
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from listing_store.constants import (
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    GIT_AUTH_USERNAME,
    GIT_OPERATION_TIMEOUT_SECONDS,
    GIT_PUSH_TIMEOUT_SECONDS,
)
from listing_store.observability import get_logger, redact_text

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_LOGGER = get_logger("git")

_CONFLICT_RE = re.compile(
    r"CONFLICT|Automatic merge failed|would be overwritten by (?:merge|checkout)"
    r"|you have unmerged files|divergent branches|Not possible to fast-forward",
    re.IGNORECASE,
)
_BRANCH_RE = re.compile(
    r"couldn't find remote ref|Remote branch \S+ not found|no such ref was fetched"
    r"|does not appear to have a branch",
    re.IGNORECASE,
)


class GitEngineError(RuntimeError):
    """Base error for git engine failures."""


class GitCommandError(GitEngineError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {redact_text(' '.join(command))}"
        if stderr.strip():
            message = f"{message}: {redact_text(stderr.strip())}"
        super().__init__(message)


class GitConflictError(GitCommandError):
    """Raised when a pull or checkout stops on conflicting changes."""


class GitBranchError(GitCommandError):
    """Raised when the requested remote branch does not exist."""


class GitTimeoutError(GitEngineError):
    """Raised when a git command exceeds its time limit."""

    def __init__(self, *, command: Sequence[str], timeout_seconds: float) -> None:
        self.command = tuple(command)
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"git command timed out after {timeout_seconds:g}s: {redact_text(' '.join(command))}"
        )


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for a git invocation."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class GitAuthor:
    name: str = DEFAULT_AUTHOR_NAME
    email: str = DEFAULT_AUTHOR_EMAIL


class GitEngine:
    """Runs the git commands the repository synchronizer needs against one checkout."""

    def __init__(
        self,
        repo_path: Path | str,
        *,
        token: str | None = None,
        author: GitAuthor | None = None,
        timeout_seconds: float = GIT_OPERATION_TIMEOUT_SECONDS,
        push_timeout_seconds: float = GIT_PUSH_TIMEOUT_SECONDS,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self.author = author or GitAuthor()
        self.timeout_seconds = timeout_seconds
        self.push_timeout_seconds = push_timeout_seconds
        self._token = token
        self._env_overrides = dict(env_overrides or {})

    def is_repository(self) -> bool:
        return (self.repo_path / ".git").exists()

    def clone(self, url: str, branch: str | None = None) -> CommandResult:
        """Clone ``url`` into the (empty or missing) checkout directory."""

        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone", "--single-branch"]
        if branch:
            args.extend(["--branch", branch])
        args.extend(["--", url, self.repo_path.as_posix()])
        return self._run_git(args, cwd=self.repo_path.parent)

    def pull(self, url: str, branch: str | None = None) -> CommandResult:
        args = ["pull", "--no-rebase", "--no-edit", url]
        if branch:
            args.append(branch)
        return self._run_git(args)

    def has_local_changes(self) -> bool:
        result = self._run_git(["status", "--porcelain"])
        return bool(result.stdout.strip())

    def add_all(self) -> CommandResult:
        return self._run_git(["add", "--all"])

    def commit(self, message: str, author: GitAuthor | None = None) -> CommandResult:
        identity = author or self.author
        return self._run_git(["commit", "--no-verify", "-m", message], identity=identity)

    def push(self, url: str) -> CommandResult:
        return self._run_git(["push", url, "HEAD"], timeout_seconds=self.push_timeout_seconds)

    def abort_merge(self) -> bool:
        """Abort an in-progress merge; return whether one was aborted."""

        if not (self.repo_path / ".git" / "MERGE_HEAD").exists():
            return False
        self._run_git(["merge", "--abort"])
        return True

    def head(self) -> str | None:
        if not self.is_repository():
            return None
        result = self._run_git(["rev-parse", "--verify", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _environment(self, identity: GitAuthor) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        env["GIT_AUTHOR_NAME"] = identity.name
        env["GIT_AUTHOR_EMAIL"] = identity.email
        env["GIT_COMMITTER_NAME"] = identity.name
        env["GIT_COMMITTER_EMAIL"] = identity.email
        if self._token:
            # Passed through GIT_CONFIG_* so the credential never appears in argv.
            credential = base64.b64encode(f"{GIT_AUTH_USERNAME}:{self._token}".encode()).decode("ascii")
            env["GIT_CONFIG_COUNT"] = "1"
            env["GIT_CONFIG_KEY_0"] = "http.extraheader"
            env["GIT_CONFIG_VALUE_0"] = f"Authorization: Basic {credential}"
        env.update(self._env_overrides)
        return env

    def _run_git(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        timeout_seconds: float | None = None,
        identity: GitAuthor | None = None,
    ) -> CommandResult:
        command = ("git", *args)
        run_cwd = (cwd if cwd is not None else self.repo_path).resolve()
        limit = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        _LOGGER.debug("running %s", redact_text(" ".join(command)))

        try:
            completed = subprocess.run(
                command,
                cwd=run_cwd,
                env=self._environment(identity or self.author),
                text=True,
                capture_output=True,
                check=False,
                timeout=limit,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitTimeoutError(command=command, timeout_seconds=limit) from exc

        result = CommandResult(
            command=command,
            cwd=run_cwd.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

        if check and result.returncode != 0:
            raise _classify_failure(result)

        return result


def _classify_failure(result: CommandResult) -> GitCommandError:
    output = f"{result.stdout}\n{result.stderr}"
    error_type: type[GitCommandError] = GitCommandError
    if _BRANCH_RE.search(output):
        error_type = GitBranchError
    elif _CONFLICT_RE.search(output):
        error_type = GitConflictError
    return error_type(
        command=result.command,
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )


__all__ = [
    "CommandResult",
    "GitAuthor",
    "GitBranchError",
    "GitCommandError",
    "GitConflictError",
    "GitEngine",
    "GitEngineError",
    "GitTimeoutError",
]
