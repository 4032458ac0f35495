"""Git-synced manifest repository.

The manifest repository is a plain Git working copy kept in the cache
directory. Syncing fetches one branch from the ``homebins`` remote and hard
resets the working copy to it; local changes are discarded.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from homebins.registry.store import ManifestStore
from homebins.utils.filesystem import ensure_directory

logger = logging.getLogger(__name__)

REMOTE_NAME = "homebins"


class GitRepoError(Exception):
    """Error syncing the manifest repository."""

    def __init__(self, message: str, url: str | None = None, command: list[str] | None = None):
        self.url = url
        self.command = command
        super().__init__(message)


class ManifestRepo:
    """A local clone of a manifest repository."""

    def __init__(self, working_copy: Path, url: str):
        self.working_copy = working_copy
        self.url = url

    @classmethod
    def cloned(cls, remote: str, target_dir: Path, branch: str = "master") -> ManifestRepo:
        """Clone or sync a manifest repository.

        Args:
            remote: Repository URL
            target_dir: Directory of the working copy
            branch: Branch to check out

        Returns:
            The synced repository

        Raises:
            GitRepoError: If any git command fails, or target_dir exists but
                is not a Git repository
        """
        repo = cls(target_dir, remote)
        if target_dir.exists():
            if repo._run_git(["rev-parse", "--git-dir"], check=False).returncode != 0:
                raise GitRepoError(f"{target_dir} exists but is not a Git repository", url=remote)
        else:
            logger.info("Creating manifest repository at %s", target_dir)
            ensure_directory(target_dir)
            repo._run_git(["init", "--quiet"])

        repo._ensure_remote()
        logger.info("Syncing manifests from %s (%s)", remote, branch)
        repo._run_git(["fetch", "--quiet", REMOTE_NAME, branch])
        repo._run_git(["reset", "--quiet", "--hard", f"{REMOTE_NAME}/{branch}"])
        return repo

    def _ensure_remote(self) -> None:
        """Point the homebins remote at our URL, adding it if missing."""
        result = self._run_git(["remote", "get-url", REMOTE_NAME], check=False)
        if result.returncode != 0:
            self._run_git(["remote", "add", REMOTE_NAME, self.url])
        elif result.stdout.strip() != self.url:
            logger.debug("Changing URL of remote %s to %s", REMOTE_NAME, self.url)
            self._run_git(["remote", "set-url", REMOTE_NAME, self.url])

    def _run_git(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a git command in the working copy.

        Args:
            args: Git command arguments (without 'git')
            check: Whether to raise on non-zero exit

        Returns:
            Completed process

        Raises:
            GitRepoError: If command fails and check=True
        """
        cmd = ["git"] + args
        logger.debug("Running git command: %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=self.working_copy,
                capture_output=True,
                text=True,
                check=check,
            )
        except subprocess.CalledProcessError as e:
            logger.error("Git command failed: %s - %s", " ".join(cmd), e.stderr.strip())
            raise GitRepoError(
                f"Git command failed: {' '.join(cmd)}\n{e.stderr}", url=self.url, command=cmd
            ) from e
        except FileNotFoundError as e:
            logger.error("Git is not installed or not in PATH")
            raise GitRepoError("Git is not installed or not in PATH", url=self.url) from e

    def store(self) -> ManifestStore:
        """Get the manifest store of the working copy."""
        return ManifestStore(self.working_copy / "manifests")
