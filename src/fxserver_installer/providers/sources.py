"""Source tree fetching through the ``git`` command line client."""

from __future__ import annotations

import logging
import pathlib
import shutil
import subprocess
import tempfile
from typing import List, Sequence

from ..errors import ProviderError

logger = logging.getLogger(__name__)

GITHUB_BASE_URL = "https://github.com"


def remote_url(remote: str) -> str:
    """Turn an ``owner/repo`` slug into a GitHub clone URL, pass URLs through."""

    remote = remote.strip()
    if "://" in remote or remote.startswith("git@"):
        return remote
    return f"{GITHUB_BASE_URL}/{remote.strip('/')}.git"


class GitSourceFetcher:
    """Fetch remote source trees with shallow clones."""

    def __init__(self, executable: str = "git") -> None:
        self._executable = executable

    def clone_shallow(
        self,
        remote: str,
        ref: str,
        dest: pathlib.Path,
        *,
        timeout: float | None = None,
    ) -> pathlib.Path:
        """Shallow, single-branch clone of ``ref`` (or the default branch) into ``dest``."""

        command: List[str] = [self._executable, "clone", "--quiet", "--depth", "1", "--single-branch"]
        if ref:
            command += ["--branch", ref]
        command += [remote_url(remote), str(dest)]
        self._run(command, timeout=timeout)
        return dest

    def fetch_tree(
        self,
        remote: str,
        ref: str,
        subpath: str,
        dest: pathlib.Path,
        *,
        timeout: float | None = None,
    ) -> pathlib.Path:
        """Export ``subpath`` of the remote tree into ``dest`` without ``.git`` metadata."""

        relative = pathlib.PurePosixPath(subpath.strip("/"))
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ProviderError(f"Invalid subpath '{subpath}'")

        with tempfile.TemporaryDirectory(prefix="fxserver-tree-") as workdir:
            checkout = pathlib.Path(workdir) / "checkout"
            self.clone_shallow(remote, ref, checkout, timeout=timeout)
            source = checkout.joinpath(*relative.parts)
            if not source.exists():
                raise ProviderError(f"Path '{subpath}' does not exist in {remote_url(remote)}")
            if source.is_dir():
                shutil.copytree(
                    source,
                    dest,
                    dirs_exist_ok=True,
                    ignore=shutil.ignore_patterns(".git"),
                )
            else:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, dest)
        return dest

    def _run(self, command: Sequence[str], *, timeout: float | None) -> None:
        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ProviderError(f"'{self._executable}' is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProviderError(f"git timed out after {timeout}s") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise ProviderError(f"git exited with status {result.returncode}: {detail}")


__all__ = ["GITHUB_BASE_URL", "GitSourceFetcher", "remote_url"]
