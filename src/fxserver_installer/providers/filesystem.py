"""Local filesystem operations used by recipe tasks."""

from __future__ import annotations

import pathlib
import shutil

from ..errors import ProviderError


class LocalFilesystem:
    def move(self, src: pathlib.Path, dest: pathlib.Path) -> None:
        """Move ``src`` to ``dest``; the parent of ``dest`` must already exist."""

        if not src.exists() and not src.is_symlink():
            raise ProviderError(f"Source path does not exist: {src}")
        if not dest.parent.is_dir():
            raise ProviderError(f"Destination directory does not exist: {dest.parent}")
        try:
            shutil.move(str(src), str(dest))
        except OSError as exc:
            raise ProviderError(f"Failed to move {src} to {dest}: {exc}") from exc

    def remove_recursive(self, path: pathlib.Path) -> bool:
        """Delete ``path`` and everything below it; return ``False`` if it was absent."""

        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ProviderError(f"Failed to remove {path}: {exc}") from exc
        return True

    def ensure_dir(self, path: pathlib.Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ProviderError(f"Failed to create directory {path}: {exc}") from exc

    def read_text(self, path: pathlib.Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProviderError(f"Failed to read {path}: {exc}") from exc

    def write_text(self, path: pathlib.Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ProviderError(f"Failed to write {path}: {exc}") from exc


__all__ = ["LocalFilesystem"]
