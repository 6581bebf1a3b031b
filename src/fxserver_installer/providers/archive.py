"""Archive extraction for zip files and tarballs."""

from __future__ import annotations

import pathlib
import tarfile
import zipfile

from ..errors import ProviderError


class ArchiveExtractor:
    """Extract zip and tar archives, refusing members that escape ``dest``."""

    def extract(self, archive: pathlib.Path, dest: pathlib.Path) -> None:
        if not archive.is_file():
            raise ProviderError(f"Archive does not exist: {archive}")
        dest.mkdir(parents=True, exist_ok=True)
        if zipfile.is_zipfile(archive):
            self._extract_zip(archive, dest)
        elif tarfile.is_tarfile(archive):
            self._extract_tar(archive, dest)
        else:
            raise ProviderError(f"Unsupported archive format: {archive}")

    def _extract_zip(self, archive: pathlib.Path, dest: pathlib.Path) -> None:
        root = dest.resolve()
        try:
            with zipfile.ZipFile(archive) as bundle:
                for name in bundle.namelist():
                    _ensure_inside(root, name)
                bundle.extractall(dest)
        except zipfile.BadZipFile as exc:
            raise ProviderError(f"Corrupt zip archive {archive}: {exc}") from exc

    def _extract_tar(self, archive: pathlib.Path, dest: pathlib.Path) -> None:
        root = dest.resolve()
        try:
            with tarfile.open(archive) as bundle:
                for member in bundle.getmembers():
                    _ensure_inside(root, member.name)
                bundle.extractall(dest, filter="tar")
        except tarfile.TarError as exc:
            raise ProviderError(f"Corrupt tar archive {archive}: {exc}") from exc


def _ensure_inside(root: pathlib.Path, name: str) -> None:
    target = (root / name).resolve()
    if target != root and root not in target.parents:
        raise ProviderError(f"Archive member '{name}' would be extracted outside {root}")


__all__ = ["ArchiveExtractor"]
