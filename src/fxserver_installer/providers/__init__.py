"""External collaborators the recipe handlers act through."""

from __future__ import annotations

import dataclasses
from typing import Any

from .archive import ArchiveExtractor
from .database import ConnectionInfo, MariaDBClient
from .downloads import HttpDownloader
from .filesystem import LocalFilesystem
from .sources import GitSourceFetcher


@dataclasses.dataclass
class Providers:
    """Bundle of collaborators handed to every task handler.

    Tests swap individual members for fakes; anything exposing the same
    methods works.
    """

    sources: Any = dataclasses.field(default_factory=GitSourceFetcher)
    downloader: Any = dataclasses.field(default_factory=HttpDownloader)
    archives: Any = dataclasses.field(default_factory=ArchiveExtractor)
    filesystem: Any = dataclasses.field(default_factory=LocalFilesystem)
    database: Any = dataclasses.field(default_factory=MariaDBClient)

    def close(self) -> None:
        close = getattr(self.downloader, "close", None)
        if callable(close):
            close()


__all__ = [
    "ArchiveExtractor",
    "ConnectionInfo",
    "GitSourceFetcher",
    "HttpDownloader",
    "LocalFilesystem",
    "MariaDBClient",
    "Providers",
]
