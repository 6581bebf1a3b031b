import logging
import pathlib
import sys
from typing import Dict, List, Optional, Set

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1] / "src"))

from fxserver_installer.errors import ProviderError  # noqa: E402
from fxserver_installer.providers import (  # noqa: E402
    ArchiveExtractor,
    LocalFilesystem,
    Providers,
)


class FakeSources:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[tuple] = []

    def clone_shallow(self, remote, ref, dest, *, timeout=None):
        self.calls.append(("clone", remote, ref, dest, timeout))
        if self.fail:
            raise ProviderError(f"could not reach {remote}")
        dest.mkdir(parents=True, exist_ok=True)
        (dest / ".git").mkdir(exist_ok=True)
        (dest / "README.md").write_text(f"{remote}@{ref}\n", encoding="utf-8")
        return dest

    def fetch_tree(self, remote, ref, subpath, dest, *, timeout=None):
        self.calls.append(("export", remote, ref, subpath, dest, timeout))
        if self.fail:
            raise ProviderError(f"could not reach {remote}")
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "fxmanifest.lua").write_text(f"-- {subpath}\n", encoding="utf-8")
        return dest


class FakeDownloader:
    def __init__(self, files: Optional[Dict[str, bytes]] = None, json_payloads=None) -> None:
        self.files = dict(files or {})
        self.json_payloads = dict(json_payloads or {})
        self.requested: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def download(self, url, *, timeout=None):
        self.requested.append(url)
        self.timeouts.append(timeout)
        try:
            return self.files[url]
        except KeyError as exc:
            raise ProviderError(f"Failed to download {url}: unreachable") from exc

    def download_to(self, url, path, *, timeout=None):
        payload = self.download(url, timeout=timeout)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        return len(payload)

    def get_json(self, url, *, timeout=None):
        self.requested.append(url)
        try:
            return self.json_payloads[url]
        except KeyError as exc:
            raise ProviderError(f"Request to {url} failed") from exc

    def close(self):
        pass


class FakeDatabase:
    def __init__(self, passwords: Optional[Set[str]] = None, fail: bool = False) -> None:
        self.passwords = passwords if passwords is not None else set()
        self.fail = fail
        self.scripts: List[tuple] = []
        self.pings: List[tuple] = []

    def exec_script(self, info, script, *, timeout=None):
        if self.fail:
            raise ProviderError(f"SQL execution on {info.describe()} failed: syntax error")
        self.scripts.append((info, script))
        return script.count(";")

    def ping(self, info, *, timeout=None):
        self.pings.append((info.user, info.password, info.database))
        return info.password in self.passwords


@pytest.fixture(autouse=True)
def reset_installer_logging():
    yield
    logger = logging.getLogger("fxserver_installer")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_sources():
    return FakeSources()


@pytest.fixture
def fake_downloader():
    return FakeDownloader()


@pytest.fixture
def fake_database():
    return FakeDatabase()


@pytest.fixture
def providers(fake_sources, fake_downloader, fake_database):
    return Providers(
        sources=fake_sources,
        downloader=fake_downloader,
        archives=ArchiveExtractor(),
        filesystem=LocalFilesystem(),
        database=fake_database,
    )
