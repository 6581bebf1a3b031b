"""HTTP downloads backed by httpx."""

from __future__ import annotations

import logging
import pathlib

import httpx

from ..errors import ProviderError

logger = logging.getLogger(__name__)

USER_AGENT = "fxserver-installer/0.1"

# InvalidURL is raised while building the request and is not an HTTPError.
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class HttpDownloader:
    """Fetch files over HTTP(S), following redirects."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    def download(self, url: str, *, timeout: float | None = None) -> bytes:
        try:
            response = self._client.get(url, timeout=timeout)
            response.raise_for_status()
        except REQUEST_ERRORS as exc:
            raise ProviderError(f"Failed to download {url}: {exc!s}") from exc
        return response.content

    def download_to(self, url: str, path: pathlib.Path, *, timeout: float | None = None) -> int:
        """Stream ``url`` into ``path``, replacing it, and return the byte count."""

        path.parent.mkdir(parents=True, exist_ok=True)
        partial = path.with_name(path.name + ".part")
        written = 0
        completed = False
        try:
            with self._client.stream("GET", url, timeout=timeout) as response:
                response.raise_for_status()
                with partial.open("wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
                        written += len(chunk)
            partial.replace(path)
            completed = True
        except REQUEST_ERRORS as exc:
            raise ProviderError(f"Failed to download {url}: {exc!s}") from exc
        except OSError as exc:
            raise ProviderError(f"Failed to download {url} to {path}: {exc}") from exc
        finally:
            if not completed:
                partial.unlink(missing_ok=True)
        logger.debug("Downloaded %s (%d bytes) to %s", url, written, path)
        return written

    def get_json(self, url: str, *, timeout: float | None = None) -> object:
        try:
            response = self._client.get(url, timeout=timeout)
            response.raise_for_status()
        except REQUEST_ERRORS as exc:
            raise ProviderError(f"Request to {url} failed: {exc!s}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{url} did not return valid JSON") from exc

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpDownloader":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["HttpDownloader", "REQUEST_ERRORS", "USER_AGENT"]
