"""Download cache for upstream release archives.

Cache layout is two levels deep: ``<cache_root>/<binary_version>/<asset>``.
The per-version directory keeps differently versioned assets that share a
filename apart; entries are never invalidated automatically.
"""

import logging
import pathlib
import posixpath
import urllib.parse

import requests


DEFAULT_TIMEOUT: float = 120.0


class FetchError(RuntimeError):
    """Raised when an archive cannot be downloaded."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"download {url}: {message}")
        self.url: str = url


def release_cache_dir(cache_root: pathlib.Path | None, binary_version: str) -> pathlib.Path | None:
    """Return the cache directory for one upstream release.

    :param cache_root: Cache root, or ``None`` to disable caching.
    :param binary_version: Upstream binary version.
    :returns: ``cache_root / binary_version``, or ``None``.
    """

    if cache_root is None:
        return None
    return cache_root / binary_version


def cache_filename(url: str) -> str:
    """Derive the cache filename from the final path segment of a URL.

    :param url: Download URL.
    :returns: URL basename.
    """

    path: str = urllib.parse.urlsplit(url).path
    return posixpath.basename(urllib.parse.unquote(path))


def download_bytes(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bytes:
    """GET a URL and return its body.

    :param url: Download URL.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :returns: Response bytes.
    :raises FetchError: On transport failure or a non-200 status.
    """

    client = session or requests
    try:
        response = client.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(url, str(e)) from e
    if response.status_code != 200:
        raise FetchError(url, f"HTTP {response.status_code} {response.reason}")
    return response.content


def fetch_cached(
    url: str,
    cache_dir: pathlib.Path | None,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    logger: logging.Logger | None = None,
) -> bytes:
    """Return the bytes for ``url``, reading through ``cache_dir``.

    With no cache directory the download is always performed and nothing is
    persisted. A failure to write the cache file is logged, not raised.

    :param url: Download URL.
    :param cache_dir: Per-release cache directory, or ``None``.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :param logger: Optional logger for progress output.
    :returns: Archive bytes.
    :raises FetchError: If the cache directory cannot be created or the download fails.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    if cache_dir is None:
        logger.info(f"release-wheeler: downloading {url}")
        return download_bytes(url, session=session, timeout=timeout)

    filename: str = cache_filename(url)
    if len(filename) == 0:
        logger.warning(f"release-wheeler: {url} has no file name; downloading without cache")
        return download_bytes(url, session=session, timeout=timeout)

    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FetchError(url, f"cannot create cache dir {cache_dir}: {e}") from e

    cache_path: pathlib.Path = cache_dir / filename
    if cache_path.is_file() is True:
        try:
            data: bytes = cache_path.read_bytes()
        except OSError as e:
            logger.warning(f"release-wheeler: cannot read cache file {cache_path}: {e}")
        else:
            logger.info(f"release-wheeler: cache hit {filename}")
            return data

    logger.info(f"release-wheeler: cache miss; downloading {url}")
    data = download_bytes(url, session=session, timeout=timeout)

    tmp_path: pathlib.Path = cache_path.with_name(cache_path.name + ".tmp")
    try:
        tmp_path.write_bytes(data)
        tmp_path.replace(cache_path)
    except OSError as e:
        logger.warning(f"release-wheeler: could not write cache file {cache_path}: {e}")
    else:
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"release-wheeler: cached to {cache_path}")
    return data
