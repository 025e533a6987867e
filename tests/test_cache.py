from __future__ import annotations

import pathlib

import pytest
import requests

from release_wheeler.cache import FetchError, cache_filename, fetch_cached, release_cache_dir
from tests.conftest import FakeResponse, FakeSession


URL = "https://github.com/neo4j/mcp/releases/download/v1.0.0/neo4j-mcp_1.0.0_Linux_amd64.tar.gz"


def test_second_fetch_is_served_from_cache(tmp_path: pathlib.Path, session: FakeSession) -> None:
    session.routes[URL] = FakeResponse(content=b"archive-bytes")
    cache_dir = tmp_path / "cache" / "1.0.0"

    first = fetch_cached(URL, cache_dir, session=session)
    second = fetch_cached(URL, cache_dir, session=session)

    assert first == second == b"archive-bytes"
    assert session.count("GET", URL) == 1
    assert (cache_dir / "neo4j-mcp_1.0.0_Linux_amd64.tar.gz").read_bytes() == b"archive-bytes"


def test_no_cache_dir_always_downloads(session: FakeSession) -> None:
    session.routes[URL] = FakeResponse(content=b"archive-bytes")

    fetch_cached(URL, None, session=session)
    fetch_cached(URL, None, session=session)

    assert session.count("GET", URL) == 2


def test_cache_write_failure_still_returns_bytes(tmp_path: pathlib.Path, session: FakeSession) -> None:
    session.routes[URL] = FakeResponse(content=b"archive-bytes")
    cache_dir = tmp_path / "cache"
    # A directory where the temp file would go makes the write fail.
    (cache_dir / "neo4j-mcp_1.0.0_Linux_amd64.tar.gz.tmp").mkdir(parents=True)

    data = fetch_cached(URL, cache_dir, session=session)

    assert data == b"archive-bytes"
    assert (cache_dir / "neo4j-mcp_1.0.0_Linux_amd64.tar.gz").exists() is False


def test_download_failure_is_fetch_error(tmp_path: pathlib.Path, session: FakeSession) -> None:
    session.routes[URL] = FakeResponse(status_code=503, reason="Service Unavailable")

    with pytest.raises(FetchError) as excinfo:
        fetch_cached(URL, tmp_path, session=session)

    assert excinfo.value.url == URL
    assert "503" in str(excinfo.value)


def test_transport_failure_is_fetch_error(session: FakeSession) -> None:
    session.routes[URL] = requests.Timeout("slow")

    with pytest.raises(FetchError):
        fetch_cached(URL, None, session=session)


def test_cache_filename_uses_last_path_segment() -> None:
    assert cache_filename(URL) == "neo4j-mcp_1.0.0_Linux_amd64.tar.gz"
    assert cache_filename("https://example.com/a/b/tool.zip?token=x#frag") == "tool.zip"


def test_release_cache_dir_partitions_by_version(tmp_path: pathlib.Path) -> None:
    assert release_cache_dir(tmp_path, "1.0.0") == tmp_path / "1.0.0"
    assert release_cache_dir(None, "1.0.0") is None


def test_versions_do_not_share_cache_entries(tmp_path: pathlib.Path, session: FakeSession) -> None:
    old = "https://example.com/v1/tool_Linux_amd64.tar.gz"
    new = "https://example.com/v2/tool_Linux_amd64.tar.gz"
    session.routes[old] = FakeResponse(content=b"old")
    session.routes[new] = FakeResponse(content=b"new")

    assert fetch_cached(old, release_cache_dir(tmp_path, "1.0.0"), session=session) == b"old"
    assert fetch_cached(new, release_cache_dir(tmp_path, "2.0.0"), session=session) == b"new"


def test_url_without_file_name_bypasses_cache(tmp_path: pathlib.Path, session: FakeSession) -> None:
    url = "https://example.com/releases/download/v1.0.0/"
    session.routes[url] = FakeResponse(content=b"archive-bytes")
    cache_dir = tmp_path / "cache" / "1.0.0"

    assert fetch_cached(url, cache_dir, session=session) == b"archive-bytes"
    assert fetch_cached(url, cache_dir, session=session) == b"archive-bytes"

    assert cache_filename(url) == ""
    assert session.count("GET", url) == 2
    assert cache_dir.exists() is False
