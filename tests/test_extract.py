from __future__ import annotations

import pytest

from release_wheeler.extract import EntryNotFoundError, ExtractError, extract_binary
from tests.conftest import make_patched_zip, make_tar_gz, make_zip


def test_extract_from_tar_gz_matches_basename() -> None:
    archive = make_tar_gz(
        {
            "README.md": b"docs",
            "neo4j-mcp_1.0.0/neo4j-mcp": b"\x7fELF-binary",
        }
    )
    assert extract_binary(archive, "tar.gz", "neo4j-mcp") == b"\x7fELF-binary"


def test_extract_from_zip_matches_basename() -> None:
    archive = make_zip(
        {
            "LICENSE.txt": b"license",
            "dist/neo4j-mcp.exe": b"MZ-binary",
        }
    )
    assert extract_binary(archive, "zip", "neo4j-mcp.exe") == b"MZ-binary"


def test_missing_entry_raises_entry_not_found() -> None:
    archive = make_tar_gz({"other-tool": b"x"})

    with pytest.raises(EntryNotFoundError) as excinfo:
        extract_binary(archive, "tar.gz", "neo4j-mcp")

    assert excinfo.value.target == "neo4j-mcp"
    assert excinfo.value.container_kind == "tar.gz"
    assert "neo4j-mcp" in str(excinfo.value)


def test_missing_zip_entry_names_container_kind() -> None:
    archive = make_zip({"neo4j-mcp": b"not the exe"})

    with pytest.raises(EntryNotFoundError) as excinfo:
        extract_binary(archive, "zip", "neo4j-mcp.exe")

    assert excinfo.value.container_kind == "zip"


@pytest.mark.parametrize("kind", ["tar.gz", "zip"])
def test_corrupt_archive_is_a_general_extract_error(kind: str) -> None:
    with pytest.raises(ExtractError) as excinfo:
        extract_binary(b"definitely not an archive", kind, "neo4j-mcp")

    assert not isinstance(excinfo.value, EntryNotFoundError)


def test_unknown_container_kind() -> None:
    with pytest.raises(ExtractError):
        extract_binary(b"", "rar", "neo4j-mcp")


def test_unsupported_zip_compression_is_extract_error() -> None:
    # Method 9 is deflate64, which zipfile can list but not decompress.
    archive = make_patched_zip({"neo4j-mcp.exe": b"MZ-binary"}, method=9)

    with pytest.raises(ExtractError) as excinfo:
        extract_binary(archive, "zip", "neo4j-mcp.exe")

    assert isinstance(excinfo.value.__cause__, NotImplementedError)


def test_encrypted_zip_member_is_extract_error() -> None:
    archive = make_patched_zip({"neo4j-mcp.exe": b"MZ-binary"}, flag_bits=0x1)

    with pytest.raises(ExtractError) as excinfo:
        extract_binary(archive, "zip", "neo4j-mcp.exe")

    assert isinstance(excinfo.value.__cause__, RuntimeError)
