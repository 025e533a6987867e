"""Pull a single binary out of an upstream release archive."""

import io
import posixpath
import tarfile
import zipfile
import zlib

from release_wheeler.target import CONTAINER_TAR_GZ, CONTAINER_ZIP


class ExtractError(RuntimeError):
    """Raised when an archive cannot be read."""


class EntryNotFoundError(ExtractError):
    """Raised when an archive was read but holds no matching file."""

    def __init__(self, target: str, container_kind: str) -> None:
        super().__init__(f"{target!r} not found in {container_kind} archive")
        self.target: str = target
        self.container_kind: str = container_kind


def extract_binary(container_bytes: bytes, container_kind: str, target_filename: str) -> bytes:
    """Extract the first file whose basename equals ``target_filename``.

    :param container_bytes: Raw archive bytes.
    :param container_kind: ``tar.gz`` or ``zip``.
    :param target_filename: Basename to look for.
    :returns: The file's bytes.
    :raises EntryNotFoundError: If no entry matches.
    :raises ExtractError: If the archive is unreadable or of an unknown kind.
    """

    if container_kind == CONTAINER_TAR_GZ:
        return _extract_from_tar_gz(container_bytes, target_filename)
    if container_kind == CONTAINER_ZIP:
        return _extract_from_zip(container_bytes, target_filename)
    raise ExtractError(f"Unknown archive type: {container_kind!r}")


def _extract_from_tar_gz(data: bytes, target: str) -> bytes:
    """Scan a gzip-compressed tar stream sequentially.

    :param data: ``.tar.gz`` bytes.
    :param target: Basename to look for.
    :returns: Member bytes.
    """

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r|gz") as tf:
            for member in tf:
                if member.isfile() is False:
                    continue
                if posixpath.basename(member.name) != target:
                    continue
                f = tf.extractfile(member)
                if f is None:
                    continue
                return f.read()
    except (tarfile.TarError, zlib.error, OSError, EOFError) as e:
        raise ExtractError(f"Bad tar.gz archive: {e}") from e

    raise EntryNotFoundError(target, CONTAINER_TAR_GZ)


def _extract_from_zip(data: bytes, target: str) -> bytes:
    """Scan a zip archive's central directory.

    :param data: ``.zip`` bytes.
    :param target: Basename to look for.
    :returns: Member bytes.
    """

    # Unsupported compression methods raise NotImplementedError; encrypted
    # members and missing bz2/lzma support raise RuntimeError.
    try:
        with zipfile.ZipFile(io.BytesIO(data), mode="r") as zf:
            for info in zf.infolist():
                if info.is_dir() is True:
                    continue
                if posixpath.basename(info.filename) != target:
                    continue
                return zf.read(info)
    except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, RuntimeError) as e:
        raise ExtractError(f"Bad zip archive: {e}") from e

    raise EntryNotFoundError(target, CONTAINER_ZIP)
