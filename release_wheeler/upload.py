"""Upload wheels to a package index via the legacy upload API.

Re-uploading a file the index already has is reported as success, so
repeated or scheduled runs are safe. The index signals that case with an
HTTP 400 whose body mentions the existing file; the match strings below are
the ones PyPI and TestPyPI send.
"""

from dataclasses import dataclass
import logging
import pathlib

import requests

from release_wheeler.hashing import UploadDigests, upload_digests


DEFAULT_TIMEOUT: float = 300.0

UPLOAD_UPLOADED: str = "uploaded"
UPLOAD_EXISTS: str = "exists"

_ALREADY_EXISTS_MARKERS: tuple[str, ...] = ("already exists", "File already")


class UploadError(RuntimeError):
    """Raised when an upload fails for any reason other than a duplicate."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
        self.body: str = body


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Outcome of a successful upload.

    :ivar filename: Uploaded wheel filename.
    :ivar status: :data:`UPLOAD_UPLOADED` or :data:`UPLOAD_EXISTS`.
    :ivar status_code: HTTP status returned by the index.
    """

    filename: str
    status: str
    status_code: int


def upload_fields(*, name: str, version: str, digests: UploadDigests) -> list[tuple[str, str]]:
    """Build the non-file form fields of an upload request.

    :param name: Distribution name.
    :param version: Distribution version.
    :param digests: Digests of the wheel bytes.
    :returns: Ordered ``(field, value)`` pairs.
    """

    return [
        (":action", "file_upload"),
        ("protocol_version", "1"),
        ("filetype", "bdist_wheel"),
        ("pyversion", "py3"),
        ("metadata_version", "2.4"),
        ("name", name),
        ("version", version),
        ("md5_digest", digests.md5_hex),
        ("sha2_digest", digests.sha256_hex),
    ]


def _is_already_exists(body: str) -> bool:
    return any(marker in body for marker in _ALREADY_EXISTS_MARKERS)


def upload_wheel(
    wheel_path: pathlib.Path,
    *,
    name: str,
    version: str,
    endpoint: str,
    username: str,
    password: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    logger: logging.Logger | None = None,
) -> UploadResult:
    """Upload one wheel.

    :param wheel_path: Wheel file to upload.
    :param name: Distribution name.
    :param version: Distribution version.
    :param endpoint: Upload endpoint URL.
    :param username: Basic-auth username (``__token__`` for API tokens).
    :param password: Basic-auth password or API token.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :param logger: Optional logger for progress output.
    :returns: Upload result; a duplicate file is a success with status ``exists``.
    :raises UploadError: On read/transport failure or any other non-2xx status.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    try:
        wheel_data: bytes = wheel_path.read_bytes()
    except OSError as e:
        raise UploadError(f"read wheel {wheel_path}: {e}") from e

    filename: str = wheel_path.name
    fields: list[tuple[str, str]] = upload_fields(
        name=name,
        version=version,
        digests=upload_digests(wheel_data),
    )
    files: dict[str, tuple[str, bytes, str]] = {
        "content": (filename, wheel_data, "application/zip"),
    }

    logger.info(f"release-wheeler: uploading {filename} to {endpoint}")
    client = session or requests
    try:
        response = client.post(
            endpoint,
            data=fields,
            files=files,
            auth=(username, password),
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise UploadError(f"upload {filename}: {e}") from e

    body: str = response.text
    if 200 <= response.status_code < 300:
        logger.info(f"release-wheeler: uploaded {filename}")
        return UploadResult(filename=filename, status=UPLOAD_UPLOADED, status_code=response.status_code)

    if response.status_code == 400 and _is_already_exists(body) is True:
        logger.warning(f"release-wheeler: {filename} already exists on the index, skipping")
        return UploadResult(filename=filename, status=UPLOAD_EXISTS, status_code=response.status_code)

    raise UploadError(
        f"upload {filename}: HTTP {response.status_code}: {body}",
        status_code=response.status_code,
        body=body,
    )
