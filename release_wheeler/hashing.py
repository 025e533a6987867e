"""Digest helpers.

Two pure functions:

- :func:`record_hash` produces the ``RECORD`` digest form used inside wheels.
- :func:`upload_digests` produces the hex digests the legacy upload API wants.
"""

from dataclasses import dataclass
import base64
import hashlib


@dataclass(frozen=True, slots=True)
class UploadDigests:
    """Transport-level digests of a finished wheel file.

    :ivar md5_hex: MD5 hex digest (required by the legacy upload API).
    :ivar sha256_hex: SHA-256 hex digest.
    """

    md5_hex: str
    sha256_hex: str


def record_hash(data: bytes) -> str:
    """Hash bytes the way a wheel ``RECORD`` line expects.

    :param data: Entry bytes.
    :returns: ``sha256=<urlsafe base64 digest without padding>``.
    """

    digest: bytes = hashlib.sha256(data).digest()
    encoded: str = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return f"sha256={encoded}"


def upload_digests(data: bytes) -> UploadDigests:
    """Compute the digest fields sent alongside an upload.

    :param data: Wheel file bytes.
    :returns: MD5 and SHA-256 hex digests.
    """

    # MD5 is a wire field of the upload API, not an integrity check.
    md5_hex: str = hashlib.md5(data, usedforsecurity=False).hexdigest()
    sha256_hex: str = hashlib.sha256(data).hexdigest()
    return UploadDigests(md5_hex=md5_hex, sha256_hex=sha256_hex)
