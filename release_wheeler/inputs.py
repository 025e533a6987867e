"""License and long-description inputs shared by every wheel of a run."""

import logging
import pathlib

import requests

from release_wheeler.config import DEFAULT_PROJECT, ProjectConfig


class InputError(RuntimeError):
    """Raised when the license or description cannot be loaded."""


def resolve_license(
    license_path: pathlib.Path | None,
    *,
    project: ProjectConfig = DEFAULT_PROJECT,
    session: requests.Session | None = None,
    timeout: float = 30.0,
    logger: logging.Logger | None = None,
) -> bytes:
    """Load the license text bundled into every wheel.

    :param license_path: Local license file; ``None`` fetches ``project.license_url``.
    :param project: Project constants.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :param logger: Optional logger for progress output.
    :returns: License bytes.
    :raises InputError: If the file cannot be read or the download fails.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    if license_path is not None:
        try:
            data: bytes = license_path.read_bytes()
        except OSError as e:
            raise InputError(f"reading license file {license_path}: {e}") from e
        logger.info(f"release-wheeler: using license from {license_path}")
        return data

    url: str = project.license_url
    logger.info(f"release-wheeler: fetching license from {url}")
    client = session or requests
    try:
        response = client.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise InputError(f"fetching license: {e}") from e
    if response.status_code != 200:
        raise InputError(f"fetching license: HTTP {response.status_code} {response.reason}")
    return response.content


def resolve_description(
    description_path: pathlib.Path,
    *,
    logger: logging.Logger | None = None,
) -> bytes:
    """Load the Markdown long description.

    :param description_path: Markdown file.
    :param logger: Optional logger for progress output.
    :returns: Description bytes, unmodified.
    :raises InputError: If the file cannot be read.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    try:
        data: bytes = description_path.read_bytes()
    except OSError as e:
        raise InputError(f"reading description file {description_path}: {e}") from e
    logger.info(f"release-wheeler: using description from {description_path}")
    return data
