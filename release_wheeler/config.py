"""Run configuration.

Everything environment-dependent (cache location, credentials) is resolved
once, at process start, into a :class:`~BuildConfig` that is passed down the
call chain. Nothing below the CLI reads ``os.environ``.
"""

from dataclasses import dataclass, field
import os
import pathlib
import sys
from typing import Mapping

from release_wheeler.target import DEFAULT_BINARY_NAME


DEFAULT_UPLOAD_URL: str = "https://upload.pypi.org/legacy/"
TEST_UPLOAD_URL: str = "https://test.pypi.org/legacy/"
DEFAULT_UPLOAD_USER: str = "__token__"
DEFAULT_OUTPUT_DIR: pathlib.Path = pathlib.Path("dist")
DEFAULT_DESCRIPTION_PATH: pathlib.Path = pathlib.Path("DESCRIPTION.md")
CACHE_DIR_NAME: str = "neo4j-mcp-wheels"


class ConfigError(RuntimeError):
    """Raised when the run configuration is unusable."""


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Constants of the wrapped upstream project.

    :ivar github_repo: ``owner/name`` of the upstream repository.
    :ivar binary_name: Upstream executable name (no ``.exe``).
    :ivar package_name: Distribution name of the generated wheels.
    :ivar console_script: Command installed by the wheels.
    :ivar summary: Summary template; ``{binary_version}`` is substituted.
    :ivar source_url: ``Project-URL: Source`` value.
    :ivar license_url: Where the license text is fetched from by default.
    :ivar license_expression: SPDX license expression.
    :ivar requires_python: ``Requires-Python`` specifier.
    :ivar keywords: ``Keywords`` values.
    """

    github_repo: str
    binary_name: str
    package_name: str
    console_script: str
    summary: str
    source_url: str
    license_url: str
    license_expression: str
    requires_python: str = ">=3.9"
    keywords: tuple[str, ...] = ()


DEFAULT_PROJECT: ProjectConfig = ProjectConfig(
    github_repo="neo4j/mcp",
    binary_name=DEFAULT_BINARY_NAME,
    package_name="neo4j-mcp",
    console_script="neo4j-mcp",
    summary="Neo4j official MCP Server version {binary_version}, packaged as a Python wheel",
    source_url="https://github.com/neo4j/mcp",
    license_url="https://raw.githubusercontent.com/neo4j/mcp/main/LICENSE.txt",
    license_expression="GPL-3.0-or-later",
    requires_python=">=3.9",
    keywords=("mcp", "neo4j"),
)


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Everything one run needs.

    :ivar release_tag: Upstream release tag; empty means latest.
    :ivar package_version: Wheel version override; empty mirrors the binary version.
    :ivar output_dir: Directory wheels are written to.
    :ivar platforms: Requested platform keys, or ``None`` for all.
    :ivar upload: Whether built wheels are uploaded.
    :ivar upload_url: Upload endpoint.
    :ivar upload_user: Upload username.
    :ivar upload_password: Upload password or API token.
    :ivar license_path: Local license file; ``None`` fetches the upstream one.
    :ivar description_path: Markdown long description file.
    :ivar cache_dir: Download cache root, or ``None`` to disable caching.
    :ivar github_token: Optional GitHub token.
    :ivar timeout: HTTP timeout in seconds.
    :ivar project: Wrapped project constants.
    """

    release_tag: str = ""
    package_version: str = ""
    output_dir: pathlib.Path = DEFAULT_OUTPUT_DIR
    platforms: tuple[str, ...] | None = None
    upload: bool = False
    upload_url: str = DEFAULT_UPLOAD_URL
    upload_user: str = DEFAULT_UPLOAD_USER
    upload_password: str | None = field(default=None, repr=False)
    license_path: pathlib.Path | None = None
    description_path: pathlib.Path = DEFAULT_DESCRIPTION_PATH
    cache_dir: pathlib.Path | None = None
    github_token: str | None = field(default=None, repr=False)
    timeout: float = 120.0
    project: ProjectConfig = DEFAULT_PROJECT


def default_cache_dir(
    environ: Mapping[str, str] | None = None,
    system: str | None = None,
    home: pathlib.Path | None = None,
) -> pathlib.Path:
    """Return the per-user cache location for downloaded archives.

    - Linux: ``$XDG_CACHE_HOME`` (or ``~/.cache``)
    - macOS: ``~/Library/Caches``
    - Windows: ``%LOCALAPPDATA%``

    Falls back to ``./.cache`` when no location can be determined.

    :param environ: Environment (defaults to ``os.environ``).
    :param system: ``sys.platform`` value (defaults to the host).
    :param home: Home directory (defaults to ``Path.home()``).
    :returns: Cache root directory.
    """

    if environ is None:
        environ = os.environ
    if system is None:
        system = sys.platform

    base: pathlib.Path | None = None
    if system.startswith("win") is True:
        local: str = environ.get("LOCALAPPDATA", "")
        if len(local) > 0:
            base = pathlib.Path(local)
    else:
        if home is None:
            try:
                home = pathlib.Path.home()
            except RuntimeError:
                home = None
        if system == "darwin":
            if home is not None:
                base = home / "Library" / "Caches"
        else:
            xdg: str = environ.get("XDG_CACHE_HOME", "")
            if len(xdg) > 0 and pathlib.Path(xdg).is_absolute() is True:
                base = pathlib.Path(xdg)
            elif home is not None:
                base = home / ".cache"

    if base is None:
        return pathlib.Path(".cache")
    return base / CACHE_DIR_NAME


def resolve_upload_password(environ: Mapping[str, str] | None = None) -> str | None:
    """Read the upload credential from ``PYPI_TOKEN`` or ``PYPI_PASSWORD``.

    :param environ: Environment (defaults to ``os.environ``).
    :returns: The credential, or ``None`` if neither is set.
    """

    if environ is None:
        environ = os.environ
    for name in ("PYPI_TOKEN", "PYPI_PASSWORD"):
        value: str = environ.get(name, "")
        if len(value) > 0:
            return value
    return None


def resolve_github_token(environ: Mapping[str, str] | None = None) -> str | None:
    if environ is None:
        environ = os.environ
    value: str = environ.get("GITHUB_TOKEN", "")
    return value if len(value) > 0 else None


def validate_config(config: BuildConfig) -> None:
    """Reject configurations that cannot succeed, before any work starts.

    :param config: Run configuration.
    :raises ConfigError: If uploading without credentials or with an empty endpoint.
    """

    if config.upload is True:
        if not config.upload_password:
            raise ConfigError("upload requires PYPI_TOKEN (or PYPI_PASSWORD) to be set")
        if len(config.upload_url.strip()) == 0:
            raise ConfigError("upload requires a non-empty upload URL")
