"""GitHub release lookup.

Resolves an upstream release (by tag, or the most recent one) and maps each
target platform to the download URL of its release asset.
"""

from dataclasses import dataclass, field
import logging
from typing import Any

import requests

from release_wheeler.target import PlatformSpec


GITHUB_API_URL: str = "https://api.github.com"
DEFAULT_TIMEOUT: float = 30.0


class RemoteIndexError(RuntimeError):
    """Raised when release metadata cannot be obtained."""


class AssetNotFoundError(RuntimeError):
    """Raised when a release has no asset for a platform."""

    def __init__(self, platform_key: str, tried: tuple[str, ...]) -> None:
        super().__init__(f"no release asset for {platform_key} (tried {', '.join(tried)})")
        self.platform_key: str = platform_key
        self.tried: tuple[str, ...] = tried


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """A downloadable file attached to a release.

    :ivar name: Asset filename.
    :ivar url: Browser download URL.
    """

    name: str
    url: str


@dataclass(frozen=True, slots=True)
class ReleaseInfo:
    """A tagged upstream release.

    :ivar tag: Release tag, e.g. ``v1.4.2``.
    :ivar assets: Assets in the order the index returned them.
    """

    tag: str
    assets: tuple[ReleaseAsset, ...]
    _by_name: dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {a.name: a.url for a in self.assets})

    @property
    def binary_version(self) -> str:
        return self.tag.removeprefix("v")

    def asset_url(self, name: str) -> str | None:
        return self._by_name.get(name)


@dataclass(frozen=True, slots=True)
class ResolvedAsset:
    """The asset chosen for one platform.

    :ivar name: Asset filename that matched.
    :ivar url: Download URL.
    """

    name: str
    url: str


def release_from_payload(payload: Any) -> ReleaseInfo:
    """Build a :class:`~ReleaseInfo` from a GitHub release JSON object.

    :param payload: Decoded JSON body.
    :returns: Release info.
    :raises RemoteIndexError: If required fields are missing.
    """

    if isinstance(payload, dict) is False:
        raise RemoteIndexError("release response is not a JSON object")
    tag: Any = payload.get("tag_name")
    if isinstance(tag, str) is False or len(tag) == 0:
        raise RemoteIndexError("release response has no tag_name")

    assets: list[ReleaseAsset] = []
    for raw in payload.get("assets") or []:
        if isinstance(raw, dict) is False:
            continue
        name: Any = raw.get("name")
        url: Any = raw.get("browser_download_url")
        if isinstance(name, str) is False or isinstance(url, str) is False:
            continue
        assets.append(ReleaseAsset(name=name, url=url))
    return ReleaseInfo(tag=tag, assets=tuple(assets))


def fetch_release(
    repo: str,
    tag: str = "",
    *,
    token: str | None = None,
    session: requests.Session | None = None,
    api_url: str = GITHUB_API_URL,
    timeout: float = DEFAULT_TIMEOUT,
    logger: logging.Logger | None = None,
) -> ReleaseInfo:
    """Fetch release metadata from the GitHub REST API.

    :param repo: ``owner/name`` of the upstream repository.
    :param tag: Exact release tag; empty selects the latest release.
    :param token: Optional GitHub token (avoids anonymous rate limits).
    :param session: Optional HTTP session.
    :param api_url: API base URL.
    :param timeout: Request timeout in seconds.
    :param logger: Optional logger for progress output.
    :returns: Release info.
    :raises RemoteIndexError: On transport failure, non-200 status or a bad body.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    if len(tag) == 0:
        logger.info("release-wheeler: fetching latest release")
        url: str = f"{api_url.rstrip('/')}/repos/{repo}/releases/latest"
    else:
        logger.info(f"release-wheeler: fetching release {tag}")
        url = f"{api_url.rstrip('/')}/repos/{repo}/releases/tags/{tag}"

    headers: dict[str, str] = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    client = session or requests
    try:
        response = client.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise RemoteIndexError(f"GitHub API {url}: {e}") from e

    if response.status_code != 200:
        raise RemoteIndexError(f"GitHub API {url}: HTTP {response.status_code} {response.reason}")

    try:
        payload: Any = response.json()
    except ValueError as e:
        raise RemoteIndexError(f"GitHub API {url}: invalid JSON body") from e

    release: ReleaseInfo = release_from_payload(payload)
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"release-wheeler: release {release.tag} has {len(release.assets)} assets")
    return release


def asset_name_candidates(*, binary_name: str, version: str, platform: PlatformSpec) -> tuple[str, ...]:
    """List the asset filenames a platform may be published under, in order.

    :param binary_name: Upstream binary name.
    :param version: Binary version without the ``v`` prefix.
    :param platform: Target platform.
    :returns: Versioned name first, then the unversioned fallback.
    """

    ext: str = platform.container_kind
    return (
        f"{binary_name}_{version}_{platform.platform_key}.{ext}",
        f"{binary_name}_{platform.platform_key}.{ext}",
    )


def resolve_asset(
    release: ReleaseInfo,
    *,
    binary_name: str,
    version: str,
    platform: PlatformSpec,
) -> ResolvedAsset:
    """Find the release asset for a platform.

    :param release: Release info.
    :param binary_name: Upstream binary name.
    :param version: Binary version without the ``v`` prefix.
    :param platform: Target platform.
    :returns: The matching asset.
    :raises AssetNotFoundError: If neither naming template matches.
    """

    candidates: tuple[str, ...] = asset_name_candidates(
        binary_name=binary_name,
        version=version,
        platform=platform,
    )
    for name in candidates:
        url: str | None = release.asset_url(name)
        if url is not None:
            return ResolvedAsset(name=name, url=url)
    raise AssetNotFoundError(platform.platform_key, candidates)
