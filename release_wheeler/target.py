"""Platform registry.

This module is small and closed:

- It maps the upstream release's platform keys (e.g. ``Linux_amd64``) to the
  wheel platform tag, the archive type the upstream publishes for that
  platform, and the binary filename inside that archive.
- It picks the launcher variant a wheel for a given platform tag needs.

Unknown platform keys are never an error here; callers report them as skips.
"""

from dataclasses import dataclass
from typing import Iterable


CONTAINER_TAR_GZ: str = "tar.gz"
CONTAINER_ZIP: str = "zip"

LAUNCHER_EXEC: str = "exec"
LAUNCHER_SPAWN: str = "spawn"

DEFAULT_BINARY_NAME: str = "neo4j-mcp"


@dataclass(frozen=True, slots=True)
class PlatformSpec:
    """One supported build target.

    :ivar platform_key: Upstream platform key as used in release asset names.
    :ivar wheel_tag: Wheel platform tag (PEP 425-style).
    :ivar container_kind: Upstream archive type (``tar.gz`` or ``zip``).
    :ivar binary_filename: Name of the executable inside the upstream archive.
    """

    platform_key: str
    wheel_tag: str
    container_kind: str
    binary_filename: str


@dataclass(frozen=True, slots=True)
class PlatformSelection:
    """Result of resolving a requested platform list against the registry.

    :ivar selected: Registered platforms to build, in registry order.
    :ivar unknown: Requested keys with no registry entry, in request order.
    """

    selected: tuple[PlatformSpec, ...]
    unknown: tuple[str, ...]


# (platform key, wheel tag, container kind, binary suffix)
_PLATFORM_ROWS: tuple[tuple[str, str, str, str], ...] = (
    ("Darwin_amd64", "macosx_10_9_x86_64", CONTAINER_TAR_GZ, ""),
    ("Darwin_arm64", "macosx_11_0_arm64", CONTAINER_TAR_GZ, ""),
    ("Linux_amd64", "manylinux_2_17_x86_64", CONTAINER_TAR_GZ, ""),
    ("Linux_arm64", "manylinux_2_17_aarch64", CONTAINER_TAR_GZ, ""),
    ("Windows_amd64", "win_amd64", CONTAINER_ZIP, ".exe"),
    ("Windows_arm64", "win_arm64", CONTAINER_ZIP, ".exe"),
)


def platform_registry(binary_name: str) -> dict[str, PlatformSpec]:
    """Build the platform registry for an upstream binary name.

    :param binary_name: Base name of the upstream executable (no suffix).
    :returns: Ordered mapping of platform key to :class:`~PlatformSpec`.
    """

    registry: dict[str, PlatformSpec] = {}
    for key, wheel_tag, container_kind, suffix in _PLATFORM_ROWS:
        registry[key] = PlatformSpec(
            platform_key=key,
            wheel_tag=wheel_tag,
            container_kind=container_kind,
            binary_filename=f"{binary_name}{suffix}",
        )
    return registry


PLATFORMS: dict[str, PlatformSpec] = platform_registry(DEFAULT_BINARY_NAME)


def lookup_platform(
    platform_key: str,
    registry: dict[str, PlatformSpec] | None = None,
) -> PlatformSpec | None:
    """Look up a platform by key.

    :param platform_key: Upstream platform key.
    :param registry: Optional registry (defaults to :data:`PLATFORMS`).
    :returns: The platform, or ``None`` if the key is not registered.
    """

    if registry is None:
        registry = PLATFORMS
    return registry.get(platform_key)


def select_platforms(
    requested: Iterable[str] | None,
    registry: dict[str, PlatformSpec] | None = None,
) -> PlatformSelection:
    """Resolve a requested set of platform keys.

    ``None`` or an empty request selects every registered platform.

    :param requested: Requested platform keys (may contain blanks/duplicates).
    :param registry: Optional registry (defaults to :data:`PLATFORMS`).
    :returns: Selected platforms (registry order) and unknown keys.
    """

    if registry is None:
        registry = PLATFORMS

    wanted: list[str] = []
    if requested is not None:
        for raw in requested:
            key: str = raw.strip()
            if len(key) == 0 or key in wanted:
                continue
            wanted.append(key)

    if len(wanted) == 0:
        return PlatformSelection(selected=tuple(registry.values()), unknown=())

    selected: tuple[PlatformSpec, ...] = tuple(p for k, p in registry.items() if k in wanted)
    unknown: tuple[str, ...] = tuple(k for k in wanted if k not in registry)
    return PlatformSelection(selected=selected, unknown=unknown)


def parse_platform_list(value: str | None) -> list[str] | None:
    """Split a comma-separated platform list.

    :param value: Raw value such as ``"Linux_amd64, Windows_amd64"``.
    :returns: Keys, or ``None`` when the value is empty.
    """

    if value is None or len(value.strip()) == 0:
        return None
    return [part.strip() for part in value.split(",") if len(part.strip()) > 0]


def launcher_for_wheel_tag(wheel_tag: str) -> str:
    """Pick the launcher variant for a wheel platform tag.

    Windows cannot reliably replace the process image, so its shim spawns the
    binary as a child and forwards the exit code.

    :param wheel_tag: Wheel platform tag.
    :returns: :data:`LAUNCHER_SPAWN` for Windows tags, else :data:`LAUNCHER_EXEC`.
    """

    if wheel_tag.startswith("win") is True:
        return LAUNCHER_SPAWN
    return LAUNCHER_EXEC
