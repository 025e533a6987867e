"""Build (and optionally upload) one wheel per requested platform.

Platforms are processed one at a time: resolve asset, fetch through the
cache, extract, build, upload. A failure on one platform is logged and
recorded in the report; the loop then moves on. Only configuration, input
and release-index failures abort the run, and those are checked before the
loop starts.
"""

from dataclasses import dataclass
import logging
import pathlib

import requests

from release_wheeler import __version__
from release_wheeler.builder import BuildError, DateTime, build_wheel, verify_wheel
from release_wheeler.cache import FetchError, fetch_cached, release_cache_dir
from release_wheeler.config import BuildConfig, ConfigError, ProjectConfig, validate_config
from release_wheeler.extract import EntryNotFoundError, ExtractError, extract_binary
from release_wheeler.inputs import resolve_description, resolve_license
from release_wheeler.release import (
    AssetNotFoundError,
    ReleaseInfo,
    ResolvedAsset,
    fetch_release,
    resolve_asset,
)
from release_wheeler.target import PlatformSelection, PlatformSpec, platform_registry, select_platforms
from release_wheeler.upload import UploadError, UploadResult, upload_wheel


STATUS_BUILT: str = "built"
STATUS_SKIPPED: str = "skipped"
STATUS_FAILED: str = "failed"
STATUS_UPLOAD_FAILED: str = "upload_failed"


@dataclass(frozen=True, slots=True)
class PlatformOutcome:
    """What happened to one requested platform.

    :ivar platform_key: Upstream platform key.
    :ivar status: One of the ``STATUS_*`` constants.
    :ivar wheel_path: Built wheel, if any.
    :ivar asset_name: Release asset used or last tried, if any.
    :ivar upload: Upload result, if uploaded.
    :ivar error: Error message for skipped/failed platforms.
    """

    platform_key: str
    status: str
    wheel_path: pathlib.Path | None = None
    asset_name: str | None = None
    upload: UploadResult | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineReport:
    """Result of a whole run.

    :ivar release_tag: Upstream release tag used.
    :ivar binary_version: Upstream binary version.
    :ivar package_version: Version given to the wheels.
    :ivar outcomes: One outcome per requested platform.
    """

    release_tag: str
    binary_version: str
    package_version: str
    outcomes: tuple[PlatformOutcome, ...]

    @property
    def built(self) -> list[pathlib.Path]:
        return [o.wheel_path for o in self.outcomes if o.wheel_path is not None]


def run_pipeline(
    config: BuildConfig,
    *,
    session: requests.Session | None = None,
    logger: logging.Logger | None = None,
    modified: DateTime | None = None,
) -> PipelineReport:
    """Build every requested platform for one upstream release.

    :param config: Run configuration.
    :param session: Optional HTTP session (one is created and closed if omitted).
    :param logger: Optional logger for progress output.
    :param modified: Wheel member timestamp, or ``None`` for now.
    :returns: Per-platform outcomes.
    :raises ConfigError: If the configuration is unusable.
    :raises InputError: If the license or description cannot be loaded.
    :raises RemoteIndexError: If the release metadata cannot be fetched.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    validate_config(config)

    owns_session: bool = session is None
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = f"release-wheeler/{__version__}"

    try:
        return _run(config, session=session, logger=logger, modified=modified)
    finally:
        if owns_session is True:
            session.close()


def _run(
    config: BuildConfig,
    *,
    session: requests.Session,
    logger: logging.Logger,
    modified: DateTime | None,
) -> PipelineReport:
    project: ProjectConfig = config.project
    license_data: bytes = resolve_license(
        config.license_path,
        project=project,
        session=session,
        timeout=config.timeout,
        logger=logger,
    )
    description_data: bytes = resolve_description(config.description_path, logger=logger)

    registry: dict[str, PlatformSpec] = platform_registry(project.binary_name)
    selection: PlatformSelection = select_platforms(config.platforms, registry)
    outcomes: list[PlatformOutcome] = []
    for key in selection.unknown:
        logger.warning(f"release-wheeler: [SKIP] {key}: unknown platform")
        outcomes.append(PlatformOutcome(platform_key=key, status=STATUS_SKIPPED, error="unknown platform"))

    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"cannot create output dir {config.output_dir}: {e}") from e

    release: ReleaseInfo = fetch_release(
        project.github_repo,
        config.release_tag,
        token=config.github_token,
        session=session,
        timeout=config.timeout,
        logger=logger,
    )
    binary_version: str = release.binary_version
    # The wheel version can diverge from the binary, e.g. a "1.4.2.1" repack.
    package_version: str = config.package_version or binary_version
    logger.info(f"release-wheeler: binary version {binary_version}")
    logger.info(f"release-wheeler: package version {package_version}")

    cache_dir: pathlib.Path | None = release_cache_dir(config.cache_dir, binary_version)
    if cache_dir is not None:
        logger.info(f"release-wheeler: cache_dir={cache_dir}")

    for platform in selection.selected:
        outcomes.append(
            _build_platform(
                platform,
                config=config,
                release=release,
                binary_version=binary_version,
                package_version=package_version,
                cache_dir=cache_dir,
                license_data=license_data,
                description_data=description_data,
                session=session,
                logger=logger,
                modified=modified,
            )
        )

    report: PipelineReport = PipelineReport(
        release_tag=release.tag,
        binary_version=binary_version,
        package_version=package_version,
        outcomes=tuple(outcomes),
    )
    logger.info(f"release-wheeler: built {len(report.built)} wheel(s) in {config.output_dir}")
    for path in report.built:
        logger.info(f"release-wheeler:   {path.name}")
    return report


def _build_platform(
    platform: PlatformSpec,
    *,
    config: BuildConfig,
    release: ReleaseInfo,
    binary_version: str,
    package_version: str,
    cache_dir: pathlib.Path | None,
    license_data: bytes,
    description_data: bytes,
    session: requests.Session,
    logger: logging.Logger,
    modified: DateTime | None,
) -> PlatformOutcome:
    """Run one platform through resolve, fetch, extract, build and upload.

    :returns: The platform's outcome; per-platform errors never propagate.
    """

    key: str = platform.platform_key
    project: ProjectConfig = config.project

    try:
        asset: ResolvedAsset = resolve_asset(
            release,
            binary_name=project.binary_name,
            version=binary_version,
            platform=platform,
        )
    except AssetNotFoundError as e:
        logger.warning(f"release-wheeler: [SKIP] {key}: {e}")
        return PlatformOutcome(platform_key=key, status=STATUS_SKIPPED, asset_name=e.tried[-1], error=str(e))

    logger.info(f"release-wheeler: [{key}] {asset.name} -> {platform.wheel_tag}")

    try:
        archive_data: bytes = fetch_cached(
            asset.url,
            cache_dir,
            session=session,
            timeout=config.timeout,
            logger=logger,
        )
        binary_data: bytes = extract_binary(archive_data, platform.container_kind, platform.binary_filename)
        wheel_path: pathlib.Path = build_wheel(
            binary_data=binary_data,
            binary_filename=platform.binary_filename,
            binary_version=binary_version,
            package_name=project.package_name,
            package_version=package_version,
            wheel_tag=platform.wheel_tag,
            output_dir=config.output_dir,
            license_data=license_data,
            description_data=description_data,
            project=project,
            modified=modified,
            logger=logger,
        )
        problems: list[str] = verify_wheel(wheel_path)
        if len(problems) > 0:
            raise BuildError(f"{wheel_path.name} failed self-check: {'; '.join(problems)}")
    except FetchError as e:
        logger.error(f"release-wheeler: [{key}] error downloading {asset.url}: {e}")
        return PlatformOutcome(platform_key=key, status=STATUS_FAILED, asset_name=asset.name, error=str(e))
    except EntryNotFoundError as e:
        logger.error(f"release-wheeler: [{key}] {asset.name} does not contain {e.target}")
        return PlatformOutcome(platform_key=key, status=STATUS_FAILED, asset_name=asset.name, error=str(e))
    except ExtractError as e:
        logger.error(f"release-wheeler: [{key}] error extracting {asset.name}: {e}")
        return PlatformOutcome(platform_key=key, status=STATUS_FAILED, asset_name=asset.name, error=str(e))
    except BuildError as e:
        logger.error(f"release-wheeler: [{key}] error building wheel: {e}")
        return PlatformOutcome(platform_key=key, status=STATUS_FAILED, asset_name=asset.name, error=str(e))

    if config.upload is False:
        return PlatformOutcome(platform_key=key, status=STATUS_BUILT, wheel_path=wheel_path, asset_name=asset.name)

    try:
        result: UploadResult = upload_wheel(
            wheel_path,
            name=project.package_name,
            version=package_version,
            endpoint=config.upload_url,
            username=config.upload_user,
            password=config.upload_password or "",
            session=session,
            logger=logger,
        )
    except UploadError as e:
        logger.error(f"release-wheeler: [{key}] error uploading {wheel_path.name}: {e}")
        return PlatformOutcome(
            platform_key=key,
            status=STATUS_UPLOAD_FAILED,
            wheel_path=wheel_path,
            asset_name=asset.name,
            error=str(e),
        )

    return PlatformOutcome(
        platform_key=key,
        status=STATUS_BUILT,
        wheel_path=wheel_path,
        asset_name=asset.name,
        upload=result,
    )
