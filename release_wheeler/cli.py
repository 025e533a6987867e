"""Command line interface for release-wheeler."""

import argparse
import logging
import os
import pathlib
import sys

from release_wheeler.config import (
    DEFAULT_DESCRIPTION_PATH,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_UPLOAD_URL,
    DEFAULT_UPLOAD_USER,
    TEST_UPLOAD_URL,
    BuildConfig,
    ConfigError,
    default_cache_dir,
    resolve_github_token,
    resolve_upload_password,
)
from release_wheeler.inputs import InputError
from release_wheeler.pipeline import PipelineReport, run_pipeline
from release_wheeler.release import RemoteIndexError
from release_wheeler.target import PLATFORMS, parse_platform_list


# Net verbosity (-v count minus -q count), clamped to the table's range.
_LOG_LEVELS: dict[int, int] = {
    -2: logging.ERROR,
    -1: logging.WARNING,
    0: logging.INFO,
    1: logging.DEBUG,
}


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Attach a single stderr handler to the ``release_wheeler`` logger.

    ``-v`` and ``-q`` offset each other, so ``-v -q`` keeps the default level.

    :param verbose: Number of ``-v`` flags.
    :param quiet: Number of ``-q`` flags.
    :returns: Configured logger.
    """

    net: int = max(min(verbose - quiet, max(_LOG_LEVELS)), min(_LOG_LEVELS))
    level: int = _LOG_LEVELS[net]

    logger: logging.Logger = logging.getLogger("release_wheeler")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    stream_handler: logging.StreamHandler = logging.StreamHandler(stream=sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(stream_handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def _build_config(ns: argparse.Namespace, environ: dict[str, str]) -> BuildConfig:
    """Turn parsed arguments plus the environment into a run configuration.

    :param ns: Parsed ``build`` arguments.
    :param environ: Process environment.
    :returns: Run configuration.
    """

    cache_dir: pathlib.Path | None
    if ns.no_cache is True:
        cache_dir = None
    elif ns.cache is not None:
        cache_dir = pathlib.Path(ns.cache) if len(ns.cache.strip()) > 0 else None
    else:
        cache_dir = default_cache_dir(environ)

    platforms: list[str] | None = parse_platform_list(ns.platforms)
    upload_url: str = TEST_UPLOAD_URL if ns.test_index is True else ns.upload_url

    return BuildConfig(
        release_tag=ns.version,
        package_version=ns.py_version,
        output_dir=ns.output,
        platforms=tuple(platforms) if platforms is not None else None,
        upload=ns.upload,
        upload_url=upload_url,
        upload_user=ns.upload_user,
        upload_password=resolve_upload_password(environ) if ns.upload is True else None,
        license_path=ns.license,
        description_path=ns.description,
        cache_dir=cache_dir,
        github_token=resolve_github_token(environ),
    )


def _add_logging_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )


def main(argv: list[str] | None = None) -> int:
    """Run the release-wheeler CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="release-wheeler",
        description="Repackage pre-built release binaries as platform-specific Python wheels.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Build wheels for the requested platforms (and optionally upload them).",
    )
    p_build.add_argument(
        "--version",
        type=str,
        default="",
        help="Upstream release tag to download, e.g. v1.4.2 (default: latest).",
    )
    p_build.add_argument(
        "--py-version",
        type=str,
        default="",
        help="Python package version, e.g. 1.4.2.1 (default: mirrors the release).",
    )
    p_build.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Output directory for .whl files.",
    )
    p_build.add_argument(
        "--platforms",
        type=str,
        default=None,
        help=f"Comma-separated platform keys (default: all of {', '.join(PLATFORMS)}).",
    )
    p_build.add_argument(
        "--upload",
        action="store_true",
        help="Upload built wheels. Requires PYPI_TOKEN (or PYPI_PASSWORD).",
    )
    p_build.add_argument(
        "--upload-url",
        type=str,
        default=DEFAULT_UPLOAD_URL,
        help="Upload endpoint.",
    )
    p_build.add_argument(
        "--test-index",
        action="store_true",
        help=f"Upload to the staging index ({TEST_UPLOAD_URL}).",
    )
    p_build.add_argument(
        "--upload-user",
        type=str,
        default=DEFAULT_UPLOAD_USER,
        help="Upload username (use __token__ for API tokens).",
    )
    p_build.add_argument(
        "--license",
        type=pathlib.Path,
        default=None,
        help="Path to a license file (default: fetched from the upstream repository).",
    )
    p_build.add_argument(
        "--description",
        type=pathlib.Path,
        default=DEFAULT_DESCRIPTION_PATH,
        help="Path to a Markdown description file.",
    )
    p_build.add_argument(
        "--cache",
        type=str,
        default=None,
        help="Directory to cache downloaded archives (default: the per-user cache dir). Set to \"\" to disable.",
    )
    p_build.add_argument(
        "--no-cache",
        action="store_true",
        help="Always download; do not read or write the cache.",
    )
    _add_logging_flags(p_build)

    p_platforms = subparsers.add_parser(
        "platforms",
        help="List supported platform keys and their wheel tags.",
    )
    _add_logging_flags(p_platforms)

    ns = parser.parse_args(argv)
    if ns.command == "platforms":
        for key, spec in PLATFORMS.items():
            print(f"{key:<16} {spec.wheel_tag:<24} {spec.container_kind}")
        return 0

    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        config: BuildConfig = _build_config(ns, dict(os.environ))
        try:
            report: PipelineReport = run_pipeline(config, logger=logger)
        except (ConfigError, InputError, RemoteIndexError) as e:
            logger.error(f"release-wheeler: error: {e}")
            return 1
        if logger.isEnabledFor(logging.DEBUG) is True:
            for outcome in report.outcomes:
                logger.debug(f"release-wheeler: {outcome.platform_key}: {outcome.status}")
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
