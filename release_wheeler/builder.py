"""Wheel builder.

This module implements a pragmatic "binary wheel" writer:

- It wraps a pre-built native executable in a tiny Python package whose only
  module is a launcher shim that runs the executable.
- It generates the ``.dist-info`` files (``METADATA``, ``WHEEL``,
  ``entry_points.txt``, license, ``RECORD``) without invoking any build
  backend.
- It writes the zip by hand-picking every header field, because installers
  and upload endpoints are stricter than the zip format itself: every member
  is stored uncompressed, sizes are always known up front (no data
  descriptors, no zip64 extras) and ``RECORD`` is always the last member.
"""

from dataclasses import dataclass
import csv
import io
import logging
import pathlib
import stat
import textwrap
import time
import zipfile

from release_wheeler import __version__
from release_wheeler.config import DEFAULT_PROJECT, ProjectConfig
from release_wheeler.hashing import record_hash
from release_wheeler.target import LAUNCHER_EXEC, LAUNCHER_SPAWN, launcher_for_wheel_tag


class BuildError(RuntimeError):
    """Raised when a wheel cannot be assembled or written."""


DateTime = tuple[int, int, int, int, int, int]

_MASK_DATA_DESCRIPTOR: int = 0x08
_ZIP_UNIX_SYSTEM: int = 3
_EXECUTABLE_MODE: int = stat.S_IFREG | 0o755
_REGULAR_MODE: int = stat.S_IFREG | 0o644


@dataclass(frozen=True, slots=True)
class WheelEntry:
    """One member of a wheel.

    :ivar path: Archive path (POSIX separators).
    :ivar data: Member bytes.
    :ivar executable: Whether the member gets the executable mode bits.
    """

    path: str
    data: bytes
    executable: bool = False


@dataclass(frozen=True, slots=True)
class RecordLine:
    """One parsed ``RECORD`` line.

    :ivar path: Archive path.
    :ivar digest: ``sha256=...`` digest, empty for ``RECORD`` itself.
    :ivar size: Size in bytes as written, empty for ``RECORD`` itself.
    """

    path: str
    digest: str
    size: str


def normalize_package_name(name: str) -> str:
    """Turn a distribution name into its module / filename form.

    :param name: Distribution name, e.g. ``neo4j-mcp``.
    :returns: Normalized name, e.g. ``neo4j_mcp``.
    """

    return name.replace("-", "_")


def wheel_filename(package_name: str, package_version: str, wheel_tag: str) -> str:
    """Build the wheel filename for a platform.

    :param package_name: Distribution name.
    :param package_version: Distribution version.
    :param wheel_tag: Wheel platform tag.
    :returns: ``<name>-<version>-py3-none-<tag>.whl``.
    """

    return f"{normalize_package_name(package_name)}-{package_version}-py3-none-{wheel_tag}.whl"


def dist_info_dir(package_name: str, package_version: str) -> str:
    return f"{normalize_package_name(package_name)}-{package_version}.dist-info"


_EXEC_SHIM_TEMPLATE: str = textwrap.dedent(
    """\
    import os
    import sys


    def main():
        here = os.path.dirname(os.path.abspath(__file__))
        binary = os.path.join(here, __WHEELER_BINARY__)
        os.execv(binary, [binary] + sys.argv[1:])
    """
)

_SPAWN_SHIM_TEMPLATE: str = textwrap.dedent(
    """\
    import os
    import subprocess
    import sys


    def main():
        here = os.path.dirname(os.path.abspath(__file__))
        binary = os.path.join(here, __WHEELER_BINARY__)
        sys.exit(subprocess.call([binary] + sys.argv[1:]))
    """
)


def render_shim(*, launcher: str, binary_filename: str) -> str:
    """Render the launcher shim module.

    The exec variant replaces the Python process with the binary; the spawn
    variant runs it as a child and exits with its return code.

    :param launcher: :data:`LAUNCHER_EXEC` or :data:`LAUNCHER_SPAWN`.
    :param binary_filename: Binary filename next to the shim.
    :returns: Python source.
    :raises BuildError: If the launcher variant is unknown.
    """

    template: str
    if launcher == LAUNCHER_EXEC:
        template = _EXEC_SHIM_TEMPLATE
    elif launcher == LAUNCHER_SPAWN:
        template = _SPAWN_SHIM_TEMPLATE
    else:
        raise BuildError(f"Unknown launcher variant: {launcher!r}")
    return template.replace("__WHEELER_BINARY__", repr(binary_filename))


def render_init(*, package_name: str, package_version: str) -> str:
    return f"# {package_name}: generated shim package\n__version__ = {package_version!r}\n"


def render_metadata(
    *,
    project: ProjectConfig,
    package_name: str,
    package_version: str,
    binary_version: str,
    description_data: bytes,
) -> bytes:
    """Render ``METADATA`` (core metadata 2.4).

    The long description is the message body: it follows the headers after a
    single blank line and is copied verbatim.

    :param project: Project constants.
    :param package_name: Distribution name.
    :param package_version: Distribution version.
    :param binary_version: Upstream binary version (shown in the summary).
    :param description_data: Markdown long description.
    :returns: File bytes.
    """

    headers: list[str] = [
        "Metadata-Version: 2.4",
        f"Name: {package_name}",
        f"Version: {package_version}",
        f"Summary: {project.summary.format(binary_version=binary_version)}",
        f"Project-URL: Source, {project.source_url}",
        "Classifier: Programming Language :: Python :: 3",
        f"License-Expression: {project.license_expression}",
        "License-File: LICENSE.txt",
        f"Requires-Python: {project.requires_python}",
        f"Keywords: {','.join(project.keywords)}",
        "Description-Content-Type: text/markdown; charset=UTF-8; variant=GFM",
    ]
    head: str = "\n".join(headers) + "\n\n"
    return head.encode("utf-8") + description_data


def render_wheel_file(*, wheel_tag: str) -> str:
    """Render the ``WHEEL`` descriptor.

    :param wheel_tag: Wheel platform tag.
    :returns: File text.
    """

    return (
        "Wheel-Version: 1.0\n"
        f"Generator: release-wheeler {__version__}\n"
        "Root-Is-Purelib: false\n"
        f"Tag: py3-none-{wheel_tag}\n"
    )


def render_entry_points(*, console_script: str, module_name: str) -> str:
    return f"[console_scripts]\n{console_script} = {module_name}._shim:main\n"


def wheel_entries(
    *,
    binary_data: bytes,
    binary_filename: str,
    binary_version: str,
    package_name: str,
    package_version: str,
    wheel_tag: str,
    license_data: bytes,
    description_data: bytes,
    project: ProjectConfig = DEFAULT_PROJECT,
) -> list[WheelEntry]:
    """Assemble the ordered member list (everything except ``RECORD``).

    :param binary_data: Native executable bytes.
    :param binary_filename: Executable filename inside the module directory.
    :param binary_version: Upstream binary version.
    :param package_name: Distribution name.
    :param package_version: Distribution version.
    :param wheel_tag: Wheel platform tag.
    :param license_data: License file bytes.
    :param description_data: Markdown long description.
    :param project: Project constants.
    :returns: Members in write order.
    """

    module_name: str = normalize_package_name(package_name)
    dist_info: str = dist_info_dir(package_name, package_version)
    shim_src: str = render_shim(
        launcher=launcher_for_wheel_tag(wheel_tag),
        binary_filename=binary_filename,
    )

    return [
        WheelEntry(f"{module_name}/{binary_filename}", binary_data, executable=True),
        WheelEntry(
            f"{module_name}/__init__.py",
            render_init(package_name=package_name, package_version=package_version).encode("utf-8"),
        ),
        WheelEntry(f"{module_name}/_shim.py", shim_src.encode("utf-8")),
        WheelEntry(
            f"{dist_info}/METADATA",
            render_metadata(
                project=project,
                package_name=package_name,
                package_version=package_version,
                binary_version=binary_version,
                description_data=description_data,
            ),
        ),
        WheelEntry(f"{dist_info}/WHEEL", render_wheel_file(wheel_tag=wheel_tag).encode("utf-8")),
        WheelEntry(
            f"{dist_info}/entry_points.txt",
            render_entry_points(console_script=project.console_script, module_name=module_name).encode("utf-8"),
        ),
        WheelEntry(f"{dist_info}/licenses/LICENSE.txt", license_data),
    ]


def render_record(entries: list[WheelEntry], record_path: str) -> bytes:
    """Render ``RECORD`` for ``entries`` plus its own digest-less line.

    :param entries: Members in write order.
    :param record_path: Archive path of ``RECORD``.
    :returns: File bytes.
    """

    lines: list[str] = []
    for entry in entries:
        lines.append(f"{entry.path},{record_hash(entry.data)},{len(entry.data)}\n")
    lines.append(f"{record_path},,\n")
    return "".join(lines).encode("utf-8")


def _zip_date_time(modified: DateTime | None) -> DateTime:
    """Resolve a member timestamp; zip cannot represent dates before 1980.

    :param modified: Explicit timestamp, or ``None`` for now (local time).
    :returns: ``(Y, M, D, h, m, s)``.
    """

    if modified is None:
        modified = time.localtime()[0:6]
    if modified[0] < 1980:
        return (1980, 1, 1, 0, 0, 0)
    return modified


def _zip_info(entry: WheelEntry, date_time: DateTime) -> zipfile.ZipInfo:
    """Build the header for a stored member.

    :param entry: Member.
    :param date_time: Member timestamp.
    :returns: Zip header.
    """

    info: zipfile.ZipInfo = zipfile.ZipInfo(filename=entry.path, date_time=date_time)
    info.compress_type = zipfile.ZIP_STORED
    info.create_system = _ZIP_UNIX_SYSTEM
    info.flag_bits = 0
    mode: int = _EXECUTABLE_MODE if entry.executable is True else _REGULAR_MODE
    info.external_attr = mode << 16
    return info


def write_wheel_bytes(
    entries: list[WheelEntry],
    *,
    record_path: str,
    modified: DateTime | None = None,
) -> bytes:
    """Serialize members and ``RECORD`` into wheel (zip) bytes.

    The archive is written to an in-memory buffer; because the buffer is
    seekable, :mod:`zipfile` back-patches CRC and sizes into each local header
    instead of emitting a data descriptor.

    :param entries: Members in write order (without ``RECORD``).
    :param record_path: Archive path of ``RECORD``.
    :param modified: Member timestamp, or ``None`` for now.
    :returns: Zip bytes.
    :raises BuildError: If a member cannot be written.
    """

    date_time: DateTime = _zip_date_time(modified)
    record: WheelEntry = WheelEntry(record_path, render_record(entries, record_path))

    buf: io.BytesIO = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_STORED, allowZip64=False) as zf:
        for entry in [*entries, record]:
            info: zipfile.ZipInfo = _zip_info(entry, date_time)
            try:
                zf.writestr(info, entry.data)
            except (OSError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
                raise BuildError(f"adding {entry.path} to wheel: {e}") from e
            if info.flag_bits & _MASK_DATA_DESCRIPTOR != 0:
                raise BuildError(f"adding {entry.path} to wheel: data descriptor flag set")
    return buf.getvalue()


def build_wheel(
    *,
    binary_data: bytes,
    binary_filename: str,
    binary_version: str,
    package_name: str,
    package_version: str,
    wheel_tag: str,
    output_dir: pathlib.Path,
    license_data: bytes,
    description_data: bytes,
    project: ProjectConfig = DEFAULT_PROJECT,
    modified: DateTime | None = None,
    logger: logging.Logger | None = None,
) -> pathlib.Path:
    """Build one platform wheel.

    :param binary_data: Native executable bytes.
    :param binary_filename: Executable filename inside the module directory.
    :param binary_version: Upstream binary version.
    :param package_name: Distribution name.
    :param package_version: Distribution version.
    :param wheel_tag: Wheel platform tag.
    :param output_dir: Directory the wheel is written to (must exist).
    :param license_data: License file bytes.
    :param description_data: Markdown long description.
    :param project: Project constants.
    :param modified: Member timestamp, or ``None`` for now.
    :param logger: Optional logger for progress output.
    :returns: Path of the written wheel; an existing file is overwritten.
    :raises BuildError: If the wheel cannot be assembled or written.
    """

    if logger is None:
        logger = logging.getLogger("release_wheeler")

    entries: list[WheelEntry] = wheel_entries(
        binary_data=binary_data,
        binary_filename=binary_filename,
        binary_version=binary_version,
        package_name=package_name,
        package_version=package_version,
        wheel_tag=wheel_tag,
        license_data=license_data,
        description_data=description_data,
        project=project,
    )
    record_path: str = f"{dist_info_dir(package_name, package_version)}/RECORD"

    if logger.isEnabledFor(logging.DEBUG) is True:
        for entry in entries:
            logger.debug(f"release-wheeler: entry {entry.path} ({len(entry.data)} bytes)")

    wheel_bytes: bytes = write_wheel_bytes(entries, record_path=record_path, modified=modified)

    out_path: pathlib.Path = output_dir / wheel_filename(package_name, package_version, wheel_tag)
    try:
        out_path.write_bytes(wheel_bytes)
    except OSError as e:
        raise BuildError(f"writing {out_path}: {e}") from e

    logger.info(f"release-wheeler: wrote {out_path.name} ({len(wheel_bytes) / (1024 * 1024):.1f} MiB)")
    return out_path


def read_record(wheel_path: pathlib.Path) -> list[RecordLine]:
    """Parse the ``RECORD`` of a wheel.

    :param wheel_path: Wheel file.
    :returns: Record lines in file order.
    :raises BuildError: If the wheel has no readable ``RECORD``.
    """

    try:
        with zipfile.ZipFile(wheel_path, "r") as zf:
            names: list[str] = [n for n in zf.namelist() if n.endswith(".dist-info/RECORD") is True]
            if len(names) != 1:
                raise BuildError(f"{wheel_path.name}: expected one RECORD, found {len(names)}")
            text: str = zf.read(names[0]).decode("utf-8")
    except (zipfile.BadZipFile, OSError) as e:
        raise BuildError(f"Bad wheel zip: {wheel_path}") from e

    lines: list[RecordLine] = []
    for row in csv.reader(io.StringIO(text)):
        if len(row) == 0:
            continue
        if len(row) != 3:
            raise BuildError(f"{wheel_path.name}: malformed RECORD row {row!r}")
        lines.append(RecordLine(path=row[0], digest=row[1], size=row[2]))
    return lines


def verify_wheel(wheel_path: pathlib.Path) -> list[str]:
    """Check a wheel against its ``RECORD`` and the stored-member rules.

    :param wheel_path: Wheel file.
    :returns: Human-readable problems; empty when the wheel is consistent.
    :raises BuildError: If the wheel or its ``RECORD`` cannot be read.
    """

    records: list[RecordLine] = read_record(wheel_path)
    by_path: dict[str, RecordLine] = {r.path: r for r in records}
    problems: list[str] = []

    with zipfile.ZipFile(wheel_path, "r") as zf:
        infos: list[zipfile.ZipInfo] = zf.infolist()
        if len(infos) == 0:
            return ["wheel is empty"]
        last: str = infos[-1].filename
        if last.endswith(".dist-info/RECORD") is False:
            problems.append(f"last member is {last}, not RECORD")
        if len(records) != len(infos):
            problems.append(f"RECORD has {len(records)} lines for {len(infos)} members")

        for info in infos:
            if info.compress_type != zipfile.ZIP_STORED:
                problems.append(f"{info.filename}: not stored")
            if info.flag_bits & _MASK_DATA_DESCRIPTOR != 0:
                problems.append(f"{info.filename}: data descriptor flag set")
            if info.compress_size != info.file_size:
                problems.append(f"{info.filename}: compressed size differs from size")

            rec: RecordLine | None = by_path.get(info.filename)
            if rec is None:
                problems.append(f"{info.filename}: missing from RECORD")
                continue
            if info.filename == last:
                if rec.digest != "" or rec.size != "":
                    problems.append(f"{info.filename}: RECORD self line must be empty")
                continue
            data: bytes = zf.read(info)
            if rec.digest != record_hash(data):
                problems.append(f"{info.filename}: digest mismatch")
            if rec.size != str(len(data)):
                problems.append(f"{info.filename}: size mismatch")
    return problems
