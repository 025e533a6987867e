from __future__ import annotations

import io
import json
import struct
import tarfile
import zipfile
from typing import Any, Callable

import pytest
import requests


def make_tar_gz(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def make_patched_zip(files: dict[str, bytes], *, method: int | None = None, flag_bits: int = 0) -> bytes:
    """Build a stored zip, then rewrite every member's method and flag fields.

    Used to produce archives ``zipfile`` can list but refuses to read
    (unknown compression method, encrypted members).
    """

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_STORED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
        offsets = [info.header_offset for info in zf.infolist()]
    raw = bytearray(buf.getvalue())

    central: list[int] = []
    pos = raw.find(b"PK\x01\x02")
    while pos != -1:
        central.append(pos)
        pos = raw.find(b"PK\x01\x02", pos + 4)

    # Local header: flags at +6, method at +8. Central header: +8, +10.
    for base, flags_at, method_at in [(o, 6, 8) for o in offsets] + [(c, 8, 10) for c in central]:
        current = struct.unpack_from("<H", raw, base + flags_at)[0]
        struct.pack_into("<H", raw, base + flags_at, current | flag_bits)
        if method is not None:
            struct.pack_into("<H", raw, base + method_at, method)
    return bytes(raw)


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", reason: str = "") -> None:
        self.status_code = status_code
        self.content = content
        self.reason = reason or ("OK" if status_code == 200 else "Error")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


def json_response(payload: Any, status_code: int = 200) -> FakeResponse:
    return FakeResponse(status_code=status_code, content=json.dumps(payload).encode("utf-8"))


class FakeSession:
    """A stand-in for ``requests.Session`` that serves canned responses by URL."""

    def __init__(self) -> None:
        self.routes: dict[str, FakeResponse | Callable[[], FakeResponse] | Exception] = {}
        self.post_responses: list[FakeResponse] = []
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("GET", url, kwargs))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status_code=404, content=b"Not Found", reason="Not Found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route()
        return route

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("POST", url, kwargs))
        if len(self.post_responses) == 0:
            raise requests.ConnectionError("no canned POST response")
        return self.post_responses.pop(0)

    def count(self, method: str, url: str) -> int:
        return sum(1 for m, u, _ in self.calls if m == method and u == url)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_binary() -> bytes:
    return bytes(range(100))
