"""Shared fixtures: fake HTTP transport, archive builders and wired-up services."""

import io
import tarfile
import time
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import requests
import yaml

from my_config import Config
from rulesync.cache import ArchiveCache
from rulesync.catalog import SourceIndexCache
from rulesync.paths import StaticPaths
from rulesync.rulesets import RulesetManager
from rulesync.state_store import FileMarkerStore
from rulesync.sync import UpdateManager
from rulesync.utils.http_utils import HttpClient

INDEX_URL = "https://index.example/index.yaml"


class FakeResponse:
    def __init__(self, body: bytes = b"", status_code: int = 200, headers: Optional[Dict[str, str]] = None):
        self.body = body
        self.status_code = status_code
        self.reason = "OK" if status_code == 200 else "Error"
        self.headers = headers if headers is not None else {"Content-Length": str(len(body))}
        self.closed = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; routes GETs by URL."""

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self.routes: Dict[str, object] = {}
        self.calls: List[dict] = []

    def add(self, url: str, body=b"", status_code: int = 200, headers=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = FakeResponse(body, status_code, headers)

    def fail(self, url: str, exc: Exception):
        self.routes[url] = exc

    def get(self, url, stream=False, headers=None, timeout=None):
        self.calls.append({"url": url, "stream": stream, "headers": headers, "timeout": timeout})
        route = self.routes.get(url)
        if route is None:
            raise requests.exceptions.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def urls(self) -> List[str]:
        return [call["url"] for call in self.calls]

    def close(self):
        pass


def make_tar_gz(files: Dict[str, bytes], directories: tuple = ()) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for directory in directories:
            info = tarfile.TarInfo(directory)
            info.type = tarfile.DIRTYPE
            archive.addfile(info)
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def make_zip(files: Dict[str, bytes], directories: tuple = ()) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for directory in directories:
            archive.writestr(directory.rstrip("/") + "/", b"")
        for name, content in files.items():
            archive.writestr(name, content)
    return buf.getvalue()


def make_encrypted_zip(filename: str, content: bytes) -> bytes:
    """Single-entry zip whose entry is flagged as encrypted."""
    data = bytearray(make_zip({filename: content}))
    local_header = data.find(b"PK\x03\x04")
    central_header = data.find(b"PK\x01\x02")
    data[local_header + 6] |= 0x01
    data[central_header + 8] |= 0x01
    return bytes(data)


def index_yaml(sources: dict, version: int = 1) -> str:
    return yaml.safe_dump({"version": version, "sources": sources})


ET_OPEN = {
    "vendor": "proofpoint/et",
    "summary": "ET Open",
    "url": "https://example/et-open.tar.gz",
}


@pytest.fixture
def config():
    return Config(source_index_url=INDEX_URL)


@pytest.fixture
def paths(tmp_path) -> StaticPaths:
    return StaticPaths(tmp_path)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def http(session) -> HttpClient:
    return HttpClient("rulesync-tests/1.0", session=session)


@pytest.fixture
def clock():
    """Mutable clock; tests move it with clock.now = ..."""

    class Clock:
        def __init__(self):
            self.now = time.time()

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def index_cache(paths, config, http, clock) -> SourceIndexCache:
    return SourceIndexCache(paths, config, http, clock=clock)


@pytest.fixture
def rulesets(paths, config) -> RulesetManager:
    return RulesetManager(FileMarkerStore(paths.sources_dir()), config)


@pytest.fixture
def archive_cache(paths, config, http, clock) -> ArchiveCache:
    return ArchiveCache(paths, config, http, clock=clock, is_tty=lambda: False)


@pytest.fixture
def updater(paths, config, index_cache, rulesets, archive_cache) -> UpdateManager:
    return UpdateManager(paths, config, index_cache, rulesets, archive_cache)


def write_file(path: Path, content) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    return path
