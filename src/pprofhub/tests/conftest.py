import base64
import os
import tempfile

# keep logs and upload scratch files out of the working tree
_SCRATCH = tempfile.mkdtemp(prefix="pprofhub-tests-")
os.environ.setdefault("PPROFHUB_LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("PPROFHUB_UPLOADS_DIR", os.path.join(_SCRATCH, "uploads"))

import pytest
from fastapi.testclient import TestClient

from pprofhub.api.routes import get_cli, get_parser, get_storage
from pprofhub.main import app
from pprofhub.schemas import ProfileCreate
from pprofhub.services.pprof_cli import CommandNotAllowedError, CommandResult
from pprofhub.services.pprof_parser import PprofFetchError, PprofParseError
from pprofhub.storage.memory import MemStorage

SAMPLE_METADATA = {
    "duration": 30.13,
    "totalTime": 25.41,
    "sampleCount": 2541,
    "period": 10000000,
    "topFunctions": [
        {"flat": "10.20s", "flatPercent": "40.14%", "cum": "10.20s", "cumPercent": "40.14%",
         "functionName": "runtime.memmove"},
        {"flat": "4.10s", "flatPercent": "16.14%", "cum": "12.00s", "cumPercent": "47.22%",
         "functionName": "main.handleRequest"},
    ],
}


def make_profile(**overrides) -> ProfileCreate:
    fields = dict(
        filename="test_profile.pprof",
        original_filename="profile.pprof",
        profile_type="cpu",
        size=1024,
        description="Test profile",
        metadata={"topFunctions": []},
        is_saved=False,
        data="YmFzZTY0ZGF0YQ==",
    )
    fields.update(overrides)
    return ProfileCreate(**fields)


class StubParser:
    """Stands in for PprofParser so no `go` binary is needed."""

    def __init__(self):
        self.metadata = dict(SAMPLE_METADATA)
        self.fetch_error = None
        self.parse_error = None
        self.parsed_files = []
        self.parsed_data = []
        self.fetched = []

    def parse_file(self, path):
        raw = path.read_bytes()
        self.parsed_files.append((path, raw))
        if self.parse_error:
            raise PprofParseError(self.parse_error)
        return dict(self.metadata), base64.b64encode(raw).decode("ascii")

    def parse_data(self, raw):
        self.parsed_data.append(raw)
        if self.parse_error:
            raise PprofParseError(self.parse_error)
        return dict(self.metadata), base64.b64encode(raw).decode("ascii")

    async def fetch_from_url(self, url, profile_type="cpu"):
        self.fetched.append((url, profile_type))
        if self.fetch_error:
            raise PprofFetchError(self.fetch_error)
        return self.parse_data(b"remote-profile-bytes")


class StubCli:
    """Stands in for PprofCli; returns a canned CommandResult."""

    def __init__(self):
        self.allowed = {"go", "pprof", "go-torch"}
        self.result = CommandResult(output=b"cli-profile-bytes", exit_code=0)
        self.svg_result = CommandResult(output=b"<svg></svg>", exit_code=0)
        self.svg_error = None
        self.tools = {"go": True, "pprof": True}
        self.calls = []

    def run_command(self, command, args=None):
        base = command.split()[0] if command.split() else ""
        if base not in self.allowed:
            raise CommandNotAllowedError(base)
        self.calls.append((base, list(args or [])))
        return self.result

    def generate_flamegraph(self, profile_path):
        self.calls.append(("svg", [profile_path]))
        if self.svg_error:
            raise self.svg_error
        return self.svg_result

    def check_tools(self):
        return dict(self.tools)


@pytest.fixture
def store():
    return MemStorage()


@pytest.fixture
def parser():
    return StubParser()


@pytest.fixture
def cli():
    return StubCli()


@pytest.fixture
def client(store, parser, cli):
    app.dependency_overrides[get_storage] = lambda: store
    app.dependency_overrides[get_parser] = lambda: parser
    app.dependency_overrides[get_cli] = lambda: cli
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
