# services/pprof_parser.py
import asyncio
import base64
import pathlib
import re
import shutil
import subprocess
import tempfile
from typing import Any, Dict, Optional, Tuple

import aiohttp
from fastapi.concurrency import run_in_threadpool

from ..schemas import ProfileType, TopFunction
from ..utils.config import get_settings
from ..utils.logger import get_logger

# Header of `go tool pprof -top`, e.g. "Duration: 30.13s, Total samples = 25.41s (84.33%)"
_RX_DURATION = re.compile(r"Duration:\s*(\d+(?:\.\d+)?)(ms|s|mins|hrs)\b")
_RX_TOTAL = re.compile(r"Total(?: samples)?\s*[:=]\s*(\d+(?:\.\d+)?)(ms|s|mins|hrs)\b")
# `go tool pprof -raw`
_RX_SAMPLE_COUNT = re.compile(r"samples/count:\s*(\d+)")
_RX_PERIOD = re.compile(r"^\s*period:\s*(\d+)", re.IGNORECASE | re.MULTILINE)
_RX_SAMPLE_ROW = re.compile(r"^\s*(\d+)(?:\s+\d+)*:\s")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "mins": 60.0, "hrs": 3600.0}

GO_MISSING = "Go not installed. Basic parsing only."
EXTRACTION_FAILED = "Metadata extraction failed. Basic parsing only."


class PprofParseError(Exception):
    """Raised when a capture cannot be read or analysed."""


class PprofFetchError(Exception):
    """Raised when a remote pprof endpoint cannot be downloaded."""


def _seconds(value: str, unit: str) -> float:
    return float(value) * _UNIT_SECONDS[unit]


def parse_top_output(text: str) -> Dict[str, Any]:
    """Scrape duration, total time and the top-functions table from `-top` output."""
    metadata: Dict[str, Any] = {}
    lines = text.splitlines()

    header = next((line for line in lines if "Duration:" in line), None)
    if header:
        m = _RX_DURATION.search(header)
        if m:
            metadata["duration"] = _seconds(*m.groups())
        m = _RX_TOTAL.search(header)
        if m:
            metadata["totalTime"] = _seconds(*m.groups())

    top_functions = []
    columns = None
    for line in lines:
        if columns is None:
            if "flat" in line and "flat%" in line:
                columns = line.split()
            continue
        parts = line.split()
        if len(parts) <= len(columns):
            continue
        row = dict(zip(columns, parts))
        fn = TopFunction(
            flat=row.get("flat", ""),
            flat_percent=row.get("flat%", ""),
            sum_percent=row.get("sum%"),
            cum=row.get("cum", ""),
            cum_percent=row.get("cum%", ""),
            function_name=" ".join(parts[len(columns):]),
        )
        top_functions.append(fn.model_dump(by_alias=True, exclude_none=True))

    metadata["topFunctions"] = top_functions
    return metadata


def parse_raw_header(text: str) -> Dict[str, Any]:
    """Scrape the sample count and sampling period from `-raw` output."""
    metadata: Dict[str, Any] = {}

    m = _RX_SAMPLE_COUNT.search(text)
    if m:
        metadata["sampleCount"] = int(m.group(1))
    else:
        # No summary line: add up the first value column of the Samples: block
        total, in_samples, seen = 0, False, False
        for line in text.splitlines():
            if line.startswith("Samples:"):
                in_samples = True
                continue
            if in_samples:
                if line and not line[0].isspace() and not line.startswith("samples/"):
                    break
                row = _RX_SAMPLE_ROW.match(line)
                if row:
                    total += int(row.group(1))
                    seen = True
        if seen:
            metadata["sampleCount"] = total

    m = _RX_PERIOD.search(text)
    if m:
        metadata["period"] = int(m.group(1))
    return metadata


def resolve_pprof_url(url: str, profile_type: str = "cpu", cpu_seconds: int = 10) -> str:
    """Point a bare service URL at its /debug/pprof endpoint for the requested type."""
    profile_type = ProfileType(profile_type).value
    if "debug/pprof" not in url:
        base = url if url.endswith("/") else f"{url}/"
        if profile_type == ProfileType.CPU.value:
            return f"{base}debug/pprof/profile?seconds={cpu_seconds}"
        return f"{base}debug/pprof/{profile_type}"
    if profile_type == ProfileType.CPU.value and "seconds=" not in url:
        sep = "&" if "?" in url else "?"
        return f"{url}{sep}seconds={cpu_seconds}"
    return url


class PprofParser:
    """Reads captures, base64-encodes them and asks `go tool pprof` for a summary."""

    def __init__(self, go_binary: Optional[str] = None):
        self.settings = get_settings()
        self.go_binary = go_binary or self.settings.go_binary
        self.log = get_logger("PprofParser")

    def parse_file(self, path) -> Tuple[Dict[str, Any], str]:
        path = pathlib.Path(path)
        self.log.info(f"Parsing profile file: {path}")
        if not path.is_file():
            raise PprofParseError(f"File not found: {path}")
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise PprofParseError(f"Failed to read profile file: {e}") from e

        data = base64.b64encode(raw).decode("ascii")
        metadata = self.extract_metadata(path)
        self.log.info(f"Parsed {len(raw)} bytes, metadata keys: {sorted(metadata)}")
        return metadata, data

    def parse_data(self, raw: bytes) -> Tuple[Dict[str, Any], str]:
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        self.log.info(f"Parsing {len(raw)} bytes of in-memory profile data")
        with tempfile.TemporaryDirectory() as tmp:
            tmp_path = pathlib.Path(tmp) / "profile.pprof"
            tmp_path.write_bytes(raw)
            metadata = self.extract_metadata(tmp_path)
        return metadata, base64.b64encode(raw).decode("ascii")

    async def fetch_from_url(self, url: str, profile_type: str = "cpu") -> Tuple[Dict[str, Any], str]:
        pprof_url = resolve_pprof_url(url, profile_type, self.settings.remote_cpu_seconds)
        self.log.info(f"Fetching {profile_type} profile from: {pprof_url}")

        timeout = aiohttp.ClientTimeout(total=self.settings.fetch_timeout_sec)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(pprof_url) as response:
                    if response.status >= 400:
                        raise PprofFetchError(
                            f"Failed to fetch profile from {pprof_url}: HTTP {response.status} {response.reason}"
                        )
                    body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PprofFetchError(f"Failed to fetch profile from {pprof_url}: {e}") from e

        self.log.info(f"Successfully fetched {len(body)} bytes")
        return await run_in_threadpool(self.parse_data, body)

    def extract_metadata(self, path: pathlib.Path) -> Dict[str, Any]:
        go = shutil.which(self.go_binary)
        if not go:
            self.log.warning(f"'{self.go_binary}' not found on PATH, skipping metadata extraction")
            return {"error": GO_MISSING}

        timeout = self.settings.command_timeout_sec
        top_cmd = [go, "tool", "pprof", "-top", f"-nodecount={self.settings.top_node_count}", str(path)]
        self.log.info(f"Running: {' '.join(top_cmd)}")
        try:
            proc = subprocess.run(top_cmd, capture_output=True, text=True, check=True, timeout=timeout)
            metadata = parse_top_output(proc.stdout)
        except subprocess.CalledProcessError as e:
            self.log.warning(f"pprof -top exited with {e.returncode}: {e.stderr}")
            return {"error": EXTRACTION_FAILED}
        except (subprocess.TimeoutExpired, OSError) as e:
            self.log.warning(f"pprof -top failed: {e}")
            return {"error": EXTRACTION_FAILED}

        raw_cmd = [go, "tool", "pprof", "-raw", str(path)]
        self.log.info(f"Running: {' '.join(raw_cmd)}")
        try:
            proc = subprocess.run(raw_cmd, capture_output=True, text=True, check=True, timeout=timeout)
            metadata.update(parse_raw_header(proc.stdout))
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            # sample count and period are optional extras
            self.log.info(f"pprof -raw unavailable: {e}")

        return metadata
