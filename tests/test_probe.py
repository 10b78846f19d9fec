"""Tests for ffprobe-based metadata extraction.

ffprobe itself is never run: asyncio.create_subprocess_exec is patched
to return a fake process.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from recvault.errors import MetadataUnavailable
from recvault.models import ProbeResult
from recvault.probe import FFprobeProber, MetadataExtractor, parse_creation_time

from conftest import FakeProber


def _process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    return proc


def _ffprobe_json(creation_time="2024-03-10T01:15:30.000000Z", duration="125.480000") -> bytes:
    fmt = {"filename": "x.mp4", "duration": duration, "tags": {}}
    if creation_time is not None:
        fmt["tags"]["creation_time"] = creation_time
    return json.dumps({"format": fmt}).encode()


class TestFFprobeProber:
    """Tests for FFprobeProber.probe()."""

    async def test_probe_reads_creation_time_and_duration(self):
        with patch(
            "recvault.probe.asyncio.create_subprocess_exec",
            AsyncMock(return_value=_process(_ffprobe_json())),
        ) as mock_exec:
            result = await FFprobeProber("/usr/bin/ffprobe").probe("https://host/a%20b.mp4")

        assert result == ProbeResult(
            creation_time_raw="2024-03-10T01:15:30.000000Z", duration_seconds=125.48
        )
        args = mock_exec.call_args[0]
        assert args[0] == "/usr/bin/ffprobe"
        assert "-show_format" in args
        assert args[-1] == "https://host/a%20b.mp4"

    async def test_missing_creation_time(self):
        proc = _process(_ffprobe_json(creation_time=None))
        with patch("recvault.probe.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(MetadataUnavailable, match="creation_time"):
                await FFprobeProber().probe("x.mp4")

    async def test_missing_duration(self):
        proc = _process(json.dumps({"format": {"tags": {"creation_time": "2024"}}}).encode())
        with patch("recvault.probe.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(MetadataUnavailable, match="duration"):
                await FFprobeProber().probe("x.mp4")

    async def test_missing_format(self):
        proc = _process(b'{"streams": []}')
        with patch("recvault.probe.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(MetadataUnavailable, match="format"):
                await FFprobeProber().probe("x.mp4")

    async def test_nonzero_exit(self):
        proc = _process(stderr=b"Server returned 403 Forbidden", returncode=1)
        with patch("recvault.probe.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(MetadataUnavailable, match="403 Forbidden"):
                await FFprobeProber().probe("x.mp4")

    async def test_invalid_json(self):
        proc = _process(b"not json")
        with patch("recvault.probe.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(MetadataUnavailable, match="invalid ffprobe output"):
                await FFprobeProber().probe("x.mp4")

    async def test_ffprobe_not_installed(self):
        with patch(
            "recvault.probe.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("ffprobe")),
        ):
            with pytest.raises(MetadataUnavailable, match="not found"):
                await FFprobeProber("missing-ffprobe").probe("x.mp4")

    async def test_ffprobe_not_executable(self):
        with patch(
            "recvault.probe.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=PermissionError(13, "Permission denied")),
        ):
            with pytest.raises(MetadataUnavailable, match="cannot run ffprobe"):
                await FFprobeProber("/opt/ffprobe").probe("x.mp4")


class TestParseCreationTime:
    """Tests for parse_creation_time()."""

    def test_zulu_suffix(self):
        parsed = parse_creation_time("2024-03-10T01:15:30.000000Z", timezone.utc)
        assert parsed == datetime(2024, 3, 10, 1, 15, 30, tzinfo=timezone.utc)

    def test_explicit_offset_wins_over_source_zone(self):
        from zoneinfo import ZoneInfo

        parsed = parse_creation_time("2024-03-10T08:15:30+07:00", ZoneInfo("America/New_York"))
        assert parsed == datetime(2024, 3, 10, 1, 15, 30, tzinfo=timezone.utc)

    def test_naive_uses_source_zone(self):
        from zoneinfo import ZoneInfo

        parsed = parse_creation_time("2024-03-10 08:15:30", ZoneInfo("Asia/Ho_Chi_Minh"))
        assert parsed == datetime(2024, 3, 10, 1, 15, 30, tzinfo=timezone.utc)

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_creation_time("yesterday", timezone.utc)


class TestMetadataExtractor:
    """Tests for MetadataExtractor.extract()."""

    async def test_extract_normalizes_to_utc(self):
        prober = FakeProber(default=ProbeResult("2024-03-10T01:15:30Z", 125.0))
        info = await MetadataExtractor(prober).extract("loc")
        assert info.capture_time_utc == datetime(2024, 3, 10, 1, 15, 30, tzinfo=timezone.utc)
        assert info.capture_time_utc.tzinfo == timezone.utc
        assert info.duration_seconds == 125.0

    async def test_naive_timestamp_uses_configured_source_zone(self):
        prober = FakeProber(default=ProbeResult("2024-03-10 08:15:30", 60.0))
        info = await MetadataExtractor(prober, source_timezone="Asia/Ho_Chi_Minh").extract("loc")
        assert info.capture_time_utc == datetime(2024, 3, 10, 1, 15, 30, tzinfo=timezone.utc)

    async def test_naive_timestamp_defaults_to_utc(self):
        prober = FakeProber(default=ProbeResult("2024-03-10 08:15:30", 60.0))
        info = await MetadataExtractor(prober).extract("loc")
        assert info.capture_time_utc == datetime(2024, 3, 10, 8, 15, 30, tzinfo=timezone.utc)

    async def test_unparseable_timestamp(self):
        prober = FakeProber(default=ProbeResult("not-a-date", 60.0))
        with pytest.raises(MetadataUnavailable, match="unparseable"):
            await MetadataExtractor(prober).extract("loc")

    async def test_prober_failure_propagates(self):
        prober = FakeProber(results={"loc": MetadataUnavailable("loc", "boom")})
        with pytest.raises(MetadataUnavailable, match="boom"):
            await MetadataExtractor(prober).extract("loc")
