"""Capture-time and duration extraction from media containers.

``FFprobeProber`` runs ``ffprobe`` against a local path or an HTTP(S) URL
and reports the container's ``creation_time`` tag and duration.
``MetadataExtractor`` turns that into a :class:`MediaFileInfo` with an
aware UTC capture instant.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone, tzinfo
from typing import Protocol

from recvault.errors import MetadataUnavailable
from recvault.models import MediaFileInfo, ProbeResult
from recvault.naming import resolve_timezone

logger = logging.getLogger(__name__)


class MediaProber(Protocol):
    """Protocol for media probing implementations."""

    async def probe(self, locator: str) -> ProbeResult:
        """Read container-level metadata.

        Raises:
            MetadataUnavailable: If the container cannot be read or lacks
                a creation time or duration.
        """
        ...


class FFprobeProber:
    """ffprobe-based implementation of the MediaProber protocol."""

    def __init__(self, ffprobe_path: str = "ffprobe") -> None:
        self._ffprobe_path = ffprobe_path

    async def _run_ffprobe(self, locator: str) -> dict:
        """Run ffprobe and return its parsed JSON output.

        Raises:
            MetadataUnavailable: If ffprobe is missing, fails, or prints
                something that is not a JSON object.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self._ffprobe_path,
                "-v",
                "error",
                "-print_format",
                "json",
                "-show_format",
                locator,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MetadataUnavailable(
                locator, f"ffprobe not found at {self._ffprobe_path!r}"
            ) from e
        except OSError as e:
            raise MetadataUnavailable(locator, f"cannot run ffprobe: {e}") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise MetadataUnavailable(
                locator, f"ffprobe exited with {proc.returncode}: {detail}"
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise MetadataUnavailable(locator, f"invalid ffprobe output: {e}") from e
        if not isinstance(data, dict):
            raise MetadataUnavailable(locator, "invalid ffprobe output")
        return data

    async def probe(self, locator: str) -> ProbeResult:
        data = await self._run_ffprobe(locator)

        fmt = data.get("format")
        if not isinstance(fmt, dict):
            raise MetadataUnavailable(locator, "missing 'format' in ffprobe output")

        tags = fmt.get("tags") or {}
        creation_time = tags.get("creation_time")
        if not creation_time:
            raise MetadataUnavailable(locator, "no creation_time tag")

        try:
            duration = float(fmt["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataUnavailable(locator, "missing or invalid duration") from e

        return ProbeResult(creation_time_raw=str(creation_time), duration_seconds=duration)


def parse_creation_time(raw: str, source_timezone: tzinfo) -> datetime:
    """Parse a container creation timestamp into an aware UTC datetime.

    Timestamps without an offset are interpreted in ``source_timezone``.

    Raises:
        ValueError: If ``raw`` is not an ISO 8601 timestamp.
    """
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=source_timezone)
    return parsed.astimezone(timezone.utc)


class MetadataExtractor:
    """Turns prober output into MediaFileInfo.

    Attributes:
        source_timezone: Zone assumed for creation timestamps that carry no
            offset. Containers usually write UTC, which is the default.
    """

    def __init__(self, prober: MediaProber, source_timezone: str | tzinfo = "UTC") -> None:
        self._prober = prober
        self.source_timezone = resolve_timezone(source_timezone)

    async def extract(self, locator: str) -> MediaFileInfo:
        """Probe ``locator`` and normalize its capture time to UTC.

        Raises:
            MetadataUnavailable: If probing fails or the timestamp is invalid.
        """
        result = await self._prober.probe(locator)
        try:
            capture = parse_creation_time(result.creation_time_raw, self.source_timezone)
        except ValueError as e:
            raise MetadataUnavailable(
                locator, f"unparseable creation_time {result.creation_time_raw!r}"
            ) from e
        logger.debug("Probed %s: capture=%s duration=%.3fs", locator, capture, result.duration_seconds)
        return MediaFileInfo(capture_time_utc=capture, duration_seconds=result.duration_seconds)
