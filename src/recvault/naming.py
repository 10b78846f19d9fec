"""Naming scheme for relocated recordings.

File names encode the local capture time as ``H-mm-ss_D-M-YYYY.mp4`` and
the date folder as ``D-M-YYYY``. Hour, day and month carry no leading zero;
minutes and seconds are zero-padded. Both names are computed from the same
converted instant.
"""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from recvault.models import DerivedNaming, MediaFileInfo

DEFAULT_TARGET_TIMEZONE = "Asia/Ho_Chi_Minh"

_MEDIA_EXTENSION = ".mp4"


def resolve_timezone(tz: str | tzinfo) -> tzinfo:
    """Return a tzinfo for an IANA zone name, or ``tz`` itself if already one."""
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def _folder_label(local: datetime) -> str:
    return f"{local.day}-{local.month}-{local.year}"


def derive_names(
    info: MediaFileInfo, target_timezone: str | tzinfo = DEFAULT_TARGET_TIMEZONE
) -> DerivedNaming:
    """Derive the canonical file name and date folder for a recording.

    Args:
        info: Capture time (aware) and duration of the recording.
        target_timezone: Zone the names are expressed in.

    Returns:
        The derived file and folder names.
    """
    local = info.capture_time_utc.astimezone(resolve_timezone(target_timezone))
    folder = _folder_label(local)
    file_name = f"{local.hour}-{local.minute:02d}-{local.second:02d}_{folder}{_MEDIA_EXTENSION}"
    return DerivedNaming(file_name=file_name, folder_name=folder)


def start_label(naming: DerivedNaming) -> str:
    """The label sent to the classification service (file name, no extension)."""
    name = naming.file_name
    if name.endswith(_MEDIA_EXTENSION):
        name = name[: -len(_MEDIA_EXTENSION)]
    return name.strip()


def duration_minutes(info: MediaFileInfo) -> int:
    """Whole minutes of the recording, truncated."""
    return int(info.duration_seconds // 60)


def sanitize_start_time(value: str) -> str:
    """Make a service start time usable as a file name stem.

    ``"2024-03-10 08:00:00"`` becomes ``"2024-03-10_08-00-00"``.
    """
    return value.replace(":", "-").replace(" ", "_", 1).strip()


def destination_key(
    processed_root: str,
    owner_folder: str,
    date_folder: str,
    canonical_start_time: str,
) -> str:
    """Build the key a recording is relocated to."""
    root = processed_root.rstrip("/")
    stem = sanitize_start_time(canonical_start_time)
    return f"{root}/{owner_folder}/{date_folder}/{stem}{_MEDIA_EXTENSION}"
