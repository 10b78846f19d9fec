"""Append-only, day-partitioned outcome log.

Each processing day gets its own text file named ``DD-MM-YYYY.txt`` under
the log directory. A record is a ``H:mm:ss D-M-YYYY`` header line, a
free-text body and a separator line. Files are only ever opened in append
mode.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from recvault.models import OutcomeStatus, RelocationOutcome

logger = logging.getLogger(__name__)

SEPARATOR = "=========================="


def _local_now() -> datetime:
    return datetime.now().astimezone()


def partition_name(when: datetime) -> str:
    """File name of the partition holding records written at ``when``."""
    return when.strftime("%d-%m-%Y") + ".txt"


def record_header(when: datetime) -> str:
    return f"{when.hour}:{when.minute:02d}:{when.second:02d} {when.day}-{when.month}-{when.year}"


def format_outcome(outcome: RelocationOutcome) -> str:
    """Render the body of a relocation outcome record."""
    if outcome.status is OutcomeStatus.RELOCATED:
        head = f"Change file {outcome.source_key} to {outcome.destination_key} with public"
    elif outcome.status is OutcomeStatus.SKIPPED:
        head = f"Rejected {outcome.source_key}"
    else:
        head = f"Error {outcome.source_key}"
    return f"{head}\nData: {outcome.detail}"


def format_data(data: object) -> str:
    """Pretty-print a response body the way records embed it."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class OutcomeLog:
    """Writes relocation outcomes to day-partitioned text files.

    Attributes:
        directory: Directory holding the partitions. Created on first write.
    """

    def __init__(
        self, directory: str | Path, clock: Callable[[], datetime] = _local_now
    ) -> None:
        self.directory = Path(directory)
        self._clock = clock

    def path_for(self, when: datetime) -> Path:
        return self.directory / partition_name(when)

    def write(self, body: str) -> Path:
        """Append one record and return the partition it went to."""
        now = self._clock()
        path = self.path_for(now)
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(f"{record_header(now)}\n{body}\n{SEPARATOR}\n")
        logger.debug("Outcome record appended to %s", path)
        return path

    def append(self, outcome: RelocationOutcome) -> Path:
        return self.write(format_outcome(outcome))
