"""Classification-driven relocation of intake recordings.

For every ``.mp4`` object outside the processed-results root, in listing
order:

    Listed -> VisibilityEnsured -> MetadataExtracted -> Classified
           -> Relocated | Skipped | Failed

The object is made publicly readable (the prober and classifier fetch it by
URL), its capture time is read and turned into a start label, and the
classification service decides where it belongs. Accepted recordings are
copied to ``<root>/<owner>/<date>/<start>.mp4`` and the source is deleted
only after the copy succeeded. Rejections and failures leave the source in
place. Every object produces one RelocationOutcome, appended to the outcome
log; a failing object never stops the batch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from urllib.parse import quote

from botocore.exceptions import ClientError

from recvault import metrics
from recvault.classification import ClassificationClient, require_accepted
from recvault.config import RecVaultConfig
from recvault.errors import BusinessRejection, RecVaultError
from recvault.models import OutcomeStatus, RelocationOutcome, StorageObject
from recvault.naming import (
    derive_names,
    destination_key,
    duration_minutes,
    start_label,
)
from recvault.outcome_log import OutcomeLog, format_data
from recvault.probe import MetadataExtractor
from recvault.storage.backend import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelocationSettings:
    """Values the engine needs from the configuration."""

    bucket: str
    region: str
    processed_root: str = "ADMIN_RESULT"
    media_suffix: str = ".mp4"
    target_timezone: str = "Asia/Ho_Chi_Minh"
    public_url_template: str = "https://s3.{region}.amazonaws.com/{bucket}/{key}"

    @classmethod
    def from_config(cls, config: RecVaultConfig) -> "RelocationSettings":
        return cls(
            bucket=config.aws.bucket,
            region=config.aws.region,
            processed_root=config.relocation.processed_root,
            media_suffix=config.relocation.media_suffix,
            target_timezone=config.relocation.target_timezone,
            public_url_template=config.relocation.public_url_template,
        )

    @property
    def processed_prefix(self) -> str:
        return self.processed_root.rstrip("/") + "/"


def is_eligible(key: str, settings: RelocationSettings) -> bool:
    """Media files not already under the processed-results root."""
    return key.endswith(settings.media_suffix) and not key.startswith(
        settings.processed_prefix
    )


def owner_candidate(key: str) -> str:
    """The first path segment of an intake key, which names its uploader."""
    return key.split("/")[0].strip()


def public_locator(settings: RelocationSettings, key: str) -> str:
    """URL the prober and classifier use to fetch ``key``."""
    return settings.public_url_template.format(
        bucket=settings.bucket,
        region=settings.region,
        key=quote(key, safe="/"),
    )


def _now() -> datetime:
    return datetime.now().astimezone()


class RelocationEngine:
    """Runs one relocation pass over the archive bucket."""

    def __init__(
        self,
        store: ObjectStore,
        extractor: MetadataExtractor,
        classifier: ClassificationClient,
        outcome_log: OutcomeLog,
        settings: RelocationSettings,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._classifier = classifier
        self._outcome_log = outcome_log
        self._settings = settings
        self._clock = clock

    async def eligible_objects(self) -> list[StorageObject]:
        """List the bucket and keep the objects still waiting for relocation."""
        listed = await self._store.list_objects()
        return [obj for obj in listed if is_eligible(obj.key, self._settings)]

    async def run(self) -> list[RelocationOutcome]:
        """Process every eligible object once, in listing order.

        Returns:
            One outcome per eligible object, in processing order.

        Raises:
            RecVaultError: If the bucket cannot be listed. Per-object
                failures are recorded as outcomes instead.
        """
        objects = await self.eligible_objects()
        logger.info("Relocation pass: %d eligible object(s)", len(objects))

        outcomes: list[RelocationOutcome] = []
        for obj in objects:
            outcome = await self.process(obj)
            self._record(outcome)
            outcomes.append(outcome)

        counts = {status: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1
        logger.info(
            "Relocation pass finished: %d relocated, %d skipped, %d failed",
            counts[OutcomeStatus.RELOCATED],
            counts[OutcomeStatus.SKIPPED],
            counts[OutcomeStatus.FAILED],
        )
        return outcomes

    async def process(self, obj: StorageObject) -> RelocationOutcome:
        """Drive one object to a terminal state. Never raises service errors."""
        key = obj.key
        try:
            await self._store.set_public_read(key)
            info = await self._extractor.extract(public_locator(self._settings, key))
            naming = derive_names(info, self._settings.target_timezone)
            logger.info(
                "%s: captured %s (%d min)",
                key,
                naming.file_name,
                duration_minutes(info),
                extra={"object_key": key},
            )
            decision = require_accepted(
                await self._classifier.classify(owner_candidate(key), start_label(naming))
            )
        except BusinessRejection as e:
            return self._outcome(key, None, OutcomeStatus.SKIPPED, format_data(e.raw))
        except (RecVaultError, ClientError) as e:
            return self._failed(key, None, f"{type(e).__name__}: {e}")

        dst = destination_key(
            self._settings.processed_root,
            decision.owner_folder,
            naming.folder_name,
            decision.canonical_start_time,
        )
        try:
            await self._store.copy(key, dst, public_read=True)
        except (RecVaultError, ClientError) as e:
            return self._failed(key, None, f"copy to {dst} failed: {e}")

        try:
            await self._store.delete(key)
        except (RecVaultError, ClientError) as e:
            return self._failed(
                key,
                dst,
                f"copied to {dst} but deleting the source failed, object is duplicated: {e}",
            )

        return self._outcome(key, dst, OutcomeStatus.RELOCATED, format_data(decision.raw))

    def _outcome(
        self, key: str, dst: str | None, status: OutcomeStatus, detail: str
    ) -> RelocationOutcome:
        return RelocationOutcome(
            source_key=key,
            destination_key=dst,
            status=status,
            detail=detail,
            timestamp=self._clock(),
        )

    def _failed(self, key: str, dst: str | None, detail: str) -> RelocationOutcome:
        logger.warning("%s: %s", key, detail, exc_info=True, extra={"object_key": key})
        return self._outcome(key, dst, OutcomeStatus.FAILED, detail)

    def _record(self, outcome: RelocationOutcome) -> None:
        metrics.relocations_total.labels(status=outcome.status.value).inc()
        logger.info(
            "%s -> %s",
            outcome.source_key,
            outcome.destination_key or outcome.status.value,
            extra={
                "object_key": outcome.source_key,
                "destination_key": outcome.destination_key,
                "outcome": outcome.status.value,
            },
        )
        try:
            self._outcome_log.append(outcome)
        except OSError:
            logger.exception(
                "Could not write outcome record for %s", outcome.source_key
            )
