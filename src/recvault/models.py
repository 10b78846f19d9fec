"""Data model types for recvault.

These dataclasses represent the entities passed between the relocation
pipeline, the identity workflows and their external services. Values coming
back from AWS or the classification service are converted into these types
at the adapter boundary.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union


@dataclass(frozen=True)
class StorageObject:
    """Snapshot of one object returned by a listing call.

    Attributes:
        key: The object key.
        size: Size in bytes.
        last_modified: Last-modified time reported by the store, if any.
    """

    key: str
    size: int = 0
    last_modified: datetime | None = None


@dataclass(frozen=True)
class ProbeResult:
    """Raw container-level values reported by the media prober."""

    creation_time_raw: str
    duration_seconds: float


@dataclass(frozen=True)
class MediaFileInfo:
    """Capture instant (aware, UTC) and raw duration of a recording."""

    capture_time_utc: datetime
    duration_seconds: float


@dataclass(frozen=True)
class DerivedNaming:
    """Canonical file and date-folder names for one recording."""

    file_name: str
    folder_name: str


@dataclass(frozen=True)
class Accepted:
    """The classification service matched the recording to an owner/session.

    Attributes:
        owner_folder: Canonical folder name of the owner.
        canonical_start_time: Session start time as returned by the service.
        raw: The validated response body, kept for the outcome log.
    """

    owner_folder: str
    canonical_start_time: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Rejected:
    """The classification service declined the recording."""

    reason: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


ClassificationDecision = Union[Accepted, Rejected]


class OutcomeStatus(str, enum.Enum):
    """Terminal state of one object in a relocation run."""

    RELOCATED = "relocated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RelocationOutcome:
    """Append-only record of what happened to one listed object.

    Attributes:
        source_key: The intake key that was processed.
        destination_key: Key the object was copied to, if any.
        status: Terminal state.
        detail: Free-text description (decision body or error message).
        timestamp: Processing time (aware).
    """

    source_key: str
    destination_key: str | None
    status: OutcomeStatus
    detail: str
    timestamp: datetime


@dataclass
class AccessKey:
    """An access key pair. ``secret`` is only known right after creation."""

    key_id: str
    secret: str | None = None
    status: str = "Active"


@dataclass
class PrincipalSummary:
    """One IAM user as returned by a listing."""

    name: str
    user_id: str = ""
    arn: str = ""


@dataclass
class Identity:
    """A provisioned user: principal, policy, key pair and namespace."""

    name: str
    attached_policy_arn: str
    access_keys: list[AccessKey] = field(default_factory=list)
    namespace_prefix: str = ""


@dataclass
class ProvisionResult:
    """Result of IdentityProvisioner.provision().

    ``created`` is False when the principal already existed and nothing
    was done.
    """

    name: str
    created: bool
    identity: Identity | None = None
    namespace_created: bool = False


@dataclass
class DeprovisionResult:
    """Result of IdentityDeprovisioner.deprovision()."""

    name: str
    deleted: bool
    revoked_keys: list[str] = field(default_factory=list)
    detached_policies: list[str] = field(default_factory=list)
    namespace_deleted: bool = False


@dataclass
class IdentityStatus:
    """Read-only view of how much of an identity currently exists."""

    name: str
    principal_exists: bool
    attached_policies: list[str] = field(default_factory=list)
    access_key_ids: list[str] = field(default_factory=list)
    namespace_exists: bool = False

    @property
    def ready(self) -> bool:
        return (
            self.principal_exists
            and bool(self.attached_policies)
            and bool(self.access_key_ids)
            and self.namespace_exists
        )

    @property
    def partial(self) -> bool:
        if self.principal_exists:
            return not self.ready
        return self.namespace_exists


@dataclass(frozen=True)
class AttachedPolicy:
    """A managed policy attached to a principal."""

    arn: str
    name: str = ""
