"""Client for the external classification service.

The service receives the owner candidate (first path segment of the intake
key) and the derived start label, and either matches the recording to a
canonical owner folder and session start time or declines it.

Wire format: multipart form POST with fields ``teacher_name`` and
``start_date``; the JSON response is ``{"error": 0, "data": {"start_date":
..., "folderName": ...}}`` on a match and ``{"error": <non-zero>, ...}``
otherwise.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from recvault.errors import BusinessRejection, ClassificationUnreachable
from recvault.models import Accepted, ClassificationDecision, Rejected

logger = logging.getLogger(__name__)


class ClassificationEnvelope(BaseModel):
    """Top level of a classification response."""

    model_config = ConfigDict(extra="allow")

    error: int
    data: Any = None
    message: str | None = None


class ClassificationData(BaseModel):
    """The ``data`` member of an accepted classification response."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    start_date: str = Field(min_length=1)
    folder_name: str = Field(alias="folderName", min_length=1)


def parse_decision(body: Any) -> ClassificationDecision:
    """Validate a decoded response body and turn it into a decision.

    Raises:
        ClassificationUnreachable: If the body does not follow the protocol.
    """
    try:
        envelope = ClassificationEnvelope.model_validate(body)
    except ValidationError as e:
        raise ClassificationUnreachable(f"Malformed classification response: {e}") from e

    if envelope.error != 0:
        reason = envelope.message or f"error={envelope.error}"
        return Rejected(reason=reason, raw=body)

    try:
        data = ClassificationData.model_validate(envelope.data)
    except ValidationError as e:
        raise ClassificationUnreachable(
            f"Classification accepted without usable data: {e}"
        ) from e
    return Accepted(
        owner_folder=data.folder_name.strip(),
        canonical_start_time=data.start_date.strip(),
        raw=body,
    )


def require_accepted(decision: ClassificationDecision) -> Accepted:
    """Return ``decision`` if accepted, else raise BusinessRejection."""
    if isinstance(decision, Rejected):
        raise BusinessRejection(decision.reason, raw=decision.raw)
    return decision


class ClassificationClient:
    """Submits one classification request per call. Never retries.

    Attributes:
        url: The classification endpoint.
    """

    def __init__(self, url: str, http_client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    async def classify(self, owner_candidate: str, start_label: str) -> ClassificationDecision:
        """Ask the service who a recording belongs to.

        Args:
            owner_candidate: Owner name guessed from the intake key.
            start_label: Derived local start label (``H-mm-ss_D-M-YYYY``).

        Returns:
            Accepted or Rejected.

        Raises:
            ClassificationUnreachable: On transport errors, non-2xx
                statuses, or responses that are not protocol JSON.
        """
        form = {
            "teacher_name": (None, owner_candidate.strip()),
            "start_date": (None, start_label.strip()),
        }
        try:
            response = await self._http.post(self.url, files=form)
        except httpx.HTTPError as e:
            raise ClassificationUnreachable(f"POST {self.url} failed: {e}") from e

        if not response.is_success:
            raise ClassificationUnreachable(
                f"POST {self.url} returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ClassificationUnreachable(f"Non-JSON response from {self.url}") from e

        decision = parse_decision(body)
        logger.debug(
            "Classified owner=%s label=%s -> %s",
            owner_candidate,
            start_label,
            type(decision).__name__,
        )
        return decision
