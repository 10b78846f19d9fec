"""Error definitions for recvault."""


class RecVaultError(Exception):
    """Base error carrying a short machine-readable code.

    Attributes:
        code: Stable error code string (e.g. "TransportError").
        message: Human-readable error description.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# -- Taxonomy -----------------------------------------------------------------


class TransportError(RecVaultError):
    """An external service (storage, identity, classifier, prober) is unreachable."""

    def __init__(self, message: str = "External service unreachable") -> None:
        super().__init__(code="TransportError", message=message)


class ClassificationUnreachable(TransportError):
    """The classification service failed to return a well-formed decision."""

    def __init__(self, message: str = "Classification service unreachable") -> None:
        super().__init__(message)
        self.code = "ClassificationUnreachable"


class MetadataUnavailable(RecVaultError):
    """The prober could not read a capture timestamp or duration."""

    def __init__(self, locator: str = "", reason: str = "") -> None:
        message = f"Metadata unavailable for {locator}" if locator else "Metadata unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(code="MetadataUnavailable", message=message)
        self.locator = locator
        self.reason = reason


class NotFoundError(RecVaultError):
    """A principal or object is absent where its existence was assumed."""

    def __init__(self, what: str = "") -> None:
        super().__init__(
            code="NotFound",
            message=f"Not found: {what}" if what else "Not found",
        )
        self.what = what


class BusinessRejection(RecVaultError):
    """The classification service explicitly declined a recording."""

    def __init__(
        self, reason: str = "Rejected by classification service", raw: object = None
    ) -> None:
        super().__init__(code="BusinessRejection", message=reason)
        self.reason = reason
        self.raw = raw


class PartialStateError(RecVaultError):
    """An identity operation failed after earlier steps had already succeeded.

    Attributes:
        name: The identity being provisioned or deprovisioned.
        completed_steps: Steps that finished before the failure, in order.
        failed_step: The step that raised.
        cause: The underlying exception.
    """

    def __init__(
        self,
        name: str,
        completed_steps: list[str],
        failed_step: str,
        cause: BaseException,
    ) -> None:
        done = ", ".join(completed_steps) or "none"
        super().__init__(
            code="PartialState",
            message=(
                f"Identity '{name}' left in partial state: step '{failed_step}' "
                f"failed ({cause}); completed steps: {done}"
            ),
        )
        self.name = name
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.cause = cause


class InvalidIdentityName(RecVaultError):
    """The identity name is not a valid IAM user name."""

    def __init__(self, name: str = "") -> None:
        super().__init__(
            code="InvalidIdentityName",
            message=f"Invalid identity name: {name!r}",
        )


class ConfigError(RecVaultError):
    """Configuration could not be loaded or is inconsistent."""

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(code="ConfigError", message=message)
