"""Exception taxonomy shared by the aggregation, calculation and oracle layers.

Provider failures are absorbed inside the aggregator. Everything else is
surfaced to the caller with the stage it failed in and the chained cause.
"""

from typing import Any


class CarbonLinkError(Exception):
    """Base class for all service errors."""

    stage: str = "unknown"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(CarbonLinkError):
    """Out-of-range input the caller can correct."""

    stage = "validation"

    def __init__(self, violations: list, *, context: dict[str, Any] | None = None) -> None:
        self.violations = list(violations)
        details = "; ".join(v.message for v in self.violations)
        super().__init__(f"Invalid input: {details}", context=context)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["violations"] = [v.model_dump() for v in self.violations]
        return data


class ProviderError(CarbonLinkError):
    """Upstream fetch failed. Recovered locally with synthetic data."""

    stage = "provider"

    def __init__(self, domain: str, provider_id: str, reason: str) -> None:
        super().__init__(
            f"{provider_id} unavailable for {domain}: {reason}",
            context={"domain": domain, "provider_id": provider_id},
        )
        self.domain = domain
        self.provider_id = provider_id
        self.reason = reason


class MissingInputError(CarbonLinkError):
    """Offset mode invoked without both NDVI endpoints."""

    stage = "computation"


class OracleError(CarbonLinkError):
    stage = "oracle"


class OracleTimeoutError(OracleError):
    """No fulfillment arrived inside the wait window."""


class OracleRejectionError(OracleError):
    """Submission reverted or the fulfillment carried an error payload."""


class OutstandingRequestError(OracleError):
    """A project already has a Submitted or Pending request."""


class InvalidTransitionError(OracleError):
    """Attempt to move a request out of a terminal state."""


class ChainUnavailableError(OracleError):
    """Transport failure talking to the chain. Tolerated while polling."""
