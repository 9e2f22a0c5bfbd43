"""Error taxonomy for the qualification and cadence engine.

All errors are raised to the immediate caller. The engine performs no retries
and never converts a storage failure into an eligibility answer.
"""

from __future__ import annotations


class LeadEngineError(Exception):
    """Base class for qualification/cadence engine errors."""


class ValidationError(LeadEngineError, ValueError):
    """Malformed or incomplete questionnaire input. Not retryable.

    ``errors`` maps the offending field (question id) to a message.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        self.errors = dict(errors or {})
        super().__init__(message)


class ConfigurationError(LeadEngineError, ValueError):
    """Malformed questionnaire, threshold table or cadence strategy configuration.

    Subclasses ValueError so startup code can catch it alongside YAML and
    file errors without importing this class.
    """


class TransientError(LeadEngineError):
    """Storage unavailable. The caller may retry with backoff."""

    retryable = True


class ConcurrencyOveradmission(LeadEngineError):
    """Trailing-window attempt count exceeded the weekly cap.

    Soft condition caused by concurrent check-then-record callers. Logged,
    never raised by the unconditional record path.
    """

    def __init__(self, lead_id: str, count: int, cap: int) -> None:
        self.lead_id = lead_id
        self.count = count
        self.cap = cap
        super().__init__(
            f"Lead {lead_id} has {count} attempts in the trailing 7 days (cap {cap})"
        )


class QualificationNotFoundError(LeadEngineError, LookupError):
    """No qualification record exists for the lead."""

    def __init__(self, lead_id: str, organization_id: str | None = None) -> None:
        self.lead_id = lead_id
        self.organization_id = organization_id
        scope = f" in organization {organization_id}" if organization_id else ""
        super().__init__(f"No qualification record for lead {lead_id}{scope}")


class AmbiguousLeadError(LeadEngineError):
    """Lead id is qualified under more than one organization and none was given."""

    def __init__(self, lead_id: str, organization_ids: list[str]) -> None:
        self.lead_id = lead_id
        self.organization_ids = organization_ids
        super().__init__(
            f"Lead {lead_id} is qualified in several organizations: "
            f"{', '.join(sorted(organization_ids))}. Pass organization_id."
        )
