"""Domain exceptions shared by the meeting actions and the HTTP layer.

Validation failures are not wrapped: pydantic.ValidationError propagates
unchanged so callers can map field paths to form inputs.
"""

from __future__ import annotations


class ManagerOSError(Exception):
    """Base class for all ManagerOS domain errors."""


class OrganizationRequiredError(ManagerOSError):
    """Raised when the actor does not belong to an organization."""

    def __init__(self, purpose: str) -> None:
        self.purpose = purpose
        super().__init__(f"User must belong to an organization to {purpose}")


class NotFoundError(ManagerOSError):
    """Raised when a record is missing, belongs to another organization, or
    is not visible to the actor.

    The three causes share one message so that callers cannot discover the
    existence of other tenants' records.
    """

    def __init__(self, entity: str) -> None:
        self.entity = entity
        super().__init__(f"{entity} not found or access denied")


class ParticipantConflictError(ManagerOSError):
    """Raised when a person is added twice to the same meeting or instance."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"Person is already a participant in this {target}")


class IcsParseError(ManagerOSError):
    """Raised when an uploaded ICS file cannot be parsed into a meeting."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        if reason:
            super().__init__(f"Failed to parse ICS file: {reason}")
        else:
            super().__init__("Failed to parse ICS file")
