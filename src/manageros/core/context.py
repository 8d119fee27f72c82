"""Actor context passed explicitly into every meeting action.

The ActorContext is built once per request (see api/deps.get_actor) from the
authenticated user record. Actions never read a module-level "current user";
the organization is always derived server-side from the user, never from a
client-supplied tenant identifier.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.manageros.core.errors import OrganizationRequiredError


@dataclass(frozen=True)
class ActorContext:
    """Immutable identity of the caller for one action invocation."""

    user_id: str
    organization_id: str | None = None
    person_id: str | None = None  # linked Person record, if any

    def require_organization(self, purpose: str) -> str:
        """Return the organization id or raise OrganizationRequiredError.

        Args:
            purpose: Verb phrase completing "User must belong to an
                organization to ...", e.g. "create meetings".
        """
        if not self.organization_id:
            raise OrganizationRequiredError(purpose)
        return self.organization_id
