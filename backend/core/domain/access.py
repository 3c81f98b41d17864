"""
core.domain.access — Actor resolution and role guards for the API layer.

The workflow engine performs **no authorization** of its own: it trusts
the ``Actor`` (role string + optional id) handed to it.  Views resolve
that actor from the request and enforce role requirements *before*
calling into ``cases.services`` / ``stages.services``.

    ┌─────────┐  Actor   ┌────────────────┐      ┌──────────────────┐
    │  View   │─────────▶│  App service   │─────▶│  Workflow engine │
    │ (authz) │          │ (transaction)  │      │  (cases.services)│
    └─────────┘          └────────────────┘      └──────────────────┘

Roles are carried as Django ``Group`` names; superusers are ``admin`` and
anonymous callers are ``public``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.constants import Roles


@dataclass(frozen=True)
class Actor:
    """Who is performing a workflow action, as recorded in the audit trail."""

    role: str
    actor_id: str | None = None


def get_user_role_name(user: Any) -> str:
    """
    Return the lowercased role name for a user.

    Args:
        user: ``request.user`` — may be ``AnonymousUser``.

    Returns:
        ``"public"`` for anonymous callers, ``"admin"`` for superusers,
        otherwise the first group name (alphabetical) in snake case.
        Authenticated users without a group get ``"public"`` too.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return Roles.PUBLIC
    if user.is_superuser:
        return Roles.ADMIN
    group = user.groups.order_by("name").first()
    if group is None:
        return Roles.PUBLIC
    return group.name.lower().replace(" ", "_")


def actor_from_user(user: Any) -> Actor:
    """Build the audit ``Actor`` for a request user."""
    role = get_user_role_name(user)
    if user is None or not getattr(user, "is_authenticated", False):
        return Actor(role=role)
    return Actor(role=role, actor_id=str(user.pk))


def require_role(user: Any, *allowed_roles: str) -> Actor:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.  Returns the resolved ``Actor`` on success.

    Example::

        actor = require_role(request.user, Roles.FIELD_OPS, Roles.ADMIN)
    """
    from core.domain.exceptions import PermissionDenied as DomainPermissionDenied

    actor = actor_from_user(user)
    if actor.role not in allowed_roles:
        raise DomainPermissionDenied(
            f"Role '{actor.role}' is not permitted for this operation. "
            f"Required: {', '.join(allowed_roles)}."
        )
    return actor
