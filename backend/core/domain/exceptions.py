"""
core.domain.exceptions — Domain-specific exception hierarchy.

Raised by the workflow engine (``cases.services``) and the stage services.
None of them subclass DRF exceptions; ``core.domain.exception_handler``
turns them into HTTP responses, and the management commands see them as
plain Python errors.

Mapping cheatsheet
------------------
┌─────────────────────┬───────────────┬──────┐
│ Domain Exception    │ Parent        │ Code │
├─────────────────────┼───────────────┼──────┤
│ DomainError         │ Exception     │ 400  │
│ PermissionDenied    │ DomainError   │ 403  │
│ NotFound            │ DomainError   │ 404  │
│ ParentNotFound      │ NotFound      │ 404  │
│ Conflict            │ DomainError   │ 409  │
│ InvalidTransition   │ Conflict      │ 409  │
│ DuplicateStage      │ Conflict      │ 409  │
│ ParentMismatch      │ Conflict      │ 409  │
└─────────────────────┴───────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if target not in ALLOWED_TRANSITIONS[case.status]:
        raise InvalidTransition(current=case.status, target=target)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """
    The actor does not hold the role required for this operation.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested case or stage record does not exist.

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class ParentNotFound(NotFound):
    """
    A parent stage record id was supplied (and matched the case's pointer)
    but no such row exists in the store.
    """

    def __init__(self, message: str = "The parent stage record does not exist.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    The message always carries the current status so that callers can
    show why the request was refused.

    Example::

        raise InvalidTransition(
            current="REPORTED",
            target="SPK_CREATED",
            reason="A work order needs a service request first.",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            elif current:
                parts.append(f"from '{current}'")
            if reason:
                parts.append(f"— {reason}")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class DuplicateStage(Conflict):
    """
    The stage slot on the case is already occupied (double submission).
    """

    def __init__(self, message: str = "A stage record of this kind already exists for the case.") -> None:
        super().__init__(message)


class ParentMismatch(Conflict):
    """
    The supplied parent stage id is not the one recorded on the case.
    """

    def __init__(self, message: str = "The parent stage record does not belong to this case.") -> None:
        super().__init__(message)
