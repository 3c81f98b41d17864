"""
core.domain.exception_handler — DRF exception handler for workflow errors.

Wired up in ``caseflow/settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }

Response body for a domain error::

    {"detail": "...", "code": "DuplicateStage"}

``InvalidTransition`` additionally carries ``current_status`` (and
``target_status`` when known) so a client can refresh its view of the case.
"""

from __future__ import annotations

import logging
from typing import Any

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler
from rest_framework.views import set_rollback

from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
)

logger = logging.getLogger(__name__)

# Resolved by isinstance in order; the base class must stay last.
_STATUS_MAP: tuple[tuple[type[DomainError], int], ...] = (
    (PermissionDenied, 403),
    (NotFound,         404),
    (Conflict,         409),
    (DomainError,      400),
)


def _status_for(exc: DomainError) -> int:
    for exc_class, status_code in _STATUS_MAP:
        if isinstance(exc, exc_class):
            return status_code
    return 400


def _payload(exc: DomainError) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": str(exc), "code": type(exc).__name__}
    if isinstance(exc, InvalidTransition):
        if exc.current:
            body["current_status"] = exc.current
        if exc.target:
            body["target_status"] = exc.target
    return body


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Let DRF render its own exceptions, then turn a ``DomainError`` into a
    JSON response.  Anything else returns ``None`` and propagates as a 500.
    """
    response = drf_default_handler(exc, context)
    if response is not None or not isinstance(exc, DomainError):
        return response

    status_code = _status_for(exc)
    logger.warning(
        "%s in %s (HTTP %s): %s",
        type(exc).__name__,
        context.get("view", "unknown"),
        status_code,
        exc,
    )
    set_rollback()
    return Response(_payload(exc), status=status_code)
