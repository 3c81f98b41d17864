"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture; ``role=`` puts the user in that group.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``actor`` / ``field_ops_actor`` workflow actors.
  - ``make_case`` and ``stage_payloads`` for engine-level tests.
"""

from __future__ import annotations

import datetime

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from core.constants import Roles
from core.domain.access import Actor


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice", role=Roles.FIELD_OPS)
    """
    from django.contrib.auth.models import Group, User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        role: str | None = None,
        is_superuser: bool = False,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"

        if is_superuser:
            user = User.objects.create_superuser(
                username=username, password=password, email=email, **kwargs,
            )
        else:
            user = User.objects.create_user(
                username=username, password=password, email=email, **kwargs,
            )
        if role is not None:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper that creates a user and returns an ``Authorization``
    header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(role=Roles.FIELD_OPS)
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(
        *,
        username: str | None = None,
        role: str | None = None,
        **user_kwargs,
    ) -> dict[str, str]:
        user = create_user(username=username, role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


# ── Engine fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def actor() -> Actor:
    return Actor(role=Roles.CUSTOMER_SERVICE, actor_id="7")


@pytest.fixture()
def field_ops_actor() -> Actor:
    return Actor(role=Roles.FIELD_OPS, actor_id="11")


@pytest.fixture()
def make_case(db):
    """
    Factory for a bare ``REPORTED`` case with no history and no pointers.
    """
    from cases.models import Case

    def _factory(**overrides):
        fields = {
            "customer_name": "Siti Rahma",
            "address": "Jl. Merdeka 12",
            "phone": "081234567890",
            "category": "pipe leak",
            "complaint_text": "Water leaking in front of the meter.",
        }
        fields.update(overrides)
        return Case.objects.create(**fields)

    return _factory


@pytest.fixture()
def stage_payloads():
    """Valid ``validated_data`` dicts for the three stage services."""
    start = timezone.now() - datetime.timedelta(hours=3)
    return {
        "service_request": {
            "customer_name": "Siti Rahma",
            "address": "Jl. Merdeka 12",
            "reasons": ["Pipe leak"],
        },
        "work_order": {
            "number": "SPK-001",
            "disturbance_type": "pipe leak",
            "team": "North",
        },
        "repair_report": {
            "action_taken": "Replaced the cracked service pipe.",
            "start_time": start,
            "end_time": start + datetime.timedelta(hours=2),
            "result": "FIXED",
        },
    }
