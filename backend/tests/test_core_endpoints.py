"""
Tests for the shared ``core`` layer: role resolution, the domain
exception handler, the ``setup_roles`` command and the schema endpoint.
"""

from io import StringIO

import pytest
from django.contrib.auth.models import AnonymousUser, Group
from django.core.management import call_command
from django.urls import reverse
from rest_framework import status

from core.constants import Roles
from core.domain.access import actor_from_user, get_user_role_name, require_role
from core.domain.exception_handler import domain_exception_handler
from core.domain.exceptions import (
    DomainError,
    DuplicateStage,
    InvalidTransition,
    NotFound,
    ParentMismatch,
    ParentNotFound,
    PermissionDenied,
)


class TestExceptionHandler:

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (PermissionDenied("no"), 403),
            (NotFound("gone"), 404),
            (ParentNotFound("gone"), 404),
            (DuplicateStage("twice"), 409),
            (ParentMismatch("other"), 409),
            (InvalidTransition(current="REPORTED", target="SPK_CREATED"), 409),
            (DomainError("bad"), 400),
        ],
    )
    def test_status_mapping(self, exc, expected):
        response = domain_exception_handler(exc, {})
        assert response.status_code == expected
        assert response.data["code"] == type(exc).__name__

    def test_invalid_transition_exposes_statuses(self):
        exc = InvalidTransition(current="REPORTED", target="SPK_CREATED")
        response = domain_exception_handler(exc, {})
        assert response.data["current_status"] == "REPORTED"
        assert response.data["target_status"] == "SPK_CREATED"

    def test_unrelated_exception_is_left_alone(self):
        assert domain_exception_handler(ValueError("x"), {}) is None

    def test_invalid_transition_message_names_both_statuses(self):
        exc = InvalidTransition(current="REPORTED", target="SPK_CREATED", reason="skip")
        assert "REPORTED" in str(exc)
        assert "SPK_CREATED" in str(exc)
        assert exc.reason == "skip"


@pytest.mark.django_db
class TestRoleResolution:

    def test_anonymous_is_public(self):
        assert get_user_role_name(AnonymousUser()) == Roles.PUBLIC
        assert actor_from_user(AnonymousUser()).actor_id is None

    def test_superuser_is_admin(self, create_user):
        user = create_user(is_superuser=True)
        actor = actor_from_user(user)
        assert actor.role == Roles.ADMIN
        assert actor.actor_id == str(user.pk)

    def test_group_name_is_the_role(self, create_user):
        user = create_user(role="Field Ops")
        assert get_user_role_name(user) == Roles.FIELD_OPS

    def test_user_without_group_is_public(self, create_user):
        assert get_user_role_name(create_user()) == Roles.PUBLIC

    def test_require_role(self, create_user):
        user = create_user(role=Roles.CUSTOMER_SERVICE)
        assert require_role(user, Roles.CUSTOMER_SERVICE).role == Roles.CUSTOMER_SERVICE
        with pytest.raises(PermissionDenied):
            require_role(user, Roles.FIELD_OPS, Roles.ADMIN)


@pytest.mark.django_db
class TestSetupRolesCommand:

    def test_creates_groups_and_is_idempotent(self):
        call_command("setup_roles", stdout=StringIO())
        call_command("setup_roles", stdout=StringIO())

        names = set(Group.objects.values_list("name", flat=True))
        assert names == {Roles.ADMIN, Roles.CUSTOMER_SERVICE, Roles.FIELD_OPS}
        field_ops = Group.objects.get(name=Roles.FIELD_OPS)
        codenames = set(field_ops.permissions.values_list("codename", flat=True))
        assert "add_workorder" in codenames
        assert "add_servicerequest" not in codenames


@pytest.mark.django_db
def test_schema_endpoint_is_served(api_client):
    resp = api_client.get(reverse("schema"))
    assert resp.status_code == status.HTTP_200_OK


@pytest.mark.django_db
def test_jwt_header_authenticates(api_client, auth_header):
    header = auth_header(role=Roles.CUSTOMER_SERVICE)
    api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
    resp = api_client.get(reverse("case-list"))
    assert resp.status_code == status.HTTP_200_OK
    assert resp.data == []
