"""
Cases app serializers.

Contains all Request and Response serializers for the Cases API.
Serializers handle field definitions and field-level validation only.
**No workflow transitions live here**; ``status`` and the stage pointers
are always read-only and are written by ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Case read serializers (list, detail)
3. Case write serializers (intake)
4. Workflow action serializers (revision, re-dispatch)
5. Sub-resource serializers (status history)
"""

from __future__ import annotations

import re
from typing import Any

from rest_framework import serializers

from .models import Case, CaseStatus, StatusHistory

# ── Phone number validation regex ───────────────────────────────────
_PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/cases/``.

    All fields are optional.  The view passes the validated dict directly
    to ``CaseQueryService.get_filtered_queryset``.
    """

    status = serializers.ChoiceField(
        choices=CaseStatus.choices,
        required=False,
        help_text="Filter by case status. Options: " + ", ".join([c[0] for c in CaseStatus.choices]) + ".",
    )
    created_after = serializers.DateField(required=False, help_text="ISO 8601 date. Return cases created on or after this date.")
    created_before = serializers.DateField(required=False, help_text="ISO 8601 date. Return cases created on or before this date.")
    search = serializers.CharField(
        required=False,
        max_length=255,
        allow_blank=False,
        help_text="Free-text search against customer name, address and connection number.",
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Ensure ``created_after <= created_before`` when both are provided.
        """
        after = attrs.get("created_after")
        before = attrs.get("created_before")
        if after and before and after > before:
            raise serializers.ValidationError(
                "created_after must be earlier than created_before."
            )
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  2. Case Read Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseListSerializer(serializers.ModelSerializer):
    """Compact representation for the list endpoint."""

    status_display = serializers.CharField(
        source="get_status_display",
        read_only=True,
    )

    class Meta:
        model = Case
        fields = [
            "id",
            "customer_name",
            "address",
            "category",
            "status",
            "status_display",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CaseDetailSerializer(serializers.ModelSerializer):
    """
    Full case representation including the cached stage pointers.

    The pointers are exposed as plain ids (``service_request``,
    ``work_order``, ``repair_report``); ``null`` means the stage has not
    been reached.
    """

    status_display = serializers.CharField(
        source="get_status_display",
        read_only=True,
    )
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "customer_name",
            "address",
            "phone",
            "connection_number",
            "category",
            "complaint_text",
            "maps_link",
            "status",
            "status_display",
            "is_open",
            "processed_at",
            "service_request",
            "work_order",
            "repair_report",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Case Write Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCreateSerializer(serializers.ModelSerializer):
    """
    Intake payload for ``POST /api/cases/``.

    Only complaint details are writable; every case starts at
    ``REPORTED`` with no stage pointers.
    """

    class Meta:
        model = Case
        fields = [
            "customer_name",
            "address",
            "phone",
            "connection_number",
            "category",
            "complaint_text",
            "maps_link",
        ]

    def validate_phone(self, value: str) -> str:
        if value and not _PHONE_REGEX.match(value):
            raise serializers.ValidationError(
                "Phone number must contain 7 to 15 digits, optionally prefixed with '+'."
            )
        return value

    def validate_customer_name(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Customer name must not be blank.")
        return value


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class NeedsRevisionSerializer(serializers.Serializer):
    """Payload for ``POST /api/cases/{id}/needs-revision/``."""

    note = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=2000,
        help_text="What has to change in the work order.",
    )


class ResubmitWorkOrderSerializer(serializers.Serializer):
    """Payload for ``POST /api/cases/{id}/resubmit-work-order/``."""

    work_order_id = serializers.IntegerField(min_value=1)


class CaseChainSerializer(serializers.Serializer):
    service_request = serializers.IntegerField(source="service_request_id", allow_null=True)
    work_order = serializers.IntegerField(source="work_order_id", allow_null=True)
    repair_report = serializers.IntegerField(source="repair_report_id", allow_null=True)


class ReconcileResultSerializer(serializers.Serializer):
    """
    Response of the consistency and reconcile endpoints.

    ``cached`` is the pointer triple stored on the case *after* the call
    (so it equals ``canonical`` whenever ``fixed`` is true).
    """

    case_id = serializers.IntegerField(source="case.pk")
    mismatch = serializers.BooleanField()
    fixed = serializers.BooleanField()
    cached = serializers.SerializerMethodField()
    canonical = CaseChainSerializer(source="chain")

    def get_cached(self, obj) -> dict[str, int | None]:
        sr, wo, rr = obj.case.pointers
        return {"service_request": sr, "work_order": wo, "repair_report": rr}


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read-only audit entry."""

    class Meta:
        model = StatusHistory
        fields = ["id", "status", "actor_role", "actor_id", "note", "created_at"]
        read_only_fields = fields
