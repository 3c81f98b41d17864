"""
Stages app serializers.

Each create serializer carries the target ``case_id`` (and, for work
orders and repair reports, the parent record id) next to the stage
fields.  The view splits those routing ids off before handing the
remaining ``validated_data`` to the service.
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .models import RepairReport, RepairResult, ServiceRequest, WorkOrder

#: ``action_taken`` length bounds on a repair report.
ACTION_TAKEN_MIN_LENGTH = 10
ACTION_TAKEN_MAX_LENGTH = 4000
REMARKS_MAX_LENGTH = 2000
CONFIRMATION_NAME_MIN_LENGTH = 2
CONFIRMATION_NAME_MAX_LENGTH = 100


# ═══════════════════════════════════════════════════════════════════
#  Read serializers
# ═══════════════════════════════════════════════════════════════════


class ServiceRequestSerializer(serializers.ModelSerializer):

    class Meta:
        model = ServiceRequest
        fields = [
            "id",
            "customer_name",
            "address",
            "service_number",
            "phone",
            "received_at",
            "received_by",
            "reasons",
            "other_reason",
            "action_taken",
            "created_at",
        ]
        read_only_fields = fields


class WorkOrderSerializer(serializers.ModelSerializer):

    class Meta:
        model = WorkOrder
        fields = [
            "id",
            "service_request",
            "number",
            "reporter_name",
            "disturbance_location",
            "disturbance_type",
            "handled_at",
            "executor_name",
            "team",
            "created_at",
        ]
        read_only_fields = fields


class RepairReportSerializer(serializers.ModelSerializer):
    result_display = serializers.CharField(source="get_result_display", read_only=True)

    class Meta:
        model = RepairReport
        fields = [
            "id",
            "work_order",
            "action_taken",
            "start_time",
            "end_time",
            "result",
            "result_display",
            "remarks",
            "customer_confirmation_name",
            "created_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  Write serializers
# ═══════════════════════════════════════════════════════════════════


class ServiceRequestCreateSerializer(serializers.ModelSerializer):
    """``POST /api/service-requests/``: requires a ``REPORTED`` case."""

    case_id = serializers.IntegerField(min_value=1)
    reasons = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )

    class Meta:
        model = ServiceRequest
        fields = [
            "case_id",
            "customer_name",
            "address",
            "service_number",
            "phone",
            "received_at",
            "received_by",
            "reasons",
            "other_reason",
            "action_taken",
        ]


class WorkOrderCreateSerializer(serializers.ModelSerializer):
    """``POST /api/work-orders/``: requires a ``PSP_CREATED`` case."""

    case_id = serializers.IntegerField(min_value=1)
    service_request_id = serializers.IntegerField(min_value=1)

    class Meta:
        model = WorkOrder
        fields = [
            "case_id",
            "service_request_id",
            "number",
            "reporter_name",
            "disturbance_location",
            "disturbance_type",
            "handled_at",
            "executor_name",
            "team",
        ]


class RepairReportCreateSerializer(serializers.ModelSerializer):
    """
    ``POST /api/repair-reports/``: requires a ``SPK_CREATED`` case.

    Validation
    ----------
    - ``action_taken`` is 10–4000 characters after trimming.
    - ``end_time`` must not be earlier than ``start_time``.
    - ``result`` is one of ``FIXED``, ``MONITORING``, ``NOT_FIXED``.
    - ``remarks`` is at most 2000 characters; ``customer_confirmation_name``
      is 2–100 characters. Both may be left blank.
    """

    case_id = serializers.IntegerField(min_value=1)
    work_order_id = serializers.IntegerField(min_value=1)
    result = serializers.ChoiceField(choices=RepairResult.choices)
    remarks = serializers.CharField(
        required=False, allow_blank=True, max_length=REMARKS_MAX_LENGTH,
    )
    customer_confirmation_name = serializers.CharField(
        required=False,
        allow_blank=True,
        min_length=CONFIRMATION_NAME_MIN_LENGTH,
        max_length=CONFIRMATION_NAME_MAX_LENGTH,
    )

    class Meta:
        model = RepairReport
        fields = [
            "case_id",
            "work_order_id",
            "action_taken",
            "start_time",
            "end_time",
            "result",
            "remarks",
            "customer_confirmation_name",
        ]

    def validate_action_taken(self, value: str) -> str:
        value = value.strip()
        if not ACTION_TAKEN_MIN_LENGTH <= len(value) <= ACTION_TAKEN_MAX_LENGTH:
            raise serializers.ValidationError(
                f"Action taken must be between {ACTION_TAKEN_MIN_LENGTH} and "
                f"{ACTION_TAKEN_MAX_LENGTH} characters."
            )
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["end_time"] < attrs["start_time"]:
            raise serializers.ValidationError(
                {"end_time": "End time must not be earlier than start time."}
            )
        return attrs
