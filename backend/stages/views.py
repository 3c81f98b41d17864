"""
Stages app ViewSets.

One ViewSet per stage record.  ``create`` runs the full guarded protocol
through ``stages.services``; the response carries both the new record
and the case it advanced.
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from cases.serializers import CaseDetailSerializer
from core.constants import Roles
from core.domain.access import require_role

from .models import RepairReport, ServiceRequest, WorkOrder
from .serializers import (
    RepairReportCreateSerializer,
    RepairReportSerializer,
    ServiceRequestCreateSerializer,
    ServiceRequestSerializer,
    WorkOrderCreateSerializer,
    WorkOrderSerializer,
)
from .services import RepairReportService, ServiceRequestService, WorkOrderService


_CONFLICT = OpenApiResponse(
    description=(
        "Case is in the wrong status, the parent id does not match the "
        "case, or the stage already exists."
    ),
)


def _created(record_data, case) -> Response:
    return Response(
        {"record": record_data, "case": CaseDetailSerializer(case).data},
        status=status.HTTP_201_CREATED,
    )


class ServiceRequestViewSet(viewsets.ViewSet):
    """Service requests (PSP): customer service and admin."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List service requests",
        responses={200: ServiceRequestSerializer(many=True)},
        tags=["Stages"],
    )
    def list(self, request: Request) -> Response:
        qs = ServiceRequest.objects.all()
        return Response(ServiceRequestSerializer(qs, many=True).data)

    @extend_schema(
        summary="Retrieve a service request",
        responses={200: ServiceRequestSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Stages"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        record = get_object_or_404(ServiceRequest, pk=pk)
        return Response(ServiceRequestSerializer(record).data)

    @extend_schema(
        summary="Create the service request of a case",
        description="Requires a REPORTED case. Moves it to PSP_CREATED.",
        request=ServiceRequestCreateSerializer,
        responses={
            201: OpenApiResponse(description="Record created; case advanced."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case not found."),
            409: _CONFLICT,
        },
        tags=["Stages"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/service-requests/
        """
        actor = require_role(request.user, Roles.CUSTOMER_SERVICE, Roles.ADMIN)
        serializer = ServiceRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        case_id = data.pop("case_id")

        record, case = ServiceRequestService.create_for_case(case_id, data, actor)
        return _created(ServiceRequestSerializer(record).data, case)


class WorkOrderViewSet(viewsets.ViewSet):
    """Work orders (SPK): field operations and admin."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List work orders",
        responses={200: WorkOrderSerializer(many=True)},
        tags=["Stages"],
    )
    def list(self, request: Request) -> Response:
        qs = WorkOrder.objects.all()
        return Response(WorkOrderSerializer(qs, many=True).data)

    @extend_schema(
        summary="Retrieve a work order",
        responses={200: WorkOrderSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Stages"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        record = get_object_or_404(WorkOrder, pk=pk)
        return Response(WorkOrderSerializer(record).data)

    @extend_schema(
        summary="Dispatch the work order of a case",
        description=(
            "Requires a PSP_CREATED case whose service request is "
            "service_request_id. Moves it to SPK_CREATED."
        ),
        request=WorkOrderCreateSerializer,
        responses={
            201: OpenApiResponse(description="Record created; case advanced."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case or service request not found."),
            409: _CONFLICT,
        },
        tags=["Stages"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/work-orders/
        """
        actor = require_role(request.user, Roles.FIELD_OPS, Roles.ADMIN)
        serializer = WorkOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        case_id = data.pop("case_id")
        service_request_id = data.pop("service_request_id")

        record, case = WorkOrderService.create_for_case(
            case_id, service_request_id, data, actor,
        )
        return _created(WorkOrderSerializer(record).data, case)


class RepairReportViewSet(viewsets.ViewSet):
    """Repair reports (BAP): field operations and admin."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List repair reports",
        responses={200: RepairReportSerializer(many=True)},
        tags=["Stages"],
    )
    def list(self, request: Request) -> Response:
        qs = RepairReport.objects.all()
        return Response(RepairReportSerializer(qs, many=True).data)

    @extend_schema(
        summary="Retrieve a repair report",
        responses={200: RepairReportSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Stages"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        record = get_object_or_404(RepairReport, pk=pk)
        return Response(RepairReportSerializer(record).data)

    @extend_schema(
        summary="File the repair report of a case",
        description=(
            "Requires a SPK_CREATED case whose work order is work_order_id. "
            "The case moves to RR_CREATED and then to MONITORING (result "
            "MONITORING) or COMPLETED (any other result)."
        ),
        request=RepairReportCreateSerializer,
        responses={
            201: OpenApiResponse(description="Record created; case closed."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case or work order not found."),
            409: _CONFLICT,
        },
        tags=["Stages"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/repair-reports/
        """
        actor = require_role(request.user, Roles.FIELD_OPS, Roles.ADMIN)
        serializer = RepairReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        case_id = data.pop("case_id")
        work_order_id = data.pop("work_order_id")

        record, case = RepairReportService.create_for_case(
            case_id, work_order_id, data, actor,
        )
        return _created(RepairReportSerializer(record).data, case)
