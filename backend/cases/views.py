"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

Role checks happen here (``require_role``) before the service call; the
workflow engine itself only checks the revision role.  Domain exceptions
are turned into HTTP responses by ``core.domain.exception_handler``.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from core.constants import Roles
from core.domain.access import actor_from_user, require_role

from .serializers import (
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    NeedsRevisionSerializer,
    ReconcileResultSerializer,
    ResubmitWorkOrderSerializer,
    StatusHistorySerializer,
)
from .services import (
    CaseChainReconciler,
    CaseFlow,
    CaseIntakeService,
    CaseQueryService,
    CaseWorkflowService,
)


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.  There is no update or delete route: ``status``
    and the stage pointers are only written by ``cases.services``.

    Permission Strategy
    -------------------
    ``create`` is open to anonymous callers (public complaint intake).
    Everything else requires authentication; role requirements are
    enforced per action.
    """

    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return super().get_permissions()

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description="List cases with optional filtering. Requires authentication.",
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by case status."),
            OpenApiParameter(name="created_after", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date. Cases created on or after."),
            OpenApiParameter(name="created_before", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date. Cases created on or before."),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY, description="Free-text search on customer name, address, connection number."),
        ],
        responses={
            200: OpenApiResponse(response=CaseListSerializer(many=True), description="Filtered list of cases."),
        },
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """
        GET /api/cases/
        """
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = CaseQueryService.get_filtered_queryset(filter_serializer.validated_data)
        serializer = CaseListSerializer(qs, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a complaint",
        description=(
            "Open a new case at REPORTED. Anonymous submissions are recorded "
            "with the 'public' role; staff submissions with their own role."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created."),
            400: OpenApiResponse(description="Validation error."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/cases/
        """
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseIntakeService.open_case(
            serializer.validated_data, actor_from_user(request.user),
        )
        out = CaseDetailSerializer(case)
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case details",
        description="Return the case with its status and cached stage pointers.",
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case detail."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        """
        GET /api/cases/{id}/
        """
        case = CaseQueryService.get_case_detail(pk)
        serializer = CaseDetailSerializer(case)
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Sub-resource @actions ─────────────────────────────────────────

    @action(detail=True, methods=["get"], url_path="status-history")
    @extend_schema(
        summary="Status history",
        description="Return the append-only audit trail of the case, oldest first.",
        responses={
            200: OpenApiResponse(response=StatusHistorySerializer(many=True), description="Audit trail."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def status_history(self, request: Request, pk: int = None) -> Response:
        """
        GET /api/cases/{id}/status-history/
        """
        entries = CaseQueryService.get_status_history(pk)
        serializer = StatusHistorySerializer(entries, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="consistency")
    @extend_schema(
        summary="Check stage pointer consistency",
        description=(
            "Compare the cached stage pointers with the canonical chain "
            "derived from the stage records. Read-only; use the reconcile "
            "action to repair drift."
        ),
        responses={
            200: OpenApiResponse(response=ReconcileResultSerializer, description="Reconciliation result."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Workflow"],
    )
    def consistency(self, request: Request, pk: int = None) -> Response:
        """
        GET /api/cases/{id}/consistency/
        """
        result = CaseChainReconciler.reconcile(pk, fix=False)
        return Response(ReconcileResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="reconcile")
    @extend_schema(
        summary="Repair stage pointers",
        description=(
            "Overwrite the cached stage pointers with the canonical chain. "
            "Admin only; status is never changed."
        ),
        request=None,
        responses={
            200: OpenApiResponse(response=ReconcileResultSerializer, description="Reconciliation result."),
            403: OpenApiResponse(description="Requires the admin role."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Workflow"],
    )
    def reconcile(self, request: Request, pk: int = None) -> Response:
        """
        POST /api/cases/{id}/reconcile/
        """
        require_role(request.user, Roles.ADMIN)
        result = CaseChainReconciler.reconcile(pk, fix=True)
        return Response(ReconcileResultSerializer(result).data, status=status.HTTP_200_OK)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="needs-revision")
    @extend_schema(
        summary="Send work order back for revision",
        description=(
            "Move a SPK_CREATED case back to PSP_CREATED. Only the field "
            "operations role may do this; the audit note is tagged "
            "NEEDS_REVISION."
        ),
        request=NeedsRevisionSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case sent back for revision."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case not found."),
            409: OpenApiResponse(description="Case is not SPK_CREATED."),
        },
        tags=["Cases – Workflow"],
    )
    def needs_revision(self, request: Request, pk: int = None) -> Response:
        """
        POST /api/cases/{id}/needs-revision/
        """
        serializer = NeedsRevisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseFlow.mark_needs_revision(
            pk,
            actor_from_user(request.user),
            note=serializer.validated_data.get("note") or None,
        )
        return Response(CaseDetailSerializer(case).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="resubmit-work-order")
    @extend_schema(
        summary="Re-dispatch a revised work order",
        description="Move a case sent back for revision to SPK_CREATED again.",
        request=ResubmitWorkOrderSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Work order re-dispatched."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case or work order not found."),
            409: OpenApiResponse(description="Case is not awaiting revision, or work order mismatch."),
        },
        tags=["Cases – Workflow"],
    )
    def resubmit_work_order(self, request: Request, pk: int = None) -> Response:
        """
        POST /api/cases/{id}/resubmit-work-order/
        """
        actor = require_role(request.user, Roles.FIELD_OPS, Roles.ADMIN)
        serializer = ResubmitWorkOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseWorkflowService.resubmit_work_order(
            pk, serializer.validated_data["work_order_id"], actor,
        )
        return Response(CaseDetailSerializer(case).data, status=status.HTTP_200_OK)
