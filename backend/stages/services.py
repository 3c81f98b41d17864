"""
Stages app Service Layer.

Creates stage records for a case.  Every ``create_for_case`` runs the
full protocol inside one ``transaction.atomic`` block:

    1. ``TransitionGuards`` — status, parent, duplicate and existence checks.
    2. Insert the stage record.
    3. The matching ``CaseFlow`` milestone (status + pointer + audit entry).
    4. ``CaseChainReconciler.reconcile(fix=True)`` — self-heal pointers.

If any step raises, nothing is committed.  The unique parent-reference
constraints on ``WorkOrder``/``RepairReport`` back up the guards: a racing
duplicate insert surfaces as ``DuplicateStage``.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction

from cases.models import Case
from cases.services import CaseChainReconciler, CaseFlow, TransitionGuards
from core.domain.access import Actor
from core.domain.exceptions import DuplicateStage

from .models import RepairReport, RepairResult, ServiceRequest, WorkOrder

logger = logging.getLogger(__name__)


def _insert_once(model_class: type, label: str, unique_field: str, **fields: Any):
    """
    Insert under a savepoint; translate a hit on the parent-reference
    unique constraint into ``DuplicateStage``.

    Any other ``IntegrityError`` (NOT NULL, foreign key) is re-raised.
    The constraint is identified by re-reading the parent column after the
    savepoint rollback, since sqlite error messages carry no constraint name.
    """
    try:
        with transaction.atomic():
            return model_class.objects.create(**fields)
    except IntegrityError as exc:
        parent_id = fields.get(unique_field)
        if parent_id is None or not model_class.objects.filter(
            **{unique_field: parent_id}
        ).exists():
            raise
        raise DuplicateStage(
            f"A {label} already exists for this parent record."
        ) from exc


# ═══════════════════════════════════════════════════════════════════
#  Service Request (PSP)
# ═══════════════════════════════════════════════════════════════════


class ServiceRequestService:

    @staticmethod
    @transaction.atomic
    def create_for_case(
        case_id: Any,
        validated_data: dict[str, Any],
        actor: Actor,
        note: str | None = None,
    ) -> tuple[ServiceRequest, Case]:
        """
        Record the service request of a ``REPORTED`` case.

        Returns the new record and the case at ``PSP_CREATED``.
        """
        TransitionGuards.service_request(case_id)
        service_request = ServiceRequest.objects.create(**validated_data)
        CaseFlow.mark_psp_created(case_id, service_request.pk, actor, note=note)
        case = CaseChainReconciler.reconcile(case_id, fix=True).case

        logger.info(
            "Service request %s created for case %s by %s",
            service_request.pk, case.pk, actor.role,
        )
        return service_request, case


# ═══════════════════════════════════════════════════════════════════
#  Work Order (SPK)
# ═══════════════════════════════════════════════════════════════════


class WorkOrderService:

    @staticmethod
    @transaction.atomic
    def create_for_case(
        case_id: Any,
        service_request_id: Any,
        validated_data: dict[str, Any],
        actor: Actor,
        note: str | None = None,
    ) -> tuple[WorkOrder, Case]:
        """
        Dispatch a work order for the case's service request.

        Returns the new record and the case at ``SPK_CREATED``.
        """
        TransitionGuards.work_order(case_id, service_request_id)
        work_order = _insert_once(
            WorkOrder,
            "work order",
            "service_request_id",
            service_request_id=service_request_id,
            **validated_data,
        )
        CaseFlow.mark_spk_created(case_id, work_order.pk, actor, note=note)
        case = CaseChainReconciler.reconcile(case_id, fix=True).case

        logger.info(
            "Work order %s created for case %s (service request %s) by %s",
            work_order.pk, case.pk, service_request_id, actor.role,
        )
        return work_order, case


# ═══════════════════════════════════════════════════════════════════
#  Repair Report (BAP)
# ═══════════════════════════════════════════════════════════════════


class RepairReportService:

    @staticmethod
    @transaction.atomic
    def create_for_case(
        case_id: Any,
        work_order_id: Any,
        validated_data: dict[str, Any],
        actor: Actor,
        note: str | None = None,
    ) -> tuple[RepairReport, Case]:
        """
        File the repair report and close the case.

        Two milestones are written: ``RR_CREATED`` and then the final
        status — ``MONITORING`` when the result is ``MONITORING``,
        ``COMPLETED`` for every other result.
        """
        TransitionGuards.repair_report(case_id, work_order_id)
        repair_report = _insert_once(
            RepairReport,
            "repair report",
            "work_order_id",
            work_order_id=work_order_id,
            **validated_data,
        )
        CaseFlow.mark_rr_created(case_id, repair_report.pk, actor, note=note)
        if repair_report.result == RepairResult.MONITORING:
            CaseFlow.mark_monitoring(case_id, actor)
        else:
            CaseFlow.mark_completed(case_id, actor)
        case = CaseChainReconciler.reconcile(case_id, fix=True).case

        logger.info(
            "Repair report %s (%s) filed for case %s by %s; case is %s",
            repair_report.pk, repair_report.result, case.pk, actor.role, case.status,
        )
        return repair_report, case
