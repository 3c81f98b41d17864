"""
Cases app Service Layer — the case workflow consistency engine.

This module is the **single source of truth** for every write to
``Case.status`` and to the three stage pointers on ``Case``.  Views and
the ``stages`` services call in here; nothing else assigns those fields.

Architecture
------------
- ``StatusChange``           — Closed set of milestone values (what to write).
- ``StatusHistoryWriter``    — Append-only audit trail.
- ``TransitionGuards``       — Pre-checks before a stage record is inserted.
- ``CaseStatusService``      — Validated status transition + audit entry.
- ``CaseFlow``               — Named milestones over ``CaseStatusService``.
- ``CaseChainReconciler``    — Recomputes the canonical chain, repairs pointers.
- ``CaseIntakeService``      — Opens a new case at ``REPORTED``.
- ``CaseWorkflowService``    — Revision round-trip helpers.
- ``CaseQueryService``       — Read projections for the API.

Workflow State-Machine Overview
--------------------------------
  REPORTED
    → PSP_CREATED        (service request recorded)
    → SPK_CREATED        (work order dispatched)
    → RR_CREATED         (repair report filed)
    → COMPLETED | MONITORING   (decided by the repair result)

  * SPK_CREATED → PSP_CREATED only through ``CaseFlow.mark_needs_revision``
    (field operations role; audit note tagged ``NEEDS_REVISION``).
  * REPORTED → REPORTED is the intake record written by ``mark_reported``.

Caller protocol for creating a stage record (one ``transaction.atomic``)::

    TransitionGuards.work_order(case_id, service_request_id)
    wo = WorkOrder.objects.create(service_request_id=service_request_id, ...)
    CaseFlow.mark_spk_created(case_id, wo.pk, actor)
    CaseChainReconciler.reconcile(case_id, fix=True)
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.constants import (
    NEEDS_REVISION_TAG,
    PUBLIC_INTAKE_NOTE,
    REVISION_ROLE,
    STAFF_INTAKE_NOTE,
    Roles,
)
from core.domain.access import Actor
from core.domain.exceptions import (
    DomainError,
    DuplicateStage,
    InvalidTransition,
    NotFound,
    ParentMismatch,
    ParentNotFound,
    PermissionDenied,
)
from core.domain.transactions import lock_for_update, require_atomic
from stages.models import RepairReport, ServiceRequest, StageKind, WorkOrder

from .models import Case, CaseStatus, StatusHistory

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps current status → statuses reachable through ``CaseStatusService``.
#: The revision step (SPK_CREATED → PSP_CREATED) is not listed here;
#: it only exists as ``CaseFlow.mark_needs_revision``.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CaseStatus.REPORTED: frozenset({CaseStatus.REPORTED, CaseStatus.PSP_CREATED}),
    CaseStatus.PSP_CREATED: frozenset({CaseStatus.SPK_CREATED}),
    CaseStatus.SPK_CREATED: frozenset({CaseStatus.RR_CREATED}),
    CaseStatus.RR_CREATED: frozenset({CaseStatus.COMPLETED, CaseStatus.MONITORING}),
    CaseStatus.COMPLETED: frozenset(),
    CaseStatus.MONITORING: frozenset(),
}

#: Pointer fields a status change may write alongside the status.
POINTER_FIELDS: tuple[str, ...] = ("service_request_id", "work_order_id", "repair_report_id")


# ═══════════════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StatusChange:
    """
    One status write: the target status, the pointer fields set in the
    same UPDATE, and whether ``processed_at`` is stamped.

    Build instances through the milestone constructors rather than by
    hand; ``custom`` exists for the generic ``transition`` entry point.
    """

    target: str
    links: tuple[tuple[str, int | None], ...] = ()
    stamp_processed_at: bool = False
    processed_at: datetime.datetime | None = None
    clear_processed_at: bool = False

    @classmethod
    def reported(cls) -> StatusChange:
        return cls(CaseStatus.REPORTED)

    @classmethod
    def psp_created(cls, service_request_id: int) -> StatusChange:
        return cls(
            CaseStatus.PSP_CREATED,
            links=(("service_request_id", service_request_id),),
            stamp_processed_at=True,
        )

    @classmethod
    def spk_created(cls, work_order_id: int) -> StatusChange:
        return cls(
            CaseStatus.SPK_CREATED,
            links=(("work_order_id", work_order_id),),
            stamp_processed_at=True,
        )

    @classmethod
    def rr_created(cls, repair_report_id: int) -> StatusChange:
        return cls(
            CaseStatus.RR_CREATED,
            links=(("repair_report_id", repair_report_id),),
        )

    @classmethod
    def completed(cls) -> StatusChange:
        return cls(CaseStatus.COMPLETED)

    @classmethod
    def monitoring(cls) -> StatusChange:
        return cls(CaseStatus.MONITORING)

    @classmethod
    def needs_revision(cls) -> StatusChange:
        return cls(CaseStatus.PSP_CREATED)

    @classmethod
    def custom(
        cls,
        target: str,
        pointer_update: dict[str, Any] | None = None,
    ) -> StatusChange:
        """
        Build a change from a target status and a partial pointer dict.

        ``pointer_update`` keys must be among ``POINTER_FIELDS`` or
        ``processed_at``.  A ``processed_at`` value of ``None`` clears it.
        """
        pointer_update = dict(pointer_update or {})
        processed_at = None
        clear_processed_at = False
        if "processed_at" in pointer_update:
            processed_at = pointer_update.pop("processed_at")
            clear_processed_at = processed_at is None
        unknown = set(pointer_update) - set(POINTER_FIELDS)
        if unknown:
            raise DomainError(
                f"Unknown pointer field(s): {', '.join(sorted(unknown))}."
            )
        return cls(
            target,
            links=tuple((name, pointer_update[name]) for name in POINTER_FIELDS if name in pointer_update),
            processed_at=processed_at,
            clear_processed_at=clear_processed_at,
        )


@dataclass(frozen=True)
class CaseChain:
    """The canonical ``ServiceRequest ◀ WorkOrder ◀ RepairReport`` linkage."""

    case_id: int
    service_request_id: int | None
    work_order_id: int | None
    repair_report_id: int | None

    def as_tuple(self) -> tuple[int | None, int | None, int | None]:
        return (self.service_request_id, self.work_order_id, self.repair_report_id)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of ``CaseChainReconciler.reconcile``."""

    mismatch: bool
    fixed: bool
    case: Case
    chain: CaseChain


# ═══════════════════════════════════════════════════════════════════
#  Audit Trail Writer
# ═══════════════════════════════════════════════════════════════════


class StatusHistoryWriter:
    """
    Appends ``StatusHistory`` rows.  Never conditional, never rejected —
    only the enclosing transaction can undo an entry.
    """

    @staticmethod
    def append(
        case: Case,
        status: str,
        actor: Actor,
        note: str | None = None,
    ) -> StatusHistory:
        return StatusHistory.objects.create(
            case=case,
            status=status,
            actor_role=actor.role,
            actor_id=actor.actor_id,
            note=note or None,
        )


# ═══════════════════════════════════════════════════════════════════
#  Transition Guards
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class _GuardRule:
    required_status: str
    slot_field: str
    label: str
    parent_field: str | None = None
    parent_model: type | None = None


_GUARD_RULES: dict[str, _GuardRule] = {
    StageKind.SERVICE_REQUEST: _GuardRule(
        required_status=CaseStatus.REPORTED,
        slot_field="service_request_id",
        label="service request",
    ),
    StageKind.WORK_ORDER: _GuardRule(
        required_status=CaseStatus.PSP_CREATED,
        slot_field="work_order_id",
        label="work order",
        parent_field="service_request_id",
        parent_model=ServiceRequest,
    ),
    StageKind.REPAIR_REPORT: _GuardRule(
        required_status=CaseStatus.SPK_CREATED,
        slot_field="repair_report_id",
        label="repair report",
        parent_field="work_order_id",
        parent_model=WorkOrder,
    ),
}


def _same_id(stored: Any, supplied: Any) -> bool:
    return stored is not None and supplied is not None and str(stored) == str(supplied)


class TransitionGuards:
    """
    One guard per stage kind.  Each guard only reads (the Case row is
    read with ``select_for_update``), and must be called inside the same
    ``transaction.atomic`` block as the stage insert and the milestone.
    """

    @staticmethod
    def run(kind: str, case_id: Any, parent_id: Any = None) -> Case:
        """
        Verify that a stage record of ``kind`` may be created for a case.

        Returns
        -------
        Case
            The locked case, unchanged.

        Raises
        ------
        NotFound
            The case does not exist.
        InvalidTransition
            The case is not in the status required for this stage.
        ParentMismatch
            ``parent_id`` is not the case's recorded parent pointer.
        DuplicateStage
            The case already points at a record of this kind (checked
            before the status when the slot is filled).
        ParentNotFound
            The parent stage row itself is missing.
        """
        require_atomic("TransitionGuards.run")
        try:
            rule = _GUARD_RULES[StageKind(kind)]
        except ValueError:
            raise DomainError(f"Unknown stage kind '{kind}'.")

        case = lock_for_update(Case, case_id)
        occupied = getattr(case, rule.slot_field)

        if case.status != rule.required_status:
            logger.debug(
                "Guard %s rejected case %s: status %s", kind, case.pk, case.status,
            )
            # A filled slot means this stage was already created: double submit.
            if occupied is not None:
                raise DuplicateStage(
                    f"Case #{case.pk} already has a {rule.label} (#{occupied}); "
                    f"current status is {case.status}."
                )
            raise InvalidTransition(
                f"A {rule.label} can only be created while the case is "
                f"{rule.required_status}; current status is {case.status}.",
                current=case.status,
            )

        if rule.parent_field is not None:
            stored_parent = getattr(case, rule.parent_field)
            if not _same_id(stored_parent, parent_id):
                raise ParentMismatch(
                    f"{rule.parent_model.__name__} {parent_id} does not match "
                    f"case #{case.pk} (recorded: {stored_parent})."
                )

        if occupied is not None:
            raise DuplicateStage(
                f"Case #{case.pk} already has a {rule.label} (#{occupied})."
            )

        if rule.parent_model is not None:
            if not rule.parent_model.objects.filter(pk=parent_id).exists():
                raise ParentNotFound(
                    f"{rule.parent_model.__name__} {parent_id} does not exist."
                )

        return case

    @staticmethod
    def service_request(case_id: Any) -> Case:
        return TransitionGuards.run(StageKind.SERVICE_REQUEST, case_id)

    @staticmethod
    def work_order(case_id: Any, service_request_id: Any) -> Case:
        return TransitionGuards.run(StageKind.WORK_ORDER, case_id, service_request_id)

    @staticmethod
    def repair_report(case_id: Any, work_order_id: Any) -> Case:
        return TransitionGuards.run(StageKind.REPAIR_REPORT, case_id, work_order_id)


# ═══════════════════════════════════════════════════════════════════
#  Status Transition Service
# ═══════════════════════════════════════════════════════════════════


class CaseStatusService:
    """
    Validated gateway through the state machine.

    Every accepted change performs exactly two writes inside one atomic
    block: a single ``UPDATE`` of the case (status + pointers) and one
    ``StatusHistory`` insert.
    """

    @staticmethod
    @transaction.atomic
    def apply(
        case_id: Any,
        change: StatusChange,
        actor: Actor,
        note: str | None = None,
    ) -> Case:
        """
        Apply a ``StatusChange`` to a case.

        Raises
        ------
        NotFound
            The case does not exist.
        InvalidTransition
            ``(case.status, change.target)`` is not an edge of the machine.
            The case is left untouched.
        """
        case = lock_for_update(Case, case_id)
        allowed = ALLOWED_TRANSITIONS.get(case.status, frozenset())
        if change.target not in allowed:
            raise InvalidTransition(
                current=case.status,
                target=change.target,
                reason=(
                    f"current status is {case.status}; allowed targets: "
                    f"{', '.join(sorted(allowed)) or 'none'}"
                ),
            )
        return CaseStatusService._write(case, change, actor, note)

    @staticmethod
    @transaction.atomic
    def transition(
        case_id: Any,
        target_status: str,
        actor: Actor,
        pointer_update: dict[str, Any] | None = None,
        note: str | None = None,
    ) -> Case:
        """
        Generic entry point: move a case to ``target_status``, optionally
        writing some pointer fields in the same update.
        """
        try:
            target = CaseStatus(target_status)
        except ValueError:
            case = lock_for_update(Case, case_id)
            raise InvalidTransition(
                current=case.status,
                target=str(target_status),
                reason=f"'{target_status}' is not a case status",
            )
        return CaseStatusService.apply(
            case_id, StatusChange.custom(target, pointer_update), actor, note,
        )

    @staticmethod
    def _write(
        case: Case,
        change: StatusChange,
        actor: Actor,
        note: str | None,
    ) -> Case:
        previous = case.status
        update_fields = ["status", "updated_at"]
        case.status = change.target

        for field_name, value in change.links:
            setattr(case, field_name, value)
            update_fields.append(field_name)

        if change.stamp_processed_at:
            case.processed_at = timezone.now()
            update_fields.append("processed_at")
        elif change.processed_at is not None or change.clear_processed_at:
            case.processed_at = change.processed_at
            update_fields.append("processed_at")

        case.save(update_fields=update_fields)
        StatusHistoryWriter.append(case, change.target, actor, note)

        logger.info(
            "Case %s: %s → %s by %s (actor=%s)",
            case.pk, previous, change.target, actor.role, actor.actor_id,
        )
        return case


# ═══════════════════════════════════════════════════════════════════
#  Workflow Facade
# ═══════════════════════════════════════════════════════════════════


class CaseFlow:
    """
    Named milestones.  Each one fixes the target status and the pointer it
    writes; the status service enforces the edge.

    Repair outcome is a two-step protocol owned by the caller::

        CaseFlow.mark_rr_created(case_id, rr.pk, actor)
        if rr.result == RepairResult.MONITORING:
            CaseFlow.mark_monitoring(case_id, actor)
        else:
            CaseFlow.mark_completed(case_id, actor)

    so the transient ``RR_CREATED`` state is visible in the history.
    """

    @staticmethod
    def mark_reported(case_id: Any, actor: Actor, note: str | None = None) -> Case:
        return CaseStatusService.apply(case_id, StatusChange.reported(), actor, note)

    @staticmethod
    def mark_psp_created(
        case_id: Any, service_request_id: int, actor: Actor, note: str | None = None,
    ) -> Case:
        return CaseStatusService.apply(
            case_id, StatusChange.psp_created(service_request_id), actor, note,
        )

    @staticmethod
    def mark_spk_created(
        case_id: Any, work_order_id: int, actor: Actor, note: str | None = None,
    ) -> Case:
        return CaseStatusService.apply(
            case_id, StatusChange.spk_created(work_order_id), actor, note,
        )

    @staticmethod
    def mark_rr_created(
        case_id: Any, repair_report_id: int, actor: Actor, note: str | None = None,
    ) -> Case:
        return CaseStatusService.apply(
            case_id, StatusChange.rr_created(repair_report_id), actor, note,
        )

    @staticmethod
    def mark_completed(case_id: Any, actor: Actor, note: str | None = None) -> Case:
        return CaseStatusService.apply(case_id, StatusChange.completed(), actor, note)

    @staticmethod
    def mark_monitoring(case_id: Any, actor: Actor, note: str | None = None) -> Case:
        return CaseStatusService.apply(case_id, StatusChange.monitoring(), actor, note)

    @staticmethod
    @transaction.atomic
    def mark_needs_revision(case_id: Any, actor: Actor, note: str | None = None) -> Case:
        """
        Send a dispatched work order back: ``SPK_CREATED → PSP_CREATED``.

        The only backward edge of the machine.  Pointers are left as they
        are; the audit note is ``NEEDS_REVISION`` or ``NEEDS_REVISION: <note>``.

        Raises
        ------
        PermissionDenied
            ``actor.role`` is not the revision role.
        InvalidTransition
            The case is not ``SPK_CREATED``.
        """
        if actor.role != REVISION_ROLE:
            raise PermissionDenied(
                f"Only '{REVISION_ROLE}' may request a revision; got '{actor.role}'."
            )
        case = lock_for_update(Case, case_id)
        if case.status != CaseStatus.SPK_CREATED:
            raise InvalidTransition(
                current=case.status,
                target=CaseStatus.PSP_CREATED,
                reason=f"revision is only possible from {CaseStatus.SPK_CREATED}",
            )
        tagged = f"{NEEDS_REVISION_TAG}: {note}" if note else NEEDS_REVISION_TAG
        return CaseStatusService._write(case, StatusChange.needs_revision(), actor, tagged)


# ═══════════════════════════════════════════════════════════════════
#  Chain Reconciler
# ═══════════════════════════════════════════════════════════════════


class CaseChainReconciler:
    """
    Recomputes the canonical chain from the stage tables and compares it
    with the pointers cached on the case.

    Drift is an expected condition, never an error.  ``fix=True`` repairs
    exactly the three pointer fields; ``status`` is never touched.
    """

    @staticmethod
    def canonical_chain(case: Case) -> CaseChain:
        sr_id = case.service_request_id
        wo_id = None
        rr_id = None
        if sr_id is not None:
            wo_id = (
                WorkOrder.objects.filter(service_request_id=sr_id)
                .order_by("created_at", "pk")
                .values_list("pk", flat=True)
                .first()
            )
        if wo_id is not None:
            rr_id = (
                RepairReport.objects.filter(work_order_id=wo_id)
                .order_by("created_at", "pk")
                .values_list("pk", flat=True)
                .first()
            )
        return CaseChain(
            case_id=case.pk,
            service_request_id=sr_id,
            work_order_id=wo_id,
            repair_report_id=rr_id,
        )

    @staticmethod
    @transaction.atomic
    def reconcile(case_id: Any, fix: bool = False) -> ReconcileResult:
        """
        Compare (and with ``fix=True`` repair) a case's stage pointers.

        Raises
        ------
        NotFound
            The case does not exist.
        """
        case = lock_for_update(Case, case_id)
        chain = CaseChainReconciler.canonical_chain(case)
        mismatch = case.pointers != chain.as_tuple()

        if not mismatch:
            return ReconcileResult(mismatch=False, fixed=False, case=case, chain=chain)

        if not fix:
            logger.warning(
                "Case %s pointer drift: cached=%s canonical=%s",
                case.pk, case.pointers, chain.as_tuple(),
            )
            return ReconcileResult(mismatch=True, fixed=False, case=case, chain=chain)

        stale = case.pointers
        case.service_request_id = chain.service_request_id
        case.work_order_id = chain.work_order_id
        case.repair_report_id = chain.repair_report_id
        case.save(update_fields=[*POINTER_FIELDS, "updated_at"])
        logger.info(
            "Case %s pointers repaired: %s → %s", case.pk, stale, chain.as_tuple(),
        )
        return ReconcileResult(mismatch=True, fixed=True, case=case, chain=chain)

    @staticmethod
    def reconcile_all(fix: bool = False) -> list[ReconcileResult]:
        """Reconcile every case, each in its own transaction; mismatches only."""
        results = []
        for case_id in list(Case.objects.order_by("pk").values_list("pk", flat=True)):
            result = CaseChainReconciler.reconcile(case_id, fix=fix)
            if result.mismatch:
                results.append(result)
        return results


# ═══════════════════════════════════════════════════════════════════
#  Case Intake Service
# ═══════════════════════════════════════════════════════════════════


class CaseIntakeService:
    """Opens new cases."""

    @staticmethod
    @transaction.atomic
    def open_case(validated_data: dict[str, Any], actor: Actor) -> Case:
        """
        Create a case at ``REPORTED`` and record the intake in the history.

        Anonymous submissions are noted as coming from the public; staff
        submissions carry the staff actor.
        """
        case = Case.objects.create(**validated_data)
        note = PUBLIC_INTAKE_NOTE if actor.role == Roles.PUBLIC else STAFF_INTAKE_NOTE
        case = CaseFlow.mark_reported(case.pk, actor, note=note)
        logger.info("Case %s opened by %s", case.pk, actor.role)
        return case


# ═══════════════════════════════════════════════════════════════════
#  Case Workflow Service
# ═══════════════════════════════════════════════════════════════════


class CaseWorkflowService:
    """Multi-step workflow operations built on the milestones."""

    @staticmethod
    @transaction.atomic
    def resubmit_work_order(case_id: Any, work_order_id: Any, actor: Actor) -> Case:
        """
        Re-dispatch the work order of a case that was sent back for revision.

        The work order stays the same record (it is still linked to the
        service request), so no guard runs and no new stage is inserted;
        the case simply re-enters ``SPK_CREATED``.

        Raises
        ------
        InvalidTransition
            The case is not ``PSP_CREATED``.
        ParentMismatch
            ``work_order_id`` is not the case's linked work order.
        ParentNotFound
            The work order row is missing.
        """
        case = lock_for_update(Case, case_id)
        if case.status != CaseStatus.PSP_CREATED:
            raise InvalidTransition(
                current=case.status,
                target=CaseStatus.SPK_CREATED,
                reason="only a case sent back for revision can be re-dispatched",
            )
        if not _same_id(case.work_order_id, work_order_id):
            raise ParentMismatch(
                f"WorkOrder {work_order_id} is not linked to case #{case.pk}."
            )
        if not WorkOrder.objects.filter(pk=work_order_id).exists():
            raise ParentNotFound(f"WorkOrder {work_order_id} does not exist.")

        CaseFlow.mark_spk_created(case.pk, case.work_order_id, actor, note="Work order revised")
        return CaseChainReconciler.reconcile(case.pk, fix=True).case


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseQueryService:
    """Read projections used by the API."""

    @staticmethod
    def get_filtered_queryset(filters: dict[str, Any]) -> QuerySet[Case]:
        """
        Supported filter keys: ``status``, ``search`` (customer name,
        address, connection number), ``created_after``, ``created_before``.
        """
        qs = Case.objects.all()
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("search"):
            term = filters["search"]
            qs = qs.filter(
                Q(customer_name__icontains=term)
                | Q(address__icontains=term)
                | Q(connection_number__icontains=term)
            )
        if filters.get("created_after"):
            qs = qs.filter(created_at__date__gte=filters["created_after"])
        if filters.get("created_before"):
            qs = qs.filter(created_at__date__lte=filters["created_before"])
        return qs

    @staticmethod
    def get_case_detail(case_id: Any) -> Case:
        try:
            return Case.objects.select_related(
                "service_request", "work_order", "repair_report",
            ).get(pk=case_id)
        except (Case.DoesNotExist, ValueError):
            raise NotFound(f"Case with pk={case_id} does not exist.")

    @staticmethod
    def get_status_history(case_id: Any) -> QuerySet[StatusHistory]:
        try:
            exists = Case.objects.filter(pk=case_id).exists()
        except ValueError:
            exists = False
        if not exists:
            raise NotFound(f"Case with pk={case_id} does not exist.")
        return StatusHistory.objects.filter(case_id=case_id).order_by("created_at", "id")
