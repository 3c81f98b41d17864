"""
Unit tests for ``CaseStatusService`` and the ``CaseFlow`` milestones.

Covers the state machine edges, pointer writes, ``processed_at``
stamping, the revision exception path and the audit trail.
"""

from __future__ import annotations

from unittest import mock

import pytest
from django.contrib import admin
from django.db.models import ProtectedError

from cases.models import Case, CaseStatus, StatusHistory
from cases.services import (
    ALLOWED_TRANSITIONS,
    CaseFlow,
    CaseStatusService,
    StatusChange,
)
from core.constants import NEEDS_REVISION_TAG, Roles
from core.domain.access import Actor
from core.domain.exceptions import DomainError, InvalidTransition, PermissionDenied
from stages.models import RepairReport, ServiceRequest, WorkOrder


@pytest.fixture()
def chain_rows(db):
    """A linked ServiceRequest ◀ WorkOrder ◀ RepairReport triple."""
    from django.utils import timezone

    sr = ServiceRequest.objects.create(customer_name="Siti Rahma", address="Jl. Merdeka 12")
    wo = WorkOrder.objects.create(service_request=sr, number="SPK-7")
    now = timezone.now()
    rr = RepairReport.objects.create(
        work_order=wo,
        action_taken="Replaced the valve.",
        start_time=now,
        end_time=now,
        result="FIXED",
    )
    return sr, wo, rr


def _statuses(case):
    return list(
        StatusHistory.objects.filter(case=case).values_list("status", flat=True)
    )


@pytest.mark.django_db
class TestMilestones:

    def test_psp_created_sets_pointer_stamps_processed_at_and_logs(self, make_case, chain_rows, actor):
        sr, _, _ = chain_rows
        case = make_case()
        assert case.processed_at is None

        case = CaseFlow.mark_psp_created(case.pk, sr.pk, actor, note="PSP filed")

        case.refresh_from_db()
        assert case.status == CaseStatus.PSP_CREATED
        assert case.service_request_id == sr.pk
        assert case.processed_at is not None

        entries = list(StatusHistory.objects.filter(case=case))
        assert len(entries) == 1
        assert entries[0].status == CaseStatus.PSP_CREATED
        assert entries[0].actor_role == actor.role
        assert entries[0].actor_id == actor.actor_id
        assert entries[0].note == "PSP filed"

    def test_full_forward_walk(self, make_case, chain_rows, actor):
        sr, wo, rr = chain_rows
        case = make_case()

        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
        CaseFlow.mark_rr_created(case.pk, rr.pk, actor)
        case = CaseFlow.mark_completed(case.pk, actor)

        assert case.status == CaseStatus.COMPLETED
        assert case.pointers == (sr.pk, wo.pk, rr.pk)
        assert _statuses(case) == [
            CaseStatus.PSP_CREATED,
            CaseStatus.SPK_CREATED,
            CaseStatus.RR_CREATED,
            CaseStatus.COMPLETED,
        ]

    def test_rr_created_does_not_touch_processed_at(self, make_case, chain_rows, actor):
        sr, wo, rr = chain_rows
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        case = CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
        stamped = case.processed_at

        case = CaseFlow.mark_rr_created(case.pk, rr.pk, actor)
        case.refresh_from_db()
        assert case.processed_at == stamped

    def test_monitoring_is_terminal(self, make_case, chain_rows, actor):
        sr, wo, rr = chain_rows
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
        CaseFlow.mark_rr_created(case.pk, rr.pk, actor)
        case = CaseFlow.mark_monitoring(case.pk, actor)
        assert case.status == CaseStatus.MONITORING
        assert not case.is_open

        with pytest.raises(InvalidTransition):
            CaseFlow.mark_completed(case.pk, actor)

    def test_mark_reported_records_intake(self, make_case, actor):
        case = make_case()
        case = CaseFlow.mark_reported(case.pk, actor, note="Complaint recorded")
        assert case.status == CaseStatus.REPORTED
        assert _statuses(case) == [CaseStatus.REPORTED]


@pytest.mark.django_db
class TestIllegalTransitions:

    def test_skipping_psp_fails_and_leaves_case_untouched(self, make_case, chain_rows, actor):
        _, wo, _ = chain_rows
        case = make_case()
        before = (case.status, case.pointers, case.processed_at, case.updated_at)

        with pytest.raises(InvalidTransition) as excinfo:
            CaseFlow.mark_spk_created(case.pk, wo.pk, actor)

        assert "REPORTED" in str(excinfo.value)
        case.refresh_from_db()
        assert (case.status, case.pointers, case.processed_at, case.updated_at) == before
        assert StatusHistory.objects.filter(case=case).count() == 0

    def test_completed_case_accepts_nothing(self, make_case, chain_rows, actor):
        sr, wo, rr = chain_rows
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
        CaseFlow.mark_rr_created(case.pk, rr.pk, actor)
        CaseFlow.mark_completed(case.pk, actor)

        for target in CaseStatus.values:
            with pytest.raises(InvalidTransition):
                CaseStatusService.transition(case.pk, target, actor)

    def test_backward_step_is_not_a_plain_transition(self, make_case, chain_rows, actor):
        sr, wo, _ = chain_rows
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        CaseFlow.mark_spk_created(case.pk, wo.pk, actor)

        with pytest.raises(InvalidTransition):
            CaseStatusService.transition(case.pk, CaseStatus.PSP_CREATED, actor)

    def test_transition_map_has_no_backward_edges(self):
        order = [
            CaseStatus.REPORTED,
            CaseStatus.PSP_CREATED,
            CaseStatus.SPK_CREATED,
            CaseStatus.RR_CREATED,
        ]
        for current, targets in ALLOWED_TRANSITIONS.items():
            for target in targets:
                if current in order and target in order:
                    assert order.index(target) >= order.index(current)


@pytest.mark.django_db
class TestGenericTransition:

    def test_transition_writes_partial_pointer_update(self, make_case, chain_rows, actor):
        sr, _, _ = chain_rows
        case = make_case()
        case = CaseStatusService.transition(
            case.pk,
            CaseStatus.PSP_CREATED,
            actor,
            pointer_update={"service_request_id": sr.pk},
            note="manual",
        )
        assert case.status == CaseStatus.PSP_CREATED
        assert case.pointers == (sr.pk, None, None)
        assert case.processed_at is None

    def test_unknown_status_is_invalid_and_names_current_status(self, make_case, actor):
        case = make_case()
        with pytest.raises(InvalidTransition) as excinfo:
            CaseStatusService.transition(case.pk, "ARCHIVED", actor)
        assert excinfo.value.current == CaseStatus.REPORTED

    def test_unknown_pointer_field_is_rejected(self, make_case, actor):
        case = make_case()
        with pytest.raises(DomainError):
            CaseStatusService.transition(
                case.pk, CaseStatus.REPORTED, actor, pointer_update={"status": "X"},
            )

    def test_custom_change_can_clear_processed_at(self):
        change = StatusChange.custom(CaseStatus.REPORTED, {"processed_at": None})
        assert change.clear_processed_at is True
        assert change.links == ()


@pytest.mark.django_db
class TestAtomicity:

    def test_failed_history_write_rolls_back_status(self, make_case, chain_rows, actor):
        sr, _, _ = chain_rows
        case = make_case()

        with mock.patch(
            "cases.services.StatusHistoryWriter.append",
            side_effect=RuntimeError("disk full"),
        ):
            with pytest.raises(RuntimeError):
                CaseFlow.mark_psp_created(case.pk, sr.pk, actor)

        case.refresh_from_db()
        assert case.status == CaseStatus.REPORTED
        assert case.service_request_id is None


@pytest.mark.django_db
class TestNeedsRevision:

    @pytest.fixture()
    def spk_case(self, make_case, chain_rows, actor):
        sr, wo, _ = chain_rows
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
        return case

    def test_field_ops_sends_case_back_with_tagged_note(self, spk_case, field_ops_actor):
        pointers = Case.objects.get(pk=spk_case.pk).pointers

        case = CaseFlow.mark_needs_revision(spk_case.pk, field_ops_actor, note="wrong address")

        assert case.status == CaseStatus.PSP_CREATED
        assert case.pointers == pointers
        last = StatusHistory.objects.filter(case=case).last()
        assert last.status == CaseStatus.PSP_CREATED
        assert last.note == f"{NEEDS_REVISION_TAG}: wrong address"
        assert last.actor_role == Roles.FIELD_OPS

    def test_note_is_optional(self, spk_case, field_ops_actor):
        CaseFlow.mark_needs_revision(spk_case.pk, field_ops_actor)
        last = StatusHistory.objects.filter(case=spk_case).last()
        assert last.note == NEEDS_REVISION_TAG

    @pytest.mark.parametrize("role", [Roles.ADMIN, Roles.CUSTOMER_SERVICE, Roles.PUBLIC])
    def test_other_roles_are_refused(self, spk_case, role):
        with pytest.raises(PermissionDenied):
            CaseFlow.mark_needs_revision(spk_case.pk, Actor(role=role))
        spk_case.refresh_from_db()
        assert spk_case.status == CaseStatus.SPK_CREATED

    def test_only_from_spk_created(self, make_case, field_ops_actor):
        case = make_case()
        with pytest.raises(InvalidTransition) as excinfo:
            CaseFlow.mark_needs_revision(case.pk, field_ops_actor)
        assert excinfo.value.current == CaseStatus.REPORTED


@pytest.mark.django_db
class TestStatusHistoryIsAppendOnly:

    def test_existing_entry_cannot_be_updated(self, make_case, actor):
        case = CaseFlow.mark_reported(make_case().pk, actor)
        entry = StatusHistory.objects.get(case=case)
        entry.note = "rewritten"
        with pytest.raises(DomainError):
            entry.save()

    def test_entry_cannot_be_deleted(self, make_case, actor):
        case = CaseFlow.mark_reported(make_case().pk, actor)
        entry = StatusHistory.objects.get(case=case)
        with pytest.raises(DomainError):
            entry.delete()
        assert StatusHistory.objects.filter(pk=entry.pk).exists()

    def test_bulk_delete_and_update_are_refused(self, make_case, actor):
        case = CaseFlow.mark_reported(make_case().pk, actor)
        with pytest.raises(DomainError):
            StatusHistory.objects.filter(case=case).delete()
        with pytest.raises(DomainError):
            StatusHistory.objects.filter(case=case).update(note="rewritten")
        assert StatusHistory.objects.get(case=case).note is None

    def test_case_with_history_cannot_be_deleted(self, make_case, actor):
        case = CaseFlow.mark_reported(make_case().pk, actor)
        with pytest.raises(ProtectedError):
            Case.objects.get(pk=case.pk).delete()
        with pytest.raises(ProtectedError):
            Case.objects.filter(pk=case.pk).delete()
        assert StatusHistory.objects.filter(case_id=case.pk).count() == 1

    def test_admin_offers_no_case_deletion(self, make_case):
        case_admin = admin.site._registry[Case]
        assert case_admin.has_delete_permission(None) is False
        assert case_admin.has_delete_permission(None, make_case()) is False

    def test_blank_note_is_stored_as_null(self, make_case, actor):
        case = CaseFlow.mark_reported(make_case().pk, actor, note="")
        assert StatusHistory.objects.get(case=case).note is None
