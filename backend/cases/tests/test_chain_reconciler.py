"""
Unit tests for ``CaseChainReconciler`` and the ``verify_case_links``
management command.
"""

from __future__ import annotations

from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from cases.models import Case, CaseStatus
from cases.services import CaseChainReconciler, CaseFlow
from core.domain.exceptions import NotFound
from stages.models import RepairReport, ServiceRequest, WorkOrder


@pytest.fixture()
def linked_case(make_case, actor):
    """A COMPLETED case whose pointers match S1 ◀ W1 ◀ R1."""
    sr = ServiceRequest.objects.create(customer_name="Siti Rahma", address="Jl. Merdeka 12")
    wo = WorkOrder.objects.create(service_request=sr)
    now = timezone.now()
    rr = RepairReport.objects.create(
        work_order=wo, action_taken="Tightened the coupling.",
        start_time=now, end_time=now, result="FIXED",
    )
    case = make_case()
    CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
    CaseFlow.mark_spk_created(case.pk, wo.pk, actor)
    CaseFlow.mark_rr_created(case.pk, rr.pk, actor)
    CaseFlow.mark_completed(case.pk, actor)
    case.refresh_from_db()
    return case, sr, wo, rr


def _stray_work_order():
    other_sr = ServiceRequest.objects.create(customer_name="Budi", address="Jl. Sudirman 1")
    return WorkOrder.objects.create(service_request=other_sr)


@pytest.mark.django_db
class TestCanonicalChain:

    def test_chain_follows_foreign_keys(self, linked_case):
        case, sr, wo, rr = linked_case
        chain = CaseChainReconciler.canonical_chain(case)
        assert chain.as_tuple() == (sr.pk, wo.pk, rr.pk)
        assert chain.case_id == case.pk

    def test_chain_ignores_cached_downstream_pointers(self, linked_case):
        case, sr, wo, rr = linked_case
        Case.objects.filter(pk=case.pk).update(work_order=None, repair_report=None)
        case.refresh_from_db()
        assert CaseChainReconciler.canonical_chain(case).as_tuple() == (sr.pk, wo.pk, rr.pk)

    def test_no_service_request_means_empty_chain(self, make_case):
        case = make_case()
        assert CaseChainReconciler.canonical_chain(case).as_tuple() == (None, None, None)


@pytest.mark.django_db
class TestReconcile:

    def test_consistent_case_reports_no_mismatch(self, linked_case):
        case, *_ = linked_case
        result = CaseChainReconciler.reconcile(case.pk, fix=True)
        assert result.mismatch is False
        assert result.fixed is False

    def test_dry_run_never_writes(self, linked_case):
        case, *_ = linked_case
        stray = _stray_work_order()
        Case.objects.filter(pk=case.pk).update(work_order=stray)
        case.refresh_from_db()
        before = (case.pointers, case.updated_at, case.status)

        result = CaseChainReconciler.reconcile(case.pk, fix=False)

        assert result.mismatch is True
        assert result.fixed is False
        case.refresh_from_db()
        assert (case.pointers, case.updated_at, case.status) == before

    def test_fix_restores_drifted_work_order(self, linked_case):
        case, sr, wo, rr = linked_case
        stray = _stray_work_order()
        Case.objects.filter(pk=case.pk).update(work_order=stray)

        result = CaseChainReconciler.reconcile(case.pk, fix=True)

        assert result.mismatch is True
        assert result.fixed is True
        assert result.chain.as_tuple() == (sr.pk, wo.pk, rr.pk)
        case.refresh_from_db()
        assert case.pointers == (sr.pk, wo.pk, rr.pk)
        assert case.status == CaseStatus.COMPLETED

    def test_fix_is_idempotent(self, linked_case):
        case, *_ = linked_case
        Case.objects.filter(pk=case.pk).update(repair_report=None)

        first = CaseChainReconciler.reconcile(case.pk, fix=True)
        case.refresh_from_db()
        stamp = case.updated_at
        second = CaseChainReconciler.reconcile(case.pk, fix=True)

        assert first.fixed is True
        assert second.mismatch is False
        assert second.fixed is False
        case.refresh_from_db()
        assert case.updated_at == stamp

    def test_unreachable_link_is_cleared(self, make_case, actor):
        sr = ServiceRequest.objects.create(customer_name="Siti Rahma", address="Jl. Merdeka 12")
        case = make_case()
        CaseFlow.mark_psp_created(case.pk, sr.pk, actor)
        stray = _stray_work_order()
        Case.objects.filter(pk=case.pk).update(work_order=stray)

        result = CaseChainReconciler.reconcile(case.pk, fix=True)

        assert result.fixed is True
        case.refresh_from_db()
        assert case.pointers == (sr.pk, None, None)
        assert case.status == CaseStatus.PSP_CREATED

    def test_missing_case_raises_not_found(self, db):
        with pytest.raises(NotFound):
            CaseChainReconciler.reconcile(31337)

    def test_reconcile_all_returns_only_drifted_cases(self, linked_case, make_case):
        case, *_ = linked_case
        make_case()
        Case.objects.filter(pk=case.pk).update(work_order=None)

        results = CaseChainReconciler.reconcile_all(fix=False)

        assert [r.case.pk for r in results] == [case.pk]
        assert results[0].fixed is False


@pytest.mark.django_db
class TestVerifyCaseLinksCommand:

    def test_clean_database_reports_consistent(self, linked_case):
        out = StringIO()
        call_command("verify_case_links", stdout=out)
        assert "consistent" in out.getvalue()

    def test_drift_without_fix_fails(self, linked_case):
        case, *_ = linked_case
        Case.objects.filter(pk=case.pk).update(work_order=None)

        out = StringIO()
        with pytest.raises(CommandError):
            call_command("verify_case_links", stdout=out)
        assert f"Case #{case.pk}" in out.getvalue()
        case.refresh_from_db()
        assert case.work_order_id is None

    def test_fix_repairs_drift(self, linked_case):
        case, sr, wo, rr = linked_case
        Case.objects.filter(pk=case.pk).update(work_order=None)

        out = StringIO()
        call_command("verify_case_links", "--fix", stdout=out)

        assert "repaired" in out.getvalue()
        case.refresh_from_db()
        assert case.pointers == (sr.pk, wo.pk, rr.pk)
