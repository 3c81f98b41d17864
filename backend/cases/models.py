"""
Cases app models.

Covers the complaint lifecycle of the utility operator — from intake,
through service request (PSP), work order (SPK) and repair report (BAP),
to completion or monitoring.

The three stage pointers on ``Case`` are a **cache** of the canonical
chain ``ServiceRequest ◀ WorkOrder ◀ RepairReport``; they are written by
the workflow milestones and repaired by ``CaseChainReconciler``.
"""

from django.db import models

from core.domain.exceptions import DomainError
from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """
    Forward-only lifecycle of a case.

    ``COMPLETED`` and ``MONITORING`` are terminal.
    """

    REPORTED = "REPORTED", "Reported"
    PSP_CREATED = "PSP_CREATED", "Service Request Created"
    SPK_CREATED = "SPK_CREATED", "Work Order Created"
    RR_CREATED = "RR_CREATED", "Repair Report Created"
    COMPLETED = "COMPLETED", "Completed"
    MONITORING = "MONITORING", "Under Monitoring"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    Root workflow record — one customer complaint.

    ``status`` and the three stage pointers must only be written by
    ``cases.services`` (status transitions and reconciliation).
    """

    # ── Intake details ──────────────────────────────────────────────
    customer_name = models.CharField(max_length=255, verbose_name="Customer Name")
    address = models.CharField(max_length=500, verbose_name="Address")
    phone = models.CharField(max_length=20, blank=True, default="")
    connection_number = models.CharField(max_length=50, blank=True, default="")
    category = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Complaint category, e.g. 'pipe leak', 'no water'.",
    )
    complaint_text = models.TextField(blank=True, default="")
    maps_link = models.URLField(max_length=500, blank=True, default="")

    # ── Workflow state ──────────────────────────────────────────────
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.REPORTED,
        verbose_name="Current Status",
        db_index=True,
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Processed At",
    )

    # ── Denormalized stage pointers (cache of the canonical chain) ──
    service_request = models.ForeignKey(
        "stages.ServiceRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cases",
        verbose_name="Service Request (PSP)",
    )
    work_order = models.ForeignKey(
        "stages.WorkOrder",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cases",
        verbose_name="Work Order (SPK)",
    )
    repair_report = models.ForeignKey(
        "stages.RepairReport",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cases",
        verbose_name="Repair Report (BAP)",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Case #{self.pk} — {self.customer_name} [{self.status}]"

    @property
    def is_open(self) -> bool:
        """Return True while the case has not reached a terminal status."""
        return self.status not in (CaseStatus.COMPLETED, CaseStatus.MONITORING)

    @property
    def pointers(self) -> tuple[int | None, int | None, int | None]:
        """The cached ``(service_request, work_order, repair_report)`` ids."""
        return (self.service_request_id, self.work_order_id, self.repair_report_id)


class StatusHistoryQuerySet(models.QuerySet):
    """Refuses bulk writes, which would bypass ``StatusHistory.save``/``delete``."""

    def update(self, **kwargs):
        raise DomainError("Status history entries are append-only.")

    def delete(self):
        raise DomainError("Status history entries are append-only.")


class StatusHistory(models.Model):
    """
    Immutable audit trail of every status change of a case.

    Rows are only ever inserted (by ``StatusHistoryWriter``); updating or
    deleting an existing row raises ``DomainError``, and a case that has
    history cannot be deleted (``PROTECT``).
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.PROTECT,
        related_name="status_history",
        verbose_name="Case",
    )
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        verbose_name="Status",
    )
    actor_role = models.CharField(max_length=50, verbose_name="Actor Role")
    actor_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        verbose_name="Actor ID",
    )
    note = models.TextField(null=True, blank=True, verbose_name="Note")
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
        db_index=True,
    )

    objects = StatusHistoryQuerySet.as_manager()

    class Meta:
        verbose_name = "Status History Entry"
        verbose_name_plural = "Status History"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Case #{self.case_id}: {self.status} by {self.actor_role}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise DomainError("Status history entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise DomainError("Status history entries are append-only.")
