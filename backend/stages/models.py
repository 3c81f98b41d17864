"""
Stages app models.

The three stage records a case moves through after intake:

    ServiceRequest (PSP) ◀── WorkOrder (SPK) ◀── RepairReport (BAP)

Each record except the first points back to its parent.  The parent
reference is unique per table, so the database refuses a second work order
for the same service request (or a second repair report for the same work
order) even if two requests slip past the workflow guards concurrently.
"""

from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class StageKind(models.TextChoices):
    """The three downstream stages a workflow guard can be asked about."""

    SERVICE_REQUEST = "SERVICE_REQUEST", "Service Request (PSP)"
    WORK_ORDER = "WORK_ORDER", "Work Order (SPK)"
    REPAIR_REPORT = "REPAIR_REPORT", "Repair Report (BAP)"


class RepairResult(models.TextChoices):
    """Outcome declared on a repair report."""

    FIXED = "FIXED", "Fixed"
    MONITORING = "MONITORING", "Under Monitoring"
    NOT_FIXED = "NOT_FIXED", "Not Fixed"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class ServiceRequest(TimeStampedModel):
    """
    Service request form (PSP) filled in by customer service after a
    complaint is received.  Independent record; the case points to it.
    """

    customer_name = models.CharField(max_length=255, verbose_name="Customer Name")
    address = models.CharField(max_length=500, verbose_name="Address")
    service_number = models.CharField(max_length=50, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    received_at = models.DateTimeField(null=True, blank=True)
    received_by = models.CharField(max_length=255, blank=True, default="")
    reasons = models.JSONField(
        default=list,
        blank=True,
        help_text="Checked reasons from the PSP form (e.g. 'Pipe leak').",
    )
    other_reason = models.CharField(max_length=500, blank=True, default="")
    action_taken = models.TextField(blank=True, default="")

    class Meta:
        verbose_name = "Service Request"
        verbose_name_plural = "Service Requests"
        ordering = ["-created_at"]

    def __str__(self):
        return f"PSP #{self.pk} — {self.customer_name}"


class WorkOrder(TimeStampedModel):
    """
    Work order (SPK) dispatched to a field team for a service request.
    """

    service_request = models.ForeignKey(
        ServiceRequest,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="work_orders",
        verbose_name="Service Request",
    )
    number = models.CharField(max_length=50, blank=True, default="")
    reporter_name = models.CharField(max_length=255, blank=True, default="")
    disturbance_location = models.CharField(max_length=500, blank=True, default="")
    disturbance_type = models.CharField(max_length=255, blank=True, default="")
    handled_at = models.DateTimeField(null=True, blank=True)
    executor_name = models.CharField(max_length=255, blank=True, default="")
    team = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "Work Order"
        verbose_name_plural = "Work Orders"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["service_request"],
                name="uniq_work_order_per_service_request",
            ),
        ]

    def __str__(self):
        return f"SPK #{self.pk} (PSP #{self.service_request_id})"


class RepairReport(TimeStampedModel):
    """
    Repair report (BAP) closing out a work order.
    """

    work_order = models.ForeignKey(
        WorkOrder,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="repair_reports",
        verbose_name="Work Order",
    )
    action_taken = models.TextField(verbose_name="Action Taken")
    start_time = models.DateTimeField(verbose_name="Start Time")
    end_time = models.DateTimeField(verbose_name="End Time")
    result = models.CharField(
        max_length=20,
        choices=RepairResult.choices,
        verbose_name="Result",
        db_index=True,
    )
    remarks = models.TextField(blank=True, default="")
    customer_confirmation_name = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        verbose_name = "Repair Report"
        verbose_name_plural = "Repair Reports"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["work_order"],
                name="uniq_repair_report_per_work_order",
            ),
        ]

    def __str__(self):
        return f"BAP #{self.pk} (SPK #{self.work_order_id}) — {self.result}"
