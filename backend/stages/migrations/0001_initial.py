import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ServiceRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("customer_name", models.CharField(max_length=255, verbose_name="Customer Name")),
                ("address", models.CharField(max_length=500, verbose_name="Address")),
                ("service_number", models.CharField(blank=True, default="", max_length=50)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                ("received_by", models.CharField(blank=True, default="", max_length=255)),
                ("reasons", models.JSONField(blank=True, default=list, help_text="Checked reasons from the PSP form (e.g. 'Pipe leak').")),
                ("other_reason", models.CharField(blank=True, default="", max_length=500)),
                ("action_taken", models.TextField(blank=True, default="")),
            ],
            options={
                "verbose_name": "Service Request",
                "verbose_name_plural": "Service Requests",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WorkOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("number", models.CharField(blank=True, default="", max_length=50)),
                ("reporter_name", models.CharField(blank=True, default="", max_length=255)),
                ("disturbance_location", models.CharField(blank=True, default="", max_length=500)),
                ("disturbance_type", models.CharField(blank=True, default="", max_length=255)),
                ("handled_at", models.DateTimeField(blank=True, null=True)),
                ("executor_name", models.CharField(blank=True, default="", max_length=255)),
                ("team", models.CharField(blank=True, default="", max_length=255)),
                (
                    "service_request",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_orders",
                        to="stages.servicerequest",
                        verbose_name="Service Request",
                    ),
                ),
            ],
            options={
                "verbose_name": "Work Order",
                "verbose_name_plural": "Work Orders",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("service_request",), name="uniq_work_order_per_service_request"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RepairReport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("action_taken", models.TextField(verbose_name="Action Taken")),
                ("start_time", models.DateTimeField(verbose_name="Start Time")),
                ("end_time", models.DateTimeField(verbose_name="End Time")),
                (
                    "result",
                    models.CharField(
                        choices=[("FIXED", "Fixed"), ("MONITORING", "Under Monitoring"), ("NOT_FIXED", "Not Fixed")],
                        db_index=True,
                        max_length=20,
                        verbose_name="Result",
                    ),
                ),
                ("remarks", models.TextField(blank=True, default="")),
                ("customer_confirmation_name", models.CharField(blank=True, default="", max_length=100)),
                (
                    "work_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="repair_reports",
                        to="stages.workorder",
                        verbose_name="Work Order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Repair Report",
                "verbose_name_plural": "Repair Reports",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("work_order",), name="uniq_repair_report_per_work_order"),
                ],
            },
        ),
    ]
