import django.db.models.deletion
from django.db import migrations, models

_STATUS_CHOICES = [
    ("REPORTED", "Reported"),
    ("PSP_CREATED", "Service Request Created"),
    ("SPK_CREATED", "Work Order Created"),
    ("RR_CREATED", "Repair Report Created"),
    ("COMPLETED", "Completed"),
    ("MONITORING", "Under Monitoring"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("stages", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("customer_name", models.CharField(max_length=255, verbose_name="Customer Name")),
                ("address", models.CharField(max_length=500, verbose_name="Address")),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("connection_number", models.CharField(blank=True, default="", max_length=50)),
                ("category", models.CharField(blank=True, default="", help_text="Complaint category, e.g. 'pipe leak', 'no water'.", max_length=100)),
                ("complaint_text", models.TextField(blank=True, default="")),
                ("maps_link", models.URLField(blank=True, default="", max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=_STATUS_CHOICES,
                        db_index=True,
                        default="REPORTED",
                        max_length=20,
                        verbose_name="Current Status",
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True, verbose_name="Processed At")),
                (
                    "service_request",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cases",
                        to="stages.servicerequest",
                        verbose_name="Service Request (PSP)",
                    ),
                ),
                (
                    "work_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cases",
                        to="stages.workorder",
                        verbose_name="Work Order (SPK)",
                    ),
                ),
                (
                    "repair_report",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cases",
                        to="stages.repairreport",
                        verbose_name="Repair Report (BAP)",
                    ),
                ),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="StatusHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=_STATUS_CHOICES, max_length=20, verbose_name="Status")),
                ("actor_role", models.CharField(max_length=50, verbose_name="Actor Role")),
                ("actor_id", models.CharField(blank=True, max_length=64, null=True, verbose_name="Actor ID")),
                ("note", models.TextField(blank=True, null=True, verbose_name="Note")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Created At")),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="status_history",
                        to="cases.case",
                        verbose_name="Case",
                    ),
                ),
            ],
            options={
                "verbose_name": "Status History Entry",
                "verbose_name_plural": "Status History",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
