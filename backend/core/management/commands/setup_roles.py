"""
Management command: setup_roles
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Creates the staff role **Groups** (``admin``, ``customer_service``,
``field_ops``) and links each one to the model permissions it needs in
the Django admin.  A user's workflow role is the name of their group, so
this must run once before staff accounts are assigned.

The command is **idempotent** — safe to run multiple times.  Existing
groups keep their name; permissions are replaced (set) to match the
mapping below.

Usage::

    python manage.py setup_roles
"""

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand

from core.constants import Roles

# ────────────────────────────────────────────────────────────────────
# Role → permission codenames
# ────────────────────────────────────────────────────────────────────

_ALL_WORKFLOW_PERMS = [
    f"{verb}_{model}"
    for model in ("case", "servicerequest", "workorder", "repairreport")
    for verb in ("view", "add", "change")
] + ["view_statushistory"]

ROLE_PERMISSIONS_MAP: dict[str, list[str]] = {
    Roles.ADMIN: _ALL_WORKFLOW_PERMS,
    Roles.CUSTOMER_SERVICE: [
        "view_case", "add_case", "view_statushistory",
        "view_servicerequest", "add_servicerequest",
    ],
    Roles.FIELD_OPS: [
        "view_case", "view_statushistory", "view_servicerequest",
        "view_workorder", "add_workorder",
        "view_repairreport", "add_repairreport",
    ],
}


class Command(BaseCommand):
    help = (
        "Creates the staff role groups and maps each to its model "
        "permissions.  Safe to run multiple times (idempotent)."
    )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Role Setup — Seeding Groups"
            "\n══════════════════════════════════════════\n"
        ))

        all_permissions: dict[str, Permission] = {
            p.codename: p
            for p in Permission.objects.filter(
                content_type__app_label__in=("cases", "stages"),
            )
        }

        created_count = 0
        warnings = 0

        for role_name, codenames in ROLE_PERMISSIONS_MAP.items():
            group, created = Group.objects.get_or_create(name=role_name)
            created_count += int(created)

            resolved: list[Permission] = []
            for codename in codenames:
                perm = all_permissions.get(codename)
                if perm is None:
                    warnings += 1
                    self.stdout.write(self.style.WARNING(
                        f"  ⚠  Permission '{codename}' not found — "
                        f"skipped for role '{role_name}'.  (Run migrate first?)"
                    ))
                    continue
                resolved.append(perm)
            group.permissions.set(resolved)

            action = "Created" if created else "Updated"
            self.stdout.write(self.style.SUCCESS(
                f"  ✔  {action} role: {role_name:<20s} (permissions={len(resolved)})"
            ))

        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        summary = (
            f"  Done!  {created_count} group(s) created, "
            f"{len(ROLE_PERMISSIONS_MAP) - created_count} updated."
        )
        if warnings:
            summary += f"  ({warnings} permission warning(s) — see above.)"
        self.stdout.write(self.style.SUCCESS(summary + "\n"))
