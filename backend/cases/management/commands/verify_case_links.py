"""
Management command: verify_case_links
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Compares the stage pointers cached on every case with the canonical
chain ``ServiceRequest ◀ WorkOrder ◀ RepairReport`` and reports drift.
With ``--fix`` the drifted pointers are repaired; ``status`` is never
changed.

Each case is checked in its own transaction, so a long run never holds
more than one row lock.

Usage::

    python manage.py verify_case_links
    python manage.py verify_case_links --fix

Exits with status 1 when drift is found and ``--fix`` was not given.
"""

from django.core.management.base import BaseCommand, CommandError

from cases.services import CaseChainReconciler


class Command(BaseCommand):
    help = (
        "Checks the stage pointers of every case against the canonical "
        "stage chain.  Use --fix to repair drifted pointers."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Overwrite drifted pointers with the canonical chain.",
        )

    def handle(self, *args, **options):
        fix = options["fix"]
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Case Link Verification" + (" (fix)" if fix else "") +
            "\n══════════════════════════════════════════\n"
        ))

        results = CaseChainReconciler.reconcile_all(fix=fix)

        for result in results:
            canonical = result.chain.as_tuple()
            if result.fixed:
                self.stdout.write(self.style.SUCCESS(
                    f"  ✔  Case #{result.case.pk}: repaired → {canonical}"
                ))
            else:
                self.stdout.write(self.style.WARNING(
                    f"  ⚠  Case #{result.case.pk}: cached={result.case.pointers} "
                    f"canonical={canonical}"
                ))

        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        if not results:
            self.stdout.write(self.style.SUCCESS("  Done!  All case links are consistent.\n"))
            return

        fixed = sum(1 for r in results if r.fixed)
        summary = f"  Done!  {len(results)} case(s) drifted, {fixed} repaired."
        if fix:
            self.stdout.write(self.style.SUCCESS(summary + "\n"))
            return
        self.stdout.write(self.style.WARNING(summary + "\n"))
        raise CommandError(
            f"{len(results)} case(s) have drifted stage pointers; rerun with --fix."
        )
