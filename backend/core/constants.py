"""
Core constants — **Single Source of Truth** for project-wide names and
magic values.

Role names are compared against the actor role that the API layer hands
to the workflow engine, so every call site must import them from here.
"""


class Roles:
    """Actor role names (Django group names, snake-cased)."""

    ADMIN = "admin"
    CUSTOMER_SERVICE = "customer_service"
    """Front-office staff: records complaints and service requests (PSP)."""

    FIELD_OPS = "field_ops"
    """Distribution unit: work orders (SPK), repair reports (BAP), revisions."""

    PUBLIC = "public"
    """Anonymous complaint submitters."""


#: The only role allowed to send a work order back for revision.
REVISION_ROLE: str = Roles.FIELD_OPS

#: Prefix written into the audit note of a revision, so the history shows
#: the backward step was a revision and not a forward milestone.
NEEDS_REVISION_TAG: str = "NEEDS_REVISION"

# ── Intake notes ────────────────────────────────────────────────────
PUBLIC_INTAKE_NOTE: str = "Complaint submitted by the public"
STAFF_INTAKE_NOTE: str = "Complaint recorded"
