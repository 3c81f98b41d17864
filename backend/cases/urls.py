"""
Cases app URL configuration.

All routes are registered under the ``/api/cases/`` prefix.

Route Hierarchy
---------------
  /api/cases/                                  → list / create
  /api/cases/{id}/                             → retrieve

  GET  /api/cases/{id}/status-history/         → audit trail
  GET  /api/cases/{id}/consistency/            → pointer check (read-only)
  POST /api/cases/{id}/reconcile/              → pointer repair (admin)

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/cases/{id}/needs-revision/         → SPK_CREATED → PSP_CREATED
  POST /api/cases/{id}/resubmit-work-order/    → PSP_CREATED → SPK_CREATED
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
