"""
Stages app URL configuration.

  /api/service-requests/   → list / create (PSP)
  /api/work-orders/        → list / create (SPK)
  /api/repair-reports/     → list / create (BAP)

Each prefix also exposes ``{id}/`` for retrieve.
"""

from rest_framework.routers import DefaultRouter

from .views import RepairReportViewSet, ServiceRequestViewSet, WorkOrderViewSet

router = DefaultRouter()
router.register(r"service-requests", ServiceRequestViewSet, basename="service-request")
router.register(r"work-orders", WorkOrderViewSet, basename="work-order")
router.register(r"repair-reports", RepairReportViewSet, basename="repair-report")

urlpatterns = router.urls
