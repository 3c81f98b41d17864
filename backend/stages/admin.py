from django.contrib import admin

from .models import RepairReport, ServiceRequest, WorkOrder


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "customer_name", "service_number", "received_at", "created_at")
    search_fields = ("customer_name", "address", "service_number")


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "service_request", "team", "handled_at")
    search_fields = ("number", "executor_name", "team")


@admin.register(RepairReport)
class RepairReportAdmin(admin.ModelAdmin):
    list_display = ("id", "work_order", "result", "start_time", "end_time")
    list_filter = ("result",)
