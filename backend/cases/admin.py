from django.contrib import admin

from .models import Case, StatusHistory


class StatusHistoryInline(admin.TabularInline):
    model = StatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ("status", "actor_role", "actor_id", "note", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("id", "customer_name", "status", "category", "created_at")
    list_filter = ("status", "category")
    search_fields = ("customer_name", "address", "connection_number")
    readonly_fields = ("status", "processed_at", "service_request",
                       "work_order", "repair_report")
    inlines = [StatusHistoryInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StatusHistory)
class StatusHistoryAdmin(admin.ModelAdmin):
    list_display = ("case", "status", "actor_role", "actor_id", "created_at")
    list_filter = ("status", "actor_role")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
