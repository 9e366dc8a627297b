from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "table_name", "record_id", "user", "ip_address")
    list_filter = ("action", "table_name")
    search_fields = ("record_id", "user__username")
    readonly_fields = [f.name for f in AuditLog._meta.fields]
