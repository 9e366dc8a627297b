from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "user", "type", "status", "created_at")
    list_filter = ("type", "status")
    search_fields = ("title", "user__username")
