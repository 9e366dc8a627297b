from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Department, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "role", "status", "department")
    list_filter = ("role", "status", "department")
    search_fields = ("username", "email", "nip", "first_name", "last_name")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Employment", {"fields": ("role", "status", "nip", "phone", "department", "hire_date")}),
        ("Personal", {"fields": ("birth_date", "gender", "address")}),
    )


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "head", "is_active")
    search_fields = ("code", "name")
    list_filter = ("is_active",)
