from rest_framework.permissions import DjangoModelPermissions, BasePermission

from .models import User


class DjangoModelPermissionsWithView(DjangoModelPermissions):

    perms_map = DjangoModelPermissions.perms_map.copy()
    perms_map.update({
        "GET":    ["%(app_label)s.view_%(model_name)s"],
        "HEAD":   ["%(app_label)s.view_%(model_name)s"],
    })


class HasRole(BasePermission):
    """
    Grants access when the authenticated user holds one of ``roles``.
    Superusers always pass.
    """
    roles = ()
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        u = request.user
        if not (u and u.is_authenticated):
            return False
        return bool(u.is_superuser or u.role in self.roles)


class IsSuperAdmin(HasRole):
    roles = (User.Role.SUPER_ADMIN,)
    message = "Super Admin permissions required."


class IsUserAdmin(HasRole):
    roles = User.ADMIN_ROLES
    message = "Admin permissions required."


class IsNotificationAdmin(HasRole):
    roles = (User.Role.SUPER_ADMIN, User.Role.ADMIN)


class IsApprover(HasRole):
    roles = User.ADMIN_ROLES + User.DEPARTMENT_APPROVER_ROLES
    message = "Approver permissions required."
