from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView, TokenVerifyView

from .views import (
    CustomTokenObtainPairView,
    DepartmentDetailView,
    DepartmentListCreateView,
    MeView,
    RolesAndDepartmentsView,
    UserAdminDetailView,
    UserAdminListCreateView,
    UserResetPasswordView,
    UserToggleStatusView,
)

urlpatterns = [
    path("auth/login/", CustomTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/verify/", TokenVerifyView.as_view(), name="token_verify"),
    path("auth/me/", MeView.as_view(), name="me"),
    path("admin/users/", UserAdminListCreateView.as_view(), name="admin-user-list"),
    path("admin/users/<int:pk>/", UserAdminDetailView.as_view(), name="admin-user-detail"),
    path("admin/users/<int:pk>/toggle-status/", UserToggleStatusView.as_view(), name="admin-user-toggle-status"),
    path("admin/users/<int:pk>/reset-password/", UserResetPasswordView.as_view(), name="admin-user-reset-password"),
    path("admin/roles-departments/", RolesAndDepartmentsView.as_view(), name="admin-roles-departments"),
    path("departments/", DepartmentListCreateView.as_view(), name="department-list"),
    path("departments/<int:pk>/", DepartmentDetailView.as_view(), name="department-detail"),
]
