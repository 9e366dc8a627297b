import logging
import secrets
import string

from django.db.models import Q
from django.db.models.deletion import ProtectedError
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.generics import (
    GenericAPIView,
    ListCreateAPIView,
    RetrieveUpdateDestroyAPIView,
)
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView

from audit.services import log_action, snapshot
from hrms.helpers import int_param

from .models import Department, User
from .permissions import IsUserAdmin
from .serializers import (
    AdminUserSerializer,
    CustomTokenObtainPairSerializer,
    DepartmentSerializer,
    DepartmentSummarySerializer,
    MeSerializer,
    ResetPasswordSerializer,
    UserListSerializer,
)

logger = logging.getLogger(__name__)

USER_AUDIT_FIELDS = ["username", "email", "role", "status", "department_id", "nip", "phone"]


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class MeView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MeSerializer

    def get(self, request, *args, **kwargs):
        return Response(self.get_serializer(request.user).data)


class UserAdminListCreateView(ListCreateAPIView):
    permission_classes = [IsUserAdmin]
    queryset = User.objects.select_related("department").order_by("id")

    def get_serializer_class(self):
        if self.request.method == "GET":
            return UserListSerializer
        return AdminUserSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("role"):
            qs = qs.filter(role=params["role"])
        department_id = int_param(params, "department")
        if department_id is not None:
            qs = qs.filter(department_id=department_id)

        search = (params.get("search") or "").strip()
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(email__icontains=search)
                | Q(nip__icontains=search)
            )
        return qs

    def perform_create(self, serializer):
        user = serializer.save()
        logger.info("User %s created by admin %s", user.pk, self.request.user.pk)
        log_action(self.request, "CREATE", "users", user.pk, new_values=snapshot(user, USER_AUDIT_FIELDS))


class UserAdminDetailView(RetrieveUpdateDestroyAPIView):
    permission_classes = [IsUserAdmin]
    serializer_class = AdminUserSerializer
    queryset = User.objects.select_related("department").order_by("id")

    def perform_update(self, serializer):
        old_values = snapshot(serializer.instance, USER_AUDIT_FIELDS)
        user = serializer.save()
        log_action(
            self.request,
            "UPDATE",
            "users",
            user.pk,
            old_values=old_values,
            new_values=snapshot(user, USER_AUDIT_FIELDS),
        )

    def destroy(self, request, *args, **kwargs):
        target = self.get_object()
        actor = request.user

        if target.pk == actor.pk:
            raise ValidationError({"detail": "Cannot delete your own account."})

        if target.role == User.Role.SUPER_ADMIN and not (
            actor.is_superuser or actor.role == User.Role.SUPER_ADMIN
        ):
            raise PermissionDenied("Only Super Admin can delete other Super Admin accounts.")

        old_values = snapshot(target, USER_AUDIT_FIELDS)
        hard = request.query_params.get("hard", "").lower() in ("1", "true", "yes")

        if hard:
            target_id = target.pk
            try:
                target.delete()
            except ProtectedError:
                raise ValidationError(
                    {"detail": "Cannot hard delete user with related records. Consider soft delete instead."}
                )
            log_action(request, "DELETE", "users", target_id, old_values=old_values)
            logger.info("User %s hard deleted by admin %s", target_id, actor.pk)
            return Response(status=status.HTTP_204_NO_CONTENT)

        target.status = User.Status.TERMINATED
        target.save(update_fields=["status", "is_active"])
        log_action(
            request,
            "SOFT_DELETE",
            "users",
            target.pk,
            old_values=old_values,
            new_values=snapshot(target, USER_AUDIT_FIELDS),
        )
        logger.info("User %s soft deleted by admin %s", target.pk, actor.pk)
        return Response(
            {"detail": "User deactivated.", "user_id": target.pk, "status": target.status},
            status=status.HTTP_200_OK,
        )


class UserToggleStatusView(GenericAPIView):
    permission_classes = [IsUserAdmin]
    queryset = User.objects.all()

    def post(self, request, pk):
        user = self.get_object()

        if user.pk == request.user.pk:
            raise ValidationError({"detail": "Cannot change your own status."})

        old_status = user.status
        user.status = User.Status.INACTIVE if user.status == User.Status.ACTIVE else User.Status.ACTIVE
        user.save(update_fields=["status", "is_active"])

        log_action(
            request,
            "TOGGLE_STATUS",
            "users",
            user.pk,
            old_values={"status": old_status},
            new_values={"status": user.status},
        )
        return Response(
            {"detail": "Status updated.", "user_id": user.pk, "status": user.status},
            status=status.HTTP_200_OK,
        )


def generate_password(length=12):
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    return "".join(secrets.choice(alphabet) for _ in range(length))


class UserResetPasswordView(GenericAPIView):
    permission_classes = [IsUserAdmin]
    serializer_class = ResetPasswordSerializer
    queryset = User.objects.all()

    def post(self, request, pk):
        user = self.get_object()

        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)

        custom = ser.validated_data.get("password")
        password = custom or generate_password()
        user.set_password(password)
        user.save(update_fields=["password"])

        log_action(request, "RESET_PASSWORD", "users", user.pk, new_values={"custom_password": bool(custom)})
        logger.info("Password of user %s reset by admin %s", user.pk, request.user.pk)

        data = {"detail": "Password reset.", "user_id": user.pk}
        if not custom:
            data["temporary_password"] = password
        return Response(data, status=status.HTTP_200_OK)


class RolesAndDepartmentsView(GenericAPIView):
    permission_classes = [IsUserAdmin]

    def get(self, request, *args, **kwargs):
        departments = Department.objects.filter(is_active=True).order_by("name")
        return Response({
            "roles": [{"value": r.value, "label": r.label} for r in User.Role],
            "departments": DepartmentSummarySerializer(departments, many=True).data,
        })


class DepartmentScopedMixin:
    queryset = Department.objects.select_related("head", "parent").order_by("id")

    def get_queryset(self):
        user = self.request.user
        qs = super().get_queryset()

        if user.is_admin_role:
            return qs

        if user.department_id:
            return qs.filter(id=user.department_id)

        return qs.none()

    def _require_admin(self, request):
        if not request.user.is_admin_role:
            raise PermissionDenied("You do not have permission to perform this action.")


class DepartmentListCreateView(DepartmentScopedMixin, ListCreateAPIView):
    serializer_class = DepartmentSerializer
    permission_classes = [IsAuthenticated]

    def create(self, request, *args, **kwargs):
        # Admin-only create
        self._require_admin(request)
        return super().create(request, *args, **kwargs)


class DepartmentDetailView(DepartmentScopedMixin, RetrieveUpdateDestroyAPIView):
    serializer_class = DepartmentSerializer
    permission_classes = [IsAuthenticated]

    def update(self, request, *args, **kwargs):
        self._require_admin(request)
        return super().update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        self._require_admin(request)

        instance = self.get_object()
        try:
            instance.delete()
        except ProtectedError:
            raise ValidationError({"detail": "Cannot delete department because it has members."})
        return Response(status=status.HTTP_204_NO_CONTENT)
