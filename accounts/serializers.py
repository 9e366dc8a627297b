from django.contrib.auth.password_validation import validate_password
from django.db import IntegrityError, transaction
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Department, User


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        token["username"] = user.username
        token["email"] = user.email
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data["user"] = {
            "id": self.user.id,
            "username": self.user.username,
            "email": self.user.email,
            "name": self.user.display_name,
            "role": self.user.role,
            "department": self.user.department_id,
        }
        return data


class DepartmentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ["id", "code", "name"]


class MeSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="display_name", read_only=True)
    department = DepartmentSummarySerializer(read_only=True)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "name",
            "role",
            "status",
            "nip",
            "phone",
            "department",
            "last_login",
            "permissions",
        ]

    def get_permissions(self, obj):
        return sorted(obj.get_all_permissions())


class DepartmentSerializer(serializers.ModelSerializer):
    member_count = serializers.IntegerField(source="members.count", read_only=True)

    class Meta:
        model = Department
        fields = ["id", "code", "name", "description", "parent", "head", "is_active", "member_count"]

    def validate_code(self, value):
        return value.strip().upper()

    def validate_parent(self, parent):
        if parent is not None and self.instance is not None and parent.pk == self.instance.pk:
            raise serializers.ValidationError("Department cannot be its own parent.")
        return parent

    def validate_head(self, head):
        if head is None:
            return None

        # Block setting head on CREATE, the head must already be a member
        if self.instance is None:
            raise serializers.ValidationError(
                "Set department head after creating the department (use PATCH)."
            )

        if head.department_id != self.instance.id:
            raise serializers.ValidationError("Head must belong to the same department.")

        if head.status != User.Status.ACTIVE:
            raise serializers.ValidationError("Head must be an active user.")

        return head


class UserListSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="display_name", read_only=True)
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "name",
            "nip",
            "role",
            "status",
            "department",
            "department_name",
            "last_login",
        ]


class AdminUserSerializer(serializers.ModelSerializer):
    """Create/update payload used by the user administration endpoints."""

    password = serializers.CharField(write_only=True, required=False, min_length=8)
    name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "name",
            "password",
            "role",
            "status",
            "nip",
            "phone",
            "birth_date",
            "gender",
            "address",
            "hire_date",
            "department",
            "last_login",
            "date_joined",
        ]
        read_only_fields = ["id", "last_login", "date_joined"]

    def validate_department(self, department):
        if department is not None and not department.is_active:
            raise serializers.ValidationError("Invalid or inactive department selected.")
        return department

    def validate_password(self, value):
        validate_password(value)
        return value

    def validate(self, attrs):
        request = self.context["request"]
        actor = request.user

        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "Password is required."})

        if self.instance is not None and self.instance.pk == actor.pk:
            if "role" in attrs and attrs["role"] != self.instance.role:
                raise serializers.ValidationError({"role": "Cannot modify your own role."})
            if "status" in attrs and attrs["status"] != self.instance.status:
                raise serializers.ValidationError({"status": "Cannot modify your own status."})

        # Only a super admin may hand out or take away super admin rights
        touches_super_admin = attrs.get("role") == User.Role.SUPER_ADMIN or (
            self.instance is not None and self.instance.role == User.Role.SUPER_ADMIN
        )
        if touches_super_admin and not (actor.is_superuser or actor.role == User.Role.SUPER_ADMIN):
            raise serializers.ValidationError({"role": "Only Super Admin can manage Super Admin accounts."})

        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        validated_data.pop("display_name", None)
        try:
            with transaction.atomic():
                user = User(**validated_data)
                user.set_password(password)
                user.save()
        except IntegrityError:
            raise serializers.ValidationError({"non_field_errors": ["User with these details already exists."]})
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        try:
            with transaction.atomic():
                instance.save()
        except IntegrityError:
            raise serializers.ValidationError({"non_field_errors": ["User with these details already exists."]})
        return instance


class ResetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(required=False, min_length=8, write_only=True)


