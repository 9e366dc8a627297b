from rest_framework import serializers

from accounts.models import User

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "title", "message", "type", "status", "data", "read_at", "created_at"]
        read_only_fields = fields


class NotificationCreateSerializer(serializers.ModelSerializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(status=User.Status.ACTIVE))

    class Meta:
        model = Notification
        fields = ["id", "user", "title", "message", "type", "data", "status", "created_at"]
        read_only_fields = ["id", "status", "created_at"]


class MarkReadSerializer(serializers.Serializer):
    notification_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=500,
    )
