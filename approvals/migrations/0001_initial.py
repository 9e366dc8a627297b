import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

REQUEST_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
]


def request_fields(related):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("status", models.CharField(choices=REQUEST_STATUS_CHOICES, default="pending", max_length=20)),
        ("attachment_file", models.CharField(blank=True, max_length=500)),
        ("rejection_reason", models.TextField(blank=True)),
        ("cancellation_reason", models.TextField(blank=True)),
        ("submitted_at", models.DateTimeField(default=django.utils.timezone.now)),
        ("approved_at", models.DateTimeField(blank=True, null=True)),
        ("rejected_at", models.DateTimeField(blank=True, null=True)),
        ("cancelled_at", models.DateTimeField(blank=True, null=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        (
            "current_approver",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name=f"assigned_{related}",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        (
            "user",
            models.ForeignKey(
                on_delete=django.db.models.deletion.CASCADE,
                related_name=related,
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


def request_options(model_name):
    return {
        "ordering": ["-submitted_at", "-id"],
        "abstract": False,
        "indexes": [models.Index(fields=["status"], name=f"{model_name}_status_idx")],
    }


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LeaveRequest",
            fields=request_fields("leaverequests") + [
                (
                    "leave_type",
                    models.CharField(
                        choices=[
                            ("annual", "Annual"),
                            ("sick", "Sick"),
                            ("maternity", "Maternity"),
                            ("paternity", "Paternity"),
                            ("emergency", "Emergency"),
                            ("unpaid", "Unpaid"),
                        ],
                        max_length=20,
                    ),
                ),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("total_days", models.PositiveIntegerField()),
                ("reason", models.TextField()),
                ("description", models.TextField(blank=True)),
            ],
            options=request_options("leaverequest"),
        ),
        migrations.CreateModel(
            name="PermissionRequest",
            fields=request_fields("permissionrequests") + [
                (
                    "permission_type",
                    models.CharField(
                        choices=[
                            ("personal", "Personal"),
                            ("medical", "Medical"),
                            ("family", "Family"),
                            ("official", "Official"),
                            ("others", "Others"),
                        ],
                        max_length=20,
                    ),
                ),
                ("permission_date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("reason", models.TextField()),
                ("description", models.TextField(blank=True)),
            ],
            options=request_options("permissionrequest"),
        ),
        migrations.CreateModel(
            name="WorkLetter",
            fields=request_fields("workletters") + [
                (
                    "letter_type",
                    models.CharField(
                        choices=[
                            ("assignment", "Assignment"),
                            ("travel", "Travel"),
                            ("training", "Training"),
                            ("official", "Official"),
                            ("others", "Others"),
                        ],
                        max_length=20,
                    ),
                ),
                ("letter_number", models.CharField(blank=True, max_length=100)),
                ("subject", models.CharField(max_length=255)),
                ("content", models.TextField()),
                ("effective_date", models.DateField()),
                ("expiry_date", models.DateField(blank=True, null=True)),
            ],
            options=request_options("workletter"),
        ),
        migrations.CreateModel(
            name="Approval",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "document_type",
                    models.CharField(
                        choices=[
                            ("leave", "Leave request"),
                            ("permission", "Permission request"),
                            ("work_letter", "Work letter"),
                        ],
                        max_length=20,
                    ),
                ),
                ("document_id", models.PositiveBigIntegerField()),
                ("step_order", models.PositiveSmallIntegerField(default=1)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("comments", models.TextField(blank=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "approver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approvals",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["document_type", "document_id", "step_order"],
                "indexes": [
                    models.Index(fields=["document_type", "document_id"], name="approval_document_idx"),
                    models.Index(fields=["approver", "status"], name="approval_approver_status_idx"),
                ],
            },
        ),
    ]
