import attendance.models
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OfficeLocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                (
                    "code",
                    models.CharField(
                        max_length=20,
                        unique=True,
                        validators=[attendance.models.office_code_validator],
                    ),
                ),
                ("address", models.CharField(blank=True, max_length=500)),
                (
                    "latitude",
                    models.DecimalField(
                        decimal_places=8,
                        max_digits=10,
                        validators=[
                            django.core.validators.MinValueValidator(-90),
                            django.core.validators.MaxValueValidator(90),
                        ],
                    ),
                ),
                (
                    "longitude",
                    models.DecimalField(
                        decimal_places=8,
                        max_digits=11,
                        validators=[
                            django.core.validators.MinValueValidator(-180),
                            django.core.validators.MaxValueValidator(180),
                        ],
                    ),
                ),
                (
                    "radius_meters",
                    models.PositiveIntegerField(
                        default=100,
                        validators=[
                            django.core.validators.MinValueValidator(10),
                            django.core.validators.MaxValueValidator(1000),
                        ],
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["is_active"], name="officelocation_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Attendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("attendance_date", models.DateField()),
                ("check_in_time", models.DateTimeField(blank=True, null=True)),
                ("check_in_latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ("check_in_longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ("check_in_address", models.CharField(blank=True, max_length=500)),
                ("check_out_time", models.DateTimeField(blank=True, null=True)),
                ("check_out_latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ("check_out_longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ("check_out_address", models.CharField(blank=True, max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PRESENT", "Present"),
                            ("LATE", "Late"),
                            ("ABSENT", "Absent"),
                            ("HALF_DAY", "Half day"),
                            ("LEAVE", "Leave"),
                        ],
                        default="PRESENT",
                        max_length=20,
                    ),
                ),
                ("notes", models.CharField(blank=True, max_length=500)),
                ("working_minutes", models.PositiveIntegerField(default=0)),
                ("is_valid_location", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "office_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="attendance_records",
                        to="attendance.officelocation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-attendance_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["attendance_date"], name="attendance_date_idx"),
                    models.Index(fields=["status"], name="attendance_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "attendance_date"), name="uniq_attendance_user_date"),
                ],
            },
        ),
    ]
