# Generated manually for standalone django-medstock package

import uuid

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import django_medstock.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Medicine",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                (
                    "barcode",
                    models.CharField(
                        blank=True,
                        help_text="Unique among active medicines",
                        max_length=100,
                        null=True,
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("Antibiotics", "Antibiotics"),
                            ("Painkillers", "Painkillers"),
                            ("Supplements", "Supplements"),
                            ("Vaccines", "Vaccines"),
                            ("Antiseptics", "Antiseptics"),
                            ("Cardiovascular", "Cardiovascular"),
                            ("Respiratory", "Respiratory"),
                            ("Digestive", "Digestive"),
                            ("Neurological", "Neurological"),
                            ("Other", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="On-hand stock",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "initial_stock",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Total stock received (creation quantity plus restocks)",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "min_quantity",
                    models.PositiveIntegerField(
                        default=10,
                        help_text="Low-stock threshold (inclusive)",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("expiry_date", models.DateTimeField(db_index=True)),
                ("supplier", models.CharField(blank=True, default="", max_length=200)),
                ("batch_number", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="medstock_medicines_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="medstock_medicines_updated",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Issuance",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "recipient_type",
                    models.CharField(
                        choices=[
                            ("GIZ Guest", "GIZ Guest"),
                            ("AZI Guest", "AZI Guest"),
                            ("Employee", "Employee"),
                        ],
                        max_length=20,
                    ),
                ),
                ("recipient_name", models.CharField(max_length=200)),
                ("recipient_id", models.CharField(db_index=True, max_length=100)),
                (
                    "quantity_issued",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("prescribed_by", models.CharField(max_length=200)),
                ("notes", models.CharField(blank=True, default="", max_length=500)),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "issued_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="medstock_issuances",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "medicine",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issuances",
                        to="django_medstock.medicine",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
            },
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "action_type",
                    models.CharField(
                        choices=[
                            ("Add", "Add"),
                            ("Update", "Update"),
                            ("Delete", "Delete"),
                            ("Issue", "Issue"),
                            ("Login", "Login"),
                            ("Logout", "Logout"),
                            ("Stock In", "Stock In"),
                            ("Stock Out", "Stock Out"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        choices=[
                            ("Medicine", "Medicine"),
                            ("User", "User"),
                            ("Issuance", "Issuance"),
                            ("System", "System"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "entity_id",
                    models.CharField(
                        help_text="Primary key of the affected entity, as string",
                        max_length=64,
                    ),
                ),
                (
                    "performed_by_display",
                    models.CharField(
                        blank=True,
                        help_text="Snapshot of actor identity at time of action",
                        max_length=200,
                    ),
                ),
                ("description", models.CharField(max_length=500)),
                (
                    "old_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "new_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="medstock_activity_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Alert",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("user_added", "User Added"),
                            ("user_updated", "User Updated"),
                            ("user_deleted", "User Deleted"),
                            ("medicine_added", "Medicine Added"),
                            ("stock_entry", "Stock Entry"),
                            ("stock_low", "Low Stock"),
                            ("medicine_expiring", "Medicine Expiring"),
                            ("medicine_expired", "Medicine Expired"),
                            ("medicine_issued", "Medicine Issued"),
                            ("system", "System"),
                        ],
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(max_length=200)),
                ("message", models.CharField(max_length=500)),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("info", "Info"),
                            ("success", "Success"),
                            ("warning", "Warning"),
                            ("danger", "Danger"),
                        ],
                        default="info",
                        max_length=10,
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        choices=[
                            ("Medicine", "Medicine"),
                            ("User", "User"),
                            ("Issuance", "Issuance"),
                            ("System", "System"),
                        ],
                        max_length=20,
                    ),
                ),
                ("entity_id", models.CharField(max_length=64)),
                ("is_read", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "expires_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django_medstock.models.default_alert_expiry,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "triggered_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="medstock_alerts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="medicine",
            index=models.Index(fields=["name", "category"], name="medstock_med_name_cat_idx"),
        ),
        migrations.AddIndex(
            model_name="medicine",
            index=models.Index(fields=["quantity", "min_quantity"], name="medstock_med_stock_idx"),
        ),
        migrations.AddConstraint(
            model_name="medicine",
            constraint=models.UniqueConstraint(
                condition=models.Q(("barcode__isnull", False), ("is_active", True)),
                fields=("barcode",),
                name="medstock_unique_active_barcode",
            ),
        ),
        migrations.AddConstraint(
            model_name="medicine",
            constraint=models.CheckConstraint(
                condition=models.Q(("quantity__lte", models.F("initial_stock"))),
                name="medstock_quantity_within_initial_stock",
            ),
        ),
        migrations.AddIndex(
            model_name="issuance",
            index=models.Index(fields=["medicine", "-issued_at"], name="medstock_iss_med_idx"),
        ),
        migrations.AddIndex(
            model_name="issuance",
            index=models.Index(fields=["recipient_type", "-issued_at"], name="medstock_iss_recip_idx"),
        ),
        migrations.AddConstraint(
            model_name="issuance",
            constraint=models.CheckConstraint(
                condition=models.Q(("quantity_issued__gte", 1)),
                name="medstock_issuance_quantity_positive",
            ),
        ),
        migrations.AddIndex(
            model_name="activitylog",
            index=models.Index(fields=["performed_by", "-created_at"], name="medstock_log_actor_idx"),
        ),
        migrations.AddIndex(
            model_name="activitylog",
            index=models.Index(fields=["action_type", "-created_at"], name="medstock_log_action_idx"),
        ),
        migrations.AddIndex(
            model_name="activitylog",
            index=models.Index(fields=["entity_type", "entity_id"], name="medstock_log_entity_idx"),
        ),
        migrations.AddIndex(
            model_name="alert",
            index=models.Index(
                fields=["is_read", "is_active", "-created_at"], name="medstock_alert_state_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="alert",
            index=models.Index(fields=["type", "-created_at"], name="medstock_alert_type_idx"),
        ),
        migrations.AddIndex(
            model_name="alert",
            index=models.Index(fields=["triggered_by"], name="medstock_alert_actor_idx"),
        ),
    ]
