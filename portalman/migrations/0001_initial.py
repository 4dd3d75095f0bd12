# Initial migration for Wholesaler, Customer, VerificationChallenge and RegistrationRequest

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Wholesaler",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="Public identifier used in portal links",
                        max_length=64,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("business_name", models.CharField(max_length=200, verbose_name="business name")),
                ("logo_url", models.URLField(blank=True, max_length=500, verbose_name="logo URL")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "wholesaler",
                "verbose_name_plural": "wholesalers",
                "ordering": ["business_name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                (
                    "business_name",
                    models.CharField(blank=True, max_length=200, verbose_name="business name"),
                ),
                (
                    "phone",
                    models.CharField(help_text="E.164", max_length=20, verbose_name="phone"),
                ),
                (
                    "phone_last_four",
                    models.CharField(
                        editable=False,
                        max_length=4,
                        verbose_name="phone last four digits",
                    ),
                ),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email")),
                (
                    "phone_verified_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="phone verified at"),
                ),
                (
                    "email_verified_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="email verified at"),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "wholesaler",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customers",
                        to="portalman.wholesaler",
                        verbose_name="wholesaler",
                    ),
                ),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["name"],
                "indexes": [
                    models.Index(
                        fields=["wholesaler", "phone_last_four"],
                        name="portalman_c_wholesa_5d1f0e_idx",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("wholesaler", "phone"),
                        name="portalman_unique_customer_phone",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="VerificationChallenge",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "channel",
                    models.CharField(
                        choices=[("sms", "SMS"), ("email", "Email")],
                        max_length=10,
                        verbose_name="channel",
                    ),
                ),
                (
                    "destination",
                    models.CharField(
                        help_text="Phone (E.164) or email the code was sent to.",
                        max_length=255,
                        verbose_name="destination",
                    ),
                ),
                ("code_hash", models.CharField(max_length=64, verbose_name="code hash")),
                ("created_at", models.DateTimeField(db_index=True, verbose_name="created at")),
                ("expires_at", models.DateTimeField(db_index=True, verbose_name="expires at")),
                (
                    "consumed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="consumed at"),
                ),
                (
                    "superseded_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="superseded at"),
                ),
                (
                    "attempts",
                    models.PositiveIntegerField(default=0, verbose_name="failed attempts"),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="challenges",
                        to="portalman.customer",
                        verbose_name="customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "verification challenge",
                "verbose_name_plural": "verification challenges",
                "db_table": "portalman_verification_challenge",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "channel", "-created_at"],
                        name="portalman_v_custome_8c2b41_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="RegistrationRequest",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("customer_name", models.CharField(max_length=200, verbose_name="customer name")),
                ("customer_phone", models.CharField(max_length=20, verbose_name="customer phone")),
                (
                    "customer_email",
                    models.EmailField(blank=True, max_length=254, verbose_name="customer email"),
                ),
                (
                    "business_name",
                    models.CharField(blank=True, max_length=200, verbose_name="business name"),
                ),
                ("request_message", models.TextField(blank=True, verbose_name="request message")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                (
                    "requested_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="requested at"),
                ),
                (
                    "responded_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="responded at"),
                ),
                ("response_message", models.TextField(blank=True, verbose_name="response message")),
                (
                    "responded_by",
                    models.CharField(blank=True, max_length=255, verbose_name="responded by"),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="registration_requests",
                        to="portalman.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "wholesaler",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registration_requests",
                        to="portalman.wholesaler",
                        verbose_name="wholesaler",
                    ),
                ),
            ],
            options={
                "verbose_name": "registration request",
                "verbose_name_plural": "registration requests",
                "db_table": "portalman_registration_request",
                "ordering": ["-requested_at"],
                "indexes": [
                    models.Index(
                        fields=["wholesaler", "status"],
                        name="portalman_r_wholesa_2a9e7c_idx",
                    ),
                    models.Index(
                        fields=["wholesaler", "customer_phone"],
                        name="portalman_r_wholesa_f47d13_idx",
                    ),
                ],
            },
        ),
    ]
