from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("checkout", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.SlugField(unique=True)),
                ("name", models.CharField(max_length=200)),
                (
                    "kind",
                    models.CharField(
                        choices=[("offline", "Offline"), ("gateway", "Gateway"), ("cod", "Cash on delivery")],
                        default="offline",
                        max_length=20,
                    ),
                ),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("sort_order", models.IntegerField(default=0)),
                ("instructions", models.TextField(blank=True, default="")),
                ("bank_alias", models.CharField(blank=True, default="", max_length=64)),
                ("bank_holder", models.CharField(blank=True, default="", max_length=200)),
                ("bank_cbu", models.CharField(blank=True, default="", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["sort_order", "code"],
                "indexes": [models.Index(fields=["is_active", "sort_order"], name="paymentmethod_active_sort_idx")],
            },
        ),
        migrations.CreateModel(
            name="PaymentNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("topic", models.CharField(blank=True, default="", max_length=50)),
                ("payment_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("raw_body", models.TextField(blank=True, default="")),
                ("signature_valid", models.BooleanField(blank=True, null=True)),
                ("processed", models.BooleanField(default=False)),
                (
                    "result",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("ignored", "Ignored"),
                            ("not_approved", "Payment not approved"),
                            ("order_not_found", "Order not found"),
                            ("completed", "Order completed"),
                            ("already_completed", "Order already completed"),
                            ("amount_mismatch", "Paid amount does not cover the order"),
                            ("order_cancelled", "Paid after the order was cancelled"),
                            ("error", "Error"),
                        ],
                        default="received",
                        max_length=32,
                    ),
                ),
                ("error_message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payment_notifications",
                        to="checkout.order",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
