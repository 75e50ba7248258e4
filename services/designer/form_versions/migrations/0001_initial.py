# Generated manually for initial schema.
from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FormVersion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("form_id", models.UUIDField(db_index=True)),
                ("version", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("WIP", "Work in progress"), ("PUBLISH", "Published")],
                        default="WIP",
                        max_length=16,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("raw_json", models.JSONField(default=dict)),
                ("thumbnail", models.TextField(blank=True)),
                ("created_by", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["form_id", "-version"],
                "constraints": [
                    models.UniqueConstraint(fields=("form_id", "version"), name="uq_form_version"),
                ],
                "indexes": [
                    models.Index(fields=["created_by", "status", "-updated_at"], name="idx_form_owner_status"),
                ],
            },
        ),
    ]
