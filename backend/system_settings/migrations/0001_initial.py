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
            name="SystemSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=64)),
                ("version", models.PositiveIntegerField(editable=False)),
                ("value_json", models.JSONField()),
                (
                    "value_type",
                    models.CharField(
                        choices=[("int", "Integer"), ("decimal", "Decimal"), ("str", "Text")],
                        max_length=8,
                    ),
                ),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("effective_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="setting_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["key", "-version"],
                "indexes": [models.Index(fields=["key", "effective_at"], name="sysset_key_effective_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("key", "version"), name="sysset_key_version_unique"),
                ],
            },
        ),
    ]
