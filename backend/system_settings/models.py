from django.conf import settings
from django.db import models, transaction


class SystemSetting(models.Model):
    """
    One version of an admin-editable runtime setting.

    Rows are append-only: saving a changed row stores it as the next version
    of its key, so the history of point values and bonuses stays auditable.
    """

    class ValueType(models.TextChoices):
        INT = "int", "Integer"
        DECIMAL = "decimal", "Decimal"
        STR = "str", "Text"

    key = models.CharField(max_length=64)
    version = models.PositiveIntegerField(editable=False)
    value_json = models.JSONField()
    value_type = models.CharField(max_length=8, choices=ValueType.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="setting_changes",
    )
    effective_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "version"], name="sysset_key_version_unique"),
        ]
        indexes = [models.Index(fields=["key", "effective_at"], name="sysset_key_effective_idx")]
        ordering = ["key", "-version"]

    def __str__(self) -> str:
        return f"{self.key} v{self.version} = {self.value_json!r}"

    def _differs_from(self, stored: "SystemSetting") -> bool:
        tracked = ("key", "value_json", "value_type", "description", "updated_by_id", "effective_at")
        return any(getattr(stored, name) != getattr(self, name) for name in tracked)

    def save(self, *args, **kwargs):
        using = kwargs.get("using") or self._state.db or "default"
        with transaction.atomic(using=using):
            if self.pk is not None:
                stored = type(self).objects.using(using).filter(pk=self.pk).first()
                if stored is not None and not self._differs_from(stored):
                    return
                self.pk = None
                self._state.adding = True
                kwargs.pop("update_fields", None)
                kwargs.pop("force_update", None)
                kwargs["force_insert"] = True
            latest = (
                type(self).objects.using(using)
                .select_for_update()
                .filter(key=self.key)
                .order_by("-version")
                .values_list("version", flat=True)
                .first()
            )
            self.version = (latest or 0) + 1
            super().save(*args, **kwargs)
