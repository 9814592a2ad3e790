"""
shop.models.site_config
Single-row, admin-editable site settings.
"""
from django.db import models

MAIN_CONFIG_ID = "main"


class SiteConfig(models.Model):
    id = models.CharField(primary_key=True, max_length=16, default=MAIN_CONFIG_ID, editable=False)
    auto_deduct_stock = models.BooleanField(
        default=False,
        help_text=(
            "On: placed orders reserve stock (reserved_stock += qty) until released. "
            "Off: placed orders deduct stock immediately."
        ),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Site configuration"
        verbose_name_plural = "Site configuration"

    @classmethod
    def load(cls) -> "SiteConfig":
        obj, _ = cls.objects.get_or_create(pk=MAIN_CONFIG_ID)
        return obj

    @classmethod
    def auto_deduct_stock_enabled(cls) -> bool:
        """Missing row means the default policy (deduct immediately)."""
        value = cls.objects.filter(pk=MAIN_CONFIG_ID).values_list("auto_deduct_stock", flat=True).first()
        return bool(value)

    def __str__(self) -> str:
        return f"SiteConfig({self.pk})"
