"""
shop.models.base
Abstract base classes and id helpers shared by the shop models.
"""
import secrets

from django.db import models


def new_id() -> str:
    """Opaque 24-char string id (same shape the storefront puts in checkout metadata)."""
    return secrets.token_hex(12)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ActivatableModel(models.Model):
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        abstract = True


class PublicIdModel(TimeStampedModel):
    """
    String primary key instead of an auto integer. Carts and payment sessions
    reference records by these ids, so they must be stable across databases.
    """
    id = models.CharField(primary_key=True, max_length=40, default=new_id, editable=False)

    class Meta:
        abstract = True
