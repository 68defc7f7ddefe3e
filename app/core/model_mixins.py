"""
Model mixins combined with BaseModel.

Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of an auto-increment integer
    VersionedMixin: Optimistic locking version incremented on every update

Usage:
    class Contract(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        title = models.CharField(max_length=200)

    contract.save()          # version 1 -> 2
    contract.version         # refreshed from the database after save
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key.

    IDs are non-guessable and do not reveal record counts, which matters
    for financial records exposed in URLs.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic locking via a monotonically increasing version field.

    On update, the version is incremented with an F() expression so the
    increment happens in the database, then refreshed onto the instance.
    Pair with payments.locks.check_version() to reject stale writes.

    Fields:
        version: Incremented on every save of an existing row
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = (
            not self._state.adding
            and self.pk is not None
            and not kwargs.get("force_insert", False)
        )
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
