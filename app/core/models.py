"""
Core base model shared by the domain models.

Base Classes:
    BaseModel: Abstract model with timestamps (created_at, updated_at)

Usage:
    from core.models import BaseModel

    class UnreadMessageCount(BaseModel):
        message_count = models.PositiveIntegerField(default=0)
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with row bookkeeping timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save

    These are bookkeeping columns. Domain times (e.g. a message's
    ``timestamp``) are separate fields owned by the model that needs them.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
