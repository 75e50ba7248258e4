"""Database models for the designer service."""
from __future__ import annotations

from django.db import models


class FormVersion(models.Model):
    """One persisted snapshot of a designed form.

    Rows sharing a ``form_id`` are the versions of one logical form. Only the
    highest version may change, and only while it is a work-in-progress draft.
    """

    WIP = "WIP"
    PUBLISH = "PUBLISH"

    STATUS_CHOICES = [
        (WIP, "Work in progress"),
        (PUBLISH, "Published"),
    ]

    form_id = models.UUIDField(db_index=True)
    version = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=WIP)
    title = models.CharField(max_length=255)
    raw_json = models.JSONField(default=dict)
    thumbnail = models.TextField(blank=True)
    created_by = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["form_id", "-version"]
        constraints = [
            models.UniqueConstraint(fields=["form_id", "version"], name="uq_form_version"),
        ]
        indexes = [
            models.Index(fields=["created_by", "status", "-updated_at"], name="idx_form_owner_status"),
        ]

    def __str__(self) -> str:
        return f"{self.title} v{self.version} ({self.status})"

    @property
    def is_draft(self) -> bool:
        return self.status == self.WIP
