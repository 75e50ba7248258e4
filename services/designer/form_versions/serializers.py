"""Serializers for form versions."""
from __future__ import annotations

from rest_framework import serializers

from .models import FormVersion


class FormVersionRefSerializer(serializers.ModelSerializer):
    """Identity of a version as returned by writes."""

    formId = serializers.UUIDField(source="form_id", read_only=True)

    class Meta:
        model = FormVersion
        fields = ["formId", "version", "status"]


class FormVersionSerializer(serializers.ModelSerializer):
    formId = serializers.UUIDField(source="form_id", read_only=True)
    rawJson = serializers.JSONField(source="raw_json", read_only=True)
    createdBy = serializers.CharField(source="created_by", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = FormVersion
        fields = [
            "formId",
            "version",
            "status",
            "title",
            "rawJson",
            "createdBy",
            "createdAt",
            "updatedAt",
            "thumbnail",
        ]


class FormListQuerySerializer(serializers.Serializer):
    # Keeps page * page size well inside a 64-bit SQL OFFSET.
    MAX_PAGE = 1_000_000

    page = serializers.CharField(required=False, default="1")
    status = serializers.CharField(required=False, default=FormVersion.WIP)

    def validate_page(self, value: str) -> int:
        try:
            page = int(value)
        except (TypeError, ValueError):
            return 1
        if page > self.MAX_PAGE:
            raise serializers.ValidationError(f"Page must not exceed {self.MAX_PAGE}.")
        return page if page >= 1 else 1

    def validate_status(self, value: str) -> str:
        status = value.strip().upper()
        if status not in {choice for choice, _ in FormVersion.STATUS_CHOICES}:
            raise serializers.ValidationError(f"Unknown status {value!r}.")
        return status
