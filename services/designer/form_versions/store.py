"""Draft/publish version state machine for designed forms.

Every save of a form goes through :class:`VersionedDraftStore`:

* a form without rows gets version 1 as a ``WIP`` draft;
* a ``WIP`` latest row is rewritten in place and keeps its version;
* a ``PUBLISH`` latest row is never touched, the edit lands in a new ``WIP``
  row numbered ``latest + 1`` that inherits the published title.

Each write happens inside one transaction with the latest row locked, so the
create-vs-branch decision and the write it implies commit together or not at
all.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from .errors import FormNotFound, InvalidData, InvalidTitle
from .models import FormVersion
from .thumbnails import render_thumbnail

logger = logging.getLogger(__name__)

Thumbnailer = Callable[[Dict[str, Any]], str]


def validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidTitle()
    return title.strip()


def validate_raw_json(raw_json: Any) -> Dict[str, Any]:
    if not isinstance(raw_json, dict):
        raise InvalidData()
    return raw_json


class VersionedDraftStore:
    """Persistence for form versions, keyed by ``form_id``."""

    def __init__(self, thumbnailer: Thumbnailer = render_thumbnail) -> None:
        self.thumbnailer = thumbnailer

    # Reads

    def get_latest(self, form_id: uuid.UUID) -> Optional[FormVersion]:
        return FormVersion.objects.filter(form_id=form_id).order_by("-version").first()

    def get_by_version(self, form_id: uuid.UUID, version: int) -> FormVersion:
        try:
            return FormVersion.objects.get(form_id=form_id, version=version)
        except FormVersion.DoesNotExist:
            raise FormNotFound("Form version not found") from None

    def list_by_owner_and_status(
        self,
        owner_id: str,
        status: str,
        limit: int,
        offset: int,
    ) -> List[FormVersion]:
        queryset = FormVersion.objects.filter(created_by=owner_id, status=status).order_by(
            "-updated_at", "-id"
        )
        return list(queryset[offset : offset + limit])

    # Writes

    def create(self, *, owner_id: str, title: Any, raw_json: Any) -> FormVersion:
        """Start a new logical form at version 1."""

        title = validate_title(title)
        raw_json = validate_raw_json(raw_json)
        thumbnail = self.thumbnailer(raw_json)

        with transaction.atomic():
            draft = FormVersion.objects.create(
                form_id=uuid.uuid4(),
                version=1,
                status=FormVersion.WIP,
                title=title,
                raw_json=raw_json,
                thumbnail=thumbnail,
                created_by=owner_id,
            )
        logger.info("Created form %s v1 for %s", draft.form_id, owner_id)
        return draft

    def edit(self, form_id: uuid.UUID, *, owner_id: str, raw_json: Any) -> FormVersion:
        """Apply an edit to the latest version of ``form_id``."""

        raw_json = validate_raw_json(raw_json)

        with transaction.atomic():
            latest = (
                FormVersion.objects.select_for_update()
                .filter(form_id=form_id)
                .order_by("-version")
                .first()
            )
            if latest is None:
                raise FormNotFound()

            thumbnail = self.thumbnailer(raw_json)

            if latest.status == FormVersion.WIP:
                updated = FormVersion.objects.filter(pk=latest.pk, status=FormVersion.WIP).update(
                    raw_json=raw_json,
                    thumbnail=thumbnail,
                    updated_at=timezone.now(),
                )
                if updated:
                    latest.refresh_from_db()
                    logger.info("Updated draft %s v%s in place", form_id, latest.version)
                    return latest
                logger.info("Draft %s v%s was published mid-edit; branching", form_id, latest.version)

            return self._branch(latest, owner_id=owner_id, raw_json=raw_json, thumbnail=thumbnail)

    def publish(self, form_id: uuid.UUID, version: int) -> FormVersion:
        """Freeze a draft. Its version number does not change."""

        with transaction.atomic():
            try:
                row = FormVersion.objects.select_for_update().get(form_id=form_id, version=version)
            except FormVersion.DoesNotExist:
                raise FormNotFound("Form version not found") from None

            if row.status == FormVersion.PUBLISH:
                return row

            row.status = FormVersion.PUBLISH
            row.save(update_fields=["status", "updated_at"])
        logger.info("Published form %s v%s", form_id, version)
        return row

    def _branch(
        self,
        published: FormVersion,
        *,
        owner_id: str,
        raw_json: Dict[str, Any],
        thumbnail: str,
    ) -> FormVersion:
        draft = FormVersion.objects.create(
            form_id=published.form_id,
            version=published.version + 1,
            status=FormVersion.WIP,
            title=published.title,
            raw_json=raw_json,
            thumbnail=thumbnail,
            created_by=owner_id,
        )
        logger.info(
            "Branched form %s v%s from published v%s",
            draft.form_id,
            draft.version,
            published.version,
        )
        return draft
