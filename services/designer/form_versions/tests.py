"""Tests for the form version API and its draft/publish state machine."""
from __future__ import annotations

import base64
import os
import subprocess
import sys
import uuid
from pathlib import Path
from typing import Any, Dict
from unittest import mock

from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from .errors import FormNotFound, InvalidData, InvalidTitle
from .models import FormVersion
from .store import VersionedDraftStore
from .thumbnails import render_thumbnail

FIELD_X = {"id": "x", "type": "text", "label": "First name"}
FIELD_Y = {"id": "y", "type": "email", "label": "Email"}

SERVICE_DIR = Path(__file__).resolve().parent.parent


def _decode(data_uri: str) -> str:
    prefix = "data:image/svg+xml;base64,"
    assert data_uri.startswith(prefix)
    return base64.b64decode(data_uri[len(prefix) :]).decode("utf-8")


class FormDesignerApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.client.credentials(HTTP_X_USER_ID="user-1")

    def _create(self, title: str = "T", raw_json: Dict[str, Any] | None = None) -> str:
        response = self.client.post(
            reverse("form-list"),
            {"title": title, "rawJson": raw_json if raw_json is not None else {"elements": []}},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        return response.data["formId"]

    def _edit(self, form_id: str, elements: list) -> Any:
        return self.client.put(
            reverse("form-detail", args=[form_id]),
            {"rawJson": {"title": "T", "elements": elements}},
            format="json",
        )

    def _version(self, form_id: str, version: int) -> Any:
        return self.client.get(reverse("form-version", kwargs={"form_id": form_id, "version": version}))

    def test_health(self) -> None:
        client = APIClient()
        response = client.get(reverse("designer-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")

    def test_edit_after_publish_branches_into_new_version(self) -> None:
        response = self.client.post(
            reverse("form-list"), {"title": "T", "rawJson": {"elements": []}}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["version"], 1)
        self.assertEqual(response.data["status"], FormVersion.WIP)
        form_id = response.data["formId"]

        response = self._edit(form_id, [FIELD_X])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["version"], 1)
        self.assertEqual(response.data["status"], FormVersion.WIP)
        self.assertEqual(FormVersion.objects.filter(form_id=form_id).count(), 1)

        FormVersion.objects.filter(form_id=form_id, version=1).update(status=FormVersion.PUBLISH)

        response = self._edit(form_id, [FIELD_X, FIELD_Y])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["version"], 2)
        self.assertEqual(response.data["status"], FormVersion.WIP)

        published = self._version(form_id, 1)
        self.assertEqual(published.status_code, 200)
        self.assertEqual(published.data["status"], FormVersion.PUBLISH)
        self.assertEqual(published.data["rawJson"]["elements"], [FIELD_X])

        draft = self._version(form_id, 2)
        self.assertEqual(draft.data["rawJson"]["elements"], [FIELD_X, FIELD_Y])
        self.assertEqual(draft.data["title"], "T")

    def test_snapshot_fields(self) -> None:
        form_id = self._create(raw_json={"title": "T", "elements": [FIELD_X]})
        response = self._version(form_id, 1)
        self.assertEqual(response.status_code, 200)
        for key in ("formId", "version", "status", "rawJson", "createdBy", "createdAt", "updatedAt", "thumbnail"):
            self.assertIn(key, response.data)
        self.assertEqual(response.data["createdBy"], "user-1")
        self.assertIn("First name", _decode(response.data["thumbnail"]))

    def test_versions_have_no_gaps(self) -> None:
        form_id = self._create()
        for round_number in range(3):
            latest = FormVersion.objects.filter(form_id=form_id).order_by("-version").first()
            publish = self.client.post(
                reverse("form-publish", kwargs={"form_id": form_id, "version": latest.version})
            )
            self.assertEqual(publish.status_code, 200)
            response = self._edit(form_id, [{"id": f"f{round_number}", "type": "text"}])
            self.assertEqual(response.status_code, 200)

        versions = list(
            FormVersion.objects.filter(form_id=form_id).order_by("version").values_list("version", flat=True)
        )
        self.assertEqual(versions, [1, 2, 3, 4])

    def test_publish_is_idempotent_and_keeps_version(self) -> None:
        form_id = self._create()
        url = reverse("form-publish", kwargs={"form_id": form_id, "version": 1})

        first = self.client.post(url)
        second = self.client.post(url)

        for response in (first, second):
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.data["version"], 1)
            self.assertEqual(response.data["status"], FormVersion.PUBLISH)
        self.assertEqual(FormVersion.objects.filter(form_id=form_id).count(), 1)

    def test_publish_unknown_version(self) -> None:
        form_id = self._create()
        response = self.client.post(reverse("form-publish", kwargs={"form_id": form_id, "version": 7}))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "NOT_FOUND")

    def test_create_rejects_blank_title(self) -> None:
        response = self.client.post(
            reverse("form-list"), {"title": "   ", "rawJson": {}}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "INVALID_TITLE")
        self.assertEqual(response.data["status"], 400)
        self.assertFalse(FormVersion.objects.exists())

    def test_create_rejects_non_object_raw_json(self) -> None:
        for raw_json in (None, [], "text", 3):
            response = self.client.post(
                reverse("form-list"), {"title": "T", "rawJson": raw_json}, format="json"
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "INVALID_DATA")
        self.assertFalse(FormVersion.objects.exists())

    def test_edit_unknown_form(self) -> None:
        response = self._edit(str(uuid.uuid4()), [FIELD_X])
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "NOT_FOUND")

    def test_edit_rejects_non_object_raw_json(self) -> None:
        form_id = self._create()
        response = self.client.put(
            reverse("form-detail", args=[form_id]), {"rawJson": ["nope"]}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "INVALID_DATA")
        self.assertEqual(FormVersion.objects.get(form_id=form_id).raw_json, {"elements": []})

    def test_unknown_version(self) -> None:
        form_id = self._create()
        response = self._version(form_id, 2)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "NOT_FOUND")

    def test_missing_user_is_unauthorized(self) -> None:
        response = APIClient().post(
            reverse("form-list"), {"title": "T", "rawJson": {}}, format="json"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "UNAUTHORIZED")

    @override_settings(DESIGNER_API_KEY="s3cret")
    def test_api_key_is_enforced_when_configured(self) -> None:
        response = self.client.post(
            reverse("form-list"), {"title": "T", "rawJson": {}}, format="json", HTTP_X_API_KEY="wrong"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "UNAUTHORIZED")

        response = self.client.post(
            reverse("form-list"), {"title": "T", "rawJson": {}}, format="json", HTTP_X_API_KEY="café"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "UNAUTHORIZED")

        response = self.client.post(
            reverse("form-list"), {"title": "T", "rawJson": {}}, format="json", HTTP_X_API_KEY="s3cret"
        )
        self.assertEqual(response.status_code, 201)

    def test_list_filters_by_owner_and_status(self) -> None:
        mine = self._create(title="Mine")
        published = self._create(title="Shipped")
        self.client.post(reverse("form-publish", kwargs={"form_id": published, "version": 1}))

        other = APIClient()
        other.credentials(HTTP_X_USER_ID="user-2")
        other.post(reverse("form-list"), {"title": "Theirs", "rawJson": {}}, format="json")

        response = self.client.get(reverse("form-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["formId"] for row in response.data], [mine])

        response = self.client.get(reverse("form-list"), {"status": "publish"})
        self.assertEqual([row["formId"] for row in response.data], [published])

    @override_settings(DESIGNER_PAGE_SIZE=10)
    def test_list_paginates(self) -> None:
        for index in range(12):
            self._create(title=f"Form {index}")

        first = self.client.get(reverse("form-list"), {"page": 1})
        second = self.client.get(reverse("form-list"), {"page": 2})
        bogus = self.client.get(reverse("form-list"), {"page": "abc"})

        self.assertEqual(len(first.data), 10)
        self.assertEqual(len(second.data), 2)
        self.assertEqual(bogus.data, first.data)
        ids = {row["formId"] for row in first.data} | {row["formId"] for row in second.data}
        self.assertEqual(len(ids), 12)

    def test_list_rejects_page_beyond_limit(self) -> None:
        self._create()
        response = self.client.get(reverse("form-list"), {"page": "99999999999999999999"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "INVALID_DATA")

        response = self.client.get(reverse("form-list"), {"page": "1000000"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])

    def test_list_rejects_unknown_status(self) -> None:
        response = self.client.get(reverse("form-list"), {"status": "ARCHIVED"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "INVALID_DATA")

    def test_unexpected_errors_become_internal_error(self) -> None:
        form_id = self._create()
        with mock.patch.object(
            VersionedDraftStore, "get_by_version", side_effect=RuntimeError("db down")
        ), self.assertLogs("form_versions.handlers", level="ERROR") as logs:
            response = self._version(form_id, 1)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "INTERNAL_ERROR")
        self.assertEqual(response.data["message"], "Internal Server Error")
        self.assertNotIn("db down", str(response.data))
        self.assertIn(form_id, logs.output[0])

    def test_correlation_id_is_echoed(self) -> None:
        response = self.client.get(
            reverse("form-version", kwargs={"form_id": str(uuid.uuid4()), "version": 1}),
            HTTP_X_CORRELATION_ID="abc-123",
        )
        self.assertEqual(response["X-Correlation-Id"], "abc-123")
        self.assertEqual(response.data["correlation_id"], "abc-123")
        self.assertTrue(response.data["type"].endswith("/NOT_FOUND"))


class VersionedDraftStoreTests(TestCase):
    def setUp(self) -> None:
        self.store = VersionedDraftStore(thumbnailer=lambda raw_json: "thumb")

    def test_validation_happens_before_any_write(self) -> None:
        with self.assertRaises(InvalidTitle):
            self.store.create(owner_id="u", title="", raw_json={})
        with self.assertRaises(InvalidTitle):
            self.store.create(owner_id="u", title=None, raw_json={})
        with self.assertRaises(InvalidData):
            self.store.create(owner_id="u", title="T", raw_json=None)
        self.assertFalse(FormVersion.objects.exists())

    def test_create_strips_title(self) -> None:
        draft = self.store.create(owner_id="u", title="  Survey ", raw_json={})
        self.assertEqual(draft.title, "Survey")
        self.assertEqual(draft.version, 1)
        self.assertTrue(draft.is_draft)

    def test_in_place_edit_keeps_version_and_bumps_updated_at(self) -> None:
        draft = self.store.create(owner_id="u", title="T", raw_json={"elements": []})
        edited = self.store.edit(draft.form_id, owner_id="u", raw_json={"elements": [FIELD_X]})

        self.assertEqual(edited.pk, draft.pk)
        self.assertEqual(edited.version, 1)
        self.assertEqual(edited.raw_json, {"elements": [FIELD_X]})
        self.assertGreaterEqual(edited.updated_at, draft.updated_at)

    def test_branch_leaves_published_row_untouched(self) -> None:
        draft = self.store.create(owner_id="u", title="Published title", raw_json={"elements": [FIELD_X]})
        published = self.store.publish(draft.form_id, 1)
        before = FormVersion.objects.filter(pk=published.pk).values().get()

        branch = self.store.edit(draft.form_id, owner_id="editor", raw_json={"elements": []})

        self.assertEqual(branch.version, 2)
        self.assertEqual(branch.status, FormVersion.WIP)
        self.assertEqual(branch.title, "Published title")
        self.assertEqual(branch.created_by, "editor")
        self.assertEqual(FormVersion.objects.filter(pk=published.pk).values().get(), before)
        self.assertEqual(self.store.get_latest(draft.form_id).pk, branch.pk)

    def test_failed_edit_leaves_row_unchanged(self) -> None:
        draft = self.store.create(owner_id="u", title="T", raw_json={"elements": []})
        self.store.thumbnailer = mock.Mock(side_effect=RuntimeError("renderer crashed"))

        with self.assertRaises(RuntimeError):
            self.store.edit(draft.form_id, owner_id="u", raw_json={"elements": [FIELD_X]})

        draft.refresh_from_db()
        self.assertEqual(draft.raw_json, {"elements": []})
        self.assertEqual(draft.thumbnail, "thumb")

    def test_get_by_version_missing(self) -> None:
        with self.assertRaises(FormNotFound):
            self.store.get_by_version(uuid.uuid4(), 1)

    def test_list_by_owner_and_status_pages(self) -> None:
        for index in range(3):
            self.store.create(owner_id="u", title=f"F{index}", raw_json={})
        self.store.create(owner_id="someone-else", title="X", raw_json={})

        page = self.store.list_by_owner_and_status("u", FormVersion.WIP, limit=2, offset=0)
        rest = self.store.list_by_owner_and_status("u", FormVersion.WIP, limit=2, offset=2)

        self.assertEqual(len(page), 2)
        self.assertEqual(len(rest), 1)
        self.assertTrue(all(row.created_by == "u" for row in page + rest))


class ThumbnailTests(SimpleTestCase):
    def test_renders_title_and_first_two_fields(self) -> None:
        svg = _decode(
            render_thumbnail(
                {
                    "title": "Onboarding & Co",
                    "elements": [
                        {"label": "A very long label that overflows"},
                        {"label": 7},
                        {"label": "Third"},
                    ],
                }
            )
        )
        self.assertIn("Onboarding &amp; Co", svg)
        self.assertIn("A very long lab…", svg)
        self.assertIn("Field 2", svg)
        self.assertNotIn("Third", svg)

    def test_logo_only_when_durable(self) -> None:
        durable = _decode(render_thumbnail({"logo": {"placeholder": "data:image/png;base64,AAAA"}}))
        transient = _decode(render_thumbnail({"logo": {"placeholder": "blob:session/1"}}))
        self.assertIn("<image", durable)
        self.assertNotIn("<image", transient)

    def test_tolerates_missing_elements(self) -> None:
        svg = _decode(render_thumbnail({}))
        self.assertIn("SmartForms", svg)


class UrlConfImportTests(SimpleTestCase):
    def test_routes_resolve_in_a_fresh_interpreter(self) -> None:
        script = (
            "import django; django.setup(); "
            "from django.urls import reverse; "
            "print(reverse('form-list'))"
        )
        env = dict(os.environ, DJANGO_SETTINGS_MODULE="designer_service.settings")
        result = subprocess.run(
            [sys.executable, "-c", script],
            cwd=SERVICE_DIR,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout.strip(), "/api/forms/")
