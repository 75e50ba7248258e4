"""Tests for the canvas editing engine."""
from __future__ import annotations

import json
from typing import Any, Dict, List
from unittest import mock

import requests
from django.test import SimpleTestCase

from .client import HttpDraftStore, SavedVersion
from .drop import CanvasDropTarget, ReorderTracker, RowBox, resolve_drop_index
from .elements import FormElement, SessionResources, TransientReference
from .errors import (
    DuplicateElementError,
    MissingTitleError,
    NonCanvasElementError,
    SaveInProgressError,
    StoreError,
    StoreUnavailableError,
    TransientReferenceError,
    UnknownElementType,
)
from .ordering import CanvasOrderingModel
from .persistence import EditingSession, PersistenceOrchestrator
from .runs import flatten_runs, group_runs, is_shared_row

ROWS = [RowBox(top=0, height=40), RowBox(top=40, height=40), RowBox(top=80, height=40)]


def element(element_id: str, element_type: str = "text", **kwargs: Any) -> FormElement:
    return FormElement(id=element_id, type=element_type, **kwargs)


def ids(model: CanvasOrderingModel) -> List[str]:
    return [item.id for item in model.list()]


class CanvasOrderingModelTests(SimpleTestCase):
    def setUp(self) -> None:
        self.model = CanvasOrderingModel([element("a"), element("b"), element("c")])

    def test_insert_clamps_out_of_range_indexes(self) -> None:
        self.assertEqual(self.model.insert_at(element("end"), 99), 3)
        self.assertEqual(self.model.insert_at(element("start"), -5), 0)
        self.assertEqual(ids(self.model), ["start", "a", "b", "c", "end"])

    def test_insert_keeps_relative_order(self) -> None:
        self.model.insert_at(element("x"), 1)
        self.assertEqual(ids(self.model), ["a", "x", "b", "c"])

    def test_insert_rejects_duplicate_ids(self) -> None:
        with self.assertRaises(DuplicateElementError):
            self.model.insert_at(element("b"), 0)
        self.assertEqual(ids(self.model), ["a", "b", "c"])

    def test_logo_never_enters_the_canvas(self) -> None:
        with self.assertRaises(NonCanvasElementError):
            self.model.insert_at(element("logo", "logo"), 0)
        with self.assertRaises(NonCanvasElementError):
            CanvasOrderingModel([element("logo", "logo")])

    def test_move(self) -> None:
        self.model.move("a", 2)
        self.assertEqual(ids(self.model), ["b", "c", "a"])
        self.model.move("a", -1)
        self.assertEqual(ids(self.model), ["a", "b", "c"])
        self.model.move("c", 50)
        self.assertEqual(ids(self.model), ["a", "b", "c"])

    def test_move_unknown_id_is_noop(self) -> None:
        self.model.move("missing", 0)
        self.assertEqual(ids(self.model), ["a", "b", "c"])

    def test_remove(self) -> None:
        self.model.remove("b")
        self.assertEqual(ids(self.model), ["a", "c"])
        self.model.remove("b")
        self.assertEqual(ids(self.model), ["a", "c"])

    def test_list_is_a_snapshot(self) -> None:
        snapshot = self.model.list()
        self.model.remove("a")
        self.assertEqual([item.id for item in snapshot], ["a", "b", "c"])

    def test_update_keeps_position(self) -> None:
        self.model.update(element("b", "email", label="Email"))
        self.assertEqual(ids(self.model), ["a", "b", "c"])
        self.assertEqual(self.model.get("b").type, "email")

    def test_lookup_by_id(self) -> None:
        self.assertEqual(self.model.index_of("c"), 2)
        self.assertEqual(self.model.get("c").id, "c")
        self.assertIsNone(self.model.index_of("missing"))
        self.assertIsNone(self.model.get("missing"))

    def test_place_template_inserts_fresh_copy(self) -> None:
        template = element("tpl-email", "email", label="Email", properties={"maxLength": 80})
        placed = self.model.place_template(template, 1)
        again = self.model.place_template(template, 1)

        self.assertNotEqual(placed.id, template.id)
        self.assertNotEqual(placed.id, again.id)
        self.assertEqual(placed.extra["templateId"], "tpl-email")
        self.assertEqual(placed.properties, {"maxLength": 80})
        self.assertEqual(len(self.model), 5)


class DropIndexTests(SimpleTestCase):
    def test_midpoints_decide_the_index(self) -> None:
        self.assertEqual(resolve_drop_index(45, ROWS), 1)
        self.assertEqual(resolve_drop_index(150, ROWS), 3)
        self.assertEqual(resolve_drop_index(0, ROWS), 0)
        self.assertEqual(resolve_drop_index(20, ROWS), 1)

    def test_container_offset(self) -> None:
        shifted = [RowBox(top=row.top + 200, height=row.height) for row in ROWS]
        self.assertEqual(resolve_drop_index(45, shifted, container_top=200), 1)

    def test_empty_canvas_appends(self) -> None:
        self.assertEqual(resolve_drop_index(10, []), 0)

    def test_drop_target_places_template(self) -> None:
        model = CanvasOrderingModel([element("a"), element("b"), element("c")])
        target = CanvasDropTarget(model)
        shifted = [RowBox(top=row.top + 100, height=row.height) for row in ROWS]

        placed = target.drop_template(element("tpl", "date"), client_y=145, container_top=100, rows=shifted)

        self.assertEqual(model.index_of(placed.id), 1)


class ReorderTrackerTests(SimpleTestCase):
    def setUp(self) -> None:
        self.model = CanvasOrderingModel([element("a"), element("b"), element("c")])

    def test_downward_move_waits_for_midpoint(self) -> None:
        tracker = ReorderTracker(self.model, "a")

        self.assertFalse(tracker.hover(1, ROWS[1], pointer_y=50))
        self.assertEqual(ids(self.model), ["a", "b", "c"])

        self.assertTrue(tracker.hover(1, ROWS[1], pointer_y=65))
        self.assertEqual(ids(self.model), ["b", "a", "c"])
        self.assertEqual(tracker.drag_index, 1)

        self.assertFalse(tracker.hover(1, ROWS[1], pointer_y=70))

    def test_upward_move_waits_for_midpoint(self) -> None:
        tracker = CanvasDropTarget(self.model).begin_reorder("c")

        self.assertFalse(tracker.hover(1, ROWS[1], pointer_y=70))
        self.assertTrue(tracker.hover(1, ROWS[1], pointer_y=55))
        self.assertEqual(ids(self.model), ["a", "c", "b"])

    def test_unknown_element(self) -> None:
        with self.assertRaises(KeyError):
            ReorderTracker(self.model, "missing")


class RunGroupingTests(SimpleTestCase):
    def test_adjacent_actions_share_a_run(self) -> None:
        elements = [
            element("t1"),
            element("s1", "submit"),
            element("r1", "reset"),
            element("t2"),
            element("s2", "submit"),
        ]
        runs = group_runs(elements)

        self.assertEqual([[item.id for item in run] for run in runs], [["t1"], ["s1", "r1"], ["t2"], ["s2"]])
        self.assertEqual([is_shared_row(run) for run in runs], [False, True, False, False])
        self.assertEqual(flatten_runs(runs), elements)
        self.assertEqual(group_runs(flatten_runs(runs)), runs)

    def test_empty(self) -> None:
        self.assertEqual(group_runs([]), [])


class FormElementTests(SimpleTestCase):
    def test_round_trip_keeps_unknown_keys(self) -> None:
        data = {
            "id": "e1",
            "type": "select",
            "label": "Country",
            "required": True,
            "properties": {"options": ["FR", "DE"]},
            "icon": "list",
        }
        self.assertEqual(FormElement.from_dict(data).to_dict(), data)

    def test_unknown_type(self) -> None:
        with self.assertRaises(UnknownElementType):
            FormElement(id="e1", type="marquee")
        with self.assertRaises(UnknownElementType):
            FormElement.from_dict({"id": "e1", "type": "marquee"})

    def test_transient_reference_is_refused(self) -> None:
        picture = element("img1", "img", placeholder=TransientReference("blob:session/1"))
        with self.assertRaises(TransientReferenceError):
            picture.to_dict()

    def test_resolved_replaces_references(self) -> None:
        ref = TransientReference("blob:session/1", "image/png")
        picture = element("img1", "img", properties={"src": ref, "alt": "cat"})

        resolved = picture.resolved(lambda reference: "data:resolved")

        self.assertEqual(resolved.properties, {"src": "data:resolved", "alt": "cat"})
        self.assertIs(picture.properties["src"], ref)

    def test_nested_references_are_found_and_resolved(self) -> None:
        ref = TransientReference("blob:session/1", "image/png")
        gallery = element(
            "gal",
            "img",
            properties={"slides": [{"src": ref}, {"src": "data:kept"}]},
            style={"backgroundImage": ref},
            extra={"poster": (ref,)},
        )

        paths = [path for path, _ in gallery.transient_references()]
        self.assertEqual(paths, ["properties.slides[0].src", "style.backgroundImage", "extra.poster[0]"])
        with self.assertRaises(TransientReferenceError):
            gallery.to_dict()

        data = gallery.resolved(lambda reference: "data:resolved").to_dict()
        self.assertEqual(data["properties"]["slides"], [{"src": "data:resolved"}, {"src": "data:kept"}])
        self.assertEqual(data["style"], {"backgroundImage": "data:resolved"})
        self.assertEqual(data["poster"], ("data:resolved",))
        self.assertNotIn("blob:", json.dumps(data))


class SessionResourcesTests(SimpleTestCase):
    def test_resolve_encodes_data_url(self) -> None:
        resources = SessionResources()
        ref = resources.register(b"png", "image/png")

        self.assertTrue(ref.handle.startswith("blob:session/"))
        self.assertEqual(resources.resolve(ref), "data:image/png;base64,cG5n")

    def test_references_expire_with_the_session(self) -> None:
        resources = SessionResources()
        ref = resources.register(b"png", "image/png")
        resources.close()

        with self.assertRaises(TransientReferenceError):
            resources.resolve(ref)
        with self.assertRaises(TransientReferenceError):
            resources.register(b"more")

    def test_released_reference_is_unknown(self) -> None:
        resources = SessionResources()
        ref = resources.register(b"png")
        resources.release(ref)

        self.assertEqual(len(resources), 0)
        with self.assertRaises(TransientReferenceError):
            resources.resolve(ref)


class FakeStore:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.snapshots: Dict[tuple, Dict[str, Any]] = {}

    def create(self, title: str, raw_json: Dict[str, Any]) -> SavedVersion:
        self.calls.append(("create", title, raw_json))
        return SavedVersion(form_id="form-1", version=1, status="WIP")

    def edit(self, form_id: str, raw_json: Dict[str, Any]) -> SavedVersion:
        self.calls.append(("edit", form_id, raw_json))
        return SavedVersion(form_id=form_id, version=2, status="WIP")

    def fetch(self, form_id: str, version: int) -> Dict[str, Any]:
        return self.snapshots[(form_id, version)]


class PersistenceOrchestratorTests(SimpleTestCase):
    def setUp(self) -> None:
        self.session = EditingSession(
            canvas=CanvasOrderingModel([element("a", label="Name"), element("s", "submit")]),
            title=" Survey ",
        )
        self.store = FakeStore()
        self.orchestrator = PersistenceOrchestrator(self.session, self.store)

    def test_first_save_creates_then_edits(self) -> None:
        first = self.orchestrator.save()
        self.assertEqual(first, SavedVersion("form-1", 1, "WIP"))
        self.assertEqual(self.session.form_id, "form-1")
        self.assertEqual(self.session.version, 1)

        kind, title, raw_json = self.store.calls[0]
        self.assertEqual((kind, title), ("create", "Survey"))
        self.assertEqual(raw_json["title"], "Survey")
        self.assertIsNone(raw_json["logo"])
        self.assertEqual([item["id"] for item in raw_json["elements"]], ["a", "s"])

        self.orchestrator.save()
        self.assertEqual(self.store.calls[1][:2], ("edit", "form-1"))
        self.assertEqual(self.session.version, 2)

    def test_save_requires_title(self) -> None:
        self.session.title = "   "
        with self.assertRaises(MissingTitleError):
            self.orchestrator.save()
        self.assertEqual(self.store.calls, [])
        self.assertFalse(self.orchestrator.saving)

    def test_transient_references_are_resolved_before_saving(self) -> None:
        resources = self.session.resources
        self.session.logo = element("logo", "logo", placeholder=resources.register(b"png", "image/png"))
        self.session.canvas.insert_at(
            element("pic", "img", properties={"src": resources.register(b"gif", "image/gif")}), 0
        )

        self.orchestrator.save()

        raw_json = self.store.calls[0][2]
        self.assertEqual(raw_json["logo"]["placeholder"], "data:image/png;base64,cG5n")
        self.assertEqual(raw_json["elements"][0]["properties"]["src"], "data:image/gif;base64,Z2lm")
        self.assertNotIn("blob:", json.dumps(raw_json))

    def test_expired_reference_aborts_save(self) -> None:
        self.session.logo = element("logo", "logo", placeholder=self.session.resources.register(b"png"))
        self.session.resources.close()

        with self.assertRaises(TransientReferenceError):
            self.orchestrator.save()
        self.assertEqual(self.store.calls, [])

    def test_overlapping_save_is_rejected(self) -> None:
        nested: List[Exception] = []
        original_create = self.store.create

        def create(title: str, raw_json: Dict[str, Any]) -> SavedVersion:
            try:
                self.orchestrator.save()
            except SaveInProgressError as exc:
                nested.append(exc)
            return original_create(title, raw_json)

        self.store.create = create  # type: ignore[method-assign]
        self.orchestrator.save()

        self.assertEqual(len(nested), 1)
        self.assertEqual(len(self.store.calls), 1)
        self.assertFalse(self.orchestrator.saving)

    def test_load_reseeds_session(self) -> None:
        self.store.snapshots[("form-9", 3)] = {
            "formId": "form-9",
            "version": 3,
            "status": "PUBLISH",
            "title": "Stored title",
            "rawJson": {
                "title": "Loaded",
                "logo": {"id": "logo", "type": "logo", "placeholder": "data:image/png;base64,AA=="},
                "elements": [{"id": "e1", "type": "email", "label": "Email"}],
            },
        }

        self.orchestrator.load("form-9", 3)

        self.assertEqual(self.session.title, "Loaded")
        self.assertEqual(self.session.logo.placeholder, "data:image/png;base64,AA==")
        self.assertEqual(ids(self.session.canvas), ["e1"])
        self.assertEqual((self.session.form_id, self.session.version), ("form-9", 3))

    def test_load_falls_back_to_row_title(self) -> None:
        self.store.snapshots[("form-9", 1)] = {
            "formId": "form-9",
            "version": 1,
            "title": "Stored title",
            "rawJson": {"elements": []},
        }
        self.orchestrator.load("form-9", 1)
        self.assertEqual(self.session.title, "Stored title")
        self.assertEqual(len(self.session.canvas), 0)
        self.assertIsNone(self.session.logo)

    def test_load_rejects_snapshot_without_raw_json(self) -> None:
        self.store.snapshots[("form-9", 1)] = {"formId": "form-9", "version": 1, "rawJson": None}
        with self.assertRaises(StoreError):
            self.orchestrator.load("form-9", 1)

    def test_export_and_import_round_trip(self) -> None:
        self.session.logo = element("logo", "logo", placeholder=self.session.resources.register(b"png", "image/png"))
        self.orchestrator.save()
        document = self.orchestrator.export_document()

        payload = json.loads(document)
        self.assertEqual(payload["id"], "form-1")
        self.assertEqual(payload["logo"]["placeholder"], "data:image/png;base64,cG5n")

        other = PersistenceOrchestrator(EditingSession(), FakeStore())
        other.import_document(document)

        self.assertEqual(other.snapshot(), self.orchestrator.snapshot())
        self.assertIsNone(other.session.form_id)

    def test_import_rejects_non_object(self) -> None:
        with self.assertRaises(StoreError):
            self.orchestrator.import_document("[]")


def _response(status_code: int, payload: Any = None, reason: str = "") -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.reason = reason
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class HttpDraftStoreTests(SimpleTestCase):
    def setUp(self) -> None:
        self.store = HttpDraftStore("http://designer/", "user-1", api_key="key", timeout=3)

    @mock.patch("canvas.client.requests.request")
    def test_create(self, mock_request: mock.Mock) -> None:
        mock_request.return_value = _response(201, {"formId": "f1", "version": 1, "status": "WIP"})

        saved = self.store.create("T", {"elements": []})

        self.assertEqual(saved, SavedVersion("f1", 1, "WIP"))
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", "http://designer/api/forms/"))
        self.assertEqual(kwargs["json"], {"title": "T", "rawJson": {"elements": []}})
        self.assertEqual(kwargs["headers"]["X-User-Id"], "user-1")
        self.assertEqual(kwargs["headers"]["X-Api-Key"], "key")
        self.assertEqual(kwargs["timeout"], 3)

    @mock.patch("canvas.client.requests.request")
    def test_edit_and_fetch_urls(self, mock_request: mock.Mock) -> None:
        mock_request.side_effect = [
            _response(200, {"formId": "f1", "version": 2, "status": "WIP"}),
            _response(200, {"formId": "f1", "version": 2, "rawJson": {}}),
        ]

        self.assertEqual(self.store.edit("f1", {}).version, 2)
        self.store.fetch("f1", 2)

        urls = [call.args[:2] for call in mock_request.call_args_list]
        self.assertEqual(urls, [("PUT", "http://designer/api/forms/f1/"), ("GET", "http://designer/api/forms/f1/2/")])

    @mock.patch("canvas.client.requests.request")
    def test_list_passes_query(self, mock_request: mock.Mock) -> None:
        mock_request.return_value = _response(200, [])
        self.assertEqual(self.store.list("PUBLISH", page=2), [])
        self.assertEqual(mock_request.call_args.kwargs["params"], {"status": "PUBLISH", "page": 2})

    @mock.patch("canvas.client.requests.request")
    def test_error_body_is_mapped(self, mock_request: mock.Mock) -> None:
        mock_request.return_value = _response(404, {"code": "NOT_FOUND", "message": "Form not found"})

        with self.assertRaises(StoreError) as ctx:
            self.store.edit("f1", {})

        self.assertEqual(ctx.exception.code, "NOT_FOUND")
        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(str(ctx.exception), "NOT_FOUND: Form not found")

    @mock.patch("canvas.client.requests.request")
    def test_non_json_body(self, mock_request: mock.Mock) -> None:
        mock_request.return_value = _response(502, reason="Bad Gateway")
        with self.assertRaises(StoreError) as ctx:
            self.store.fetch("f1", 1)
        self.assertEqual(ctx.exception.code, "INTERNAL_ERROR")
        self.assertEqual(ctx.exception.message, "Bad Gateway")

    @mock.patch("canvas.client.requests.request")
    def test_unreachable_service(self, mock_request: mock.Mock) -> None:
        mock_request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(StoreUnavailableError):
            self.store.fetch("f1", 1)
