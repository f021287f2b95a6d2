"""
Tests for the dev server — gated end-to-end behaviour over HTTP.
"""

from __future__ import annotations

from unittest.mock import Mock

from conftest import DoneRecorder, make_config, make_unit
from lazybuild.adapters.bundler.compilation import NO_SOURCE
from lazybuild.core.models.config import GateConfig
from lazybuild.core.models.graph import SuspensionPolicy

ENTRY_WITH_LAZY_CHILD = {
    "/in.js": 'import("./1")',
    "/1.js": 'console.log("1.js loaded")',
}


# ── App factory ──────────────────────────────────────────────────────


class TestAppFactory:
    def test_extensions(self, make_app):
        app = make_app(make_config(make_unit("/in")), {"/in.js": ""})
        ext = app.extensions["lazybuild"]
        assert ext["gate"] is not None
        assert ext["dev_server"].valid

    def test_gate_off(self, make_app):
        app = make_app(make_config(make_unit("/in")), {"/in.js": ""}, gate=False)
        assert app.extensions["lazybuild"]["gate"] is None

    def test_gate_follows_config(self, make_app):
        config = make_config(make_unit("/in"), gate=GateConfig(enabled=False))
        app = make_app(config, {"/in.js": ""})
        assert app.extensions["lazybuild"]["gate"] is None

    def test_status_route(self, make_app):
        app = make_app(make_config(make_unit("/in")), {"/in.js": ""})
        client = app.test_client()
        client.get("/main.js")
        resp = client.get("/__lazybuild__/status")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["name"] == "test"
        assert data["gate"]["needed_modules"] == ["/in.js"]
        assert data["gate"]["policy"] == "dynamic-or-entry"
        assert data["server"]["valid"] is True
        assert data["server"]["units"][0]["name"] == "main"


# ── Serving ─────────────────────────────────────────────────────────


class TestServing:
    def test_404_for_root(self, make_app):
        client = make_app(make_config(make_unit("/in")), {"/in.js": 'console.log("hello world")'}).test_client()
        assert client.get("/").status_code == 404

    def test_200_with_source(self, make_app):
        client = make_app(make_config(make_unit("/in")), {"/in.js": 'console.log("hello world")'}).test_client()
        resp = client.get("/main.js")
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert NO_SOURCE not in body
        assert "hello world" in body
        assert "javascript" in resp.mimetype

    def test_output_path_without_trailing_slash(self, make_app):
        config = make_config(make_unit("/in", path="/out", public_path="/out"))
        client = make_app(config, {"/in.js": 'console.log("hello world")'}).test_client()
        resp = client.get("/out/main.js")
        assert resp.status_code == 200
        assert NO_SOURCE not in resp.get_data(as_text=True)

    def test_public_path(self, make_app):
        config = make_config(make_unit("/in", public_path="/public/"))
        client = make_app(config, {"/in.js": 'console.log("hello world")'}).test_client()
        assert client.get("/public/main.js").status_code == 200
        assert client.get("/main.js").status_code == 404

    def test_post_is_not_served(self, make_app):
        app = make_app(make_config(make_unit("/in")), {"/in.js": ""})
        gate = app.extensions["lazybuild"]["gate"]
        client = app.test_client()
        assert client.post("/main.js").status_code == 404
        assert len(gate.needed) == 0

    def test_head(self, make_app):
        client = make_app(make_config(make_unit("/in")), {"/in.js": ""}).test_client()
        assert client.head("/main.js").status_code == 200


# ── Lazy behaviour ──────────────────────────────────────────────────


class TestLazyChunks:
    def test_child_chunk_is_404_before_entry_is_requested(self, make_app):
        files = {"/in.js": 'import("./in1")', "/in1.js": 'console.log("in1.js loaded")'}
        client = make_app(make_config(make_unit("/in")), files).test_client()
        assert client.get("/1.js").status_code == 404

    def test_end_to_end(self, make_app):
        client = make_app(make_config(make_unit("/in")), ENTRY_WITH_LAZY_CHILD).test_client()

        assert client.get("/1.js").status_code == 404

        main = client.get("/main.js")
        assert main.status_code == 200
        assert NO_SOURCE not in main.get_data(as_text=True)
        assert "1.js loaded" not in main.get_data(as_text=True)

        child = client.get("/1.js")
        assert child.status_code == 200
        assert "1.js loaded" in child.get_data(as_text=True)
        assert NO_SOURCE not in child.get_data(as_text=True)

    def test_requesting_entry_builds_named_child_chunk(self, make_app):
        recorder = DoneRecorder()
        config = make_config(make_unit("/in", public_path="/public/"))
        files = {
            "/in.js": 'import( /* webpackChunkName: "chunk" */ "./chunk")',
            "/chunk.js": 'console.log("chunk.js loaded")',
        }
        client = make_app(config, files, plugins=[recorder]).test_client()
        assert client.get("/public/main.js").status_code == 200
        assert "chunk.js" in recorder.assets

    def test_child_chunk_of_other_entry_not_built(self, make_app):
        recorder = DoneRecorder()
        files = {
            "/in1.js": 'import("./1")',
            "/in2.js": 'import("./2")',
            "/1.js": 'console.log("1.js loaded")',
            "/2.js": 'console.log("2.js loaded")',
        }
        config = make_config(make_unit({"out1": "/in1", "out2": "/in2"}))
        client = make_app(config, files, plugins=[recorder]).test_client()
        assert client.get("/out1.js").status_code == 200
        assert len(recorder.assets) == 3

    def test_grandchild_chunk_not_built(self, make_app):
        recorder = DoneRecorder()
        files = {"/in.js": 'import("./1")', "/1.js": 'import("./2")', "/2.js": 'console.log("2")'}
        client = make_app(make_config(make_unit("/in")), files, plugins=[recorder]).test_client()
        assert client.get("/main.js").status_code == 200
        assert len(recorder.assets) == 2

    def test_cyclic_dynamic_imports(self, make_app):
        files = {
            "/in.js": '() => {import( /* webpackChunkName: "chunk" */ "./chunk")}',
            "/chunk.js": 'import("./in")',
        }
        client = make_app(make_config(make_unit("/in")), files).test_client()
        assert client.get("/main.js").status_code == 200
        resp = client.get("/chunk.js")
        assert resp.status_code == 200
        assert 'import("./in")' in resp.get_data(as_text=True)

    def test_re_request_recompiles_once(self, make_app):
        recorder = DoneRecorder()
        app = make_app(make_config(make_unit("/in")), ENTRY_WITH_LAZY_CHILD, plugins=[recorder])
        client = app.test_client()
        for _ in range(3):
            assert client.get("/main.js").status_code == 200
        assert recorder.count == 2
        assert app.extensions["lazybuild"]["metrics"].value("gate.recompiles", unit="main") == 1

    def test_needed_modules_survive_rebuilds(self, make_app):
        app = make_app(make_config(make_unit("/in")), ENTRY_WITH_LAZY_CHILD)
        gate = app.extensions["lazybuild"]["gate"]
        client = app.test_client()
        client.get("/main.js")
        client.get("/1.js")
        assert gate.needed.snapshot() == {"/in.js", "/1.js"}
        client.get("/main.js")
        assert gate.needed.snapshot() == {"/in.js", "/1.js"}

    def test_entry_loader_runs_only_after_request(self, make_app):
        spy = Mock(side_effect=lambda source, resource: source)
        client = make_app(
            make_config(make_unit("/in")),
            {"/in.js": 'console.log("in.js loaded")'},
            loaders={"main": [spy]},
        ).test_client()
        assert spy.call_count == 0
        client.get("/main.js")
        assert spy.call_count == 1

    def test_dynamic_only_policy(self, make_app):
        config = make_config(make_unit("/in"), gate=GateConfig(policy=SuspensionPolicy.DYNAMIC_ONLY))
        recorder = DoneRecorder()
        client = make_app(config, ENTRY_WITH_LAZY_CHILD, plugins=[recorder]).test_client()
        assert client.get("/main.js").status_code == 200
        assert recorder.count == 1
        assert "1.js loaded" in client.get("/1.js").get_data(as_text=True)
        assert recorder.count == 2


class TestCompanionAssets:
    def test_css_request_builds_generating_script(self, make_app):
        css = "body { background: red }"
        config = make_config(make_unit("/in", filename="main.js"))
        client = make_app(config, {"/in.js": 'import "./main.css";', "/main.css": css}).test_client()
        resp = client.get("/main.css")
        assert resp.status_code == 200
        assert resp.get_data(as_text=True) == css
        assert resp.mimetype == "text/css"


class TestMultiUnit:
    FILES = {
        "/in1.js": 'import("./1")',
        "/in2.js": 'import("./2")',
        "/1.js": 'console.log("1.js loaded")',
        "/2.js": 'console.log("2.js loaded")',
    }

    def _config(self):
        return make_config(
            make_unit("/in1", name="one", path="/out1/", public_path="/public1/"),
            make_unit("/in2", name="two", path="/out2/", public_path="/public2/"),
        )

    def test_other_unit_not_recompiled(self, make_app):
        two = DoneRecorder("two")
        client = make_app(self._config(), self.FILES, plugins=[two]).test_client()
        assert client.get("/public1/main.js").status_code == 200
        assert two.count == 1
        assert two.assets == ["main.js"]

    def test_requested_unit_recompiled(self, make_app):
        one = DoneRecorder("one")
        app = make_app(self._config(), self.FILES, plugins=[one])
        client = app.test_client()
        resp = client.get("/public1/main.js")
        assert resp.status_code == 200
        assert NO_SOURCE not in resp.get_data(as_text=True)
        assert one.count == 2
        assert one.assets == ["1.js", "main.js"]

    def test_request_for_other_unit_does_not_mark_deferred_module(self, make_app):
        app = make_app(self._config(), self.FILES)
        gate = app.extensions["lazybuild"]["gate"]
        client = app.test_client()
        client.get("/public2/main.js")
        assert "/1.js" not in gate.needed
        assert "/in1.js" not in gate.needed
        assert "/in2.js" in gate.needed

    def test_module_needed_through_other_unit_is_built_on_request(self, make_app):
        files = {
            "/in1.js": 'import("./shared")',
            "/in2.js": 'import("./shared")',
            "/shared.js": 'console.log("shared loaded")',
        }
        client = make_app(self._config(), files).test_client()
        assert client.get("/public1/main.js").status_code == 200
        assert client.get("/public2/main.js").status_code == 200
        assert "shared loaded" in client.get("/public2/1.js").get_data(as_text=True)

        resp = client.get("/public1/1.js")
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert NO_SOURCE not in body
        assert "shared loaded" in body
