"""
Tests for the request dispatcher — pass-through, idempotence, companions.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

from lazybuild.core.gate.dispatcher import RequestDispatcher, companion_url
from lazybuild.core.gate.inspector import ChunkInspector
from lazybuild.core.gate.needed import RequestedArtifactSet


def _request(url, method="GET"):
    return SimpleNamespace(url=url, method=method)


def _resolve(url):
    # Everything under http://localhost/ maps to /out/
    prefix = "http://localhost/"
    if not url.startswith(prefix):
        return None
    return "/out/" + url[len(prefix):].split("?")[0]


class _Server:
    def __init__(self):
        self.snapshot = SimpleNamespace(stats=["s"])
        self.events: list[str] = []

    def wait_until_valid(self, timeout=None):
        self.events.append("wait")
        return self.snapshot

    def resolve(self, url):
        return _resolve(url)


def _dispatcher(server=None, triggered=False):
    server = server or _Server()
    inspector = Mock(spec=ChunkInspector)

    def _inspect(path, snapshots, srv):
        server.events.append(f"inspect {path}")
        return triggered(path) if callable(triggered) else triggered

    inspector.inspect.side_effect = _inspect
    return RequestDispatcher(server, inspector, RequestedArtifactSet()), server, inspector


class TestCompanionUrl:
    def test_css_to_js(self):
        assert companion_url("/x/main.css") == "/x/main.js"

    def test_keeps_query(self):
        assert companion_url("http://h/main.css?v=2") == "http://h/main.js?v=2"

    def test_other_suffix(self):
        assert companion_url("/main.js") is None


class TestPassThrough:
    def test_non_get_bypasses_gate(self):
        dispatcher, server, inspector = _dispatcher()
        nxt = Mock(return_value="downstream")
        assert dispatcher(_request("http://localhost/main.js", "POST"), nxt) == "downstream"
        inspector.inspect.assert_not_called()
        assert server.events == []

    def test_unmapped_url(self):
        dispatcher, server, inspector = _dispatcher()
        nxt = Mock(return_value="downstream")
        assert dispatcher(_request("http://elsewhere/x"), nxt) == "downstream"
        inspector.inspect.assert_not_called()

    def test_always_delegates(self):
        dispatcher, _, inspector = _dispatcher(triggered=True)
        nxt = Mock(return_value="downstream")
        assert dispatcher(_request("http://localhost/main.js"), nxt) == "downstream"
        nxt.assert_called_once_with()
        inspector.inspect.assert_called_once_with("/out/main.js", ["s"], dispatcher.server)

    def test_no_valid_build_skips_inspection(self):
        server = _Server()
        server.snapshot = None
        dispatcher, _, inspector = _dispatcher(server)
        dispatcher(_request("http://localhost/main.js"), Mock())
        inspector.inspect.assert_not_called()


class TestIdempotence:
    def test_same_snapshot_inspected_once(self):
        dispatcher, _, inspector = _dispatcher()
        for _ in range(3):
            dispatcher(_request("http://localhost/main.js"), Mock())
        assert inspector.inspect.call_count == 1

    def test_new_snapshot_inspected_again(self):
        dispatcher, server, inspector = _dispatcher()
        dispatcher(_request("http://localhost/main.js"), Mock())
        server.snapshot = SimpleNamespace(stats=["s2"])
        dispatcher(_request("http://localhost/main.js"), Mock())
        assert inspector.inspect.call_count == 2


class TestCompanion:
    def test_companion_inspected_first_and_awaited(self):
        dispatcher, server, _ = _dispatcher(triggered=lambda path: path.endswith(".js"))
        dispatcher(_request("http://localhost/styles.css"), Mock())
        assert server.events == [
            "wait",
            "inspect /out/styles.js",
            "wait",
            "wait",
            "inspect /out/styles.css",
        ]

    def test_companion_without_rebuild_is_not_awaited(self):
        dispatcher, server, _ = _dispatcher(triggered=False)
        dispatcher(_request("http://localhost/styles.css"), Mock())
        assert server.events == [
            "wait",
            "inspect /out/styles.js",
            "wait",
            "inspect /out/styles.css",
        ]

    def test_unresolvable_companion_is_skipped(self):
        server = _Server()
        server.resolve = lambda url: "/out/styles.css" if url.endswith(".css") else None
        dispatcher, _, inspector = _dispatcher(server)
        dispatcher(_request("http://localhost/styles.css"), Mock())
        assert [c.args[0] for c in inspector.inspect.call_args_list] == ["/out/styles.css"]
