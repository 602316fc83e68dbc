"""Tests for vortex.textual — Textual integration layer."""

import threading

import pytest

pytest.importorskip("textual")

from vortex import Engine, parse_html  # noqa: E402
from vortex import textual as vtx  # noqa: E402


class _MockApp:
    """Minimal mock matching the Textual App interface vtx needs.

    call_from_thread queues work for the app thread; refresh() runs that
    work first, then every callback queued for after the refresh.
    """

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._after_refresh = []
        self._from_thread = []
        self._call_from_thread_log = []

    def call_after_refresh(self, callback, *args):
        self._after_refresh.append((callback, args))
        return True

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        self._from_thread.append((fn, args))

    def refresh(self):
        queued, self._from_thread = self._from_thread, []
        for fn, args in queued:
            fn(*args)
        queued, self._after_refresh = self._after_refresh, []
        for callback, args in queued:
            callback(*args)
        return len(queued)


class TestTextualFrames:
    def test_runs_after_refresh(self):
        app = _MockApp()
        frames = vtx.TextualFrames(app)
        log = []
        frames.request(lambda: log.append("ran"))
        assert log == []
        app.refresh()
        assert log == ["ran"]

    def test_held_during_pause(self):
        app = _MockApp()
        frames = vtx.TextualFrames(app)
        log = []
        with vtx.pause(app):
            frames.request(lambda: log.append("ran"))
            app.refresh()
            assert log == []
        # Released callbacks are requeued for the next refresh.
        app.refresh()
        assert log == ["ran"]

    def test_thread_marshal(self):
        """Requests from a background thread go through call_from_thread."""
        app = _MockApp()
        frames = vtx.TextualFrames(app)
        log = []

        t = threading.Thread(target=lambda: frames.request(lambda: log.append("ran")))
        t.start()
        t.join()

        assert len(app._call_from_thread_log) == 1
        app.refresh()
        assert log == ["ran"]

    def test_main_thread_does_not_marshal(self):
        app = _MockApp()
        vtx.TextualFrames(app).request(lambda: None)
        assert app._call_from_thread_log == []

    def test_drives_engine_flushes(self):
        app = _MockApp()
        doc = parse_html('<div vx-zone><span vx-bind="count"></span></div>')
        engine = Engine({"count": 1}, document=doc, frames=vtx.TextualFrames(app)).mount()
        span = doc.query_selector("span")
        assert span.text_content == "1"

        engine.state["count"] = 2
        engine.state["count"] = 3
        assert len(app._after_refresh) == 1
        app.refresh()
        assert span.text_content == "3"

    def test_engine_flush_waits_for_pause(self):
        app = _MockApp()
        doc = parse_html('<div vx-zone><span vx-bind="count"></span></div>')
        engine = Engine({"count": 1}, document=doc, frames=vtx.TextualFrames(app)).mount()
        span = doc.query_selector("span")
        with vtx.pause(app):
            engine.state["count"] = 2
            app.refresh()
            assert span.text_content == "1"
        app.refresh()
        assert span.text_content == "2"

    def test_worker_thread_write_reaches_scheduler_on_app_thread(self):
        app = _MockApp()
        doc = parse_html('<div vx-zone><span vx-bind="count"></span></div>')
        engine = Engine({"count": 1}, document=doc, frames=vtx.TextualFrames(app)).mount()
        span = doc.query_selector("span")

        def _worker():
            engine.state["count"] = 2

        t = threading.Thread(target=_worker)
        t.start()
        t.join()

        # The write landed, but the change path waits for the app thread.
        assert engine.store.get("count") == 2
        assert engine.scheduler.pending == frozenset()
        assert len(app._call_from_thread_log) == 1
        app.refresh()
        assert span.text_content == "2"
        assert engine.scheduler.pending == frozenset()

    def test_held_while_not_running(self):
        app = _MockApp(is_running=False)
        frames = vtx.TextualFrames(app)
        log = []
        frames.request(lambda: log.append("ran"))
        app.refresh()
        assert log == []
        assert vtx.release(app) == 0

        app.is_running = True
        assert vtx.release(app) == 1
        app.refresh()
        assert log == ["ran"]


class TestPause:
    def test_not_running_is_unsafe(self):
        assert not vtx.is_safe(_MockApp(is_running=False))

    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert vtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with vtx.pause(app):
                assert not vtx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert vtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with vtx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with vtx.pause(app_a):
            assert not vtx.is_safe(app_a)
            assert vtx.is_safe(app_b)
