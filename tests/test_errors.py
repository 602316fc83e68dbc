"""Tests for the error boundary."""

import logging

from vortex import ErrorBoundary, ErrorInfo, ExpressionRejected, VortexError


def _raised(error):
    try:
        raise error
    except Exception as exc:
        return exc


class TestErrorBoundary:
    def test_handle_builds_info_and_logs(self, caplog):
        boundary = ErrorBoundary()
        error = _raised(RuntimeError("boom"))
        with caplog.at_level(logging.ERROR, logger="vortex.errors"):
            info = boundary.handle(error, "bind", "<span>")
        assert isinstance(info, ErrorInfo)
        assert info.message == "boom"
        assert info.directive == "bind"
        assert info.element == "<span>"
        assert info.exception is error
        assert "RuntimeError: boom" in info.stack
        assert "bind error" in caplog.text

    def test_handlers_receive_info(self):
        boundary = ErrorBoundary()
        seen = []
        boundary.on_error(seen.append)
        info = boundary.handle(_raised(ValueError("bad")), "show", None)
        assert seen == [info]

    def test_unsubscribe(self):
        boundary = ErrorBoundary()
        seen = []
        unsubscribe = boundary.on_error(seen.append)
        assert len(boundary) == 1
        unsubscribe()
        unsubscribe()
        assert len(boundary) == 0
        boundary.handle(_raised(ValueError("bad")), "show", None)
        assert seen == []

    def test_failing_handler_does_not_stop_others(self, caplog):
        boundary = ErrorBoundary()
        seen = []

        def broken(info):
            raise RuntimeError("handler failed")

        boundary.on_error(broken)
        boundary.on_error(seen.append)
        with caplog.at_level(logging.ERROR, logger="vortex.errors"):
            boundary.handle(_raised(ValueError("bad")), "if", None)
        assert len(seen) == 1
        assert "Error handler" in caplog.text


class TestExceptions:
    def test_hierarchy(self):
        error = ExpressionRejected("a = 1", "unexpected character '='")
        assert isinstance(error, VortexError)
        assert str(error) == "unexpected character '=': 'a = 1'"
