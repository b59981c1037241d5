"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from userserver.http.request import HTTPRequest
from userserver.http.response import HTTPResponse, ResponseBuilder, HTTPStatus, internal_error
from userserver.middleware import (
    LoggingMiddleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    function_middleware,
    RequestLog,
)


def make_request(method: str = "GET", path: str = "/users", **kwargs) -> HTTPRequest:
    kwargs.setdefault("client_address", ("127.0.0.1", 50000))
    return HTTPRequest(method=method, path=path, **kwargs)


def users_handler(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().json([{"id": 1, "name": "Ahmet"}]).build()


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_empty_pipeline(self):
        """Test that an empty pipeline returns the handler's response."""
        handler = MiddlewarePipeline().wrap(users_handler)

        assert handler(make_request()).status == HTTPStatus.OK

    def test_order(self):
        """Test that the first middleware added is the outermost."""
        calls = []

        def recorder(label):
            def middleware(request, next):
                calls.append(f"{label}:in")
                response = next(request)
                calls.append(f"{label}:out")
                return response
            return FunctionMiddleware(middleware, name=label)

        def handler(request):
            calls.append("handler")
            return users_handler(request)

        pipeline = MiddlewarePipeline().use(recorder("a"), recorder("b"))
        pipeline.wrap(handler)(make_request())

        assert calls == ["a:in", "b:in", "handler", "b:out", "a:out"]
        assert [mw.name for mw in pipeline] == ["a", "b"]
        assert len(pipeline) == 2

    def test_short_circuit(self):
        """Test that middleware can answer without calling next."""
        @function_middleware
        def deny(request, next):
            return ResponseBuilder().status(HTTPStatus.BAD_REQUEST).text("no").build()

        def handler(request):
            raise AssertionError("handler must not run")

        response = MiddlewarePipeline().add(deny).wrap(handler)(make_request())

        assert response.status == HTTPStatus.BAD_REQUEST
        assert deny.name == "deny"


class TestRequestLog:
    """Tests for RequestLog formatting."""

    def make_entry(self, **overrides) -> RequestLog:
        fields = dict(
            request_id="abc12345",
            method="POST",
            path="/users",
            query="",
            client_ip="127.0.0.1",
            user_agent="curl/8.0",
            status_code=201,
            content_length=24,
            duration_ms=0.4567,
            timestamp="19/Oct/2026:12:00:00 +0000",
        )
        fields.update(overrides)
        return RequestLog(**fields)

    def test_to_text(self):
        line = self.make_entry().to_text()

        assert line == '127.0.0.1 - - [19/Oct/2026:12:00:00 +0000] "POST /users" 201 24 0.46ms'

    def test_to_text_with_query(self):
        line = self.make_entry(method="GET", query="page=2").to_text()

        assert '"GET /users?page=2"' in line

    def test_to_json(self):
        data = json.loads(self.make_entry().to_json())

        assert data["request_id"] == "abc12345"
        assert data["status_code"] == 201
        assert data["duration_ms"] == 0.46


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_logs_access_line(self, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="userserver.access"):
            middleware(make_request(), users_handler)

        records = [r for r in caplog.records if r.name == "userserver.access"]
        assert len(records) == 1
        assert records[0].levelno == logging.INFO
        assert '"GET /users" 200' in records[0].getMessage()

    def test_json_format(self, caplog):
        middleware = LoggingMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="userserver.access"):
            middleware(make_request(raw_query="page=1"), users_handler)

        record = next(r for r in caplog.records if r.name == "userserver.access")
        data = json.loads(record.getMessage())
        assert data["method"] == "GET"
        assert data["path"] == "/users"
        assert data["query"] == "page=1"
        assert data["status_code"] == 200

    def test_request_id_generated(self):
        response = LoggingMiddleware()(make_request(), users_handler)

        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_id_reused(self):
        request = make_request(headers={"x-request-id": "from-client"})

        response = LoggingMiddleware()(request, users_handler)

        assert response.headers["X-Request-ID"] == "from-client"

    def test_request_id_disabled(self):
        response = LoggingMiddleware(include_request_id=False)(make_request(), users_handler)

        assert "X-Request-ID" not in response.headers

    def test_server_errors_logged_as_warning(self, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="userserver.access"):
            middleware(make_request(path="/"), lambda request: internal_error())

        record = next(r for r in caplog.records if r.name == "userserver.access")
        assert record.levelno == logging.WARNING

    def test_skip_paths(self, caplog):
        middleware = LoggingMiddleware(skip_paths=["/"])

        with caplog.at_level(logging.INFO, logger="userserver.access"):
            response = middleware(make_request(path="/"), users_handler)

        assert not [r for r in caplog.records if r.name == "userserver.access"]
        assert "X-Request-ID" in response.headers

    def test_handler_exception_logged_and_raised(self, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="userserver.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(make_request(), broken)

        assert "RuntimeError: boom" in caplog.text
