"""Tests for the HTTP surface: routes, observation middleware and exchange log."""

import pytest
from fastapi.testclient import TestClient

from spanwise.observation import ObservationRegistry, SpanCollector, TracingHandler
from spanwise.users import InMemoryUserRepository, User, UserService
from spanwise.web import (
    FilteringHttpExchangeRepository,
    HttpExchange,
    InMemoryHttpExchangeRepository,
    create_app,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def collector():
    return SpanCollector()


@pytest.fixture
def web_registry(collector):
    registry = ObservationRegistry()
    registry.register_handler(TracingHandler(collector))
    return registry


@pytest.fixture
def exchanges():
    return FilteringHttpExchangeRepository(InMemoryHttpExchangeRepository(capacity=10))


@pytest.fixture
def client(web_registry, exchanges):
    service = UserService(
        InMemoryUserRepository([User(id=1, name="alice")]),
        web_registry,
        max_delay_ms=1,
    )
    return TestClient(create_app(service, web_registry, exchanges))


def _spans_by_name(collector):
    return {span.name: span for span in collector.get_all_spans()}


# ---------------------------------------------------------------------------
# GET /user/{user_id}
# ---------------------------------------------------------------------------

class TestUserEndpoint:
    def test_returns_foo(self, client):
        response = client.get("/user/1")
        assert response.status_code == 200
        assert response.text == "foo"
        assert response.headers["content-type"].startswith("text/plain")

    def test_service_observation_nests_under_request(self, client, collector):
        client.get("/user/1")

        spans = _spans_by_name(collector)
        request_span = spans["http.server.requests"]
        service_span = spans["user.name"]

        assert service_span.parent_id == request_span.span_id
        assert service_span.trace_id == request_span.trace_id
        assert service_span.attributes["userType"] == "userType2"
        assert request_span.operation == "http get"
        assert request_span.attributes["uri"] == "/user/{user_id}"
        assert request_span.attributes["status"] == "200"
        assert request_span.attributes["outcome"] == "SUCCESS"
        assert request_span.attributes["http.url"].endswith("/user/1")

    def test_non_numeric_id_is_bad_request(self, client, collector):
        response = client.get("/user/abc")
        assert response.status_code == 400
        assert "error" in response.json()

        spans = _spans_by_name(collector)
        assert spans["user.name"].status == "error"
        assert spans["user.name"].attributes["error_type"] == "ValueError"
        assert spans["http.server.requests"].attributes["outcome"] == "CLIENT_ERROR"


# ---------------------------------------------------------------------------
# Exchange log
# ---------------------------------------------------------------------------

class TestExchanges:
    def test_requests_recorded_newest_first(self, client, exchanges):
        client.get("/user/1")
        client.get("/user/2")

        recorded = exchanges.find_all()
        assert [e.path for e in recorded] == ["/user/2", "/user/1"]
        assert recorded[0].status == 200
        assert recorded[0].method == "GET"

    def test_actuator_paths_not_recorded(self, client, exchanges):
        client.get("/user/1")
        response = client.get("/actuator/httpexchanges")

        assert response.status_code == 200
        body = response.json()
        assert [e["path"] for e in body["exchanges"]] == ["/user/1"]
        assert [e.path for e in exchanges.find_all()] == ["/user/1"]

    def test_unhandled_failure_recorded_as_server_error(self, web_registry, exchanges):
        service = UserService(InMemoryUserRepository(), web_registry, max_delay_ms=1)
        app = create_app(service, web_registry, exchanges)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("boom")

        response = TestClient(app, raise_server_exceptions=False).get("/boom")

        assert response.status_code == 500
        assert [(e.path, e.status) for e in exchanges.find_all()] == [("/boom", 500)]

    def test_in_memory_capacity_evicts_oldest(self):
        repository = InMemoryHttpExchangeRepository(capacity=2)
        for i in range(3):
            repository.add(HttpExchange(method="GET", uri=f"http://x/{i}", path=f"/{i}", status=200))
        assert [e.path for e in repository.find_all()] == ["/2", "/1"]

    def test_filter_skips_configured_fragments(self):
        repository = FilteringHttpExchangeRepository(exclude=("health",))
        repository.add(HttpExchange(method="GET", uri="http://x/health", path="/health", status=200))
        repository.add(HttpExchange(method="GET", uri="http://x/actuator", path="/actuator", status=200))
        assert [e.path for e in repository.find_all()] == ["/actuator"]
