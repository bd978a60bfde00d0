"""Tests for the FastAPI integration."""

import orjson
import pytest
import respx
from fastapi import APIRouter, FastAPI, Form, HTTPException, Request
from fastapi.testclient import TestClient

from ravenlet.client import RavenClient
from ravenlet.integrations.fastapi import capture_route_class, install_exception_handler

STORE_URI = "https://sentry.example.com/api/1/store/"


class OrderError(Exception):
    """Raised by the test endpoints."""


@pytest.fixture
def app():
    """Create an app that reports unhandled errors."""
    app = FastAPI()
    install_exception_handler(app, RavenClient("https://key@sentry.example.com/1", environment="test"))

    @app.get("/orders/{order_id}")
    async def get_order(order_id: int):
        if order_id == 0:
            raise OrderError(f"order {order_id} not found")
        return {"order_id": order_id}

    @app.post("/orders")
    async def create_order(item: str = Form(...)):
        raise OrderError("cannot create order")

    @app.post("/imports")
    async def import_orders(request: Request):
        payload = await request.body()
        raise OrderError(f"cannot import {len(payload)} bytes")

    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app, raise_server_exceptions=False)


class TestExceptionHandler:
    """Tests for install_exception_handler."""

    def test_unhandled_exception_reported(self, client, respx_mock: respx.Router):
        """Test that an unhandled error is sent with request context."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')

        client.cookies.set("session", "s1")
        response = client.get("/orders/0?verbose=1", headers={"X-Request-Id": "req-1"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal Server Error"}
        assert route.call_count == 1

        data = orjson.loads(route.calls.last.request.content)
        assert data["level"] == "error"
        assert data["environment"] == "test"
        assert data["exception"]["values"][-1]["type"] == "OrderError"
        assert data["message"] == "OrderError: order 0 not found"

        request = data["request"]
        assert request["url"] == "/orders/0"
        assert request["method"] == "GET"
        assert request["query_string"] == "verbose=1"
        assert request["headers"]["x-request-id"] == "req-1"
        assert request["cookies"] == {"session": "s1"}
        assert request["env"]["REQUEST_METHOD"] == "GET"
        assert not any(key.startswith("HTTP_") for key in request["env"])

        assert data["user"]["ip_address"] == "testclient"

    @pytest.mark.respx(assert_all_called=False)
    def test_handled_request_not_reported(self, client, respx_mock: respx.Router):
        """Test that successful requests send nothing."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')

        response = client.get("/orders/5")

        assert response.status_code == 200
        assert not route.called

    def test_sentry_failure_still_answers(self, client, respx_mock: respx.Router):
        """Test that the app still responds when Sentry is unreachable."""
        respx_mock.post(STORE_URI).respond(503, text="unavailable")

        response = client.get("/orders/0")

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal Server Error"}

    def test_form_post_reported(self, client, respx_mock: respx.Router):
        """Test that a failing form post is reported."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')

        response = client.post("/orders", data={"item": "book"})

        assert response.status_code == 500
        assert route.call_count == 1
        data = orjson.loads(route.calls.last.request.content)
        assert data["request"]["method"] == "POST"
        assert data["request"]["headers"]["content-type"] == "application/x-www-form-urlencoded"
        assert data["request"]["data"] == {"item": "book"}

    def test_raw_body_reported(self, client, respx_mock: respx.Router):
        """Test that a body already read by the endpoint is reported."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')

        response = client.post("/imports", content=b"order-1;order-2", headers={"Content-Type": "text/plain"})

        assert response.status_code == 500
        assert route.call_count == 1
        data = orjson.loads(route.calls.last.request.content)
        assert data["message"] == "OrderError: cannot import 15 bytes"
        assert data["request"]["data"] == "order-1;order-2"

    def test_route_declared_before_install_reported(self, respx_mock: respx.Router):
        """Test that earlier routes are still reported by the error handler."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')
        app = FastAPI()

        @app.get("/legacy")
        async def legacy():
            raise OrderError("legacy failure")

        install_exception_handler(app, RavenClient("https://key@sentry.example.com/1"))
        response = TestClient(app, raise_server_exceptions=False).get("/legacy")

        assert response.status_code == 500
        assert route.call_count == 1
        data = orjson.loads(route.calls.last.request.content)
        assert data["request"]["url"] == "/legacy"
        assert data["message"] == "OrderError: legacy failure"

    @pytest.mark.respx(assert_all_called=False)
    def test_http_exception_not_reported(self, respx_mock: respx.Router):
        """Test that HTTPException is left to its own handler."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')
        app = FastAPI()
        install_exception_handler(app, RavenClient("https://key@sentry.example.com/1"))

        @app.get("/missing")
        async def missing():
            raise HTTPException(status_code=404, detail="Not Found")

        response = TestClient(app, raise_server_exceptions=False).get("/missing")

        assert response.status_code == 404
        assert not route.called


class TestCaptureRouteClass:
    """Tests for capture_route_class."""

    def test_router_reports_form_fields(self, respx_mock: respx.Router):
        """Test that a router using the route class reports its endpoint's form."""
        route = respx_mock.post(STORE_URI).respond(200, text='{"id":"abc"}')
        router = APIRouter(route_class=capture_route_class(RavenClient("https://key@sentry.example.com/1")))

        @router.post("/refunds")
        async def refund(order: str = Form(...), reason: str = Form(...)):
            raise OrderError("refund rejected")

        app = FastAPI()
        app.include_router(router)
        response = TestClient(app, raise_server_exceptions=False).post(
            "/refunds", data={"order": "o-1", "reason": "damaged"}
        )

        assert response.status_code == 500
        assert route.call_count == 1
        data = orjson.loads(route.calls.last.request.content)
        assert data["request"]["data"] == {"order": "o-1", "reason": "damaged"}
        assert data["message"] == "OrderError: refund rejected"
