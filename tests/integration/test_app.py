"""
Integration tests for the request pipeline through the FastAPI test client.

Tests cover:
- Health check and catch-all 404 contracts
- Security headers on every kind of response
- Rate limiting under /api
- CORS allow-list with credentials
- Body decoding and size ceilings
- Delegation to route groups and error funnelling
- Startup with an unreachable database
- Correlation IDs, metrics and docs exposure
"""

import warnings
from datetime import datetime

import pytest
from fastapi import APIRouter, Depends, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from structlog.testing import capture_logs

from api.src.app import create_app
from api.src.dependencies import get_client_ip, get_db, get_parsed_body
from api.src.services.database import DatabaseStatus
from api.src.services.rate_limiter import RateLimiter

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
NOT_FOUND = {"success": False, "message": "API endpoint not found"}
TEN_MB = 10 * 1024 * 1024


# ============================================================================
# ROUTE GROUP DOUBLES
# ============================================================================


class OrderRequest(BaseModel):
    restaurant_id: str
    items: list[str]


def build_orders_router(calls: list) -> APIRouter:
    router = APIRouter()

    @router.post("/")
    async def create_order(order: OrderRequest, body=Depends(get_parsed_body)):
        calls.append(order)
        return {"success": True, "order": order.model_dump(), "parsed": body}

    @router.post("/echo")
    async def echo(body=Depends(get_parsed_body)):
        calls.append(body)
        return {"body": body}

    @router.get("/boom")
    async def boom():
        raise RuntimeError("database driver exploded")

    @router.get("/forbidden")
    async def forbidden():
        raise HTTPException(status_code=403, detail="Admins only")

    @router.get("/history")
    async def history(db=Depends(get_db)):
        return {"orders": []}

    @router.get("/whoami")
    async def whoami(ip: str = Depends(get_client_ip)):
        return {"ip": ip}

    return router


def build_item_router(kind: str) -> APIRouter:
    router = APIRouter()

    @router.get("/{item_id}")
    async def get_item(item_id: str):
        return {kind: item_id}

    return router


class UnreachableCounterStorage(RateLimiter):
    async def hit(self, key):
        raise ConnectionError("counter storage unreachable")


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def orders_client(app_factory, calls):
    app = app_factory(routers={"orders": build_orders_router(calls)})
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# HEALTH CHECK AND 404
# ============================================================================


class TestHealthCheck:
    """GET /api/health."""

    def test_health_check(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["message"] == "Food Delivery API is running"
        assert body["timestamp"].endswith("Z")
        datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))

    def test_health_check_head(self, client):
        assert client.head("/api/health").status_code == 200


class TestNotFound:
    """Catch-all 404 responder."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/nonexistent"),
            ("GET", "/api/auth/unknown"),
            ("DELETE", "/api/restaurants/42"),
            ("GET", "/"),
            ("GET", "/some/page"),
            ("POST", "/api/health"),
            ("PUT", "/api"),
        ],
    )
    def test_unmatched_requests(self, client, method, path):
        response = client.request(method, path)

        assert response.status_code == 404
        assert response.json() == NOT_FOUND

    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND", "MKCOL", "LOCK", "PURGE"])
    @pytest.mark.parametrize("path", ["/api/nonexistent", "/foo"])
    def test_unmatched_non_standard_methods(self, client, method, path):
        response = client.request(method, path)

        assert response.status_code == 404
        assert response.json() == NOT_FOUND

    def test_docs_are_not_served_by_default(self, client):
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").json() == NOT_FOUND

    def test_docs_when_enabled(self, app_factory):
        with TestClient(app_factory(docs_enabled=True)) as test_client:
            assert test_client.get("/openapi.json").status_code == 200

    def test_openapi_schema_has_unique_operations(self, app_factory):
        app = app_factory(docs_enabled=True)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            schema = app.openapi()

        assert not [w for w in caught if "Duplicate Operation ID" in str(w.message)]
        assert set(schema["paths"]["/api/health"]) == {"get"}

    def test_catch_all_does_not_shadow_routes(self, orders_client):
        response = orders_client.get("/api/orders/whoami")

        assert response.status_code == 200


# ============================================================================
# SECURITY HEADERS
# ============================================================================


class TestSecurityHeaders:
    """Hardening headers on every response."""

    @pytest.mark.parametrize("path", ["/api/health", "/api/nonexistent", "/elsewhere"])
    def test_headers_present(self, client, path):
        response = client.get(path)

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "Content-Security-Policy" in response.headers
        assert "Strict-Transport-Security" in response.headers

    def test_headers_on_rate_limited_response(self, app_factory):
        with TestClient(app_factory(rate_limit_requests=1)) as test_client:
            test_client.get("/api/health")
            response = test_client.get("/api/health")

        assert response.status_code == 429
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_headers_on_error_response(self, orders_client):
        response = orders_client.get("/api/orders/boom")

        assert response.status_code == 500
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"

    def test_headers_when_rate_limit_storage_fails(self, settings):
        app = create_app(settings, rate_limiter=UnreachableCounterStorage.from_settings(settings))
        with TestClient(app) as test_client:
            response = test_client.get("/api/health")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"


# ============================================================================
# RATE LIMITING
# ============================================================================


class TestRateLimiting:
    """Per-client allowance under /api."""

    def test_hundred_and_first_request_is_rejected(self, client):
        responses = [client.get("/api/nonexistent") for _ in range(100)]

        assert all(response.status_code == 404 for response in responses)

        response = client.get("/api/nonexistent")

        assert response.status_code == 429
        assert response.text == RATE_LIMIT_MESSAGE
        assert int(response.headers["Retry-After"]) > 0

    def test_rejection_covers_every_api_path_in_window(self, app_factory):
        with TestClient(app_factory(rate_limit_requests=2)) as test_client:
            test_client.get("/api/health")
            test_client.get("/api/restaurants")

            assert test_client.get("/api/health").text == RATE_LIMIT_MESSAGE
            assert test_client.post("/api/orders", json={}).status_code == 429

    def test_rejected_requests_do_not_reach_routes(self, app_factory, calls):
        app = app_factory(
            routers={"orders": build_orders_router(calls)},
            rate_limit_requests=1,
        )
        with TestClient(app) as test_client:
            assert test_client.post("/api/orders/echo", json={"n": 1}).status_code == 200
            assert test_client.post("/api/orders/echo", json={"n": 2}).status_code == 429

        assert calls == [{"n": 1}]

    def test_paths_outside_prefix_are_not_limited(self, app_factory):
        with TestClient(app_factory(rate_limit_requests=1)) as test_client:
            test_client.get("/api/health")
            assert test_client.get("/api/health").status_code == 429
            assert test_client.get("/status").status_code == 404

    def test_rate_limit_headers(self, client):
        response = client.get("/api/health")

        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert "X-RateLimit-Reset" in response.headers

    def test_exempt_health_check(self, app_factory):
        app = app_factory(rate_limit_requests=1, rate_limit_exempt_paths=["/api/health"])
        with TestClient(app) as test_client:
            statuses = [test_client.get("/api/health").status_code for _ in range(3)]

            assert statuses == [200, 200, 200]
            assert test_client.get("/api/menu").status_code == 404
            assert test_client.get("/api/menu").status_code == 429

    def test_rejections_are_logged(self, app_factory):
        with capture_logs() as logs:
            with TestClient(app_factory(rate_limit_requests=1)) as test_client:
                test_client.get("/api/health")
                test_client.get("/api/health")

        rejected = [entry for entry in logs if entry["event"] == "rate_limit_exceeded"]
        assert len(rejected) == 1
        assert rejected[0]["client"] == "testclient"

    def test_disabled_rate_limiting(self, app_factory):
        with TestClient(app_factory(rate_limit_enabled=False, rate_limit_requests=1)) as test_client:
            statuses = {test_client.get("/api/health").status_code for _ in range(5)}

        assert statuses == {200}


# ============================================================================
# CORS
# ============================================================================


class TestCors:
    """Credentialed cross-origin access for the allow-list."""

    @pytest.mark.parametrize("origin", ["http://localhost:3000", "http://localhost:5173"])
    def test_allowed_origin(self, client, origin):
        response = client.get("/api/health", headers={"Origin": origin, "Cookie": "session=abc"})

        assert response.headers["Access-Control-Allow-Origin"] == origin
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_unlisted_origin_gets_no_permissive_headers(self, client):
        response = client.get(
            "/api/health",
            headers={"Origin": "http://evil.example", "Cookie": "session=abc"},
        )

        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_preflight_from_allowed_origin(self, client):
        response = client.options(
            "/api/orders",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]

    def test_preflight_from_unlisted_origin(self, client):
        response = client.options(
            "/api/orders",
            headers={
                "Origin": "http://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 204
        assert response.content == b""
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_preflight_for_unlisted_method(self, client):
        response = client.options(
            "/api/orders",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "TRACE",
            },
        )

        assert response.status_code == 204
        assert "Disallowed" not in response.text

    def test_denied_preflight_is_logged(self, app):
        with capture_logs() as logs:
            with TestClient(app) as test_client:
                test_client.options(
                    "/api/orders",
                    headers={"Origin": "http://evil.example", "Access-Control-Request-Method": "POST"},
                )

        denied = [entry for entry in logs if entry["event"] == "cors_preflight_denied"]
        assert denied[0]["origin"] == "http://evil.example"

    def test_error_responses_carry_cors_headers(self, orders_client):
        response = orders_client.get("/api/orders/boom", headers={"Origin": "http://localhost:3000"})

        assert response.status_code == 500
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"


# ============================================================================
# BODY DECODING
# ============================================================================


class TestBodyDecoding:
    """JSON and form decoding ahead of the routes."""

    def test_json_body_reaches_route_decoded(self, orders_client):
        response = orders_client.post("/api/orders/echo", json={"items": ["pizza"], "tip": 2})

        assert response.status_code == 200
        assert response.json() == {"body": {"items": ["pizza"], "tip": 2}}

    def test_form_body_reaches_route_decoded(self, orders_client):
        response = orders_client.post(
            "/api/orders/echo",
            data={"name": "Ada", "topping": ["olive", "basil"]},
        )

        assert response.status_code == 200
        assert response.json() == {"body": {"name": "Ada", "topping": ["olive", "basil"]}}

    def test_body_parameters_still_work(self, orders_client):
        payload = {"restaurant_id": "r-1", "items": ["margherita"]}

        response = orders_client.post("/api/orders/", json=payload)

        assert response.status_code == 200
        assert response.json()["order"] == payload
        assert response.json()["parsed"] == payload

    def test_other_content_types_are_not_decoded(self, orders_client):
        response = orders_client.post(
            "/api/orders/echo",
            content=b"plain words",
            headers={"Content-Type": "text/plain"},
        )

        assert response.json() == {"body": None}

    def test_malformed_json_is_a_client_error(self, orders_client, calls):
        response = orders_client.post(
            "/api/orders/echo",
            content=b'{"items": [',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Malformed JSON in request body"}
        assert calls == []

    def test_oversized_json_is_rejected_before_route(self, orders_client, calls):
        payload = b'{"blob": "' + b"x" * (11 * 1024 * 1024) + b'"}'

        response = orders_client.post(
            "/api/orders/echo",
            content=payload,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 413
        assert response.json() == {"success": False, "message": "Request entity too large"}
        assert calls == []

    def test_oversized_streamed_json_is_rejected(self, orders_client, calls):
        def chunks():
            yield b'{"blob": "'
            for _ in range(11):
                yield b"x" * (1024 * 1024)
            yield b'"}'

        response = orders_client.post(
            "/api/orders/echo",
            content=chunks(),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 413
        assert calls == []

    def test_oversized_form_is_rejected(self, orders_client, calls):
        response = orders_client.post(
            "/api/orders/echo",
            content=b"note=" + b"y" * (TEN_MB + 1),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 413
        assert calls == []

    def test_body_just_under_ceiling_is_accepted(self, app_factory, calls):
        app = app_factory(routers={"orders": build_orders_router(calls)}, body_json_limit=64)
        payload = b'{"note": "' + b"z" * 50 + b'"}'
        with TestClient(app) as test_client:
            response = test_client.post(
                "/api/orders/echo",
                content=payload,
                headers={"Content-Type": "application/json"},
            )

        assert len(payload) <= 64
        assert response.status_code == 200


# ============================================================================
# ROUTE DELEGATION AND ERROR HANDLING
# ============================================================================


class TestErrorHandling:
    """Failures raised by route groups."""

    def test_unexpected_exception(self, orders_client):
        response = orders_client.get("/api/orders/boom")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert "exploded" not in response.text

    def test_unexpected_exception_is_logged(self, app_factory, calls):
        app = app_factory(routers={"orders": build_orders_router(calls)})
        with capture_logs() as logs:
            with TestClient(app) as test_client:
                test_client.get("/api/orders/boom")

        errors = [entry for entry in logs if entry["event"] == "unexpected_exception"]
        assert len(errors) == 1
        assert errors[0]["path"] == "/api/orders/boom"

    def test_http_exception(self, orders_client):
        response = orders_client.get("/api/orders/forbidden")

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admins only"}

    def test_validation_error(self, orders_client):
        response = orders_client.post("/api/orders/", json={"items": "not-a-list"})
        body = response.json()

        assert response.status_code == 422
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert {tuple(error["loc"]) for error in body["errors"]} >= {("body", "restaurant_id")}

    def test_database_unavailable(self, orders_client):
        response = orders_client.get("/api/orders/history")

        assert response.status_code == 503
        assert response.json() == {"success": False, "message": "Database unavailable"}

    def test_client_ip_dependency(self, orders_client):
        response = orders_client.get(
            "/api/orders/whoami",
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        assert response.json() == {"ip": "203.0.113.7"}

    def test_server_keeps_serving_after_errors(self, orders_client):
        orders_client.get("/api/orders/boom")

        assert orders_client.get("/api/health").status_code == 200


# ============================================================================
# STARTUP
# ============================================================================


class TestStartup:
    """Lifespan and the background database connection."""

    def test_unreachable_database_does_not_block_requests(self, app):
        with capture_logs() as logs:
            with TestClient(app) as test_client:
                assert test_client.get("/api/health").status_code == 200
                status = test_client.portal.call(app.state.database.wait)

        assert status == DatabaseStatus.FAILED
        failures = [entry for entry in logs if entry["event"] == "mongodb_connection_failed"]
        assert len(failures) == 1
        assert app.state.database.status == DatabaseStatus.CLOSED

    def test_process_scoped_state(self, app):
        assert app.state.rate_limiter.limit == 100
        assert app.state.database.status == DatabaseStatus.PENDING


# ============================================================================
# OBSERVABILITY
# ============================================================================


class TestObservability:
    """Correlation IDs and metrics."""

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["X-Correlation-ID"] == "req-123"

    def test_correlation_id_is_generated(self, client):
        response = client.get("/api/health")

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_request_logs(self, app):
        with capture_logs() as logs:
            with TestClient(app) as test_client:
                test_client.get("/api/health")

        completed = [entry for entry in logs if entry["event"] == "request_completed"]
        assert completed[0]["path"] == "/api/health"
        assert completed[0]["status_code"] == 200

    def test_metrics_not_exposed_by_default(self, client):
        assert client.get("/metrics").status_code == 404

    def test_metrics_endpoint(self, app_factory):
        with TestClient(app_factory(metrics_enabled=True)) as test_client:
            test_client.get("/api/health")
            test_client.get("/api/nope")
            response = test_client.get("/metrics")

        assert response.status_code == 200
        assert 'endpoint="/api/health"' in response.text
        assert 'endpoint="unmatched"' in response.text
        assert "http_requests_total" in response.text

    def test_metrics_label_routes_by_mounted_template(self, app_factory):
        routers = {"orders": build_item_router("order"), "cart": build_item_router("cart")}
        with TestClient(app_factory(routers=routers, metrics_enabled=True)) as test_client:
            test_client.get("/api/orders/1")
            test_client.get("/api/orders/2")
            test_client.get("/api/cart/3")
            response = test_client.get("/metrics")

        assert 'endpoint="/api/orders/{item_id}"' in response.text
        assert 'endpoint="/api/cart/{item_id}"' in response.text
        assert 'endpoint="/{item_id}"' not in response.text
