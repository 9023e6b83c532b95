import inspect
import time

from fastapi.routing import APIRoute

from natours.auth.rate_limiter import RateLimiter, rate_limiter
from natours.core.config import settings
from natours.core.errors import AppError, handle_validation_error
from natours.main import app
from natours.services.tour_repository import TourRepository


def _explode(self):
    raise RuntimeError("stats backend exploded")


# ---------------------------------------------------------------- error envelope


def test_app_error_status_follows_code():
    assert AppError("missing", 404).status == "fail"
    assert AppError("broken", 500).status == "error"
    assert AppError("broken").is_operational


def test_validation_errors_are_collapsed():
    error = handle_validation_error([
        {"loc": ("body", "price"), "msg": "Input should be a valid number", "input": "x"},
        {"loc": ("body",), "msg": "Value error, Something is off", "input": {}},
    ])
    assert error.status_code == 400
    assert error.message == (
        "Invalid input given. Please handle the following. "
        "price: Input should be a valid number. Something is off"
    )


def test_unknown_path(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json()["status"] == "fail"
    assert response.json()["msg"] == "Requested path /api/v1/nothing-here does not exist !"


def test_unexpected_error_in_development_includes_details(client, monkeypatch):
    monkeypatch.setattr(TourRepository, "get_stats", _explode)
    response = client.get("/api/v1/tours/tour-stats")

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert body["msg"] == "stats backend exploded"
    assert "RuntimeError" in body["stack"]


def test_unexpected_error_in_production_is_generic(client, monkeypatch):
    monkeypatch.setattr(TourRepository, "get_stats", _explode)
    monkeypatch.setattr(settings, "environment", "production")
    response = client.get("/api/v1/tours/tour-stats")

    assert response.status_code == 500
    assert response.json() == {"status": "error", "msg": "Something went wrong !"}


def test_operational_error_in_production_has_no_stack(client, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    response = client.get("/api/v1/users/me")
    assert response.json() == {"status": "fail", "msg": "Please login to continue."}


# ---------------------------------------------------------------- middleware


def test_security_headers_and_request_id(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Request-ID"]


def test_rate_limit_blocks_excess_api_requests(client, monkeypatch):
    monkeypatch.setattr(rate_limiter, "max_requests", 3)
    for _ in range(3):
        assert client.get("/api/v1/tours/tour-stats").status_code == 200

    response = client.get("/api/v1/tours/tour-stats")
    assert response.status_code == 429
    assert response.json() == {
        "status": "fail",
        "msg": "Too many requests received from this IP. Try again later.",
    }

    # Only the API prefix is limited
    assert client.get("/health").status_code == 200


def test_rate_limiter_window_and_stats():
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    assert limiter.check_api_rate_limit("10.0.0.1")
    assert limiter.check_api_rate_limit("10.0.0.1")
    assert not limiter.check_api_rate_limit("10.0.0.1")
    assert limiter.check_api_rate_limit("10.0.0.2")
    assert limiter.get_stats() == {"active_rate_limits": 2, "total_attempts_tracked": 3}

    limiter.reset()
    assert limiter.check_api_rate_limit("10.0.0.1")


def test_rate_limiter_forgets_idle_clients():
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    for address in ("10.0.0.7", "10.0.0.8", "10.0.0.9"):
        limiter._attempts[limiter._get_key(address, "api")] = [time.time() - 120]
    limiter._last_prune = 0

    assert limiter.check_api_rate_limit("10.0.0.1")
    assert limiter.get_stats() == {"active_rate_limits": 1, "total_attempts_tracked": 1}


def test_rate_limiter_drops_expired_key_on_next_check():
    limiter = RateLimiter(max_requests=1, window_seconds=60)
    key = limiter._get_key("10.0.0.1", "api")
    limiter._attempts[key] = [time.time() - 120]

    assert limiter.check_api_rate_limit("10.0.0.1")
    assert len(limiter._attempts[key]) == 1


# ---------------------------------------------------------------- health


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_healthz_checks_database(client, make_tour):
    make_tour()
    response = client.get("/healthz")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["tour_count"] == 1


# ---------------------------------------------------------------- routing


def test_database_bound_handlers_run_in_threadpool():
    # Only the mail-sending endpoint awaits anything
    coroutine_paths = {
        route.path
        for route in app.routes
        if isinstance(route, APIRoute) and inspect.iscoroutinefunction(route.endpoint)
    }
    assert coroutine_paths == {"/api/v1/users/forgotPassword", "/health", "/"}
