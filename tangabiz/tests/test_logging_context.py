"""Tests for structured logging and request_id propagation."""

import json
import logging
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from tangabiz.core.logging import JsonFormatter, RequestIdFilter, latency_bucket_ms, request_id_ctx_var
from tangabiz.core.middleware.request_id import RequestIdMiddleware
from tangabiz.features.entitlements.service import evaluate
from tangabiz.main import app
from tangabiz.models.organization import AccessContext, Membership, Organization
from tangabiz.models.permission import Permission, Role


def _make_app():
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)

    @test_app.get("/")
    async def root(request: Request):
        return {"request_id": getattr(request.state, "request_id", None)}

    return test_app


def test_generates_request_id_when_missing():
    client = TestClient(_make_app())
    resp = client.get("/")
    assert resp.headers.get("x-request-id")
    assert resp.headers["x-request-id"] == resp.json()["request_id"]


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="tangabiz"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"


def test_denial_is_logged_with_reason(caplog):
    now = datetime(2025, 6, 15, tzinfo=timezone.utc)
    org = Organization(id="org-log", name="Log", plan_started_at=now - timedelta(days=9))
    ctx = AccessContext(
        user_id="u1",
        organization=org,
        membership=Membership(organization_id=org.id, user_id="u1", role=Role.ADMIN),
    )
    with caplog.at_level(logging.INFO, logger="tangabiz"):
        evaluate(ctx, Permission.CREATE_SALES, now=now)

    denied = [r for r in caplog.records if r.getMessage() == "[entitlement] DENIED"]
    assert len(denied) == 1
    assert denied[0].levelno == logging.WARNING
    assert denied[0].reason == "trial_expired"
    assert denied[0].organization_id == "org-log"
    assert denied[0].permission == "create_sales"


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("tangabiz", logging.WARNING, __file__, 1, "[entitlement] DENIED", None, None)
    record.organization_id = "org-1"
    record.reason = "quota_exceeded"
    record.current = 50
    record.limit = 50

    token = request_id_ctx_var.set("rid-json")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx_var.reset(token)

    payload = json.loads(JsonFormatter().format(record))
    assert payload["request_id"] == "rid-json"
    assert payload["reason"] == "quota_exceeded"
    assert (payload["current"], payload["limit"]) == (50, 50)
    assert "plan_id" not in payload


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(2500) == ">=1000ms"
