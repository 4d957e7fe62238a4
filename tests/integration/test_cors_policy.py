"""Tests for the CORS allow-list (preflight, rejection, pass-through)."""
import logging

from fastapi.testclient import TestClient

from app.core.cors import CORS_VIOLATION_MESSAGE
from app.main import create_app
from conftest import VALID_PAYLOAD, make_settings

ALLOWED = "http://localhost:3000"


class TestCorsPolicy:
    def test_preflight_allowed_origin(self, client):
        resp = client.request(
            "OPTIONS",
            "/api/contact",
            headers={
                "Origin": ALLOWED,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert resp.status_code in (200, 204), f"Preflight failed: {resp.status_code}"
        assert resp.headers["access-control-allow-origin"] == ALLOWED
        assert "POST" in resp.headers["access-control-allow-methods"]
        assert resp.headers["access-control-max-age"] == "86400"

    def test_simple_request_from_allowed_origin(self, client):
        resp = client.post("/api/contact", json=VALID_PAYLOAD, headers={"Origin": ALLOWED})
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == ALLOWED
        expose = resp.headers.get("access-control-expose-headers", "").lower()
        assert "x-request-id" in expose
        assert "retry-after" in expose

    def test_disallowed_origin_rejected(self, client, transport, caplog):
        with caplog.at_level(logging.WARNING, logger="app.core.cors"):
            resp = client.post(
                "/api/contact", json=VALID_PAYLOAD, headers={"Origin": "https://evil.example"}
            )
        assert resp.status_code == 403
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == CORS_VIOLATION_MESSAGE
        assert "access-control-allow-origin" not in resp.headers
        assert transport.sent == []

        [record] = [r for r in caplog.records if r.name == "app.core.cors"]
        assert record.event_type == "cors_rejected"
        assert record.origin == "https://evil.example"

    def test_disallowed_preflight_rejected(self, client):
        resp = client.request(
            "OPTIONS",
            "/api/contact",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 403

    def test_rejected_origin_does_not_consume_quota(self, client):
        for _ in range(6):
            client.post("/api/contact", json=VALID_PAYLOAD, headers={"Origin": "https://evil.example"})
        assert client.post("/api/contact", json=VALID_PAYLOAD).status_code == 200

    def test_request_without_origin_passes(self, client):
        resp = client.get("/health/simple")
        assert resp.status_code == 200
        assert "access-control-allow-origin" not in resp.headers

    def test_configured_origins(self, transport):
        app = create_app(
            make_settings(ALLOWED_ORIGINS="https://example.com,https://www.example.com"),
            transport=transport,
        )
        with TestClient(app) as c:
            ok = c.get("/health/simple", headers={"Origin": "https://www.example.com"})
            blocked = c.get("/health/simple", headers={"Origin": ALLOWED})
        assert ok.status_code == 200
        assert ok.headers["access-control-allow-origin"] == "https://www.example.com"
        assert blocked.status_code == 403

    def test_credentials_not_allowed(self, client):
        resp = client.get("/health/simple", headers={"Origin": ALLOWED})
        assert "access-control-allow-credentials" not in resp.headers
