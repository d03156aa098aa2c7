"""Tests d'intégration de l'API de confirmation"""

import pytest
from fastapi.testclient import TestClient

from medidash.confirmation.app import create_confirmation_app
from medidash.shared.config import ServiceConfig

from tests.helpers import ALLOWED_ORIGIN, fragment_url, make_token


@pytest.fixture
def service_config(monkeypatch):
    monkeypatch.setenv("CONFIRMATION_STORAGE", "memory")
    config = ServiceConfig(service_name="confirmation", service_port=8010)
    config.monitoring.log_file = None
    return config


@pytest.fixture
def client(service_config, identity, records):
    app = create_confirmation_app(service_config, identity=identity, records=records)
    with TestClient(app) as test_client:
        yield test_client


def confirm(client, url, page_id="page-0001", origin=ALLOWED_ORIGIN):
    response = client.post("/confirme", json={"url": url, "origin": origin, "page_id": page_id})
    assert response.status_code == 200
    return response.json()


@pytest.mark.integration
@pytest.mark.api
class TestConfirmationPage:

    def test_page_is_rendered(self, client):
        response = client.get("/confirme")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "medicalapp://auth/confirmed" in response.text
        assert "medidash_device" in response.cookies

    def test_device_cookie_is_kept(self, client):
        client.get("/confirme")
        device = client.cookies["medidash_device"]

        response = client.get("/confirme")

        assert "medidash_device" not in response.cookies
        assert client.cookies["medidash_device"] == device

    def test_device_cookie_attributes(self, client):
        """Cookie envoyé lors d'une navigation depuis le client mail"""
        response = client.get("/confirme")

        set_cookie = response.headers["set-cookie"].lower()
        assert "samesite=lax" in set_cookie
        assert "httponly" in set_cookie
        assert "max-age=31536000" in set_cookie

    def test_existing_cookie_is_not_overwritten(self, client):
        client.cookies.set("medidash_device", "known-device")

        response = client.get("/confirme")

        assert "set-cookie" not in response.headers

    def test_security_headers(self, client):
        response = client.get("/confirme")

        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert "X-Request-ID" in response.headers


@pytest.mark.integration
@pytest.mark.api
class TestConfirmationFlow:

    def test_success(self, client, identity, records):
        client.get("/confirme")

        body = confirm(client, fragment_url(make_token(300)))

        assert body["status"] == "success"
        assert body["reason"] is None
        assert body["history_url"] == f"{ALLOWED_ORIGIN}/confirme"
        assert body["redirect_url"] == "medicalapp://auth/confirmed"
        assert body["redirect_delay_ms"] == 3000
        identity.establish_session.assert_awaited_once()
        records.touch_updated_at.assert_awaited_once_with("doc-1")

    def test_same_page_runs_once(self, client, identity):
        url = fragment_url(make_token(300))

        first = confirm(client, url)
        second = confirm(client, url)

        assert first == second
        identity.establish_session.assert_awaited_once()

    def test_untrusted_origin(self, client, identity):
        body = confirm(client, fragment_url(make_token(300)), origin="https://evil.example.com")

        assert body["status"] == "error"
        assert body["reason"] == "untrusted_origin"
        assert body["redirect_url"] is None
        identity.establish_session.assert_not_called()

    def test_origin_header_fallback(self, client):
        response = client.post(
            "/confirme",
            json={"url": fragment_url(make_token(300)), "page_id": "page-0002"},
            headers={"Origin": ALLOWED_ORIGIN}
        )

        assert response.json()["status"] == "success"

    def test_rate_limit_per_device(self, client, identity):
        client.get("/confirme")

        for i in range(5):
            body = confirm(client, f"{ALLOWED_ORIGIN}/confirme", page_id=f"page-miss-{i}")
            assert body["reason"] == "missing_token"

        body = confirm(client, fragment_url(make_token(300)), page_id="page-final")

        assert body["reason"] == "rate_limited"
        identity.establish_session.assert_not_called()

    def test_rate_limit_survives_click_without_cookie(self, client, identity):
        """Un nouveau clic sans cookie retrouve le compteur de l'appareil"""
        client.get("/confirme")
        for i in range(5):
            confirm(client, f"{ALLOWED_ORIGIN}/confirme", page_id=f"page-miss-{i}")

        client.cookies.clear()
        client.get("/confirme")
        body = confirm(client, fragment_url(make_token(300)), page_id="page-after-click")

        assert body["reason"] == "rate_limited"
        identity.establish_session.assert_not_called()

    def test_origin_header_takes_precedence(self, client, identity):
        response = client.post(
            "/confirme",
            json={"url": fragment_url(make_token(300)), "origin": ALLOWED_ORIGIN, "page_id": "page-0003"},
            headers={"Origin": "https://evil.example.com"}
        )

        assert response.json()["reason"] == "untrusted_origin"
        identity.establish_session.assert_not_called()

    def test_invalid_payload(self, client):
        response = client.post("/confirme", json={"url": "x", "page_id": "short"})

        assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.api
class TestServiceEndpoints:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_without_redis(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
