"""Tests for the tracker config/resolve endpoints and app wiring."""

import pytest
from fastapi.testclient import TestClient

from leadtracker.core.nonce import verify_nonce
from leadtracker.main import app

IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148 Safari/604.1"


@pytest.fixture
def client():
    return TestClient(app)


class TestTrackerConfig:
    def test_config_has_endpoint_and_nonce(self, client):
        resp = client.get("/v1/tracker/config")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ajax_url"] == "https://shop.example.com/v1/ajax"
        assert verify_nonce(data["nonce"]) is not None

    def test_config_never_cached(self, client):
        resp = client.get("/v1/tracker/config")
        assert "no-store" in resp.headers["cache-control"]


class TestResolve:
    def _resolve(self, client, url, referrer="", **headers):
        resp = client.post(
            "/v1/tracker/resolve",
            json={"page_location": url, "referrer": referrer},
            headers=headers,
        )
        assert resp.status_code == 200
        return resp.json()

    def test_first_touch_sticks_for_the_session(self, client):
        first = self._resolve(client, "https://shop.example.com/?utm_source=google&utm_medium=cpc&gclid=g1")
        assert first["firstTouch"] is True
        assert first["utm_source"] == "google"
        assert first["trafficType"] == "Paid"
        assert first["ad_id"] == "g1"

        second = self._resolve(
            client,
            "https://shop.example.com/contact?utm_source=bing",
            referrer="https://shop.example.com/",
        )
        assert second["firstTouch"] is False
        assert second["utm_source"] == "google"
        assert second["utm_medium"] == "cpc"
        assert second["ad_id"] == "g1"
        assert second["entryUrl"] == "/home/"
        assert second["submittingUrl"] == "/contact/"
        assert second["trafficType"] == "Paid"

    def test_new_browser_session_starts_over(self, client):
        self._resolve(client, "https://shop.example.com/?utm_source=google")
        fresh = self._resolve(TestClient(app), "https://shop.example.com/?utm_source=bing")
        assert fresh["firstTouch"] is True
        assert fresh["utm_source"] == "bing"

    def test_device_from_user_agent(self, client):
        data = self._resolve(client, "https://shop.example.com/", **{"User-Agent": IPHONE_UA})
        assert data["deviceType"] == "Mobile"

    def test_social_referrer(self, client):
        data = self._resolve(client, "https://shop.example.com/", referrer="https://l.facebook.com/l.php")
        assert data["utm_source"] == "facebook"
        assert data["utm_medium"] == "social"
        assert data["trafficType"] == "Social"

    def test_session_cookie_has_no_max_age(self, client):
        resp = client.post("/v1/tracker/resolve", json={"page_location": "https://shop.example.com/"})
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("lt_session=")
        assert "max-age" not in cookie.lower()

    def test_page_location_required(self, client):
        assert client.post("/v1/tracker/resolve", json={}).status_code == 422


class TestAppWiring:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "leadtracker"

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["x-frame-options"] == "DENY"
        assert resp.headers["x-content-type-options"] == "nosniff"
