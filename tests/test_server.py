"""Tests for server authentication, routes, and error handling."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette import status as st_status

from ddns_panel.config import Config, HealthConfig, StoreConfig
from ddns_panel.models import Configuration
from ddns_panel.runtime import build_runtime
from ddns_panel.server import (
    AuthMiddleware,
    app,
    is_lan_client,
    lifespan,
    parse_basic_auth,
)
from ddns_panel.sync import BaseSyncEngine

if TYPE_CHECKING:
    from conftest import FakeClock

    from ddns_panel.runtime import PanelRuntime

STRONG_PASSWORD = "Str0ng-Passw0rd!"


class NullEngine(BaseSyncEngine):
    def run_once(self, config: Configuration, *, force: bool) -> None:
        pass


def save_body(**overrides) -> dict:
    body = {
        "Username": "admin",
        "Password": STRONG_PASSWORD,
        "NotAllowWanAccess": True,
        "DnsConf": [
            {
                "DnsName": "alidns",
                "DnsID": "ABCDEF",
                "DnsSecret": "SECRET123456",
                "Ipv4Enable": True,
                "Ipv4GetType": "url",
                "Ipv4Domains": "home.example.com",
            },
        ],
    }
    body.update(overrides)
    return body


# Fixtures for runtime manipulation
@pytest.fixture
def runtime(tmp_path, clock: FakeClock, monkeypatch) -> PanelRuntime:
    """Attach a runtime backed by a temporary store to the app."""
    config = Config(store=StoreConfig(path=str(tmp_path / "panel.json")))
    runtime = build_runtime(config, engine=NullEngine(), clock=clock)
    monkeypatch.setattr(app.state, "runtime", runtime, raising=False)
    return runtime


@pytest.fixture
def lan(monkeypatch):
    """Treat the test client as a LAN peer."""
    monkeypatch.setattr("ddns_panel.server.is_lan_client", lambda _host: True)


@pytest.fixture
def client(runtime: PanelRuntime, lan) -> TestClient:
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def configured_client(client: TestClient) -> TestClient:
    """Create a test client for an instance with credentials set."""
    response = client.post("/save", json=save_body())
    assert response.json()["result"] == "ok"
    return client


class TestSave:
    """Tests for the save endpoint."""

    def test_first_save(self, client: TestClient, runtime: PanelRuntime):
        response = client.post("/save", json=save_body())

        assert response.status_code == st_status.HTTP_200_OK
        data = response.json()
        assert data["result"] == "ok"
        entries = json.loads(data["dnsConf"])
        assert entries[0]["DnsID"] == "AB****"
        assert entries[0]["DnsSecret"] == "SECRE*******"
        assert runtime.service.get()[0].username == "admin"
        assert runtime.worker.pending == 1

    def test_rejection_is_200_with_message(self, client: TestClient):
        response = client.post("/save", json=save_body(Username=""))

        assert response.status_code == st_status.HTTP_200_OK
        assert response.json() == {
            "result": "Username and password are required",
            "dnsConf": "[]",
        }

    def test_accept_language_zh(self, client: TestClient):
        response = client.post(
            "/save",
            json=save_body(Username=""),
            headers={"Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8"},
        )
        assert response.json()["result"] == "必须输入登录用户名/密码"

    def test_malformed_body(self, client: TestClient):
        response = client.post("/save", content=b"{not json")
        assert response.status_code == st_status.HTTP_200_OK
        assert response.json()["result"].startswith("Failed to parse data")

    def test_after_bootstrap_window(self, client: TestClient, clock: FakeClock):
        clock.advance(6 * 60)
        response = client.post("/save", json=save_body())
        assert "5 minutes" in response.json()["result"]


class TestAuthMiddleware:
    """Tests for Basic authentication once credentials are set."""

    def test_missing_credentials_returns_401(self, configured_client: TestClient):
        response = configured_client.get("/config")

        assert response.status_code == st_status.HTTP_401_UNAUTHORIZED
        assert response.headers["www-authenticate"] == 'Basic realm="ddns-panel"'
        data = response.json()
        assert data["status"] == "error"
        assert data["code"] == st_status.HTTP_401_UNAUTHORIZED
        assert data["message"] == "Missing credentials"

    def test_wrong_password_returns_401(self, configured_client: TestClient):
        response = configured_client.get("/config", auth=("admin", "wrong"))
        assert response.status_code == st_status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "Invalid username or password"

    def test_wrong_username_returns_401(self, configured_client: TestClient):
        response = configured_client.get("/config", auth=("root", STRONG_PASSWORD))
        assert response.status_code == st_status.HTTP_401_UNAUTHORIZED

    def test_valid_credentials_pass(self, configured_client: TestClient):
        response = configured_client.get("/config", auth=("admin", STRONG_PASSWORD))
        assert response.status_code == st_status.HTTP_200_OK

    def test_save_requires_credentials(self, configured_client: TestClient):
        response = configured_client.post("/save", json=save_body(Username="root"))
        assert response.status_code == st_status.HTTP_401_UNAUTHORIZED

    def test_first_run_needs_no_credentials(self, client: TestClient):
        assert client.get("/config").status_code == st_status.HTTP_200_OK


class TestWanRestriction:
    """Tests for the private-network restriction."""

    def test_wan_client_rejected(self, runtime: PanelRuntime, monkeypatch):
        monkeypatch.setattr("ddns_panel.server.is_lan_client", lambda _host: False)
        response = TestClient(app).get("/config")

        assert response.status_code == st_status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "Access from public networks is disabled"

    def test_wan_client_allowed_when_enabled(self, runtime: PanelRuntime, monkeypatch):
        runtime.service.commit(
            runtime.service.version,
            Configuration(not_allow_wan_access=False),
        )
        monkeypatch.setattr("ddns_panel.server.is_lan_client", lambda _host: False)
        assert TestClient(app).get("/config").status_code == st_status.HTTP_200_OK

    def test_testclient_host_is_not_lan(self, runtime: PanelRuntime):
        # "testclient" is not an IP address
        assert TestClient(app).get("/config").status_code == st_status.HTTP_403_FORBIDDEN


class TestReadConfig:
    """Tests for the config endpoint."""

    def test_values_masked(self, configured_client: TestClient):
        data = configured_client.get("/config", auth=("admin", STRONG_PASSWORD)).json()

        assert data["Username"] == "admin"
        assert data["NotAllowWanAccess"] is True
        assert "Password" not in data
        assert data["DnsConf"][0]["DnsID"] == "AB****"
        assert data["DnsConf"][0]["DnsSecret"] == "SECRE*******"
        assert data["DnsConf"][0]["Ipv4Domains"] == "home.example.com"

    def test_no_hash_leaked(self, configured_client: TestClient, runtime: PanelRuntime):
        response = configured_client.get("/config", auth=("admin", STRONG_PASSWORD))
        assert runtime.service.get()[0].password not in response.text


class TestLogs:
    """Tests for the log endpoints."""

    def test_read_and_clear(self, client: TestClient, runtime: PanelRuntime):
        runtime.log_buffer.clear()
        client.post("/save", json=save_body(Username=""))

        logs = client.get("/logs").json()["logs"]
        assert any("Username and password are required" in line for line in logs)

        assert client.post("/logs/clear").json() == {"status": "ok"}
        assert client.get("/logs").json() == {"logs": []}


class TestWebhookTest:
    """Tests for the webhook test endpoint."""

    def test_not_configured(self, client: TestClient):
        response = client.post("/webhook-test")
        assert response.json() == {"result": "Webhook URL is not configured"}

    def test_sends_sample(self, client: TestClient, runtime: PanelRuntime, monkeypatch):
        runtime.service.commit(
            runtime.service.version,
            Configuration(webhook_url="https://hook.example.com/?ip=#{ipv4Addr}"),
        )
        sent: list[tuple] = []

        class FakeResponse:
            status_code = 204
            text = ""

        async def fake_send(url, body, headers, variables):
            sent.append((url, body, headers, variables))
            return FakeResponse()

        monkeypatch.setattr("ddns_panel.server.send_webhook", fake_send)
        data = client.post("/webhook-test").json()

        assert data == {
            "result": "Webhook called, status code: 204",
            "status_code": 204,
            "body": "",
        }
        assert sent[0][0] == "https://hook.example.com/?ip=#{ipv4Addr}"
        assert sent[0][3]["ipv4Addr"] == "127.0.0.1"

    @pytest.mark.parametrize("url", ["http://[::1", "https://hook.example.com/\x00"])
    def test_malformed_url_reported(
        self,
        client: TestClient,
        runtime: PanelRuntime,
        url: str,
    ):
        runtime.service.commit(runtime.service.version, Configuration(webhook_url=url))
        response = client.post("/webhook-test")

        assert response.status_code == 200
        assert response.json()["result"].startswith("Webhook call failed")


class TestServiceNotReady:
    """Tests for requests before the runtime is attached."""

    def test_returns_503(self, monkeypatch, lan):
        monkeypatch.setattr(app.state, "runtime", None, raising=False)
        response = TestClient(app).get("/config")

        assert response.status_code == st_status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json() == {
            "status": "error",
            "code": st_status.HTTP_503_SERVICE_UNAVAILABLE,
            "message": "Service not ready",
        }


class TestHealthEndpoint:
    """Tests for health check endpoint.

    Since the /health route is dynamically registered based on config during
    lifespan startup, each test needs to create a fresh FastAPI app instance
    with the lifespan context manager to ensure the route is registered.
    """

    def test_health_enabled(self, monkeypatch, tmp_path):
        """Test that the health endpoint answers when enabled."""
        config = Config(
            store=StoreConfig(path=str(tmp_path / "panel.json")),
            health=HealthConfig(enabled=True),
        )
        monkeypatch.setattr("ddns_panel.server._config", config)

        test_app = FastAPI(lifespan=lifespan)

        with TestClient(test_app) as test_client:
            response = test_client.get("/health")

            assert response.status_code == st_status.HTTP_200_OK
            assert response.json() == {"status": "ok"}
            assert test_app.state.runtime.worker.running

        assert test_app.state.runtime is None

    def test_health_bypasses_auth(self, monkeypatch, tmp_path):
        """Test that the health endpoint bypasses authentication."""
        config = Config(
            store=StoreConfig(path=str(tmp_path / "panel.json")),
            health=HealthConfig(enabled=True),
        )
        monkeypatch.setattr("ddns_panel.server._config", config)
        runtime = build_runtime(config, engine=NullEngine())
        runtime.service.commit(
            runtime.service.version,
            Configuration(username="admin", password="hash"),
        )

        test_app = FastAPI(lifespan=lifespan)
        test_app.state.runtime = runtime
        test_app.add_middleware(AuthMiddleware)

        with TestClient(test_app) as test_client:
            assert test_client.get("/health").status_code == st_status.HTTP_200_OK

    def test_health_disabled_returns_404(self, monkeypatch, tmp_path):
        """Test that disabled health endpoint returns 404."""
        config = Config(
            store=StoreConfig(path=str(tmp_path / "panel.json")),
            health=HealthConfig(enabled=False),
        )
        monkeypatch.setattr("ddns_panel.server._config", config)

        test_app = FastAPI(lifespan=lifespan)

        with TestClient(test_app) as test_client:
            response = test_client.get("/health")

            assert response.status_code == st_status.HTTP_404_NOT_FOUND


class TestIsLanClient:
    """Tests for private-network detection."""

    @pytest.mark.parametrize(
        ("host", "expected"),
        [
            (None, True),
            ("127.0.0.1", True),
            ("10.1.2.3", True),
            ("172.16.0.1", True),
            ("192.168.1.10", True),
            ("169.254.1.1", True),
            ("::1", True),
            ("fd00::1", True),
            ("fe80::1", True),
            ("::ffff:192.168.1.10", True),
            ("8.8.8.8", False),
            ("2001:4860:4860::8888", False),
            ("::ffff:8.8.8.8", False),
            ("testclient", False),
            ("", False),
        ],
    )
    def test_is_lan_client(self, host: str | None, expected: bool):
        assert is_lan_client(host) is expected


class TestParseBasicAuth:
    """Tests for Authorization header parsing."""

    @staticmethod
    def encode(value: str) -> str:
        return "Basic " + base64.b64encode(value.encode("utf-8")).decode("ascii")

    def test_valid(self):
        assert parse_basic_auth(self.encode("admin:secret")) == ("admin", "secret")

    def test_password_with_colon(self):
        assert parse_basic_auth(self.encode("admin:a:b")) == ("admin", "a:b")

    def test_scheme_case_insensitive(self):
        header = self.encode("admin:secret").replace("Basic", "basic")
        assert parse_basic_auth(header) == ("admin", "secret")

    @pytest.mark.parametrize(
        "header",
        [
            "",
            "Bearer abc",
            "Basic",
            "Basic !!!notbase64",
            "Basic " + base64.b64encode(b"no-colon").decode("ascii"),
            "Basic " + base64.b64encode(b"\xff\xfe:x").decode("ascii"),
        ],
    )
    def test_invalid(self, header: str):
        assert parse_basic_auth(header) is None
