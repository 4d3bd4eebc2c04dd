"""Tests for usrprov.api.service — FastAPI endpoints over an in-memory pipeline."""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from usrprov.api import service
from usrprov.api.service import CreateUserRequest, SeedRequest, app, init_service, status_for
from usrprov.cluster.client import ApiResponse
from usrprov.errors import (
    CredentialToolError,
    OperationFailed,
    ProvisioningTimeout,
    StoreIOError,
    SyncError,
    ValidationError,
)


@pytest_asyncio.fixture
async def test_client(provisioner):
    """Async HTTP client wrapping the app via ASGITransport."""
    init_service(provisioner)
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    init_service(None)


class TestModels:
    def test_create_user_request(self):
        req = CreateUserRequest(username="alice", password="pw1")
        assert req.username == "alice"

    def test_seed_defaults_to_sync(self):
        assert SeedRequest(content="a:b\n").sync is True


class TestStatusMapping:
    @pytest.mark.parametrize(
        "exc,status",
        [
            (ValidationError("x"), 400),
            (CredentialToolError("x"), 502),
            (StoreIOError("x"), 500),
            (SyncError("x", status=500), 502),
            (SyncError("Forbidden", status=403), 403),
            (SyncError("Conflict", status=409), 409),
            (SyncError("down"), 502),
            (OperationFailed("x"), 502),
            (ProvisioningTimeout("x"), 504),
        ],
    )
    def test_status_for(self, exc, status):
        assert status_for(exc) == status


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_success(self, test_client, fake_secrets, store):
        resp = await test_client.post("/api/v1/usr", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["username"] == "alice"
        assert len(body["outputs"]) == 3
        assert fake_secrets.value() == store.path.read_text()

    @pytest.mark.asyncio
    async def test_empty_password_is_400(self, test_client, fake_secrets):
        resp = await test_client.post("/api/v1/usr", json={"username": "alice", "password": ""})
        assert resp.status_code == 400
        assert resp.json()["kind"] == "validation_error"
        assert fake_secrets.calls == []

    @pytest.mark.asyncio
    async def test_missing_field_is_422(self, test_client):
        resp = await test_client.post("/api/v1/usr", json={"username": "alice"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_forbidden_sync_is_not_ok(self, test_client, fake_secrets):
        fake_secrets.write_result = ApiResponse(status=403, reason="Forbidden")
        resp = await test_client.post("/api/v1/usr", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 403
        body = resp.json()
        assert body["kind"] == "sync_error"
        assert "Forbidden" in body["error"]

    @pytest.mark.asyncio
    async def test_no_response_is_502(self, test_client, fake_secrets):
        fake_secrets.return_none = True
        resp = await test_client.post("/api/v1/usr", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 502
        assert resp.json()["kind"] == "operation_failed"


class TestOtherEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, test_client, store):
        resp = await test_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["store"] == {"path": str(store.path), "exists": False}

    @pytest.mark.asyncio
    async def test_init_lists_users(self, test_client):
        await test_client.post("/api/v1/usr", json={"username": "alice", "password": "pw1"})
        resp = await test_client.get("/api/v1/usr/init")
        body = resp.json()
        assert body["store"]["exists"] is True
        assert body["store"]["users"] == ["alice"]
        assert body["secret"] == {"name": "users", "namespace": "openshift-config", "key": "htpasswd"}

    @pytest.mark.asyncio
    async def test_seed(self, test_client, store, fake_secrets):
        resp = await test_client.put("/api/v1/usr/htpasswd", json={"content": "carol:$2y$04$x\n"})
        assert resp.status_code == 200
        assert store.path.read_text() == "carol:$2y$04$x\n"
        assert fake_secrets.value() == "carol:$2y$04$x\n"

    @pytest.mark.asyncio
    async def test_seed_without_sync(self, test_client, fake_secrets):
        resp = await test_client.put(
            "/api/v1/usr/htpasswd", json={"content": "carol:$2y$04$x\n", "sync": False}
        )
        assert resp.status_code == 200
        assert fake_secrets.calls == []

    @pytest.mark.asyncio
    async def test_sync_before_store_exists(self, test_client):
        resp = await test_client.post("/api/v1/usr/sync")
        assert resp.status_code == 500
        assert resp.json()["kind"] == "io_error"

    @pytest.mark.asyncio
    async def test_sync(self, test_client, store):
        await store.set_contents("dave:$2y$04$x\n")
        resp = await test_client.post("/api/v1/usr/sync")
        assert resp.status_code == 200
        assert resp.json()["outputs"][0].startswith("Successfully applied")


class TestAppConfig:
    def test_app_title(self):
        assert app.title == "usrprov"

    def test_app_has_routes(self):
        paths = {route.path for route in app.routes}
        assert {"/health", "/api/v1/usr", "/api/v1/usr/init", "/api/v1/usr/sync"} <= paths

    def test_uninitialized(self):
        init_service(None)
        with pytest.raises(OperationFailed):
            service.get_provisioner()
