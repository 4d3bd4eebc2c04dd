"""
Root-level shared test fixtures.

Inherited by tests/ and the in-package test suites. Provides an in-memory
Secret API, a fast bcrypt-backed credential store and env isolation.
"""

from __future__ import annotations

import base64
import copy

import pytest
from kubernetes import client

from usrprov.cluster.client import ApiResponse, SecretLookup
from usrprov.cluster.sync import SecretSynchronizer
from usrprov.config import SecretConfig, reset_config
from usrprov.htpasswd.hashers import BcryptHasher
from usrprov.htpasswd.store import CredentialStore
from usrprov.locks import reset_locks
from usrprov.provisioning import Provisioner


@pytest.fixture(autouse=True)
def _isolate_state():
    """Fresh lock registry and config singleton for every test."""
    reset_locks()
    reset_config()
    yield
    reset_locks()
    reset_config()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove usrprov env vars that leak between tests."""
    for key in [
        "USRPROV_CONTENT_DIR",
        "USRPROV_HTPASSWD_FILE",
        "USRPROV_HASHER",
        "USRPROV_HTPASSWD_BIN",
        "USRPROV_BCRYPT_COST",
        "USRPROV_TOOL_TIMEOUT",
        "USRPROV_SECRET_NAME",
        "USRPROV_SECRET_NAMESPACE",
        "USRPROV_SECRET_KEY",
        "USRPROV_KUBE_AUTH",
        "USRPROV_API_TIMEOUT",
        "USRPROV_HOST",
        "USRPROV_PORT",
    ]:
        monkeypatch.delenv(key, raising=False)


class FakeSecretClient:
    """In-memory stand-in for the cluster Secret API.

    Applies stringData over data like the API server does and enforces
    resourceVersion on replace (409 Conflict on mismatch).
    """

    def __init__(self):
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.calls: list[str] = []
        self.bodies: list[client.V1Secret] = []
        self.read_result: SecretLookup | None = None
        self.write_result: ApiResponse | None = None
        self.return_none = False
        self._version = 0

    def put(self, name: str, namespace: str, data: dict[str, str]) -> None:
        """Pre-populate a Secret with plain-text values."""
        self._version += 1
        self.secrets[(namespace, name)] = client.V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=client.V1ObjectMeta(
                name=name, namespace=namespace, resource_version=str(self._version)
            ),
            data={k: base64.b64encode(v.encode()).decode() for k, v in data.items()},
        )

    def value(self, name="users", namespace="openshift-config", key="htpasswd") -> str | None:
        secret = self.secrets.get((namespace, name))
        if secret is None or key not in (secret.data or {}):
            return None
        return base64.b64decode(secret.data[key]).decode()

    def _store(self, body: client.V1Secret, name: str, namespace: str) -> client.V1Secret:
        data = dict(body.data or {})
        for k, v in (body.string_data or {}).items():
            data[k] = base64.b64encode(v.encode()).decode()
        self.put(name, namespace, {})
        stored = self.secrets[(namespace, name)]
        stored.data = data
        return copy.deepcopy(stored)

    async def read_named(self, name, namespace):
        self.calls.append("read")
        if self.read_result is not None:
            return self.read_result
        secret = self.secrets.get((namespace, name))
        if secret is None:
            return SecretLookup.not_found()
        return SecretLookup.found(copy.deepcopy(secret))

    async def create(self, body, namespace):
        self.calls.append("create")
        self.bodies.append(body)
        if self.return_none:
            return None
        if self.write_result is not None:
            return self.write_result
        if (namespace, body.metadata.name) in self.secrets:
            return ApiResponse(status=409, reason="Conflict")
        return ApiResponse(201, "Created", self._store(body, body.metadata.name, namespace))

    async def replace(self, body, name, namespace):
        self.calls.append("replace")
        self.bodies.append(body)
        if self.return_none:
            return None
        if self.write_result is not None:
            return self.write_result
        current = self.secrets.get((namespace, name))
        if current is None:
            return ApiResponse(status=404, reason="Not Found")
        if body.metadata.resource_version != current.metadata.resource_version:
            return ApiResponse(status=409, reason="Conflict")
        return ApiResponse(200, "OK", self._store(body, name, namespace))


@pytest.fixture
def fake_secrets() -> FakeSecretClient:
    return FakeSecretClient()


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    """Credential store in a temp dir, hashing in-process at minimum cost."""
    return CredentialStore(tmp_path / "Artifacts" / "users.htpasswd", BcryptHasher(cost=4))


@pytest.fixture
def synchronizer(fake_secrets) -> SecretSynchronizer:
    return SecretSynchronizer(fake_secrets, SecretConfig())


@pytest.fixture
def provisioner(store, synchronizer) -> Provisioner:
    return Provisioner(store, synchronizer)
