"""
User provisioning API — FastAPI service in front of the provisioning pipeline.

Every pipeline error kind maps to its own HTTP status; a request only gets a
200 when every step actually succeeded.

Start:
  usrprov serve
  # or
  uvicorn usrprov.api.service:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from usrprov import __version__
from usrprov.errors import (
    ConfigError,
    CredentialToolError,
    OperationFailed,
    ProvisioningError,
    ProvisioningTimeout,
    StoreIOError,
    SyncError,
    ValidationError,
)
from usrprov.provisioning import Provisioner

logger = logging.getLogger(__name__)

# Module-level reference set by init_service() or the lifespan
_provisioner: Provisioner | None = None


def init_service(provisioner: Provisioner | None) -> None:
    """Install the provisioner used by the endpoints (tests inject fakes here)."""
    global _provisioner
    _provisioner = provisioner


def get_provisioner() -> Provisioner:
    if _provisioner is None:
        raise OperationFailed("Provisioning service not initialized")
    return _provisioner


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _provisioner is None:
        from usrprov.config import get_config

        init_service(Provisioner.from_config(get_config()))
    logger.info("Credential store: %s", get_provisioner().store.path)
    yield


app = FastAPI(
    title="usrprov",
    description="Provision htpasswd users and sync them into the cluster Secret.",
    version=__version__,
    lifespan=lifespan,
)


# ─── Error mapping ───────────────────────────────────────────────────

_STATUS_BY_ERROR: list[tuple[type[ProvisioningError], int]] = [
    (ValidationError, 400),
    (CredentialToolError, 502),
    (StoreIOError, 500),
    (OperationFailed, 502),
    (ProvisioningTimeout, 504),
    (ConfigError, 500),
]


def status_for(exc: ProvisioningError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(exc, SyncError):
        if exc.status in (403, 409):
            return exc.status
        return 502
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


@app.exception_handler(ProvisioningError)
async def provisioning_error_handler(request: Request, exc: ProvisioningError) -> JSONResponse:
    status = status_for(exc)
    logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc)
    return JSONResponse({"error": exc.message, "kind": exc.kind}, status_code=status)


# ─── Pydantic Models ─────────────────────────────────────────────────


class CreateUserRequest(BaseModel):
    username: str
    password: str


class SeedRequest(BaseModel):
    content: str
    sync: bool = Field(True, description="Push the new file to the Secret afterwards")


# ─── Endpoints ───────────────────────────────────────────────────────


@app.get("/health")
async def health():
    store = get_provisioner().store
    return {"status": "ok", "store": {"path": str(store.path), "exists": store.exists()}}


@app.get("/api/v1/usr/init")
async def init():
    """Report where the store lives and which Secret it feeds."""
    provisioner = get_provisioner()
    secret = provisioner.synchronizer.cfg
    return {
        "status": "ok",
        "store": {
            "path": str(provisioner.store.path),
            "exists": provisioner.store.exists(),
            "users": await provisioner.store.list_usernames(),
        },
        "secret": {"name": secret.name, "namespace": secret.namespace, "key": secret.key},
    }


@app.post("/api/v1/usr")
async def create_user(body: CreateUserRequest):
    result = await get_provisioner().provision(body.username, body.password)
    return {"status": "ok", **result.to_dict()}


@app.post("/api/v1/usr/sync")
async def sync_store():
    message = await get_provisioner().sync_only()
    return {"status": "ok", "outputs": [message]}


@app.put("/api/v1/usr/htpasswd")
async def seed_store(body: SeedRequest):
    outputs = await get_provisioner().seed(body.content, sync=body.sync)
    return {"status": "ok", "outputs": outputs}
