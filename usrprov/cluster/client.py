"""
Secret client — read/create/replace a namespaced Secret over the cluster API.

Wraps ``kubernetes.client.CoreV1Api``. The generated client is blocking, so
every call runs in a worker thread under a bounded ``asyncio.wait_for``.

Reads come back as a tagged ``SecretLookup`` (found / not_found / error).
Writes come back as an ``ApiResponse`` whose status may be a failure; an
``ApiException`` from a write is folded into that response rather than raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from functools import partial
from http import HTTPStatus
from typing import Any, Protocol

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from usrprov.config import SecretConfig
from usrprov.errors import ConfigError, ProvisioningTimeout, SyncError

logger = logging.getLogger(__name__)

# Outer asyncio bound as a multiple of the socket timeout handed to urllib3
WAIT_FACTOR = 1.5


class LookupState(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class SecretLookup:
    """Result of reading a Secret by name."""

    state: LookupState
    secret: Any = None
    status: int | None = None
    error: str | None = None

    @classmethod
    def found(cls, secret: Any) -> SecretLookup:
        return cls(LookupState.FOUND, secret=secret)

    @classmethod
    def not_found(cls) -> SecretLookup:
        return cls(LookupState.NOT_FOUND, status=404)

    @classmethod
    def failed(cls, status: int | None, error: str) -> SecretLookup:
        return cls(LookupState.ERROR, status=status, error=error)


@dataclass(frozen=True)
class ApiResponse:
    """Transport-level outcome of a create or replace call."""

    status: int
    reason: str = ""
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class SecretClient(Protocol):
    async def read_named(self, name: str, namespace: str) -> SecretLookup: ...

    async def create(self, body: Any, namespace: str) -> ApiResponse | None: ...

    async def replace(self, body: Any, name: str, namespace: str) -> ApiResponse | None: ...


def load_kube_config(mode: str = "incluster") -> None:
    """Load cluster credentials: service account token in-cluster, or ~/.kube/config."""
    try:
        if mode == "kubeconfig":
            config.load_kube_config()
        else:
            config.load_incluster_config()
    except ConfigException as e:
        raise ConfigError(f"Cannot load {mode} cluster credentials: {e}") from e


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def _is_timeout(exc: BaseException | None) -> bool:
    if isinstance(exc, urllib3.exceptions.MaxRetryError):
        return _is_timeout(exc.reason)
    # NewConnectionError subclasses ConnectTimeoutError but means refused or unresolvable
    if isinstance(exc, urllib3.exceptions.NewConnectionError):
        return False
    return isinstance(exc, urllib3.exceptions.TimeoutError)


class KubernetesSecretClient:
    """SecretClient backed by the official kubernetes Python client."""

    def __init__(self, api: client.CoreV1Api, timeout: float = 15.0):
        self.api = api
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: SecretConfig) -> KubernetesSecretClient:
        load_kube_config(cfg.kube_auth)
        api = client.CoreV1Api()
        logger.info(
            "Cluster client initialized for %s (%s credentials)",
            api.api_client.configuration.host,
            cfg.kube_auth,
        )
        return cls(api, timeout=cfg.api_timeout)

    async def _call(self, fn, *args: Any) -> Any:
        call = partial(fn, *args, _request_timeout=self.timeout)
        # urllib3's own timeout normally fires first and ends the worker thread.
        # If wait_for fires instead, the thread keeps running and a write may
        # still land after the caller has released its lock.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(call), timeout=self.timeout * WAIT_FACTOR
            )
        except TimeoutError as e:
            raise ProvisioningTimeout(
                f"Cluster API call did not finish within {self.timeout * WAIT_FACTOR:g}s"
            ) from e
        except urllib3.exceptions.HTTPError as e:
            if _is_timeout(e):
                raise ProvisioningTimeout(f"Cluster API call timed out: {e}") from e
            raise SyncError(f"Cluster API unreachable: {e}") from e

    async def read_named(self, name: str, namespace: str) -> SecretLookup:
        try:
            secret = await self._call(self.api.read_namespaced_secret, name, namespace)
        except ApiException as e:
            if e.status == 404:
                return SecretLookup.not_found()
            return SecretLookup.failed(e.status, e.reason or _reason(e.status or 0))
        return SecretLookup.found(secret)

    async def _write(self, fn, *args: Any) -> ApiResponse | None:
        try:
            result = await self._call(fn, *args)
        except ApiException as e:
            return ApiResponse(status=e.status or 0, reason=e.reason or "", body=e.body)
        if result is None:
            return None
        data, status, _headers = result
        return ApiResponse(status=status, reason=_reason(status), body=data)

    async def create(self, body: Any, namespace: str) -> ApiResponse | None:
        return await self._write(self.api.create_namespaced_secret_with_http_info, namespace, body)

    async def replace(self, body: Any, name: str, namespace: str) -> ApiResponse | None:
        return await self._write(
            self.api.replace_namespaced_secret_with_http_info, name, namespace, body
        )
