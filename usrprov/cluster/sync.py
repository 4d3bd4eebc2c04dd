"""
Secret synchronizer — push the local htpasswd file into the cluster Secret.

Protocol per sync:
  read Secret -> not found -> create with stringData {key: file}
              -> found     -> replace, fetched object as base, stringData {key: file}
              -> error     -> SyncError

The file is re-read right before each write, under the store lock, so the
pushed value is always a complete snapshot of the local contents. Replace
keeps the fetched resourceVersion, so a concurrent writer elsewhere makes the
API reject us with 409, which surfaces as SyncError. Nothing here retries.
Lock order is Secret then store; the store never takes the Secret lock.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from kubernetes import client

from usrprov.cluster.client import ApiResponse, LookupState, SecretClient
from usrprov.config import SecretConfig
from usrprov.errors import OperationFailed, SyncError
from usrprov.htpasswd.fileio import read_text
from usrprov.locks import get_lock, store_lock

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to execute the operation."


class SyncAction(StrEnum):
    CREATED = "created"
    REPLACED = "replaced"


@dataclass(frozen=True)
class SyncOutcome:
    action: SyncAction
    message: str
    status: int


class SecretSynchronizer:
    """Reconciles one local file into one (name, namespace) Secret."""

    def __init__(self, secret_client: SecretClient, cfg: SecretConfig | None = None):
        self.client = secret_client
        self.cfg = cfg or SecretConfig()

    @property
    def success_message(self) -> str:
        return (
            f"Successfully applied {self.cfg.key} content in '{self.cfg.namespace}' "
            f"namespace using secret '{self.cfg.name}'."
        )

    async def sync(self, local_path: Path) -> str:
        """Push ``local_path`` to the Secret. Returns the confirmation message."""
        outcome = await self.reconcile(local_path)
        return outcome.message

    async def reconcile(self, local_path: Path) -> SyncOutcome:
        name, namespace = self.cfg.name, self.cfg.namespace

        async with get_lock(("secret", namespace, name)):
            lookup = await self.client.read_named(name, namespace)

            if lookup.state == LookupState.ERROR:
                raise SyncError(
                    f"Cannot read secret {namespace}/{name}: {lookup.error or GENERIC_FAILURE}",
                    status=lookup.status,
                    reason=lookup.error,
                )

            # htpasswd rewrites the file in place; wait out any writer first
            async with store_lock(local_path):
                contents = await asyncio.to_thread(read_text, Path(local_path))

            if lookup.state == LookupState.NOT_FOUND:
                action = SyncAction.CREATED
                body = self._new_secret(contents)
                response = await self.client.create(body, namespace)
            else:
                action = SyncAction.REPLACED
                body = self._replacement(lookup.secret, contents)
                response = await self.client.replace(body, name, namespace)

        self._check(response, action)
        logger.info("Secret %s/%s %s (%d bytes)", namespace, name, action, len(contents))
        return SyncOutcome(action=action, message=self.success_message, status=response.status)

    def _new_secret(self, contents: str) -> client.V1Secret:
        return client.V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=client.V1ObjectMeta(name=self.cfg.name, namespace=self.cfg.namespace),
            string_data={self.cfg.key: contents},
        )

    def _replacement(self, fetched: client.V1Secret, contents: str) -> client.V1Secret:
        body = copy.deepcopy(fetched)
        # stringData wins over data for the same key on write
        body.string_data = {self.cfg.key: contents}
        return body

    def _check(self, response: ApiResponse | None, action: SyncAction) -> None:
        if response is None:
            raise OperationFailed(GENERIC_FAILURE)
        if not response.ok:
            reason = response.reason or GENERIC_FAILURE
            logger.warning(
                "Secret %s/%s %s failed: %s %s",
                self.cfg.namespace,
                self.cfg.name,
                "create" if action == SyncAction.CREATED else "replace",
                response.status,
                reason,
            )
            raise SyncError(reason, status=response.status, reason=response.reason)
