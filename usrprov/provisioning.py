"""
Provisioning orchestrator — one create-user request, start to finish.

  validate -> upsert into htpasswd file -> sync file into Secret -> follow-up stages

Steps run strictly in order. The first failure propagates and nothing
downstream runs; the store and synchronizer serialize against concurrent
requests themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from usrprov.cluster.client import KubernetesSecretClient
from usrprov.cluster.sync import SecretSynchronizer
from usrprov.config import Config
from usrprov.htpasswd.store import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Diagnostic output collected from each completed step."""

    username: str
    outputs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"username": self.username, "outputs": list(self.outputs)}


class PostSyncStage(Protocol):
    """Runs after a successful sync. Returns a diagnostic line."""

    name: str

    async def run(self, username: str) -> str: ...


class ApplyTemplatesStage:
    """Placeholder for applying per-user cluster resources; does nothing yet."""

    name = "apply-templates"

    async def run(self, username: str) -> str:
        logger.debug("No creation templates configured for %s", username)
        return f"No creation templates applied for user {username}"


class Provisioner:
    """Sequences credential upsert, Secret sync and follow-up stages."""

    def __init__(
        self,
        store: CredentialStore,
        synchronizer: SecretSynchronizer,
        stages: list[PostSyncStage] | None = None,
    ):
        self.store = store
        self.synchronizer = synchronizer
        self.stages: list[PostSyncStage] = (
            stages if stages is not None else [ApplyTemplatesStage()]
        )

    @classmethod
    def from_config(cls, cfg: Config) -> Provisioner:
        store = CredentialStore.from_config(cfg.store)
        secret_client = KubernetesSecretClient.from_config(cfg.secret)
        return cls(store, SecretSynchronizer(secret_client, cfg.secret))

    async def provision(self, username: str, password: str) -> ProvisionResult:
        result = ProvisionResult(username=username)

        result.outputs.append(await self.store.upsert_user(username, password))
        result.outputs.append(await self.synchronizer.sync(self.store.path))

        for stage in self.stages:
            result.outputs.append(await stage.run(username))

        logger.info("Provisioned user %s", username)
        return result

    async def sync_only(self) -> str:
        """Push the current store file without changing it."""
        return await self.synchronizer.sync(self.store.path)

    async def seed(self, data: str, *, sync: bool = True) -> list[str]:
        """Replace the store file with ``data`` and optionally push it."""
        await self.store.set_contents(data)
        outputs = [f"Wrote {len(data)} bytes to {self.store.path}"]
        if sync:
            outputs.append(await self.synchronizer.sync(self.store.path))
        return outputs
