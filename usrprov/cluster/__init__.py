"""Cluster side of provisioning: the Secret client and the synchronizer."""

from __future__ import annotations

from usrprov.cluster.client import (
    ApiResponse,
    KubernetesSecretClient,
    LookupState,
    SecretClient,
    SecretLookup,
    load_kube_config,
)
from usrprov.cluster.sync import SecretSynchronizer, SyncAction, SyncOutcome

__all__ = [
    "ApiResponse",
    "KubernetesSecretClient",
    "LookupState",
    "SecretClient",
    "SecretLookup",
    "SecretSynchronizer",
    "SyncAction",
    "SyncOutcome",
    "load_kube_config",
]
