"""
htpasswd credential store.

Public API:
    CredentialStore.from_config(cfg).upsert_user(user, pw)  → hasher output
    CredentialStore.set_contents(raw)                       → atomic replace
    CredentialStore.read_contents()                         → file text
"""

from __future__ import annotations

from usrprov.htpasswd.hashers import (
    BcryptHasher,
    CredentialHasher,
    HashMode,
    HtpasswdToolHasher,
    build_hasher,
)
from usrprov.htpasswd.store import CredentialStore, validate_credentials

__all__ = [
    "BcryptHasher",
    "CredentialHasher",
    "CredentialStore",
    "HashMode",
    "HtpasswdToolHasher",
    "build_hasher",
    "validate_credentials",
]
