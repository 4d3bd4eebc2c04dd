"""
Credential hashers — write a bcrypt entry for one user into an htpasswd file.

Two interchangeable implementations behind ``CredentialHasher.apply``:

  HtpasswdToolHasher  runs the Apache ``htpasswd`` binary (default)
  BcryptHasher        hashes in-process with the ``bcrypt`` library

Both produce ``$2y$`` bcrypt hashes and return a short human-readable status
line, like ``Adding password for user alice``.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from pathlib import Path
from typing import Protocol

import bcrypt

from usrprov.config import StoreConfig
from usrprov.errors import CredentialToolError, ProvisioningTimeout
from usrprov.htpasswd.fileio import atomic_write_text, read_text, upsert_line

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72


class HashMode(StrEnum):
    CREATE = "create"
    UPDATE = "update"


class CredentialHasher(Protocol):
    async def apply(self, path: Path, username: str, password: str, mode: HashMode) -> str: ...


class HtpasswdToolHasher:
    """Run ``htpasswd -B -b`` as a subprocess, with ``-c`` in create mode."""

    def __init__(self, binary: str = "htpasswd", cost: int = 10, timeout: float = 10.0):
        self.binary = binary
        self.cost = cost
        self.timeout = timeout

    def build_args(self, path: Path, username: str, password: str, mode: HashMode) -> list[str]:
        args = [self.binary]
        if mode == HashMode.CREATE:
            args.append("-c")
        args += ["-B", "-C", str(self.cost), "-b", str(path), username, password]
        return args

    async def apply(self, path: Path, username: str, password: str, mode: HashMode) -> str:
        args = self.build_args(path, username, password, mode)
        logger.debug("Running %s (%s) for user %s", self.binary, mode, username)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CredentialToolError(f"Failed to start {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise ProvisioningTimeout(
                f"{self.binary} did not finish within {self.timeout:g}s"
            ) from e

        out = stdout.decode("utf-8", errors="replace").strip()
        err = stderr.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            raise CredentialToolError(
                f"{self.binary} exited with code {proc.returncode}: {err or out}",
                returncode=proc.returncode,
                stderr=err,
            )
        # htpasswd reports "Adding password for user ..." on stderr
        return out or err


class BcryptHasher:
    """Hash in-process and rewrite the file atomically."""

    def __init__(self, cost: int = 10):
        self.cost = cost

    def hash_password(self, password: str) -> str:
        secret = password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
        hashed = bcrypt.hashpw(secret, bcrypt.gensalt(rounds=self.cost)).decode("ascii")
        # Match the $2y$ prefix htpasswd writes; verifiers treat 2b/2y alike
        return "$2y$" + hashed[4:]

    def _apply_sync(self, path: Path, username: str, password: str, mode: HashMode) -> str:
        hashed = self.hash_password(password)
        if mode == HashMode.CREATE:
            contents, replaced = f"{username}:{hashed}\n", False
        else:
            contents, replaced = upsert_line(read_text(path), username, hashed)
        atomic_write_text(path, contents)
        verb = "Updating" if replaced else "Adding"
        return f"{verb} password for user {username}"

    async def apply(self, path: Path, username: str, password: str, mode: HashMode) -> str:
        return await asyncio.to_thread(self._apply_sync, path, username, password, mode)


def build_hasher(cfg: StoreConfig) -> CredentialHasher:
    """Pick the hasher named by ``cfg.hasher``."""
    if cfg.hasher == "bcrypt":
        return BcryptHasher(cost=cfg.bcrypt_cost)
    return HtpasswdToolHasher(
        binary=cfg.htpasswd_bin, cost=cfg.bcrypt_cost, timeout=cfg.tool_timeout
    )
