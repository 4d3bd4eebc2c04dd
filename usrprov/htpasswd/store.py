"""
Credential store — the single htpasswd file the cluster Secret is built from.

All mutations and snapshot reads of one file go through the same asyncio lock
(keyed by the resolved path), so concurrent upserts for different users never
interleave and no reader sees a half-written file.
Whether the file exists is checked against disk under that lock on every
upsert rather than cached.
"""

from __future__ import annotations

import asyncio
import logging
import unicodedata
from pathlib import Path

from usrprov.config import StoreConfig
from usrprov.errors import StoreIOError, ValidationError
from usrprov.htpasswd.fileio import atomic_write_text, read_text, usernames
from usrprov.htpasswd.hashers import CredentialHasher, HashMode, build_hasher
from usrprov.locks import store_lock

logger = logging.getLogger(__name__)


def _has_control(value: str) -> bool:
    # Cc covers \r \n \x0b \x0c \x1c-\x1e \x85; Zl/Zp are U+2028/U+2029
    return any(unicodedata.category(c) in ("Cc", "Zl", "Zp") for c in value)


def validate_credentials(username: str, password: str) -> None:
    """Reject input that is empty or would break the ``user:hash`` line format."""
    if not username or not username.strip():
        raise ValidationError("username is required")
    if not password:
        raise ValidationError("password is required")
    if ":" in username:
        raise ValidationError("username must not contain ':'")
    if _has_control(username) or _has_control(password):
        raise ValidationError(
            "username and password must not contain control characters or line separators"
        )


class CredentialStore:
    """Owns one htpasswd file and offers upsert-by-username."""

    def __init__(self, path: Path, hasher: CredentialHasher):
        self.path = Path(path)
        self.hasher = hasher

    @classmethod
    def from_config(cls, cfg: StoreConfig) -> CredentialStore:
        return cls(cfg.path, build_hasher(cfg))

    @property
    def content_dir(self) -> Path:
        return self.path.parent

    @property
    def _lock(self) -> asyncio.Lock:
        return store_lock(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    async def upsert_user(self, username: str, password: str) -> str:
        """Create or update ``username``'s entry. Returns the hasher's status output."""
        validate_credentials(username, password)

        async with self._lock:
            if self.exists():
                mode = HashMode.UPDATE
            else:
                mode = HashMode.CREATE
                try:
                    self.content_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise StoreIOError(f"Cannot create {self.content_dir}: {e}") from e

            output = await self.hasher.apply(self.path, username, password, mode)

        logger.info("Upserted user %s into %s (%s)", username, self.path, mode)
        return output

    async def set_contents(self, data: str) -> bool:
        """Replace the whole file with ``data`` atomically. Returns True if the file exists."""
        async with self._lock:
            await asyncio.to_thread(atomic_write_text, self.path, data)
        logger.info("Replaced %s (%d bytes)", self.path, len(data))
        return self.exists()

    async def read_contents(self) -> str:
        """Full file contents, or an empty string if the store has not been created.

        Taken under the write lock, so an in-place rewrite is never seen half done.
        """
        async with self._lock:
            if not self.exists():
                return ""
            return await asyncio.to_thread(read_text, self.path)

    async def list_usernames(self) -> list[str]:
        return usernames(await self.read_contents())
