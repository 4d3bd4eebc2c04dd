"""Per-resource asyncio locks shared by the store and the synchronizer."""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from pathlib import Path

# In-memory lock registry, one lock per resource key
_locks: dict[Hashable, asyncio.Lock] = {}


def get_lock(key: Hashable) -> asyncio.Lock:
    """Return the lock guarding ``key``, creating it on first use."""
    if key not in _locks:
        _locks[key] = asyncio.Lock()
    return _locks[key]


def store_lock(path: Path) -> asyncio.Lock:
    """Lock for one htpasswd file. Writers and snapshot readers both hold it."""
    return get_lock(("store", str(Path(path).resolve())))


def reset_locks() -> None:
    """Drop all registered locks (for testing across event loops)."""
    _locks.clear()
