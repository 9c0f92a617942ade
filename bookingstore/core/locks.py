from __future__ import annotations

import asyncio
import weakref
from pathlib import Path

# event loop -> resolved file path -> lock
_LOCKS: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)


def collection_lock(path: Path | str) -> asyncio.Lock:
    """Lock serializing read-modify-write cycles on one backing file.

    Every store over the same file gets the same lock; different files never
    contend. Locks are per event loop since an ``asyncio.Lock`` cannot be
    shared across loops. Must be called from a running loop.
    """
    loop = asyncio.get_running_loop()
    per_loop = _LOCKS.setdefault(loop, {})
    key = str(Path(path).resolve())
    lock = per_loop.get(key)
    if lock is None:
        lock = per_loop[key] = asyncio.Lock()
    return lock
