"""Advisory deploy lock held with flock(2) on a PID file."""

import fcntl
import json
import os
import time

# path -> open fd carrying the flock, for locks this process holds
_held: dict[str, int] = {}


def acquire(path: str) -> bool:
    """Acquire the deploy lock. Returns True if acquired, False if held by another holder.

    The kernel drops the flock when its holder exits, so a lock file left
    behind by a dead process never blocks the next deploy.
    """
    if path in _held:
        return False

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        return False

    payload = json.dumps({"pid": os.getpid(), "timestamp": time.time()}).encode()
    os.ftruncate(fd, 0)
    os.pwrite(fd, payload, 0)
    _held[path] = fd
    return True


def release(path: str) -> None:
    """Release the deploy lock if this process holds it."""
    fd = _held.pop(path, None)
    if fd is None:
        return
    try:
        # file stays in place; unlinking would let a waiter lock a stale inode
        os.ftruncate(fd, 0)
        fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def read_lock(path: str) -> dict | None:
    """Read the holder info recorded in the lock file, or None."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None
