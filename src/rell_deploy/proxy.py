"""Signal the nginx master process to reload its configuration."""

import os
import signal


class ProxyReloadError(RuntimeError):
    """The proxy could not be located or signalled."""


def read_pid(pid_file: str) -> int:
    try:
        with open(pid_file) as f:
            raw = f.read()
    except OSError as e:
        raise ProxyReloadError(f"cannot read pid file {pid_file}: {e}") from e

    try:
        return int(raw.strip())
    except ValueError as e:
        raise ProxyReloadError(f"invalid pid in {pid_file}: {raw.strip()!r}") from e


def reload(pid_file: str) -> int:
    """Send SIGHUP to the process in `pid_file`. Returns the pid signalled."""
    pid = read_pid(pid_file)
    try:
        os.kill(pid, signal.SIGHUP)
    except OSError as e:
        raise ProxyReloadError(f"cannot signal nginx (pid {pid}): {e}") from e
    return pid
