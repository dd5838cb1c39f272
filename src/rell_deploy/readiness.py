"""Poll a release container's health endpoint until it answers."""

import time

import httpx

from rell_deploy import config

REQUEST_TIMEOUT = 2.0


class ReadinessTimeout(RuntimeError):
    """No health check succeeded before the deadline."""

    def __init__(self, url: str, timeout: float, last_error: Exception | None):
        self.url = url
        self.timeout = timeout
        self.last_error = last_error
        super().__init__(f"{url} not ready after {timeout:g}s: {last_error}")


def health_url(ip_address: str, port: int = config.RELEASE_PORT, path: str = config.HEALTH_PATH) -> str:
    return f"http://{ip_address}:{port}{path}"


def wait_until_ready(
    url: str,
    timeout: float = config.READY_MAX_WAIT,
    interval: float = config.READY_POLL_INTERVAL,
    transport: httpx.BaseTransport | None = None,
) -> None:
    """HEAD `url` until any response comes back.

    Transport errors are retried every `interval` seconds. Raises
    ReadinessTimeout with the last error once `timeout` has elapsed.
    """
    deadline = time.monotonic() + timeout
    last_error = None

    with httpx.Client(timeout=REQUEST_TIMEOUT, transport=transport) as client:
        while True:
            try:
                client.head(url)
                return
            except httpx.HTTPError as e:
                last_error = e

            if time.monotonic() >= deadline:
                raise ReadinessTimeout(url, timeout, last_error)
            time.sleep(interval)
