"""Deploy sequence: cache, release, config, readiness, cutover, reload, cleanup."""

import signal
import time

from rell_deploy import config, containers, cutover, lock, log, nginx, proxy, readiness, sweep
from rell_deploy.config import Settings
from rell_deploy.containers import ContainerManager


def deploy_tag(
    manager: ContainerManager,
    settings: Settings,
    tag: str,
    promote: bool = True,
    ready_timeout: float = config.READY_MAX_WAIT,
) -> None:
    """Run the deploy sequence for `tag`.

    Steps run strictly in order and each is attempted once; the first
    exception aborts the rest and propagates. Nothing already done is undone,
    so a failure can leave the new release running but not promoted.
    """
    if not tag:
        raise ValueError("release tag must not be empty")

    name = config.container_name_for_tag(tag)

    log.step(f"ensuring cache container {config.CACHE_CONTAINER_NAME}...")
    manager.ensure_running(config.CACHE_CONTAINER_NAME, containers.cache_spec())

    log.step(f"ensuring release container {name}...")
    record = manager.ensure_running(
        name, lambda: containers.release_spec(tag, config.read_env_file(settings.env_file))
    )
    log.step(f"{name} running at {record.ip_address or '(no address)'}")

    path = nginx.write_upstream_config(settings, tag, record)
    log.step(f"wrote {path}")

    url = readiness.health_url(record.ip_address)
    log.step(f"waiting for {url} (timeout: {ready_timeout:g}s)...")
    ready_start = time.time()
    readiness.wait_until_ready(url, timeout=ready_timeout)
    log.step(f"ready ({time.time() - ready_start:.1f}s)")

    if promote:
        cutover.promote(settings, tag)
        log.step(f"production now points at {name}")

    pid = proxy.reload(settings.nginx_pid_file)
    log.step(f"reloaded nginx (pid {pid})")

    if promote:
        retired = sweep.retire_except(manager, settings, tag)
        log.step(f"cleanup done ({len(retired)} retired)")


def deploy(
    settings: Settings,
    tag: str | None = None,
    promote: bool = True,
    dry_run: bool = False,
) -> int:
    """Deploy under the lock. Returns exit code (0=success, 1=failure, 2=locked)."""
    tag = tag or settings.tag

    if dry_run:
        _dry_run(settings, tag, promote)
        return 0

    if not lock.acquire(settings.lock_file):
        lock_info = lock.read_lock(settings.lock_file)
        pid = lock_info["pid"] if lock_info else "unknown"
        log.error(f"Deploy lock held by PID {pid}")
        return 2

    # Register signal handlers for cleanup
    _original_sigterm = signal.getsignal(signal.SIGTERM)
    _original_sigint = signal.getsignal(signal.SIGINT)

    def _cleanup_handler(signum, frame):
        log.error(f"Received signal {signum}, releasing lock...")
        lock.release(settings.lock_file)
        raise SystemExit(1)

    signal.signal(signal.SIGTERM, _cleanup_handler)
    signal.signal(signal.SIGINT, _cleanup_handler)

    try:
        log.header("deploy")
        log.info(f"tag: {tag}")
        log.info(f"promote: {'yes' if promote else 'no'}")
        log.info("")

        start_time = time.time()
        try:
            manager = ContainerManager.connect(settings.docker_host)
            deploy_tag(manager, settings, tag, promote=promote)
        except Exception as e:
            log.failure(str(e))
            log.info("")
            log.footer("FAILED (deploy aborted)")
            log.error(f"{type(e).__name__}: {e}")
            return 1

        elapsed = time.time() - start_time
        log.success(f"{config.container_name_for_tag(tag)} deployed")
        log.info("")
        log.footer(f"complete ({elapsed:.1f}s)")
    finally:
        lock.release(settings.lock_file)
        signal.signal(signal.SIGTERM, _original_sigterm)
        signal.signal(signal.SIGINT, _original_sigint)

    return 0


def _dry_run(settings: Settings, tag: str, promote: bool) -> None:
    """Show what would happen without executing."""
    name = config.container_name_for_tag(tag)
    log.header("deploy (dry-run)")
    log.info(f"tag: {tag}")
    log.info("")
    log.step(f"would ensure {config.CACHE_CONTAINER_NAME} ({config.CACHE_IMAGE}) is running")
    log.step(f"would ensure {name} ({config.RELEASE_IMAGE}:{tag}) is running")
    log.step(f"would write {nginx.upstream_config_path(settings, name)}")
    log.step(f"would wait up to {config.READY_MAX_WAIT:g}s for {config.HEALTH_PATH}")
    if promote:
        log.step(f"would rewrite {nginx.production_config_path(settings)}")
        log.step(f"would record {tag} in {settings.tag_file}")
    log.step(f"would reload nginx ({settings.nginx_pid_file})")
    if promote:
        log.step(f"would retire release containers other than {name}")
    log.footer("dry-run complete")
