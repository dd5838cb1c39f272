"""Retire every release container except the promoted one."""

import os

from rell_deploy import config, log, nginx
from rell_deploy.config import Settings
from rell_deploy.containers import (
    ContainerManager,
    DockerError,
    is_release_image,
    release_tag,
)


class CleanupError(RuntimeError):
    """More than one release container could not be removed."""

    def __init__(self, errors: list[Exception]):
        self.errors = errors
        super().__init__("multiple errors: " + " | ".join(str(e) for e in errors))


def retire_except(manager: ContainerManager, settings: Settings, current_tag: str) -> list[str]:
    """Remove release containers and configs whose tag is not `current_tag`.

    Every stale container is attempted. Stop failures are ignored; removal
    failures are collected and raised once the whole list has been processed.
    Returns the names of the retired containers.
    """
    retired = []
    errors: list[Exception] = []

    for summary in manager.list_all():
        if not is_release_image(summary.image):
            continue

        tag = release_tag(summary)
        if tag is None or tag == current_tag:
            continue

        name = config.container_name_for_tag(tag)
        try:
            os.remove(nginx.upstream_config_path(settings, name))
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning(f"could not remove config for {name}: {e}")

        try:
            manager.stop(summary.id, timeout=config.STOP_TIMEOUT)
        except DockerError as e:
            log.warning(f"stop {name} failed, removing anyway: {e}")

        try:
            manager.remove(summary.id)
        except DockerError as e:
            log.failure(f"could not remove {name}: {e}")
            errors.append(e)
            continue

        log.step(f"retired {name}")
        retired.append(name)

    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise CleanupError(errors)
    return retired
