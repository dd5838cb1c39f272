"""Docker inspect/create/start/stop/rm/ps, with name-based idempotency."""

import json
from collections.abc import Callable
from dataclasses import dataclass, field

from rell_deploy import config, process

_NOT_FOUND_MARKERS = ("No such container", "No such object")


class DockerError(RuntimeError):
    """A docker command failed."""

    def __init__(self, args: list[str], stderr: str):
        self.command = args
        self.stderr = stderr.strip()
        super().__init__(f"{' '.join(args)}: {self.stderr or 'failed'}")


class ContainerNotFound(DockerError):
    """The runtime has no container (or object) by that name or id."""


@dataclass
class ContainerSpec:
    image: str
    user: str | None = None
    env: list[str] = field(default_factory=list)
    binds: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ContainerRecord:
    id: str
    name: str
    image: str
    running: bool
    ip_address: str
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_inspect(cls, data: dict) -> "ContainerRecord":
        cfg = data.get("Config") or {}
        state = data.get("State") or {}
        net = data.get("NetworkSettings") or {}

        ip = net.get("IPAddress") or ""
        if not ip:
            # user-defined networks only report addresses per network
            for attached in (net.get("Networks") or {}).values():
                if attached.get("IPAddress"):
                    ip = attached["IPAddress"]
                    break

        return cls(
            id=data.get("Id", ""),
            name=data.get("Name", "").lstrip("/"),
            image=cfg.get("Image", ""),
            running=bool(state.get("Running")),
            ip_address=ip,
            labels=cfg.get("Labels") or {},
        )


@dataclass
class ContainerSummary:
    id: str
    names: list[str]
    image: str
    state: str
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_ps(cls, row: dict) -> "ContainerSummary":
        names = [n.lstrip("/") for n in row.get("Names", "").split(",") if n]
        return cls(
            id=row.get("ID", ""),
            names=names,
            image=row.get("Image", ""),
            state=row.get("State", ""),
            labels=_parse_labels(row.get("Labels", "")),
        )


def _parse_labels(raw: str) -> dict[str, str]:
    """Parse docker ps label output: "k1=v1,k2=v2"."""
    labels = {}
    for item in raw.split(","):
        if not item:
            continue
        k, _, v = item.partition("=")
        labels[k] = v
    return labels


def release_tag(summary: ContainerSummary) -> str | None:
    """Return the release tag a container was created for.

    Prefers the tag label; containers created without it fall back to the
    name prefix convention.
    """
    tag = summary.labels.get(config.RELEASE_TAG_LABEL)
    if tag:
        return tag
    for name in summary.names:
        if name.startswith(config.RELEASE_CONTAINER_PREFIX):
            return name[len(config.RELEASE_CONTAINER_PREFIX):] or None
    return None


def is_release_image(image: str) -> bool:
    return image.startswith(config.RELEASE_IMAGE + ":")


class ContainerManager:
    """Handle to the container runtime at a fixed DOCKER_HOST."""

    def __init__(self, docker_host: str):
        self.docker_host = docker_host

    @classmethod
    def connect(cls, docker_host: str) -> "ContainerManager":
        """Return a manager after verifying the daemon answers."""
        manager = cls(docker_host)
        manager._docker(["version", "--format", "{{.Server.Version}}"])
        return manager

    def _docker(self, args: list[str]) -> str:
        cmd = ["docker"] + args
        result = process.run(cmd, env={"DOCKER_HOST": self.docker_host})
        if not result.ok:
            if any(m in result.stderr for m in _NOT_FOUND_MARKERS):
                raise ContainerNotFound(cmd, result.stderr)
            raise DockerError(cmd, result.stderr)
        return result.stdout

    def inspect(self, name: str) -> ContainerRecord:
        out = self._docker(["inspect", "--type", "container", name])
        data = json.loads(out)
        if not data:
            raise ContainerNotFound(["docker", "inspect", name], f"No such container: {name}")
        return ContainerRecord.from_inspect(data[0])

    def create(self, name: str, spec: ContainerSpec) -> str:
        args = ["create", "--name", name]
        if spec.user:
            args += ["--user", spec.user]
        for e in spec.env:
            args += ["--env", e]
        for b in spec.binds:
            args += ["--volume", b]
        for link in spec.links:
            args += ["--link", link]
        for k, v in sorted(spec.labels.items()):
            args += ["--label", f"{k}={v}"]
        args.append(spec.image)
        return self._docker(args).strip()

    def start(self, container_id: str) -> None:
        self._docker(["start", container_id])

    def stop(self, container_id: str, timeout: int = config.STOP_TIMEOUT) -> None:
        self._docker(["stop", "--time", str(timeout), container_id])

    def remove(self, container_id: str) -> None:
        self._docker(["rm", container_id])

    def list_all(self) -> list[ContainerSummary]:
        """List every container, running or not."""
        out = self._docker(["ps", "--all", "--no-trunc", "--format", "{{json .}}"])
        return [
            ContainerSummary.from_ps(json.loads(line))
            for line in out.splitlines()
            if line.strip()
        ]

    def ensure_running(
        self, name: str, spec: ContainerSpec | Callable[[], ContainerSpec]
    ) -> ContainerRecord:
        """Make sure a container called `name` is running.

        A running container is left alone. An existing container that is not
        running is removed and recreated from `spec`, never restarted in
        place. `spec` may be a callable, which is only invoked when a
        container has to be created. Returns the inspected record of the
        running container.
        """
        try:
            record = self.inspect(name)
        except ContainerNotFound:
            record = None

        if record is not None and record.running:
            return record

        if record is not None:
            self.remove(name)

        if callable(spec):
            spec = spec()
        container_id = self.create(name, spec)
        self.start(container_id)
        return self.inspect(name)


def cache_spec() -> ContainerSpec:
    return ContainerSpec(image=config.CACHE_IMAGE, binds=[config.CACHE_DATA_BIND])


def release_spec(tag: str, env: list[str]) -> ContainerSpec:
    return ContainerSpec(
        image=f"{config.RELEASE_IMAGE}:{tag}",
        user=config.RELEASE_USER,
        env=list(env),
        links=[config.CACHE_CONTAINER_LINK],
        labels={config.RELEASE_TAG_LABEL: tag},
    )
