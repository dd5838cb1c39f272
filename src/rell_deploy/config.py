"""Deploy settings: defaults, optional YAML file, environment overrides."""

import os
from dataclasses import dataclass, fields, replace

import yaml

RELEASE_IMAGE = "daaku/rell"
RELEASE_CONTAINER_PREFIX = "rell-"
RELEASE_PORT = 43600
RELEASE_USER = "15151"
RELEASE_TAG_LABEL = "rell.deploy.tag"

CACHE_IMAGE = "daaku/redis"
CACHE_CONTAINER_NAME = "redis"
CACHE_DATA_BIND = "/var/lib/redis:/data"
CACHE_CONTAINER_LINK = "redis:redis"

PROD_NGINX_CONF_FILE = "rell-prod.conf"
HEALTH_PATH = "/info/"
READY_MAX_WAIT = 60.0
READY_POLL_INTERVAL = 0.025
STOP_TIMEOUT = 30

ENV_VARS = {
    "docker_host": "DOCKER_HOST",
    "server_suffix": "SERVER_SUFFIX",
    "cert_file": "CERT_FILE",
    "key_file": "KEY_FILE",
    "tag": "TAG",
    "env_file": "RELL_ENV_FILE",
    "nginx_conf_dir": "NGINX_CONF_DIR",
    "nginx_pid_file": "NGINX_PID_FILE",
    "tag_file": "LAST_TAG_FILE",
    "lock_file": "DEPLOY_LOCK_FILE",
}


class ConfigError(ValueError):
    """Invalid settings file or value."""


@dataclass(frozen=True)
class Settings:
    docker_host: str = "unix:///var/run/docker.sock"
    server_suffix: str = "minetti.fbrell.com"
    cert_file: str = "/etc/nginx/cert/star-minetti-cert.pem"
    key_file: str = "/etc/nginx/cert/star-minetti-key.pem"
    tag: str = "latest"
    env_file: str = "/etc/conf.d/rell"
    nginx_conf_dir: str = "/etc/nginx/server"
    nginx_pid_file: str = "/run/nginx.pid"
    tag_file: str = "/var/lib/rell/production-tag"
    lock_file: str = "/var/lib/rell/.deploy-lock"


def container_name_for_tag(tag: str) -> str:
    return f"{RELEASE_CONTAINER_PREFIX}{tag}"


def _read_settings_file(path: str) -> dict:
    """Read a YAML mapping of setting names to values."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown settings: {', '.join(unknown)}")

    return {k: str(v) for k, v in data.items() if v is not None}


def load_settings(path: str | None = None, environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from defaults, then the settings file, then the environment.

    Empty environment values count as unset.
    """
    if environ is None:
        environ = dict(os.environ)

    settings = Settings()
    if path:
        settings = replace(settings, **_read_settings_file(path))

    overrides = {}
    for field_name, var in ENV_VARS.items():
        value = environ.get(var, "")
        if value:
            overrides[field_name] = value
    return replace(settings, **overrides)


def read_env_file(path: str) -> list[str]:
    """Read a newline-delimited KEY=VALUE file, skipping blank lines."""
    with open(path) as f:
        return [line.strip() for line in f if line.strip()]
