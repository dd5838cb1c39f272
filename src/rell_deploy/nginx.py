"""Render and write the per-release and production nginx configs."""

import os
from dataclasses import asdict, dataclass
from typing import TextIO

from jinja2 import Environment, StrictUndefined

from rell_deploy import config
from rell_deploy.config import Settings
from rell_deploy.containers import ContainerRecord

_SSL_CIPHERS = (
    "kEECDH+ECDSA+AES128 kEECDH+ECDSA+AES256 kEECDH+AES128 kEECDH+AES256 "
    "kEDH+AES128 kEDH+AES256 DES-CBC3-SHA +SHA !aNULL !eNULL !LOW !MD5 !EXP "
    "!DSS !PSK !SRP !kECDH !CAMELLIA !RC4 !SEED"
)

UPSTREAM_TEMPLATE = """\
upstream {{ backend_name }} {
  server               {{ ip_address }}:{{ port }};
}
server {
  listen               [::]:80;
  server_name          {{ server_name }};
  charset              utf-8;
  access_log           off;

  location / {
    proxy_pass         http://{{ backend_name }};
    proxy_set_header   X-Forwarded-For         $remote_addr;
    proxy_set_header   X-Forwarded-Proto       http;
    proxy_set_header   X-Forwarded-Host        $host;
  }
}
server {
  listen               [::]:443 ssl;
  server_name          {{ server_name }};
  ssl_certificate      {{ cert_file }};
  ssl_certificate_key  {{ key_file }};
  ssl_prefer_server_ciphers on;
  ssl_ciphers '{{ ssl_ciphers }}';
  ssl_session_cache    shared:SSL:10m;
  ssl_session_timeout  10m;
  keepalive_timeout    70;
  ssl_buffer_size      1400;

  charset              utf-8;
  access_log           off;

  location / {
    proxy_pass         http://{{ backend_name }};
    proxy_set_header   X-Forwarded-For         $remote_addr;
    proxy_set_header   X-Forwarded-Proto       https;
    proxy_set_header   X-Forwarded-Host        $host;
  }
}
"""

PRODUCTION_TEMPLATE = """\
server {
  listen               [::]:80;
  server_name          {{ server_suffix }};

  location / {
    rewrite (.*) http://www.{{ server_suffix }}$1 permanent;
  }
}
server {
  listen               [::]:443 ssl;
  server_name          {{ server_suffix }};
  ssl_certificate      {{ cert_file }};
  ssl_certificate_key  {{ key_file }};
  ssl_prefer_server_ciphers on;
  ssl_ciphers '{{ ssl_ciphers }}';

  location / {
    rewrite (.*) https://www.{{ server_suffix }}$1 permanent;
  }
}
server {
  listen               [::]:80;
  server_name          www.{{ server_suffix }};
  charset              utf-8;
  access_log           off;

  location / {
    proxy_pass         http://{{ backend_name }};
    proxy_set_header   X-Forwarded-For         $remote_addr;
    proxy_set_header   X-Forwarded-Proto       http;
    proxy_set_header   X-Forwarded-Host        $host;
  }
}
server {
  listen               [::]:443 ssl ipv6only=off;
  server_name          www.{{ server_suffix }};
  ssl_certificate      {{ cert_file }};
  ssl_certificate_key  {{ key_file }};
  ssl_prefer_server_ciphers on;
  ssl_ciphers '{{ ssl_ciphers }}';
  ssl_session_cache    shared:SSL:10m;
  ssl_session_timeout  10m;
  keepalive_timeout    70;
  ssl_buffer_size      1400;

  charset              utf-8;
  access_log           off;

  location / {
    proxy_pass         http://{{ backend_name }};
    proxy_set_header   X-Forwarded-For         $remote_addr;
    proxy_set_header   X-Forwarded-Proto       https;
    proxy_set_header   X-Forwarded-Host        $host;
  }
}
"""

# Compiled at import so a broken template fails before any deploy starts.
_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
_upstream = _env.from_string(UPSTREAM_TEMPLATE)
_production = _env.from_string(PRODUCTION_TEMPLATE)


@dataclass
class UpstreamParams:
    backend_name: str
    server_name: str
    ip_address: str
    port: int
    cert_file: str
    key_file: str


@dataclass
class ProductionParams:
    server_suffix: str
    backend_name: str
    cert_file: str
    key_file: str


def render_upstream(params: UpstreamParams, out: TextIO) -> None:
    for chunk in _upstream.generate(ssl_ciphers=_SSL_CIPHERS, **asdict(params)):
        out.write(chunk)


def render_production(params: ProductionParams, out: TextIO) -> None:
    for chunk in _production.generate(ssl_ciphers=_SSL_CIPHERS, **asdict(params)):
        out.write(chunk)


def upstream_config_path(settings: Settings, container_name: str) -> str:
    return os.path.join(settings.nginx_conf_dir, container_name + ".conf")


def production_config_path(settings: Settings) -> str:
    return os.path.join(settings.nginx_conf_dir, config.PROD_NGINX_CONF_FILE)


def upstream_params(settings: Settings, tag: str, record: ContainerRecord) -> UpstreamParams:
    return UpstreamParams(
        backend_name=config.container_name_for_tag(tag),
        server_name=f"{tag}.{settings.server_suffix}",
        ip_address=record.ip_address,
        port=config.RELEASE_PORT,
        cert_file=settings.cert_file,
        key_file=settings.key_file,
    )


def production_params(settings: Settings, tag: str) -> ProductionParams:
    return ProductionParams(
        server_suffix=settings.server_suffix,
        backend_name=config.container_name_for_tag(tag),
        cert_file=settings.cert_file,
        key_file=settings.key_file,
    )


def _write(path: str, render, params) -> str:
    """Overwrite `path` with a render; remove it again if anything fails."""
    f = open(path, "w")
    try:
        with f:
            render(params, f)
    except BaseException:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        raise
    return path


def write_upstream_config(settings: Settings, tag: str, record: ContainerRecord) -> str:
    """Write rell-<tag>.conf pointing at the container's address."""
    path = upstream_config_path(settings, config.container_name_for_tag(tag))
    return _write(path, render_upstream, upstream_params(settings, tag, record))


def write_production_config(settings: Settings, tag: str) -> str:
    """Rewrite the production vhost to forward to the release for `tag`."""
    return _write(production_config_path(settings), render_production, production_params(settings, tag))
