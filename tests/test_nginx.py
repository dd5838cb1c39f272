"""Tests for nginx.py — config rendering and writing."""

import io
import os

import pytest
from jinja2 import UndefinedError

from rell_deploy import nginx
from rell_deploy.containers import ContainerRecord


def _record(ip="172.17.0.5"):
    return ContainerRecord(id="abc", name="rell-v42", image="daaku/rell:v42", running=True, ip_address=ip)


def test_render_upstream():
    out = io.StringIO()
    nginx.render_upstream(
        nginx.UpstreamParams(
            backend_name="rell-v42",
            server_name="v42.example.com",
            ip_address="172.17.0.5",
            port=43600,
            cert_file="/c.pem",
            key_file="/k.pem",
        ),
        out,
    )
    text = out.getvalue()
    assert text.startswith("upstream rell-v42 {\n  server               172.17.0.5:43600;\n}")
    assert text.count("server_name          v42.example.com;") == 2
    assert "ssl_certificate      /c.pem;" in text
    assert "ssl_certificate_key  /k.pem;" in text
    assert "proxy_pass         http://rell-v42;" in text
    assert "$remote_addr" in text
    assert text.endswith("}\n")


def test_render_production():
    out = io.StringIO()
    nginx.render_production(
        nginx.ProductionParams(
            server_suffix="example.com", backend_name="rell-v42", cert_file="/c.pem", key_file="/k.pem"
        ),
        out,
    )
    text = out.getvalue()
    assert "rewrite (.*) http://www.example.com$1 permanent;" in text
    assert "rewrite (.*) https://www.example.com$1 permanent;" in text
    assert text.count("server_name          www.example.com;") == 2
    assert text.count("proxy_pass         http://rell-v42;") == 2
    assert "upstream" not in text


def test_write_upstream_config(settings):
    path = nginx.write_upstream_config(settings, "v42", _record())
    assert path == f"{settings.nginx_conf_dir}/rell-v42.conf"
    text = open(path).read()
    assert "server               172.17.0.5:43600;" in text
    assert "server_name          v42.example.com;" in text
    assert "ssl_certificate      /certs/cert.pem;" in text


def test_write_upstream_overwrites(settings):
    nginx.write_upstream_config(settings, "v42", _record("10.0.0.1"))
    path = nginx.write_upstream_config(settings, "v42", _record("10.0.0.2"))
    text = open(path).read()
    assert "10.0.0.2" in text
    assert "10.0.0.1" not in text


def test_write_production_config(settings):
    path = nginx.write_production_config(settings, "v42")
    assert path == f"{settings.nginx_conf_dir}/rell-prod.conf"
    assert "proxy_pass         http://rell-v42;" in open(path).read()


def test_failed_render_leaves_no_file(settings, monkeypatch):
    def broken(params, out):
        out.write("upstream rell-v42 {\n")
        raise RuntimeError("render failed")

    monkeypatch.setattr(nginx, "render_upstream", broken)
    with pytest.raises(RuntimeError, match="render failed"):
        nginx.write_upstream_config(settings, "v42", _record())
    assert not os.path.exists(nginx.upstream_config_path(settings, "rell-v42"))


def test_failed_render_removes_previous_file(settings, monkeypatch):
    path = nginx.write_production_config(settings, "v41")

    def broken(params, out):
        raise OSError("disk full")

    monkeypatch.setattr(nginx, "render_production", broken)
    with pytest.raises(OSError, match="disk full"):
        nginx.write_production_config(settings, "v42")
    assert not os.path.exists(path)


def test_missing_conf_dir(settings, tmp_path):
    from dataclasses import replace

    missing = replace(settings, nginx_conf_dir=str(tmp_path / "nope"))
    with pytest.raises(FileNotFoundError):
        nginx.write_upstream_config(missing, "v42", _record())


def test_templates_reject_missing_fields():
    with pytest.raises(UndefinedError):
        nginx._upstream.render(backend_name="rell-v42")


def test_tls_enabled_on_listen_lines():
    up, prod = io.StringIO(), io.StringIO()
    nginx.render_upstream(nginx.UpstreamParams("rell-v42", "v42.example.com", "10.0.0.1", 43600, "/c", "/k"), up)
    nginx.render_production(nginx.ProductionParams("example.com", "rell-v42", "/c", "/k"), prod)
    for text in (up.getvalue(), prod.getvalue()):
        assert "ssl                  on;" not in text
        assert "spdy" not in text
        for line in text.splitlines():
            if line.strip().startswith("listen") and ":443" in line:
                assert " ssl" in line
