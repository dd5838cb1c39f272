"""Shared test fixtures."""

import pytest


@pytest.fixture
def mock_process(monkeypatch):
    """Mock process.run and process.run_streaming for tests."""
    from rell_deploy import process

    calls = []
    responses = []

    def fake_run(args, env=None, cwd=None):
        calls.append(("run", args, env, cwd))
        if responses:
            return responses.pop(0)
        return process.Result(returncode=0, stdout="", stderr="")

    def fake_run_streaming(args, env=None, cwd=None):
        calls.append(("run_streaming", args, env, cwd))
        return 0

    monkeypatch.setattr(process, "run", fake_run)
    monkeypatch.setattr(process, "run_streaming", fake_run_streaming)

    return type("MockProcess", (), {"calls": calls, "responses": responses})()


@pytest.fixture
def settings(tmp_path):
    """Settings with every file path under tmp_path."""
    from rell_deploy.config import Settings

    conf_dir = tmp_path / "nginx"
    conf_dir.mkdir()
    env_file = tmp_path / "rell.env"
    env_file.write_text("FB_APP_ID=123\n\nSECRET=abc\n")
    return Settings(
        docker_host="unix:///tmp/docker.sock",
        server_suffix="example.com",
        cert_file="/certs/cert.pem",
        key_file="/certs/key.pem",
        env_file=str(env_file),
        nginx_conf_dir=str(conf_dir),
        nginx_pid_file=str(tmp_path / "nginx.pid"),
        tag_file=str(tmp_path / "state" / "production-tag"),
        lock_file=str(tmp_path / "state" / ".deploy-lock"),
    )
