import json

import pytest
from typer.testing import CliRunner

from bricksync import cli
from bricksync.config import CONFIG_FILENAME, load_config


runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch, store):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATABRICKS_HOST", raising=False)
    monkeypatch.setattr(cli, "_build_store", lambda config: store)
    result = runner.invoke(cli.app, ["init", "ws.example.com", "--source-root", "notebooks"])
    assert result.exit_code == 0, result.output
    return tmp_path


def _write(path, text="pass"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_init_writes_normalized_config(workspace):
    config = load_config(workspace)
    assert (workspace / CONFIG_FILENAME).exists()
    assert config.host == "https://ws.example.com"
    assert config.threads == 20


def test_init_without_host_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATABRICKS_HOST", raising=False)
    result = runner.invoke(cli.app, ["init"])
    assert result.exit_code == 1
    assert not (tmp_path / CONFIG_FILENAME).exists()


def test_sync_uploads_everything(workspace, store):
    _write(workspace / "notebooks" / "a" / "b" / "x.py")
    _write(workspace / "notebooks" / "c.scala", "object C")

    result = runner.invoke(cli.app, ["sync", "--threads", "4"])

    assert result.exit_code == 0, result.output
    assert set(store.artifacts) == {"a/b/x", "c"}
    assert "Failed: 0" in result.output


def test_sync_reports_failures_with_nonzero_exit(workspace, store):
    _write(workspace / "notebooks" / "ok.py")
    _write(workspace / "notebooks" / "bad.py")
    store.reject_paths.add("bad")

    result = runner.invoke(cli.app, ["sync"])

    assert result.exit_code == 1
    assert "Failed: 1" in result.output
    assert set(store.artifacts) == {"ok"}


def test_sync_missing_root_is_not_a_failure(workspace, store):
    result = runner.invoke(cli.app, ["sync", str(workspace / "nowhere")])

    assert result.exit_code == 0, result.output
    assert store.calls == []


def test_sync_without_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli.app, ["sync"])
    assert result.exit_code == 1


def test_sync_rejects_zero_threads(workspace, store):
    _write(workspace / "notebooks" / "a.py")
    result = runner.invoke(cli.app, ["sync", "--threads", "0"])
    assert result.exit_code == 1
    assert store.calls == []


def test_validate(workspace):
    _write(workspace / "notebooks" / "a.py")
    _write(workspace / "notebooks" / "b.txt", "notes")

    assert runner.invoke(cli.app, ["validate"]).exit_code == 0
    assert runner.invoke(cli.app, ["validate", "--extension", "py", "--extension", "txt"]).exit_code == 1


def _settings(workspace, jobs):
    path = workspace / "jobs.json"
    path.write_text(json.dumps(jobs), encoding="utf-8")
    return path


def test_upsert_jobs(workspace, store):
    path = _settings(workspace, [{"name": "etl-job"}, {"name": "report-job"}])

    result = runner.invoke(cli.app, ["upsert-jobs", str(path)])

    assert result.exit_code == 0, result.output
    assert sorted(job["name"] for job in store.jobs) == ["etl-job", "report-job"]


def test_upsert_jobs_duplicate_policy(workspace, store):
    store.add_job("etl-job")
    store.add_job("etl-job")
    path = _settings(workspace, [{"name": "etl-job"}])

    assert runner.invoke(cli.app, ["upsert-jobs", str(path)]).exit_code == 1
    assert store.calls_named("update_job") == []

    result = runner.invoke(cli.app, ["upsert-jobs", str(path), "--allow-duplicates"])
    assert result.exit_code == 0, result.output
    assert store.calls_named("update_job") == [("update_job", 100, "etl-job")]


def test_upsert_single_job(workspace, store):
    path = _settings(workspace, [{"name": "a"}, {"name": "b"}])

    assert runner.invoke(cli.app, ["upsert-jobs", str(path), "--job", "b"]).exit_code == 0
    assert [job["name"] for job in store.jobs] == ["b"]

    assert runner.invoke(cli.app, ["upsert-jobs", str(path), "--job", "zzz"]).exit_code == 1


def test_upsert_jobs_bad_settings(workspace):
    path = workspace / "jobs.json"
    path.write_text("{", encoding="utf-8")
    assert runner.invoke(cli.app, ["upsert-jobs", str(path)]).exit_code == 1


def test_sync_missing_root_needs_no_credentials(tmp_path, monkeypatch, caplog):
    monkeypatch.chdir(tmp_path)
    for name in ("DATABRICKS_HOST", "DATABRICKS_TOKEN", "DATABRICKS_CONFIG_PROFILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABRICKS_CONFIG_FILE", str(tmp_path / "absent.cfg"))
    assert runner.invoke(cli.app, ["init", "ws.example.com"]).exit_code == 0

    result = runner.invoke(cli.app, ["sync", str(tmp_path / "missing")])

    assert result.exit_code == 0, result.output
    assert "No notebooks found" in caplog.text
