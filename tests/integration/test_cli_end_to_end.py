"""
listing-store — CLI subprocess end-to-end contracts

Purpose
- Run ``python -m listing_store`` against a real bare git remote and verify that
  sync, listing, and cache refresh behave together.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"


def _env(home: Path) -> dict[str, str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    env["HOME"] = str(home)
    env["XDG_CONFIG_HOME"] = str(home / ".config")
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["GIT_AUTHOR_NAME"] = "Seed Author"
    env["GIT_AUTHOR_EMAIL"] = "seed@example.invalid"
    env["GIT_COMMITTER_NAME"] = "Seed Author"
    env["GIT_COMMITTER_EMAIL"] = "seed@example.invalid"
    env["NO_COLOR"] = "1"
    for name in list(env):
        if name.startswith("LISTING_") or name == "DATA_REPOSITORY":
            del env[name]
    return env


def _git(cwd: Path, env: dict[str, str], *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )
    if completed.returncode != 0:
        command = "git " + " ".join(args)
        detail = completed.stderr.strip() or completed.stdout.strip()
        raise RuntimeError(f"git command failed: {command}: {detail}")
    return completed.stdout


def _write(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")


def _run_cli(workdir: Path, env: dict[str, str], *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "listing_store", *args],
        cwd=workdir,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )


@pytest.fixture()
def workspace(tmp_path: Path) -> tuple[Path, Path, Path, dict[str, str]]:
    home = tmp_path / "home"
    home.mkdir()
    env = _env(home)

    remote = tmp_path / "remote.git"
    seed = tmp_path / "seed"
    _git(tmp_path, env, "init", "--bare", "-b", "main", str(remote))
    _git(tmp_path, env, "init", "-b", "main", str(seed))
    _write(seed / "config.yml", "company_name: Acme\ncopyright_year: 2024\n")
    _write(seed / "categories.yml", "- id: tools\n  name: Tools\n")
    _write(seed / "tags.yml", "- id: free\n  name: Free\n")
    _write(seed / "data" / "alpha" / "alpha.yml", "name: Alpha\ncategory: tools\ntags: [free]\n")
    _write(seed / "data" / "alpha" / "alpha.md", "# Alpha\n")
    _git(seed, env, "add", "--all")
    _git(seed, env, "commit", "-m", "seed content")
    _git(seed, env, "push", str(remote), "main")

    workdir = tmp_path / "site"
    workdir.mkdir()
    _write(
        workdir / "listing.toml",
        "\n".join(
            [
                "[content]",
                f'data_repository = "{remote.as_posix()}"',
                'content_path = ".content"',
                "",
                "[sync]",
                "throttle_seconds = 0",
                "",
                "[observability]",
                'log_dir = "logs"',
                "",
            ]
        ),
    )
    return workdir, remote, seed, env


def test_sync_then_list_then_pick_up_remote_changes(
    workspace: tuple[Path, Path, Path, dict[str, str]],
) -> None:
    workdir, remote, seed, env = workspace

    synced = _run_cli(workdir, env, "sync", "--json")
    assert synced.returncode == 0, synced.stderr
    assert json.loads(synced.stdout)["result"]["success"] is True
    assert (workdir / ".content" / "data" / "alpha" / "alpha.yml").is_file()
    assert (workdir / "logs" / "listing-store.jsonl").is_file()

    listed = _run_cli(workdir, env, "items", "--json")
    assert listed.returncode == 0, listed.stderr
    assert [item["slug"] for item in json.loads(listed.stdout)["items"]] == ["alpha"]

    _write(seed / "data" / "beta" / "beta.yml", "name: Beta\ncategory: tools\n")
    _git(seed, env, "add", "--all")
    _git(seed, env, "commit", "-m", "add beta")
    _git(seed, env, "push", str(remote), "main")

    refreshed = _run_cli(workdir, env, "items", "--json")
    assert refreshed.returncode == 0, refreshed.stderr
    assert sorted(item["slug"] for item in json.loads(refreshed.stdout)["items"]) == ["alpha", "beta"]

    similar = _run_cli(workdir, env, "similar", "alpha", "--json", "--no-sync")
    assert similar.returncode == 0, similar.stderr
    assert [entry["slug"] for entry in json.loads(similar.stdout)["items"]] == ["beta"]

    status = _run_cli(workdir, env, "status", "--json")
    assert status.returncode == 0, status.stderr
    payload = json.loads(status.stdout)
    head = _git(seed, env, "rev-parse", "HEAD").strip()
    assert payload["head"] == head
    assert payload["repository"] == remote.as_posix()


def test_unreachable_repository_degrades_to_local_content(tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    env = _env(home)
    workdir = tmp_path / "site"
    workdir.mkdir()
    env["DATA_REPOSITORY"] = (tmp_path / "missing.git").as_posix()

    synced = _run_cli(workdir, env, "sync", "--json", "--content-path", ".content", "--log-dir", "logs")
    assert synced.returncode == 1
    result = json.loads(synced.stdout)["result"]
    assert result["success"] is False
    assert result["message"] == "Repository synchronization failed"

    site = _run_cli(workdir, env, "site", "--json", "--content-path", ".content", "--log-dir", "logs")
    assert site.returncode == 0, site.stderr
    assert json.loads(site.stdout)["site"]["site_name"] == "Website"


def test_python_module_reports_bad_config(tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    env = _env(home)
    _write(tmp_path / "listing.toml", '[content]\ntoken = "ghp_inline"\n')

    result = _run_cli(tmp_path, env, "items")

    assert result.returncode == 2
    assert "embedded secret" in result.stderr
    assert "ghp_inline" not in result.stderr
