"""Unit tests for the ``listing`` command router."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from listing_store.main import ExitCode, cli_entrypoint
from listing_store.ui.cli import build_parser, run_cli

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.delenv("DATA_REPOSITORY", raising=False)
    monkeypatch.delenv("LISTING_PROFILE", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _content(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    _write(root / "config.yml", "company_name: Acme\nauth: false\n")
    _write(root / "categories.yml", "- id: tools\n  name: Tools\n- id: games\n  name: Games\n")
    _write(root / "tags.yml", "- id: free\n  name: Free\n")
    _write(
        root / "data" / "alpha" / "alpha.yml",
        "name: Alpha\ncategory: tools\ntags: [free]\nupdated_at: '2024-02-01 10:00'\n",
    )
    _write(root / "data" / "alpha" / "alpha.md", "# Alpha\n\nBody text.\n")
    _write(
        root / "data" / "beta" / "beta.yml",
        "name: Beta\ncategory: tools\nfeatured: true\nupdated_at: '2023-02-01 10:00'\n",
    )
    _write(root / "data" / "gamma" / "gamma.yml", "name: Gamma\ncategory: games\n")
    return root


def _run(tmp_path: Path, *args: str) -> int:
    root = tmp_path / "content"
    return run_cli(
        [
            *args,
            "--content-path",
            str(root),
            "--log-dir",
            str(tmp_path / "logs"),
            "--no-sync",
        ]
    )


def _json(capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    return json.loads(capsys.readouterr().out)


def test_parser_lists_every_command() -> None:
    parser = build_parser()
    for command in ("sync", "watch", "status", "items", "categories", "tags", "config", "site"):
        namespace = parser.parse_args([command])
        assert callable(namespace.handler)
    assert parser.parse_args(["similar", "alpha", "--limit", "2"]).limit == 2
    assert parser.parse_args(["watch", "--interval", "5"]).interval == 5.0


def test_items_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "items", "--json") == 0

    payload = _json(capsys)
    assert payload["command"] == "items"
    assert payload["total"] == 3
    assert [item["slug"] for item in payload["items"]] == ["beta", "alpha", "gamma"]  # type: ignore[index, union-attr]
    assert (tmp_path / "logs" / "listing-store.jsonl").is_file()


def test_items_plain_table(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "items", "--no-color") == 0

    out = capsys.readouterr().out
    assert "3 of 3 items" in out
    assert "alpha" in out and "Alpha" in out


def test_item_detail_and_missing_item(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "item", "alpha", "--json") == 0
    payload = _json(capsys)
    assert payload["meta"]["name"] == "Alpha"  # type: ignore[index]
    assert payload["content"] == "# Alpha\n\nBody text.\n"

    assert _run(tmp_path, "item", "alpha") == 0
    assert "Body text." in capsys.readouterr().out

    assert _run(tmp_path, "item", "missing") == 1
    assert "item not found: missing" in capsys.readouterr().err


def test_category_and_tag_filters(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "category", "tools", "--json") == 0
    tools = _json(capsys)
    assert sorted(item["slug"] for item in tools["items"]) == ["alpha", "beta"]  # type: ignore[union-attr, index]
    assert tools["total"] == 3

    assert _run(tmp_path, "tag", "free", "--json") == 0
    assert [item["slug"] for item in _json(capsys)["items"]] == ["alpha"]  # type: ignore[union-attr, index]


def test_collections(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "categories", "--json") == 0
    categories = _json(capsys)["categories"]
    assert {entry["id"]: entry["count"] for entry in categories} == {"tools": 2, "games": 1}  # type: ignore[union-attr, index]

    assert _run(tmp_path, "tags") == 0
    assert "Free" in capsys.readouterr().out


def test_similar(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "similar", "alpha", "--json") == 0
    payload = _json(capsys)
    assert [entry["slug"] for entry in payload["items"]] == ["beta"]  # type: ignore[union-attr, index]

    assert _run(tmp_path, "similar", "alpha", "--limit", "0") == 2
    assert _run(tmp_path, "similar", "nope") == 1


def test_site_and_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "site", "--json") == 0
    assert _json(capsys)["site"] == {"company_name": "Acme", "auth": False}

    assert _run(tmp_path, "config", "--json", "--profile", "development") == 0
    payload = _json(capsys)
    assert payload["active_profile"] == "development"
    config = payload["config"]
    assert config["sync"]["enabled"] is False  # type: ignore[index]
    assert config["content"]["content_path"] == (tmp_path / "content").resolve().as_posix()  # type: ignore[index]


def test_status_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _content(tmp_path)

    assert _run(tmp_path, "status", "--json") == 0

    payload = _json(capsys)
    assert payload["content_exists"] is True
    assert payload["repository"] is None
    assert payload["head"] is None
    assert set(payload["cache"]["tiers"]) == {"config", "items", "collections", "similarity"}  # type: ignore[index]


def test_sync_without_repository_bootstraps_content(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "sync", "--json") == 0

    result = _json(capsys)["result"]
    assert result["success"] is True  # type: ignore[index]
    assert (tmp_path / "content" / "data").is_dir()
    assert (tmp_path / "content" / "config.yml").is_file()


def test_invalid_config_file_exits_with_config_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = tmp_path / "bad.toml"
    config.write_text("[cache]\nmax_entries = \"many\"\n", encoding="utf-8")

    assert _run(tmp_path, "items", "--config", str(config)) == 2
    assert "cache.max_entries" in capsys.readouterr().err


def test_missing_config_file_exits_with_config_error(tmp_path: Path) -> None:
    assert _run(tmp_path, "items", "--config", str(tmp_path / "missing.toml")) == 2


def test_entrypoint_maps_unreadable_content_to_content_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _content(tmp_path)
    _write(root / "config.yml", "- not\n- a mapping\n")

    code = cli_entrypoint(
        ["site", "--content-path", str(root), "--log-dir", str(tmp_path / "logs"), "--no-sync"]
    )

    assert code == ExitCode.CONTENT_ERROR
    assert "must contain a mapping" in capsys.readouterr().err


def test_entrypoint_maps_unusable_content_path_to_content_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "content"
    root.write_text("not a directory\n", encoding="utf-8")

    code = cli_entrypoint(["items", "--content-path", str(root), "--log-dir", str(tmp_path / "logs")])

    assert code == ExitCode.CONTENT_ERROR
    assert "is not usable" in capsys.readouterr().err


def test_entrypoint_reports_usage_errors(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["no-such-command"]) == ExitCode.CONFIG_ERROR
    assert "invalid choice" in capsys.readouterr().err
