import json
from pathlib import Path

import pytest
from conftest import make_work
from typer.testing import CliRunner

from research_hubs.cli import app
from research_hubs.core import config
from research_hubs.core.store import LocalVault
from research_hubs.graph.hubs import render_hub

runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "_config", None)
    monkeypatch.delenv("OPENALEX_MAILTO", raising=False)


def _invoke(vault: Path, *args: str):
    return runner.invoke(app, ["--vault", str(vault), "--quiet", "--test", *args])


def test_toggle_auto_persists(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "toggle-auto")

    assert result.exit_code == 0, result.output
    assert "Auto-processing enabled" in result.output
    stored = json.loads((tmp_path / ".research_hubs_test" / "settings.json").read_text())
    assert stored["auto_process_new_files"] is True


def test_toggle_auto_twice_disables(tmp_path: Path) -> None:
    _invoke(tmp_path, "toggle-auto")
    result = _invoke(tmp_path, "toggle-auto")

    assert result.exit_code == 0, result.output
    assert "Auto-processing disabled" in result.output
    stored = json.loads((tmp_path / ".research_hubs_test" / "settings.json").read_text())
    assert stored["auto_process_new_files"] is False


def test_settings_shows_defaults(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "settings")
    assert result.exit_code == 0, result.output
    assert '"hub_folder": "Research-Hubs"' in result.output


def test_invalid_settings_exit_code(tmp_path: Path) -> None:
    path = tmp_path / ".research_hubs_test" / "settings.json"
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")

    assert _invoke(tmp_path, "settings").exit_code == 2


def test_rebuild_reports_hub_count(tmp_path: Path) -> None:
    vault = LocalVault(tmp_path)
    vault.create("Research-Hubs/hub_a.md", render_hub(make_work("W1"), "PaperA"))
    vault.create("Research-Hubs/hub_b.md", render_hub(make_work("W2"), "PaperB"))

    result = _invoke(tmp_path, "rebuild")

    assert result.exit_code == 0, result.output
    assert "2 hubs in Research-Hubs" in result.output


def test_watch_requires_auto_mode(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "watch")
    assert result.exit_code == 1
    assert "disabled" in result.output


def test_session_log_written(tmp_path: Path) -> None:
    _invoke(tmp_path, "settings")
    assert list((tmp_path / ".research_hubs_test" / "logs").glob("sync_*.jsonl"))
