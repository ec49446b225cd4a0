"""CLI integration tests for `nestzip run` and `nestzip plan`."""

from __future__ import annotations

import json
import os
import zipfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from nestzip.archive import ArchiveComposer
from nestzip.cli import cli


def _env_with_home(tmp_path: Path) -> dict[str, str]:
    """Return environment variables pointing HOME to a temp directory.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        dict[str, str]: Environment mapping with HOME set.
    """
    env = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    return env


def _build_tree(tmp_path: Path) -> Path:
    root = tmp_path / "R"
    module = root / "A"
    (module / "B").mkdir(parents=True)
    (module / "__init__.py").write_text("", encoding="utf-8")
    (module / "__Manifest__.py").write_text("{}", encoding="utf-8")
    (module / "B" / "x.txt").write_text("x", encoding="utf-8")
    return root


def _names(archive: Path) -> set[str]:
    with zipfile.ZipFile(archive) as bundle:
        return set(bundle.namelist())


def test_cli_run_export_writes_nested_archive(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    output = tmp_path / "out.zip"
    runner = CliRunner()

    result = runner.invoke(
        cli, ["run", str(root), "--mode", "export", "-o", str(output)], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 0, result.output
    assert "Zipping completed successfully" in result.output
    assert "Run summary" in result.output
    assert _names(output) == {"A.zip"}
    assert (root / "A" / "B" / "x.txt").exists()


def test_cli_run_delete_mode_asks_for_confirmation(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli, ["run", str(root), "--mode", "delete"], input="n\n", env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 1
    assert "DELETE the original folders" in result.output
    assert (root / "A").exists()
    assert not (root / "A.zip").exists()


def test_cli_run_delete_mode_with_yes(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli, ["run", str(root), "--mode", "delete", "--yes"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 0, result.output
    assert not (root / "A").exists()
    assert _names(root / "A.zip") == {"__Manifest__.py", "__init__.py", "B/x.txt"}


def test_cli_run_json_payload(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    output = tmp_path / "out.zip"
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", str(root), "--mode", "export", "-o", str(output), "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["context"]["mode"] == "export"
    assert payload["archived"] == ["A"]
    assert payload["skipped"] == ["A/B"]
    assert payload["counts"]["failed"] == 0
    assert payload["progress"]["percent"] == pytest.approx(100.0)


def test_cli_run_export_without_output_is_rejected(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["run", str(root), "--mode", "export"], env=_env_with_home(tmp_path))

    assert result.exit_code == 1
    assert "requires an output archive path" in result.output


def test_cli_run_reports_permission_errors_distinctly(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _build_tree(tmp_path)
    original = ArchiveComposer.compose

    def _compose(self, source_dir, destination, table):
        if Path(source_dir).name == "R":
            raise PermissionError(13, "Permission denied", str(destination))
        return original(self, source_dir, destination, table)

    monkeypatch.setattr(ArchiveComposer, "compose", _compose)
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", str(root), "--mode", "export", "-o", str(tmp_path / "out.zip")],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 3
    assert "Permission denied" in result.output


def test_cli_run_reports_generic_errors_with_cause(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _build_tree(tmp_path)
    original = ArchiveComposer.compose

    def _compose(self, source_dir, destination, table):
        if Path(source_dir).name == "R":
            raise OSError("no space left on device")
        return original(self, source_dir, destination, table)

    monkeypatch.setattr(ArchiveComposer, "compose", _compose)
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", str(root), "--mode", "export", "-o", str(tmp_path / "out.zip")],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 1
    assert "no space left on device" in result.output


def test_cli_plan_lists_deepest_first(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["plan", str(root), "--json"], env=_env_with_home(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [row["path"] for row in payload["directories"]] == ["A/B", "A"]
    assert [row["archive"] for row in payload["directories"]] == [False, True]
    assert payload["directories"][1]["entry"] == "A.zip"
    assert (root / "A").exists()


def test_cli_plan_table_output(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["plan", str(root)], env=_env_with_home(tmp_path))

    assert result.exit_code == 0, result.output
    assert "Plan summary" in result.output
    assert "archived=1" in result.output


def test_cli_run_rejects_zip_root_in_export_mode(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", str(root), "--mode", "export", "-o", str(tmp_path / "out.zip"), "--zip-root"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 2
    assert "--zip-root only applies to delete mode" in result.output
    assert not (tmp_path / "out.zip").exists()


def test_cli_run_mode_flag_overrides_configured_mode(tmp_path: Path) -> None:
    root = _build_tree(tmp_path)
    env = _env_with_home(tmp_path)
    env["NESTZIP__RUN__MODE"] = "delete"
    runner = CliRunner()

    result = runner.invoke(
        cli, ["run", str(root), "--mode", "export", "-o", str(tmp_path / "out.zip")], env=env
    )

    assert result.exit_code == 0, result.output
    assert (root / "A").exists()
    assert "mode=export" in result.output
