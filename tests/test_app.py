"""Tests for the ``pastereview`` console script."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from pastereview import app
from pastereview.core.ranges import Region
from pastereview.persistence.manifest import Manifest, ManifestEntry, ManifestStore
from pastereview.utils.file_io import compute_text_digest


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)


def _run(*argv: str, settings_path: Path) -> tuple[int, str]:
    stream = io.StringIO()
    code = app.main(["--settings-path", str(settings_path), *argv], stream=stream)
    return code, stream.getvalue()


def _write_manifest(root: Path, *entries: ManifestEntry) -> Path:
    manifest = Manifest()
    for entry in entries:
        manifest.set(entry)
    path = root / ".pastereview.json"
    ManifestStore(path).save(manifest)
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "ws"
    root.mkdir()
    return root


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "settings.json"


def test_no_command_prints_help(settings_path: Path) -> None:
    code, output = _run(settings_path=settings_path)

    assert code == 1
    assert "usage: pastereview" in output


def test_status_reports_empty_workspace(workspace: Path, settings_path: Path) -> None:
    code, output = _run("status", "--workspace", str(workspace), settings_path=settings_path)

    assert code == 0
    assert output.startswith("No unreviewed regions recorded in")


def test_status_reports_digest_state_per_entry(workspace: Path, settings_path: Path) -> None:
    (workspace / "current.py").write_text("print('hi')\n", encoding="utf-8")
    (workspace / "stale.py").write_text("changed\n", encoding="utf-8")
    _write_manifest(
        workspace,
        ManifestEntry("current.py", compute_text_digest("print('hi')\n"), (Region(0, 4, id="a"), Region(8, 9, id="b"))),
        ManifestEntry("stale.py", compute_text_digest("original\n"), (Region(2, 2, id="c"),)),
        ManifestEntry("gone.py", "deadbeef", (Region(0, 0, id="d"),)),
    )

    code, output = _run("status", "--workspace", str(workspace), settings_path=settings_path)

    assert code == 0
    assert output.splitlines() == [
        "current.py\t2 region(s)\t7 line(s)\tcurrent",
        "gone.py\t1 region(s)\t1 line(s)\tmissing",
        "stale.py\t1 region(s)\t1 line(s)\tstale",
    ]


def test_prune_drops_entries_for_missing_files(workspace: Path, settings_path: Path) -> None:
    (workspace / "kept.py").write_text("x\n", encoding="utf-8")
    manifest_path = _write_manifest(
        workspace,
        ManifestEntry("kept.py", compute_text_digest("x\n"), (Region(0, 0, id="a"),)),
        ManifestEntry("gone.py", "deadbeef", (Region(0, 0, id="b"),)),
    )

    code, output = _run("prune", "--workspace", str(workspace), settings_path=settings_path)

    assert code == 0
    assert output.splitlines() == ["pruned gone.py", "1 entry pruned"]
    assert ManifestStore(manifest_path).load().paths() == ["kept.py"]


def test_prune_with_nothing_missing(workspace: Path, settings_path: Path) -> None:
    code, output = _run("prune", "--workspace", str(workspace), settings_path=settings_path)

    assert code == 0
    assert output == "0 entries pruned\n"


def test_clear_forgets_entry(workspace: Path, settings_path: Path) -> None:
    target = workspace / "src" / "mod.py"
    target.parent.mkdir()
    target.write_text("body\n", encoding="utf-8")
    manifest_path = _write_manifest(
        workspace,
        ManifestEntry("src/mod.py", compute_text_digest("body\n"), (Region(0, 0, id="a"),)),
    )

    code, output = _run("clear", "--workspace", str(workspace), str(target), settings_path=settings_path)

    assert code == 0
    assert output == "cleared src/mod.py\n"
    assert len(ManifestStore(manifest_path).load()) == 0


def test_clear_unknown_path_returns_error(workspace: Path, settings_path: Path) -> None:
    code, output = _run(
        "clear", "--workspace", str(workspace), str(workspace / "missing.py"), settings_path=settings_path
    )

    assert code == 1
    assert output == "No entry for missing.py\n"


def test_status_honours_manifest_filename_override(workspace: Path, settings_path: Path) -> None:
    (workspace / "a.py").write_text("a\n", encoding="utf-8")
    manifest = Manifest()
    manifest.set(ManifestEntry("a.py", compute_text_digest("a\n"), (Region(0, 0, id="a"),)))
    ManifestStore(workspace / "review.json").save(manifest)

    code, output = _run(
        "--set",
        "manifest_filename=review.json",
        "status",
        "--workspace",
        str(workspace),
        settings_path=settings_path,
    )

    assert code == 0
    assert output == "a.py\t1 region(s)\t1 line(s)\tcurrent\n"


def test_dump_settings_includes_overrides(settings_path: Path) -> None:
    code, output = _run(
        "--set",
        "minimum_paste_lines=5",
        "--set",
        "debug_logging=off",
        "--dump-settings",
        settings_path=settings_path,
    )

    assert code == 0
    payload = json.loads(output)
    assert payload["settings"]["minimum_paste_lines"] == 5
    assert payload["settings"]["debug_logging"] is False
    assert payload["settings"]["tracking_timeout"] == pytest.approx(0.1)
    assert payload["meta"]["path"] == str(settings_path)
    assert payload["meta"]["cli_overrides"] == ["debug_logging", "minimum_paste_lines"]


def test_dump_settings_reports_environment_overrides(
    settings_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PASTEREVIEW_AUTO_SAVE_DELAY", "1.5")

    code, output = _run("--dump-settings", settings_path=settings_path)

    assert code == 0
    payload = json.loads(output)
    assert payload["settings"]["auto_save_delay"] == pytest.approx(1.5)
    assert "PASTEREVIEW_AUTO_SAVE_DELAY" in payload["meta"]["environment_variables"]


@pytest.mark.parametrize(
    "override",
    ["minimum_paste_lines", "unknown_field=1", "minimum_paste_lines=abc", "debug_logging=maybe", "=3"],
)
def test_invalid_override_returns_usage_error(settings_path: Path, override: str) -> None:
    code, output = _run("--set", override, "--dump-settings", settings_path=settings_path)

    assert code == 2
    assert output == ""
