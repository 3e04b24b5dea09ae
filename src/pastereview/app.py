"""Command line entry point for inspecting and maintaining review manifests."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_type_hints

from .persistence.gate import PersistenceGate
from .persistence.manifest import ManifestStore
from .regions.store import RegionStore
from .services.settings import ReviewSettings, SettingsStore
from .utils import logging as logging_utils
from .utils.file_io import compute_file_digest

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Configure logging for the console script; later calls only adjust the level."""

    level = logging.DEBUG if debug else logging.WARNING
    if logging_utils.get_log_path() is None:
        logging_utils.setup_logging(level)
    else:
        logging_utils.set_level(level)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ReviewSettings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = ReviewSettings()
    return settings


def main(argv: Sequence[str] | None = None, *, stream: TextIO | None = None) -> int:
    """Entry point invoked by the ``pastereview`` console script."""

    destination = stream or sys.stdout
    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = bool(args.debug) or _env_flag("PASTEREVIEW_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("PASTEREVIEW_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if settings.debug_logging and not debug:
        configure_logging(True)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides, stream=destination)
        return 0

    if args.command is None:
        parser.print_help(destination)
        return 1

    workspace = Path(args.workspace).expanduser().resolve()
    gate = PersistenceGate(ManifestStore(workspace / settings.manifest_filename), RegionStore(), workspace)

    if args.command == "status":
        return _cmd_status(gate, destination)
    if args.command == "prune":
        return _cmd_prune(gate, destination)
    if args.command == "clear":
        return _cmd_clear(gate, args.path, destination)
    parser.error(f"Unknown command {args.command!r}")
    return 2  # pragma: no cover - parser.error exits


def _cmd_status(gate: PersistenceGate, stream: TextIO) -> int:
    manifest = gate.manifest
    if not len(manifest):
        stream.write(f"No unreviewed regions recorded in {gate.workspace_root}\n")
        return 0
    for entry in manifest:
        target = gate.absolute_path(entry.path)
        state = _entry_state(target, entry.digest)
        lines = sum(region.line_count for region in entry.regions)
        stream.write(f"{entry.path}\t{len(entry.regions)} region(s)\t{lines} line(s)\t{state}\n")
    return 0


def _cmd_prune(gate: PersistenceGate, stream: TextIO) -> int:
    removed = gate.prune_missing()
    for key in removed:
        stream.write(f"pruned {key}\n")
    stream.write(f"{len(removed)} entr{'y' if len(removed) == 1 else 'ies'} pruned\n")
    return 0


def _cmd_clear(gate: PersistenceGate, path: str, stream: TextIO) -> int:
    key = gate.relative_key(Path(path).expanduser().resolve())
    if not gate.forget(key):
        stream.write(f"No entry for {key}\n")
        return 1
    stream.write(f"cleared {key}\n")
    return 0


def _entry_state(target: Path, digest: str) -> str:
    if not target.exists():
        return "missing"
    try:
        current = compute_file_digest(target)
    except OSError as exc:
        _LOGGER.warning("Unable to read %s: %s", target, exc)
        return "unreadable"
    return "current" if current == digest else "stale"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pastereview",
        add_help=True,
        description="Inspect and maintain the workspace manifest of unreviewed pasted code.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.pastereview/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )

    workspace_parent = argparse.ArgumentParser(add_help=False)
    workspace_parent.add_argument(
        "--workspace",
        metavar="DIR",
        default=".",
        help="Workspace root holding the manifest (default: current directory).",
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser(
        "status",
        parents=[workspace_parent],
        help="List tracked files with region counts and digest state.",
    )
    commands.add_parser(
        "prune",
        parents=[workspace_parent],
        help="Drop entries for files that no longer exist.",
    )
    clear = commands.add_parser(
        "clear",
        parents=[workspace_parent],
        help="Forget the regions recorded for one file.",
    )
    clear.add_argument("path", metavar="PATH")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    known = {field.name for field in fields(ReviewSettings)}
    type_hints = get_type_hints(ReviewSettings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in known:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, str), raw_value.strip())
    return overrides


def _coerce_value(target: Any, raw_value: str) -> Any:
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    return raw_value


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: ReviewSettings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("PASTEREVIEW_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
