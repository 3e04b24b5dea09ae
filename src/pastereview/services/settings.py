"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..events import EventBus, SettingsChanged

__all__ = [
    "ReviewSettings",
    "SettingsProvider",
    "SettingsStore",
    "default_settings_path",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".pastereview"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "PASTEREVIEW_MANIFEST_FILENAME": "manifest_filename",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "PASTEREVIEW_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "PASTEREVIEW_MINIMUM_PASTE_LINES": "minimum_paste_lines",
    "PASTEREVIEW_MINIMUM_STREAMING_LINES": "minimum_streaming_lines",
    "PASTEREVIEW_FINGERPRINT_WINDOW": "fingerprint_window",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PASTEREVIEW_TYPING_SPEED_THRESHOLD": "typing_speed_threshold",
    "PASTEREVIEW_TRACKING_TIMEOUT": "tracking_timeout",
    "PASTEREVIEW_AUTO_SAVE_DELAY": "auto_save_delay",
    "PASTEREVIEW_FULL_REPLACE_RATIO": "full_replace_ratio",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class ReviewSettings:
    """User-configurable thresholds for paste and stream detection.

    Durations are in seconds and ``typing_speed_threshold`` is characters
    per second.
    """

    minimum_paste_lines: int = 20
    minimum_streaming_lines: int = 20
    typing_speed_threshold: float = 110.0
    tracking_timeout: float = 0.1
    auto_save_delay: float = 3.0
    full_replace_ratio: float = 0.8
    fingerprint_window: int = 5
    manifest_filename: str = ".pastereview.json"
    debug_logging: bool = False


def default_settings_path() -> Path:
    return _DEFAULT_SETTINGS_PATH


class SettingsStore:
    """Persistence adapter for :class:`ReviewSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> ReviewSettings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = ReviewSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = ReviewSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = ReviewSettings()
            settings = _coerce_types(settings)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: ReviewSettings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload: Dict[str, Any] = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return dict(data)

    def _apply_overrides(
        self,
        settings: ReviewSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> ReviewSettings:
        allowed = {field.name for field in fields(ReviewSettings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = _coerce_types(replace(settings, **filtered))
        return settings

    def _apply_env_overrides(self, settings: ReviewSettings) -> ReviewSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


class SettingsProvider:
    """Holds the live settings; detectors call :meth:`current` per decision."""

    def __init__(
        self,
        settings: ReviewSettings | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._settings = settings or ReviewSettings()
        self._bus = event_bus

    def current(self) -> ReviewSettings:
        return self._settings

    def __call__(self) -> ReviewSettings:
        return self._settings

    def update(self, **changes: Any) -> ReviewSettings:
        """Apply ``changes`` and notify subscribers; unknown keys are rejected."""

        allowed = {field.name for field in fields(ReviewSettings)}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        self._settings = _coerce_types(replace(self._settings, **changes))
        if self._bus is not None and changes:
            self._bus.publish(SettingsChanged(changed=tuple(sorted(changes))))
        return self._settings

    def install(self, settings: ReviewSettings) -> None:
        self._settings = settings
        if self._bus is not None:
            self._bus.publish(SettingsChanged(changed=tuple(field.name for field in fields(ReviewSettings))))


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(ReviewSettings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _coerce_types(settings: ReviewSettings) -> ReviewSettings:
    """Coerce numeric fields, falling back to defaults for unusable values."""

    defaults = ReviewSettings()
    updates: Dict[str, Any] = {}
    for name in ("minimum_paste_lines", "minimum_streaming_lines", "fingerprint_window"):
        value = getattr(settings, name)
        try:
            number = int(value)
        except (TypeError, ValueError):
            LOGGER.warning("Setting %s=%r is not an integer; using default", name, value)
            number = getattr(defaults, name)
        updates[name] = max(0, number)
    for name in ("typing_speed_threshold", "tracking_timeout", "auto_save_delay", "full_replace_ratio"):
        value = getattr(settings, name)
        try:
            number = float(value)
        except (TypeError, ValueError):
            LOGGER.warning("Setting %s=%r is not a number; using default", name, value)
            number = getattr(defaults, name)
        updates[name] = max(0.0, number)
    updates["manifest_filename"] = str(settings.manifest_filename or defaults.manifest_filename)
    updates["debug_logging"] = bool(settings.debug_logging)
    return replace(settings, **updates)
