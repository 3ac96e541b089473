"""Persisted launcher preferences: theme flag and window geometry."""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from debug_scaffold import APP_NAME, record_breadcrumb

logger = logging.getLogger(__name__)


def app_dirs() -> Path:
    if sys.platform.startswith("win"):
        base = Path(os.getenv("APPDATA", str(Path.home() / "AppData/Roaming")))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    cfg = base / APP_NAME
    cfg.mkdir(parents=True, exist_ok=True)
    return cfg


CFG_DIR = app_dirs()
CFG_PATH = CFG_DIR / "config.json"


def _int_or_none(value: Any) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


@dataclass
class LauncherConfig:
    dark_mode: Optional[bool] = None
    last_width: int | None = None
    last_height: int | None = None
    last_x: int | None = None
    last_y: int | None = None

    @staticmethod
    def load(path: Path | None = None) -> "LauncherConfig":
        path = path or CFG_PATH
        if not path.exists():
            return LauncherConfig()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "config_load_failed",
                extra={"event": "config_load_failed", "path": str(path), "error": str(exc)},
            )
            return LauncherConfig()
        if not isinstance(data, dict):
            return LauncherConfig()
        dark = data.get("dark_mode")
        return LauncherConfig(
            dark_mode=dark if isinstance(dark, bool) else None,
            last_width=_int_or_none(data.get("last_width")),
            last_height=_int_or_none(data.get("last_height")),
            last_x=_int_or_none(data.get("last_x")),
            last_y=_int_or_none(data.get("last_y")),
        )

    def save(self, path: Path | None = None) -> None:
        path = path or CFG_PATH
        data: dict[str, Any] = {}
        if self.dark_mode is not None:
            data["dark_mode"] = self.dark_mode
        if self.last_width is not None:
            data["last_width"] = self.last_width
        if self.last_height is not None:
            data["last_height"] = self.last_height
        if self.last_x is not None:
            data["last_x"] = self.last_x
        if self.last_y is not None:
            data["last_y"] = self.last_y
        try:
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "config_save_failed",
                extra={"event": "config_save_failed", "path": str(path), "error": str(exc)},
            )

    @property
    def has_geometry(self) -> bool:
        return None not in (self.last_width, self.last_height, self.last_x, self.last_y)


class ThemeController:
    """Dark/light toggle stored in :class:`LauncherConfig`.

    When no preference has been saved yet the OS color scheme decides.
    """

    def __init__(
        self,
        cfg: LauncherConfig,
        system_prefers_dark: Callable[[], bool] = lambda: False,
        save: Callable[[], None] | None = None,
    ) -> None:
        self.cfg = cfg
        self._system_prefers_dark = system_prefers_dark
        self._save = save or cfg.save

    @property
    def dark(self) -> bool:
        if self.cfg.dark_mode is None:
            return bool(self._system_prefers_dark())
        return self.cfg.dark_mode

    def toggle(self) -> bool:
        self.cfg.dark_mode = not self.dark
        self._save()
        record_breadcrumb("theme_toggle", dark=self.cfg.dark_mode)
        return self.cfg.dark_mode
