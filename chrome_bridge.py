"""Backend bridge to the local Google Chrome installation.

These helpers locate the Chrome user data directory and executable, list the
profiles recorded in Chrome's ``Local State`` file, launch Chrome with a given
profile and read/write the launcher's tag file. :class:`ChromeBridge` wraps
them behind the :class:`BackendBridge` contract used by the launcher session;
every failure is raised as :class:`BridgeError`.
"""

# mypy: disable-error-code=unreachable

from __future__ import annotations

import json
import os
import shutil
import subprocess  # nosec B404: launches chrome with a fixed argv, shell=False
import sys
import typing as t
from pathlib import Path
from typing import Any, Mapping, Protocol

from profile_filter import Profile
from tag_store import Tag

if sys.platform == "win32":  # pragma: no cover - executed only on Windows
    import winreg
else:  # pragma: no cover - not executed on Windows
    winreg = t.cast(t.Any, None)

TAGS_ENV_VAR = "PROFILE_LAUNCHER_TAGS"


class BridgeError(RuntimeError):
    """Raised when the backend cannot complete a request."""


class BackendBridge(Protocol):
    def get_profiles(self) -> list[Profile]: ...

    def get_tags(self) -> Mapping[str, list[Any]]: ...

    def save_tags(self, tags: Mapping[str, list[Tag]]) -> None: ...

    def launch_profile(self, folder: str) -> None: ...


def chrome_user_data_dir() -> t.Optional[Path]:
    """Return Chrome's user data directory for this platform, if known."""
    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        if not local:
            return None
        return Path(local) / "Google" / "Chrome" / "User Data"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Google" / "Chrome"
    return Path.home() / ".config" / "google-chrome"


def _reg_query_app_paths() -> t.Optional[str]:
    """Return chrome.exe path from Windows App Paths registry, if available."""
    for hive in (
        getattr(winreg, "HKEY_CURRENT_USER", None),
        getattr(winreg, "HKEY_LOCAL_MACHINE", None),
    ):
        if hive is None:
            continue
        try:
            with winreg.OpenKey(
                hive, r"SOFTWARE\Microsoft\Windows\CurrentVersion\App Paths\chrome.exe"
            ) as key:
                val, _ = winreg.QueryValueEx(key, None)
                if isinstance(val, str) and os.path.isfile(val):
                    return val
        except OSError:
            continue
    return None


def find_chrome_exe() -> t.Optional[str]:
    """Locate the Chrome executable, returning its path if found."""
    if sys.platform == "win32":
        reg_path = _reg_query_app_paths()
        if reg_path:
            return reg_path
        candidates: list[str] = []
        local = os.environ.get("LOCALAPPDATA")
        if local:
            candidates.append(
                os.path.join(local, "Google", "Chrome", "Application", "chrome.exe")
            )
        candidates.extend(
            [
                r"C:\Program Files\Google\Chrome\Application\chrome.exe",
                r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
            ]
        )
        for path in candidates:
            if os.path.isfile(path):
                return path
        return None
    if sys.platform == "darwin":
        app = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
        return app if os.path.isfile(app) else None
    for name in ("google-chrome", "google-chrome-stable", "chromium"):
        found = shutil.which(name)
        if found:
            return found
    return None


def parse_local_state(state: Mapping[str, Any]) -> list[Profile]:
    """Build profiles from a decoded ``Local State`` document.

    Keys of ``profile.info_cache`` are the profile folders; their order is kept.
    """
    profile_section = state.get("profile") if isinstance(state, Mapping) else None
    info_cache = (
        profile_section.get("info_cache") if isinstance(profile_section, Mapping) else None
    )
    if not isinstance(info_cache, Mapping):
        return []
    results: list[Profile] = []
    for folder, meta in info_cache.items():
        meta = meta if isinstance(meta, Mapping) else {}
        name = meta.get("name")
        email = meta.get("user_name")
        results.append(
            Profile(
                folder=folder,
                name=name if isinstance(name, str) else "",
                email=email if isinstance(email, str) and email else None,
            )
        )
    return results


def list_chrome_profiles(user_data: Path | None = None) -> list[Profile]:
    """Return the profiles listed in Chrome's ``Local State`` file."""
    user_data = user_data or chrome_user_data_dir()
    if user_data is None:
        raise BridgeError("Cannot find Chrome user data directory")
    local_state = user_data / "Local State"
    try:
        state = json.loads(local_state.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BridgeError(f"Cannot read {local_state}: {exc}") from exc
    return parse_local_state(state)


def default_tags_path() -> Path:
    override = os.environ.get(TAGS_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".chrome-launcher" / "tags.json"


def read_tags_file(path: Path) -> dict[str, list[Any]]:
    """Return raw tag data from *path*; a missing file yields an empty mapping."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BridgeError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise BridgeError(f"Unexpected tag file layout in {path}")
    return data


def write_tags_file(path: Path, tags: Mapping[str, list[Tag]]) -> None:
    payload = {
        folder: [{"name": tag.name, "color": tag.color} for tag in entries]
        for folder, entries in tags.items()
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        raise BridgeError(f"Cannot write {path}: {exc}") from exc


def launch_chrome_with_profile(folder: str, chrome_path: str | None = None) -> None:
    """Start Chrome with ``--profile-directory=<folder>``."""
    chrome = chrome_path or find_chrome_exe()
    if not chrome:
        raise BridgeError("Cannot find the Chrome executable")
    cmd = [chrome, f"--profile-directory={folder}"]
    try:
        subprocess.Popen(cmd, close_fds=True)  # nosec B603
    except OSError as exc:
        raise BridgeError(f"Cannot start {chrome}: {exc}") from exc


class ChromeBridge:
    """:class:`BackendBridge` backed by the local Chrome install and a JSON tag file."""

    def __init__(
        self,
        user_data: Path | None = None,
        tags_path: Path | None = None,
        chrome_path: str | None = None,
    ) -> None:
        self.user_data = user_data
        self.tags_path = tags_path or default_tags_path()
        self.chrome_path = chrome_path

    def get_profiles(self) -> list[Profile]:
        return list_chrome_profiles(self.user_data)

    def get_tags(self) -> dict[str, list[Any]]:
        return read_tags_file(self.tags_path)

    def save_tags(self, tags: Mapping[str, list[Tag]]) -> None:
        write_tags_file(self.tags_path, tags)

    def launch_profile(self, folder: str) -> None:
        launch_chrome_with_profile(folder, self.chrome_path)
