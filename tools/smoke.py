#!/usr/bin/env python3
"""Offline-friendly smoke check for the launcher core and the Chrome bridge."""

from __future__ import annotations

import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

from chrome_bridge import ChromeBridge, chrome_user_data_dir, find_chrome_exe
from debug_scaffold import collect_runtime_context
from launcher_session import LauncherSession

ctx = collect_runtime_context(None)
assert isinstance(ctx, dict) and "chrome_exe" in ctx
chrome_user_data_dir()
find_chrome_exe()

session = LauncherSession(ChromeBridge(), run_async=lambda fn: fn())
session.load_from_bridge()
print(f"smoke-ok ({len(session.profiles)} profiles)")
