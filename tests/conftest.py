# SPDX-License-Identifier: Apache-2.0
"""
Pytest bootstrap for headless/CI runs.

- QT_QPA_PLATFORM=offscreen (don't require a display)
- QT_OPENGL=software to avoid libGL/OpenGL driver lookups in headless CI
- A safe XDG_RUNTIME_DIR with 0700 perms (Qt checks this)
- Repo root on sys.path for the flat module layout
- A recording fake of the backend bridge and a session wired to it
"""

import os
import sys
import tempfile
import pathlib
import random

import pytest

# ---------- Headless-safe Qt defaults ----------
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("QT_OPENGL", "software")

try:
    uid = os.getuid()  # not present on Windows; handled below
except AttributeError:
    uid = 0
_xdg = pathlib.Path(tempfile.gettempdir()) / f"xdg-runtime-{uid}"
try:
    _xdg.mkdir(parents=True, exist_ok=True)
    _xdg.chmod(0o700)
except OSError:
    pass
os.environ.setdefault("XDG_RUNTIME_DIR", str(_xdg))

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from chrome_bridge import BridgeError  # noqa: E402
from launcher_session import LauncherSession  # noqa: E402
from profile_filter import Profile  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a Qt event loop")
    config.addinivalue_line("markers", "qt: tests that construct Qt widgets")


class FakeBridge:
    """In-memory bridge that records calls and can be told to fail."""

    def __init__(self, profiles=None, tags=None):
        self.profiles = list(profiles or [])
        self.tags = dict(tags or {})
        self.saved = []
        self.launched = []
        self.fail_load = False
        self.fail_save = False
        self.fail_launch = False

    def get_profiles(self):
        if self.fail_load:
            raise BridgeError("profiles unavailable")
        return list(self.profiles)

    def get_tags(self):
        if self.fail_load:
            raise BridgeError("tags unavailable")
        return self.tags

    def save_tags(self, tags):
        if self.fail_save:
            raise BridgeError("disk full")
        self.saved.append(tags)

    def launch_profile(self, folder):
        if self.fail_launch:
            raise BridgeError("chrome missing")
        self.launched.append(folder)


def run_inline(fn):
    fn()


@pytest.fixture
def profiles():
    return [
        Profile("Default", "Alice", "alice@example.com"),
        Profile("Profile 1", "Bob", None),
        Profile("Profile 2", "Carol", "carol@work.example"),
    ]


@pytest.fixture
def bridge(profiles):
    return FakeBridge(profiles)


@pytest.fixture
def session(bridge):
    s = LauncherSession(bridge, run_async=run_inline, rng=random.Random(7))
    s.load_from_bridge()
    return s
