from __future__ import annotations

import json
import subprocess
import sys

import pytest

import chrome_bridge
from chrome_bridge import (
    BridgeError,
    ChromeBridge,
    launch_chrome_with_profile,
    list_chrome_profiles,
    parse_local_state,
    read_tags_file,
    write_tags_file,
)
from profile_filter import Profile
from tag_store import Tag

pytestmark = pytest.mark.unit

LOCAL_STATE = {
    "profile": {
        "info_cache": {
            "Profile 3": {"name": "Work", "user_name": "me@corp.example"},
            "Default": {"name": "Personal", "user_name": ""},
            "Profile 7": {},
        }
    }
}


def test_parse_local_state_keeps_order_and_maps_fields() -> None:
    assert parse_local_state(LOCAL_STATE) == [
        Profile("Profile 3", "Work", "me@corp.example"),
        Profile("Default", "Personal", None),
        Profile("Profile 7", "", None),
    ]


def test_parse_local_state_without_info_cache() -> None:
    assert parse_local_state({}) == []
    assert parse_local_state({"profile": {"info_cache": []}}) == []


def test_list_chrome_profiles_reads_local_state(tmp_path) -> None:
    (tmp_path / "Local State").write_text(json.dumps(LOCAL_STATE), encoding="utf-8")
    assert [p.folder for p in list_chrome_profiles(tmp_path)] == [
        "Profile 3",
        "Default",
        "Profile 7",
    ]


def test_list_chrome_profiles_missing_file_raises(tmp_path) -> None:
    with pytest.raises(BridgeError):
        list_chrome_profiles(tmp_path)


def test_tags_file_missing_is_empty(tmp_path) -> None:
    assert read_tags_file(tmp_path / "nope.json") == {}


def test_tags_file_corrupt_raises(tmp_path) -> None:
    path = tmp_path / "tags.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(BridgeError):
        read_tags_file(path)


def test_write_tags_creates_parent_and_overwrites(tmp_path) -> None:
    path = tmp_path / "nested" / "tags.json"
    write_tags_file(path, {"Default": [Tag("Work", "#111111")]})
    write_tags_file(path, {"Profile 1": [Tag("Home", "#222222")]})
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "Profile 1": [{"name": "Home", "color": "#222222"}]
    }


def test_tags_path_env_override(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(chrome_bridge.TAGS_ENV_VAR, str(tmp_path / "t.json"))
    assert ChromeBridge().tags_path == tmp_path / "t.json"


def test_launch_builds_profile_directory_argument(monkeypatch) -> None:
    captured: dict[str, list[str]] = {}

    def fake_popen(cmd: list[str], **kwargs: object) -> object:
        captured["cmd"] = cmd
        return object()

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    launch_chrome_with_profile("Profile 2", chrome_path="/opt/chrome")
    assert captured["cmd"] == ["/opt/chrome", "--profile-directory=Profile 2"]


def test_launch_without_chrome_raises(monkeypatch) -> None:
    monkeypatch.setattr(chrome_bridge, "find_chrome_exe", lambda: None)
    with pytest.raises(BridgeError):
        launch_chrome_with_profile("Default")


def test_launch_oserror_is_wrapped(monkeypatch) -> None:
    def boom(*args: object, **kwargs: object) -> None:
        raise OSError("no such file")

    monkeypatch.setattr(subprocess, "Popen", boom)
    with pytest.raises(BridgeError):
        launch_chrome_with_profile("Default", chrome_path="/missing/chrome")


def test_bridge_round_trip(tmp_path) -> None:
    (tmp_path / "Local State").write_text(json.dumps(LOCAL_STATE), encoding="utf-8")
    bridge = ChromeBridge(user_data=tmp_path, tags_path=tmp_path / "tags.json")
    assert len(bridge.get_profiles()) == 3
    assert bridge.get_tags() == {}
    bridge.save_tags({"Default": [Tag("Work", "#111111")]})
    assert bridge.get_tags() == {"Default": [{"name": "Work", "color": "#111111"}]}


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX layout")
def test_linux_user_data_dir(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(chrome_bridge.Path, "home", lambda: tmp_path)
    assert chrome_bridge.chrome_user_data_dir() == tmp_path / ".config" / "google-chrome"


def test_write_tags_leaves_no_temp_file(tmp_path) -> None:
    path = tmp_path / "tags.json"
    write_tags_file(path, {"Default": [Tag("Work", "#111111")]})
    assert [p.name for p in tmp_path.iterdir()] == ["tags.json"]
