from __future__ import annotations

import logging
import random
import threading
import time

import pytest

from colors import PRESET_COLORS
from conftest import FakeBridge, run_inline
from launcher_session import AddTag, Closed, LauncherSession
from profile_filter import Profile
from tag_store import Tag

pytestmark = pytest.mark.unit


def names(session: LauncherSession) -> list[str]:
    return [p.name for p in session.filtered_profiles()]


def test_alice_bob_tag_scenario() -> None:
    bridge = FakeBridge([Profile("a", "Alice"), Profile("b", "Bob")])
    session = LauncherSession(bridge, run_async=run_inline)
    session.load_from_bridge()

    session.set_search("ali")
    assert names(session) == ["Alice"]

    session.add_tag("a", "Work", PRESET_COLORS[2])
    assert [t.name for t in session.tags.tags_for("a")] == ["Work"]
    assert [t.name for t in session.unique_tags()] == ["Work"]

    session.set_search("")
    session.set_filter_tag("Work", True)
    assert names(session) == ["Alice"]

    session.remove_tag("a", session.tags.tags_for("a")[0])
    assert session.tags.tags_for("a") == []
    assert session.filter.selected_filter_tag_names == set()
    assert names(session) == ["Alice", "Bob"]


def test_load_normalizes_legacy_tags() -> None:
    bridge = FakeBridge([Profile("a", "Alice")], {"a": ["Work"]})
    session = LauncherSession(bridge, run_async=run_inline)
    session.load_from_bridge()
    assert session.tags.tags_for("a") == [Tag("Work", PRESET_COLORS[0])]


def test_load_failure_degrades_to_empty(caplog) -> None:
    bridge = FakeBridge([Profile("a", "Alice")], {"a": ["Work"]})
    bridge.fail_load = True
    session = LauncherSession(bridge, run_async=run_inline)
    with caplog.at_level(logging.WARNING, logger="launcher_session"):
        session.load_from_bridge()
    assert session.profiles == []
    assert len(session.tags) == 0
    assert session.selected_profile() is None
    assert any(r.getMessage() == "load_failed" for r in caplog.records)


def test_add_persists_full_snapshot(session, bridge) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.add_tag("Profile 1", "Home", "#222222")
    assert len(bridge.saved) == 2
    last = bridge.saved[-1]
    assert last["Default"] == [Tag("Work", "#111111")]
    assert last["Profile 1"] == [Tag("Home", "#222222")]


def test_duplicate_and_empty_adds_do_not_persist(session, bridge) -> None:
    assert session.add_tag("Default", "Work", "#111111")
    assert not session.add_tag("Default", "work", "#222222")
    assert not session.add_tag("Default", "   ", "#222222")
    assert len(session.tags.tags_for("Default")) == 1
    assert len(bridge.saved) == 1


def test_save_failure_keeps_memory_state(session, bridge, caplog) -> None:
    bridge.fail_save = True
    with caplog.at_level(logging.WARNING, logger="launcher_session"):
        assert session.add_tag("Default", "Work", "#111111")
    assert [t.name for t in session.tags.tags_for("Default")] == ["Work"]
    assert any(r.getMessage() == "tag_save_failed" for r in caplog.records)


def test_remove_keeps_filter_while_name_still_used(session) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.add_tag("Profile 2", "work", "#222222")
    session.set_filter_tag("Work", True)
    session.remove_tag("Default", Tag("WORK"))
    assert session.is_filter_selected("work")
    assert names(session) == ["Carol"]


def test_remove_of_last_occurrence_purges_filter_and_resets(session) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.add_tag("Default", "Home", "#222222")
    session.add_tag("Profile 2", "Home", "#222222")
    session.set_filter_tag("Home", True)
    session.set_filter_tag("Work", True)
    session.remove_tag("Default", Tag("Work"))
    assert session.filter.selected_filter_tag_names == {"Home"}
    assert session.selection.selected == 0


def test_removal_clamps_selection(session) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.add_tag("Profile 2", "Work", "#111111")
    session.add_tag("Profile 2", "Home", "#222222")
    session.set_filter_tag("Work", True)
    session.handle_key("ArrowDown")
    assert session.selected_profile().name == "Carol"
    session.remove_tag("Profile 2", Tag("Work"))
    assert names(session) == ["Alice"]
    assert session.selection.selected == 0


def test_arrow_down_five_times_on_two_items(session) -> None:
    session.set_search("example")
    assert len(session.filtered_profiles()) == 2
    for _ in range(5):
        session.handle_key("ArrowDown")
    assert session.selection.selected == 1


def test_typing_resets_selection(session) -> None:
    session.handle_key("ArrowDown")
    assert session.selection.selected == 1
    session.set_search("c")
    assert names(session) == ["Alice", "Carol"]
    assert session.selection.selected == 0
    session.handle_key("ArrowDown")
    session.set_search("car")
    assert names(session) == ["Carol"]
    assert session.selection.selected == 0


def test_filter_change_resets_even_if_item_still_visible(session) -> None:
    session.add_tag("Profile 1", "Work", "#111111")
    session.handle_key("ArrowDown")
    assert session.selected_profile().name == "Bob"
    session.set_filter_tag("work", True)
    assert names(session) == ["Bob"]
    assert session.selection.selected == 0
    session.toggle_filter_tag("WORK")
    assert session.filter.selected_filter_tag_names == set()


def test_enter_launches_selected(session, bridge) -> None:
    session.handle_key("ArrowDown")
    assert session.handle_key("Enter")
    assert bridge.launched == ["Profile 1"]


def test_enter_on_empty_list_does_nothing(session, bridge) -> None:
    session.set_search("zzz")
    assert not session.handle_key("Enter")
    assert bridge.launched == []


def test_launch_failure_is_swallowed(session, bridge, caplog) -> None:
    bridge.fail_launch = True
    with caplog.at_level(logging.WARNING, logger="launcher_session"):
        session.launch(session.profiles[0])
    assert any(r.getMessage() == "launch_failed" for r in caplog.records)


def test_open_modal_suppresses_navigation(session, bridge) -> None:
    session.open_add_tag("Default")
    assert not session.handle_key("ArrowDown")
    assert session.selection.selected == 0
    assert isinstance(session.modal.state, AddTag)


def test_enter_in_add_modal_adds_and_closes(session, bridge) -> None:
    focused = []
    session.on_focus_search = lambda: focused.append(True)
    session.open_add_tag("Profile 1")
    session.set_draft_name("  Gaming ")
    assert session.handle_key("Enter")
    assert [t.name for t in session.tags.tags_for("Profile 1")] == ["Gaming"]
    assert isinstance(session.modal.state, Closed)
    assert bridge.launched == []
    assert focused == [True]


def test_escape_in_remove_modal_cancels(session) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.open_remove_tag("Default", Tag("Work", "#111111"))
    assert session.handle_key("Escape")
    assert [t.name for t in session.tags.tags_for("Default")] == ["Work"]
    assert not session.modal.is_open


def test_enter_in_remove_modal_removes(session) -> None:
    session.add_tag("Default", "Work", "#111111")
    session.open_remove_tag("Default", Tag("Work", "#111111"))
    session.handle_key("Enter")
    assert session.tags.tags_for("Default") == []


def test_draft_color_defaults_to_preset() -> None:
    session = LauncherSession(FakeBridge(), run_async=run_inline, rng=random.Random(3))
    session.open_add_tag("x")
    assert session.modal.state.draft_color in PRESET_COLORS


def test_selection_moved_callback(session) -> None:
    moved = []
    session.on_selection_moved = moved.append
    session.handle_key("ArrowDown")
    session.handle_key("ArrowDown")
    session.handle_key("ArrowDown")
    session.handle_key("ArrowUp")
    assert moved == [1, 2, 1]


def test_escape_without_modal_is_not_consumed(session) -> None:
    assert not session.handle_key("Escape")


def test_arrow_moves_do_not_trigger_full_refresh(session) -> None:
    refreshes = []
    session.on_change = lambda: refreshes.append(1)
    session.handle_key("ArrowDown")
    session.handle_key("ArrowUp")
    assert refreshes == []


class SlowSaveBridge(FakeBridge):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.done = threading.Event()

    def save_tags(self, tags):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.2)
        with self._lock:
            self.active -= 1
        super().save_tags(tags)
        if len(self.saved) == 2:
            self.done.set()


def test_background_saves_run_one_at_a_time(profiles) -> None:
    bridge = SlowSaveBridge(profiles)
    session = LauncherSession(bridge)
    session.load(profiles, {})
    session.add_tag("Default", "Work", PRESET_COLORS[0])
    session.add_tag("Profile 1", "Home", PRESET_COLORS[1])
    assert bridge.done.wait(5)
    assert bridge.peak == 1
    assert [sorted(s) for s in bridge.saved] == [["Default"], ["Default", "Profile 1"]]
