"""Interaction state for the profile launcher.

Everything here is framework-free: the Qt window renders a
:class:`LauncherSession` and forwards user input to it. State is owned by the
UI thread; only backend bridge calls are handed to ``run_async``.
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Literal, Mapping, Optional, Union

from chrome_bridge import BackendBridge
from colors import PRESET_COLORS
from debug_scaffold import record_breadcrumb, redact_email, sanitize_log_extra
from profile_filter import FilterState, Profile, filter_profiles
from tag_store import Tag, TagStore

logger = logging.getLogger(__name__)

Key = Literal["ArrowUp", "ArrowDown", "Enter", "Escape"]
Runner = Callable[[Callable[[], None]], None]


# -------- selection --------
class SelectionController:
    """Highlighted index into the current filtered list."""

    def __init__(self) -> None:
        self.selected = 0

    def move_down(self, count: int) -> bool:
        target = max(0, min(self.selected + 1, count - 1))
        moved = target != self.selected
        self.selected = target
        return moved

    def move_up(self) -> bool:
        target = max(self.selected - 1, 0)
        moved = target != self.selected
        self.selected = target
        return moved

    def reset(self) -> None:
        self.selected = 0

    def clamp(self, count: int) -> None:
        self.selected = max(0, min(self.selected, count - 1))


# -------- modal dialogs --------
@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class AddTag:
    target_folder: str
    draft_name: str
    draft_color: str


@dataclass(frozen=True)
class RemoveTag:
    target_folder: str
    target_tag: Tag


ModalState = Union[Closed, AddTag, RemoveTag]
CLOSED = Closed()


class ModalController:
    """Add-tag and remove-tag dialog flows sharing a single state slot."""

    def __init__(
        self,
        add_tag: Callable[[str, str, str], Any],
        remove_tag: Callable[[str, Tag], Any],
        on_close: Callable[[], None] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._add_tag = add_tag
        self._remove_tag = remove_tag
        self._on_close = on_close
        self._rng = rng or random.Random()
        self.state: ModalState = CLOSED

    @property
    def is_open(self) -> bool:
        return not isinstance(self.state, Closed)

    def open_add(self, folder: str) -> AddTag:
        state = AddTag(folder, "", self._rng.choice(PRESET_COLORS))
        self.state = state
        record_breadcrumb("modal_open", kind="add_tag", folder=folder)
        return state

    def open_remove(self, folder: str, tag: Tag) -> RemoveTag:
        state = RemoveTag(folder, tag)
        self.state = state
        record_breadcrumb("modal_open", kind="remove_tag", folder=folder, tag=tag.name)
        return state

    def set_draft(self, name: str | None = None, color: str | None = None) -> None:
        if not isinstance(self.state, AddTag):
            return
        changes: dict[str, str] = {}
        if name is not None:
            changes["draft_name"] = name
        if color is not None:
            changes["draft_color"] = color
        self.state = replace(self.state, **changes)

    def confirm(self) -> None:
        state = self.state
        if isinstance(state, AddTag):
            if state.draft_name.strip():
                self._add_tag(state.target_folder, state.draft_name, state.draft_color)
        elif isinstance(state, RemoveTag):
            self._remove_tag(state.target_folder, state.target_tag)
        self.close(confirmed=True)

    def cancel(self) -> None:
        self.close(confirmed=False)

    def close(self, confirmed: bool = False) -> None:
        if not self.is_open:
            return
        kind = "add_tag" if isinstance(self.state, AddTag) else "remove_tag"
        self.state = CLOSED
        record_breadcrumb("modal_close", kind=kind, confirmed=confirmed)
        if self._on_close is not None:
            self._on_close()


# -------- session --------
def _default_runner() -> Runner:
    # one worker: tag saves never overlap on the tag file
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bridge")

    def run(fn: Callable[[], None]) -> None:
        pool.submit(fn)

    return run


def load_from_bridge(bridge: BackendBridge) -> tuple[list[Profile], Mapping[str, Any]]:
    """Fetch startup data, degrading to empty collections on failure."""
    try:
        profiles = list(bridge.get_profiles())
    except Exception as exc:  # bridge is external; any failure degrades
        logger.warning(
            "load_failed",
            extra=sanitize_log_extra({"event": "load_failed", "what": "profiles", "error": str(exc)}),
        )
        profiles = []
    try:
        tags = bridge.get_tags() or {}
    except Exception as exc:
        logger.warning(
            "load_failed",
            extra=sanitize_log_extra({"event": "load_failed", "what": "tags", "error": str(exc)}),
        )
        tags = {}
    return profiles, tags


class LauncherSession:
    """Profiles, tags, filter, selection and modal state for one launcher window."""

    def __init__(
        self,
        bridge: BackendBridge,
        run_async: Optional[Runner] = None,
        rng: random.Random | None = None,
    ) -> None:
        self.bridge = bridge
        self.run_async: Runner = run_async or _default_runner()
        self.profiles: list[Profile] = []
        self.tags = TagStore()
        self.filter = FilterState()
        self.selection = SelectionController()
        self.modal = ModalController(
            self.add_tag, self.remove_tag, on_close=self._modal_closed, rng=rng
        )
        self.on_change: Callable[[], None] = lambda: None
        self.on_focus_search: Callable[[], None] = lambda: None
        self.on_selection_moved: Callable[[int], None] = lambda _index: None

    # -------- loading --------
    def load(self, profiles: Iterable[Profile], raw_tags: Mapping[str, Any] | None) -> None:
        self.profiles = list(profiles)
        self.tags = TagStore(raw_tags)
        self.filter = FilterState()
        self.selection.reset()
        record_breadcrumb(
            "session_loaded", profiles=len(self.profiles), tagged_profiles=len(self.tags)
        )
        self.on_change()

    def load_from_bridge(self) -> None:
        self.load(*load_from_bridge(self.bridge))

    # -------- derived views --------
    def filtered_profiles(self) -> list[Profile]:
        return filter_profiles(self.profiles, self.tags, self.filter)

    def unique_tags(self) -> list[Tag]:
        return self.tags.unique_tags()

    def selected_profile(self) -> Profile | None:
        visible = self.filtered_profiles()
        if 0 <= self.selection.selected < len(visible):
            return visible[self.selection.selected]
        return None

    def is_filter_selected(self, name: str) -> bool:
        key = name.casefold()
        return any(n.casefold() == key for n in self.filter.selected_filter_tag_names)

    # -------- filter input --------
    def set_search(self, text: str) -> None:
        if text == self.filter.search_query:
            return
        self.filter.search_query = text
        self.selection.reset()
        self.on_change()

    def set_filter_tag(self, name: str, selected: bool) -> None:
        if selected == self.is_filter_selected(name):
            return
        key = name.casefold()
        names = {n for n in self.filter.selected_filter_tag_names if n.casefold() != key}
        if selected:
            names.add(name)
        self.filter.selected_filter_tag_names = names
        self.selection.reset()
        self.on_change()

    def toggle_filter_tag(self, name: str) -> None:
        self.set_filter_tag(name, not self.is_filter_selected(name))

    def clear_filters(self) -> None:
        if not self.filter.search_query and not self.filter.selected_filter_tag_names:
            return
        self.filter = FilterState()
        self.selection.reset()
        self.on_change()

    # -------- tag management --------
    def add_tag(self, folder: str, raw_name: str, color: str) -> bool:
        tag = self.tags.add(folder, raw_name, color)
        if tag is None:
            return False
        record_breadcrumb("tag_add", folder=folder, tag=tag.name, color=tag.color)
        self._persist_tags()
        self.on_change()
        return True

    def remove_tag(self, folder: str, tag: Tag) -> bool:
        if not self.tags.remove(folder, tag.name):
            return False
        record_breadcrumb("tag_remove", folder=folder, tag=tag.name)
        if not self.tags.name_in_use(tag.name):
            self._purge_filter_name(tag.name)
        self.selection.clamp(len(self.filtered_profiles()))
        self._persist_tags()
        self.on_change()
        return True

    def _purge_filter_name(self, name: str) -> None:
        key = name.casefold()
        selected = self.filter.selected_filter_tag_names
        kept = {n for n in selected if n.casefold() != key}
        if kept != selected:
            self.filter.selected_filter_tag_names = kept
            self.selection.reset()
            record_breadcrumb("filter_tag_purged", tag=name)

    def _persist_tags(self) -> None:
        snapshot = self.tags.snapshot()

        def save() -> None:
            try:
                self.bridge.save_tags(snapshot)
            except Exception as exc:  # in-memory tags stay authoritative
                logger.warning(
                    "tag_save_failed",
                    extra=sanitize_log_extra({"event": "tag_save_failed", "error": str(exc)}),
                )

        self.run_async(save)

    # -------- launching --------
    def launch(self, profile: Profile) -> None:
        record_breadcrumb(
            "launch_attempt",
            folder=profile.folder,
            name=profile.name,
            email=redact_email(profile.email),
        )
        logger.info(
            "profile_launch_attempt",
            extra=sanitize_log_extra(
                {"event": "profile_launch_attempt", "folder": profile.folder, "name": profile.name}
            ),
        )

        def launch() -> None:
            try:
                self.bridge.launch_profile(profile.folder)
            except Exception as exc:
                logger.warning(
                    "launch_failed",
                    extra=sanitize_log_extra(
                        {"event": "launch_failed", "folder": profile.folder, "error": str(exc)}
                    ),
                )

        self.run_async(launch)

    def launch_selected(self) -> bool:
        profile = self.selected_profile()
        if profile is None:
            return False
        self.launch(profile)
        return True

    # -------- keyboard --------
    def move_selection(self, key: Key) -> bool:
        count = len(self.filtered_profiles())
        if key == "ArrowDown":
            moved = self.selection.move_down(count)
        else:
            moved = self.selection.move_up()
        if moved:
            self.on_selection_moved(self.selection.selected)
        return moved

    def handle_key(self, key: str) -> bool:
        """Dispatch a key press; return True if it was consumed.

        An open dialog takes precedence and only honours Enter and Escape.
        """
        if self.modal.is_open:
            if key == "Enter":
                self.modal.confirm()
                return True
            if key == "Escape":
                self.modal.cancel()
                return True
            return False
        if key in ("ArrowDown", "ArrowUp"):
            self.move_selection(key)  # type: ignore[arg-type]
            return True
        if key == "Enter":
            return self.launch_selected()
        return False

    # -------- dialogs --------
    def open_add_tag(self, folder: str) -> None:
        self.modal.open_add(folder)
        self.on_change()

    def open_remove_tag(self, folder: str, tag: Tag) -> None:
        self.modal.open_remove(folder, tag)
        self.on_change()

    def set_draft_name(self, name: str) -> None:
        self.modal.set_draft(name=name)

    def set_draft_color(self, color: str) -> None:
        self.modal.set_draft(color=color)
        self.on_change()

    def confirm_modal(self) -> None:
        self.modal.confirm()

    def cancel_modal(self) -> None:
        self.modal.cancel()

    def _modal_closed(self) -> None:
        self.on_change()
        self.on_focus_search()
