"""Search and tag-filter computation over the profile list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from tag_store import TagStore


@dataclass(frozen=True)
class Profile:
    folder: str
    name: str
    email: Optional[str] = None


@dataclass
class FilterState:
    search_query: str = ""
    selected_filter_tag_names: set[str] = field(default_factory=set)


def matches_text(profile: Profile, query: str) -> bool:
    needle = query.casefold()
    if not needle:
        return True
    return needle in profile.name.casefold() or needle in (profile.email or "").casefold()


def matches_tags(profile: Profile, store: TagStore, selected: Iterable[str]) -> bool:
    wanted = {name.casefold() for name in selected}
    if not wanted:
        return True
    own = {t.key for t in store.tags_for(profile.folder)}
    return wanted <= own


def filter_profiles(
    profiles: Iterable[Profile], store: TagStore, state: FilterState
) -> list[Profile]:
    """Return profiles passing both the text and tag predicates, in source order."""
    return [
        p
        for p in profiles
        if matches_text(p, state.search_query)
        and matches_tags(p, store, state.selected_filter_tag_names)
    ]
