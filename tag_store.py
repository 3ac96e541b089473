"""In-memory tag taxonomy keyed by Chrome profile folder."""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from colors import PRESET_COLORS, is_hex_color


@dataclass(frozen=True)
class Tag:
    name: str
    color: str = PRESET_COLORS[0]

    @property
    def key(self) -> str:
        """Case-insensitive identity used for uniqueness and matching."""
        return self.name.casefold()


def _coerce_tag(raw: Any) -> Tag | None:
    if isinstance(raw, Tag):
        return raw
    if isinstance(raw, str):
        return Tag(raw, PRESET_COLORS[0])
    if isinstance(raw, Mapping):
        name = raw.get("name")
        if not isinstance(name, str):
            return None
        color = raw.get("color")
        return Tag(name, color if is_hex_color(color) else PRESET_COLORS[0])
    return None


def normalize_tags(raw: Mapping[str, Iterable[Any]] | None) -> dict[str, list[Tag]]:
    """Upgrade loaded tag data to ``{folder: [Tag, ...]}``.

    Bare strings (the legacy format) become ``Tag(name, PRESET_COLORS[0])``.
    Unrecognised entries are dropped and per-profile duplicates collapse onto
    the first occurrence so the uniqueness invariant holds from load onward.
    """
    result: dict[str, list[Tag]] = {}
    if not isinstance(raw, Mapping):
        return result
    for folder, entries in raw.items():
        if not isinstance(folder, str) or isinstance(entries, (str, bytes)):
            continue
        tags: list[Tag] = []
        seen: set[str] = set()
        for entry in entries or []:
            tag = _coerce_tag(entry)
            if tag is None or not tag.name.strip() or tag.key in seen:
                continue
            seen.add(tag.key)
            tags.append(tag)
        result[folder] = tags
    return result


class TagStore:
    """Maps profile folder -> ordered list of :class:`Tag`.

    Within one folder no two tags share a case-insensitive name.
    """

    def __init__(self, mapping: Mapping[str, Iterable[Any]] | None = None) -> None:
        self._tags: dict[str, list[Tag]] = normalize_tags(mapping)

    def tags_for(self, folder: str) -> list[Tag]:
        return list(self._tags.get(folder, []))

    def has_tag(self, folder: str, name: str) -> bool:
        key = name.strip().casefold()
        return any(t.key == key for t in self._tags.get(folder, []))

    def add(self, folder: str, raw_name: str, color: str) -> Tag | None:
        """Append a tag; return it, or ``None`` when nothing changed."""
        name = (raw_name or "").strip()
        if not name or self.has_tag(folder, name):
            return None
        tag = Tag(name, color if is_hex_color(color) else PRESET_COLORS[0])
        self._tags.setdefault(folder, []).append(tag)
        return tag

    def remove(self, folder: str, name: str) -> bool:
        key = name.casefold()
        tags = self._tags.get(folder)
        if not tags:
            return False
        kept = [t for t in tags if t.key != key]
        if len(kept) == len(tags):
            return False
        self._tags[folder] = kept
        return True

    def name_in_use(self, name: str) -> bool:
        """Return True if any profile still carries a tag called *name*."""
        key = name.casefold()
        return any(t.key == key for tags in self._tags.values() for t in tags)

    def unique_tags(self) -> list[Tag]:
        """One tag per distinct name across all profiles, sorted by name."""
        found: dict[str, Tag] = {}
        for tags in self._tags.values():
            for tag in tags:
                found.setdefault(tag.key, tag)
        return sorted(found.values(), key=lambda t: (t.key, t.name))

    def snapshot(self) -> dict[str, list[Tag]]:
        return copy.deepcopy(self._tags)

    def to_json(self) -> dict[str, list[dict[str, str]]]:
        return {
            folder: [asdict(t) for t in tags] for folder, tags in self._tags.items()
        }

    def __len__(self) -> int:
        return len(self._tags)
