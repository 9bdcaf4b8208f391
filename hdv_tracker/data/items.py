"""
HDV_Tracker — Item / Category Name Lookup

Loads gid -> name and category -> name mappings from data/items.json.
Falls back to the raw id when a name is unknown. Display only; nothing
in the pipeline depends on names.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)

_items: dict[int, str] = {}
_categories: dict[int, str] = {}
_loaded = False

DEFAULT_PATHS = [
    Path(__file__).parent.parent.parent / "data" / "items.json",
    Path("data/items.json"),
]


def load(path: str | Path | None = None) -> int:
    """(Re)load names from a JSON file. Returns the number of names loaded."""
    global _items, _categories, _loaded
    _loaded = True
    candidates = [Path(path)] if path else DEFAULT_PATHS
    for p in candidates:
        if not p.exists():
            continue
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            _items = {int(k): v for k, v in data.get("items", {}).items()}
            _categories = {int(k): v for k, v in data.get("categories", {}).items()}
        except (json.JSONDecodeError, ValueError) as e:
            log.warning("Ignoring unreadable name table %s: %s", p, e)
            continue
        log.debug("Loaded %d item and %d category names from %s", len(_items), len(_categories), p)
        return len(_items) + len(_categories)
    return 0


def _ensure() -> None:
    if not _loaded:
        load()


def item_name(gid: int) -> str:
    """'Name (gid)' if known, else just the gid."""
    _ensure()
    name = _items.get(gid)
    return f"{name} ({gid})" if name else str(gid)


def item_name_short(gid: int) -> str:
    _ensure()
    return _items.get(gid, str(gid))


def category_name(category_id: int) -> str:
    _ensure()
    name = _categories.get(category_id)
    return f"{name} ({category_id})" if name else str(category_id)


def is_known(gid: int) -> bool:
    _ensure()
    return gid in _items


def add_item(gid: int, name: str) -> None:
    """Register an item name at runtime."""
    _ensure()
    _items[gid] = name


def add_category(category_id: int, name: str) -> None:
    _ensure()
    _categories[category_id] = name


def all_items() -> dict[int, str]:
    _ensure()
    return dict(_items)
