"""Tests for item / category name lookup."""

import json

import pytest

from hdv_tracker.data import items


@pytest.fixture
def name_table(tmp_path):
    path = tmp_path / "items.json"
    path.write_text(json.dumps({
        "items": {"289": "Blé"},
        "categories": {"15": "Ressources"},
    }), encoding="utf-8")
    items.load(path)
    yield path
    items.load()


def test_known_names(name_table):
    assert items.item_name(289) == "Blé (289)"
    assert items.item_name_short(289) == "Blé"
    assert items.category_name(15) == "Ressources (15)"
    assert items.is_known(289)


def test_unknown_falls_back_to_id(name_table):
    assert items.item_name(99999) == "99999"
    assert items.category_name(77) == "77"
    assert not items.is_known(99999)


def test_add_at_runtime(name_table):
    items.add_item(311, "Eau Potable")
    items.add_category(48, "Poudre")
    assert items.item_name_short(311) == "Eau Potable"
    assert items.category_name(48) == "Poudre (48)"
    assert 311 in items.all_items()


def test_unreadable_table_is_ignored(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert items.load(bad) == 0
    items.load()
