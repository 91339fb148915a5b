import json
from pathlib import Path

import pytest

from storyloom.presentation.cli.save_slots import SaveSlotStore


def _make_store(tmp_path: Path) -> SaveSlotStore:
    return SaveSlotStore(tmp_path / "saves", slot_count=3)


def test_write_and_read_slot(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    assert not store.slot_exists(1)
    store.write_slot(1, '{"save_version": 1}')
    assert store.slot_exists(1)
    assert store.read_slot(1) == '{"save_version": 1}'


@pytest.mark.parametrize("slot", [0, 4])
def test_slot_range_is_enforced(tmp_path: Path, slot: int) -> None:
    store = _make_store(tmp_path)
    with pytest.raises(ValueError, match="between 1 and 3"):
        store.write_slot(slot, "{}")


def test_list_slots_reports_metadata_and_corruption(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    store.write_slot(1, json.dumps({"metadata": {"current_node_id": "n1"}, "state": {}}))
    store.write_slot(3, "garbage")

    slots = store.list_slots()

    assert [(entry.slot, entry.exists, entry.is_corrupt) for entry in slots] == [
        (1, True, False),
        (2, False, False),
        (3, True, True),
    ]
    assert slots[0].metadata == {"current_node_id": "n1"}
