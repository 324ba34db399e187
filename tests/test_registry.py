import json

import numpy as np

from student_attendance.descriptors import EnrolledStudent
from student_attendance.registry import DescriptorRegistry


def test_empty_registry_has_no_entries():
    registry = DescriptorRegistry()
    assert registry.size() == 0
    assert list(registry.snapshot()) == []


def test_load_skips_missing_and_unparseable_descriptors(caplog):
    registry = DescriptorRegistry()
    size = registry.load(
        [
            EnrolledStudent("S-001", "Ana", json.dumps([0.1, 0.2])),
            EnrolledStudent("S-002", "Ben", None),
            EnrolledStudent("S-003", "Carla", "{not json"),
            EnrolledStudent("S-004", "Dan", []),
            EnrolledStudent("S-005", "Eve", [0.5, 0.5]),
        ]
    )

    assert size == 2
    assert registry.size() == 2
    assert [entry.student_id for entry in registry.snapshot()] == ["S-001", "S-005"]
    assert "S-003" in caplog.text


def test_load_replaces_the_whole_index():
    registry = DescriptorRegistry()
    registry.load([EnrolledStudent("S-001", "Ana", [0.1]), EnrolledStudent("S-002", "Ben", [0.2])])
    registry.load([EnrolledStudent("S-009", "Zed", [0.9])])

    assert registry.size() == 1
    assert registry.name_of("S-001") is None
    assert registry.name_of("S-009") == "Zed"


def test_old_snapshot_is_unchanged_after_reload():
    registry = DescriptorRegistry()
    registry.load([EnrolledStudent("S-001", "Ana", [0.1]), EnrolledStudent("S-002", "Ben", [0.2])])
    before = registry.snapshot()

    registry.load([])

    assert len(before) == 2
    assert registry.size() == 0
    assert before.get("S-002").name == "Ben"


def test_duplicate_student_ids_keep_one_entry_in_first_position():
    registry = DescriptorRegistry()
    registry.load(
        [
            EnrolledStudent("S-001", "Ana", [0.1]),
            EnrolledStudent("S-002", "Ben", [0.2]),
            EnrolledStudent("S-001", "Ana B.", [0.7]),
        ]
    )

    entries = list(registry.snapshot())
    assert [entry.student_id for entry in entries] == ["S-001", "S-002"]
    assert entries[0].name == "Ana B."
    assert float(entries[0].descriptor[0]) == np.float32(0.7)


def test_loaded_descriptors_are_read_only_copies():
    source = np.array([0.1, 0.2], dtype=np.float32)
    registry = DescriptorRegistry()
    registry.load([EnrolledStudent("S-001", "Ana", source)])

    stored = registry.snapshot().get("S-001").descriptor
    assert not stored.flags.writeable
    source[0] = 9.0
    assert float(stored[0]) == np.float32(0.1)


def test_shards_preserve_order_and_cover_all_entries(registry):
    shards = registry.snapshot().shards(2)
    flattened = [entry.student_id for shard in shards for entry in shard]
    assert flattened == ["S-001", "S-002", "S-003"]
    assert len(shards) == 2
