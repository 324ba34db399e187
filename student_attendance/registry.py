from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Tuple

import numpy as np

from .descriptors import EnrolledStudent, parse_descriptor
from .exceptions import DescriptorError
from .logger import setup_logger


@dataclass(frozen=True)
class RegistryEntry:
    student_id: str
    name: str
    descriptor: np.ndarray


@dataclass(frozen=True)
class RegistrySnapshot:
    entries: Tuple[RegistryEntry, ...] = ()
    _by_id: Dict[str, RegistryEntry] = field(default_factory=dict, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self.entries)

    def get(self, student_id: str) -> Optional[RegistryEntry]:
        return self._by_id.get(student_id)

    def shards(self, count: int) -> Tuple[Tuple[RegistryEntry, ...], ...]:
        count = max(1, min(int(count), len(self.entries) or 1))
        size, extra = divmod(len(self.entries), count)
        output = []
        start = 0
        for index in range(count):
            end = start + size + (1 if index < extra else 0)
            output.append(self.entries[start:end])
            start = end
        return tuple(output)


class DescriptorRegistry:
    """One face descriptor per enrolled student, rebuilt wholesale on every load."""

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)
        self._snapshot = RegistrySnapshot()

    def load(self, students: Iterable[EnrolledStudent]) -> int:
        order: Dict[str, int] = {}
        entries = []
        skipped = 0

        for student in students:
            if student.descriptor is None:
                continue
            try:
                descriptor = parse_descriptor(student.descriptor)
            except DescriptorError as exc:
                skipped += 1
                self.logger.warning("Skipping descriptor for student %s: %s", student.student_id, exc)
                continue

            entry = RegistryEntry(student_id=student.student_id, name=student.name, descriptor=descriptor)
            if student.student_id in order:
                entries[order[student.student_id]] = entry
            else:
                order[student.student_id] = len(entries)
                entries.append(entry)

        by_id = {entry.student_id: entry for entry in entries}
        # Swap the reference; in-flight matches keep the snapshot they started with.
        self._snapshot = RegistrySnapshot(entries=tuple(entries), _by_id=by_id)
        self.logger.info("Loaded %d student face descriptors (%d skipped)", len(entries), skipped)
        return len(entries)

    def size(self) -> int:
        return len(self._snapshot)

    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def name_of(self, student_id: str) -> Optional[str]:
        entry = self._snapshot.get(student_id)
        return entry.name if entry else None
