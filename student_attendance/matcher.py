from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .config import CONFIDENCE_THRESHOLD
from .descriptors import RawDescriptor, euclidean_distance, parse_descriptor
from .policy import DistancePolicy, validate_threshold
from .registry import DescriptorRegistry, RegistryEntry


@dataclass(frozen=True)
class Matched:
    student_id: str
    name: str
    confidence: float
    distance: float
    policy: str
    matched: bool = True


@dataclass(frozen=True)
class Unmatched:
    best_distance: Optional[float]
    confidence: Optional[float]
    policy: str
    matched: bool = False

    @property
    def label(self) -> str:
        return "Unknown"


MatchResult = Union[Matched, Unmatched]


def scan_entries(
    query: np.ndarray,
    entries: Sequence[RegistryEntry],
) -> Tuple[Optional[RegistryEntry], Optional[float]]:
    best_entry: Optional[RegistryEntry] = None
    best_distance: Optional[float] = None
    for entry in entries:
        distance = euclidean_distance(query, entry.descriptor, student_id=entry.student_id)
        if best_distance is None or distance < best_distance:
            best_entry = entry
            best_distance = distance
    return best_entry, best_distance


class Matcher:
    def __init__(
        self,
        registry: DescriptorRegistry,
        policy: DistancePolicy,
        threshold: float = CONFIDENCE_THRESHOLD,
        shards: int = 1,
    ):
        self.registry = registry
        self.policy = policy
        self.threshold = validate_threshold(threshold)
        self.shards = max(1, int(shards))

    def match(self, query: RawDescriptor, threshold: Optional[float] = None) -> MatchResult:
        required = self.threshold if threshold is None else validate_threshold(threshold)
        vector = parse_descriptor(query)
        snapshot = self.registry.snapshot()
        if not len(snapshot):
            return Unmatched(best_distance=None, confidence=None, policy=self.policy.name)

        best_entry: Optional[RegistryEntry] = None
        best_distance: Optional[float] = None
        # Shards are contiguous and visited in order, so ties still resolve to roster order.
        for shard in snapshot.shards(self.shards):
            entry, distance = scan_entries(vector, shard)
            if distance is not None and (best_distance is None or distance < best_distance):
                best_entry = entry
                best_distance = distance

        confidence = self.policy.confidence(best_distance)
        if best_entry is not None and self.policy.accepts(confidence, required):
            return Matched(
                student_id=best_entry.student_id,
                name=best_entry.name,
                confidence=confidence,
                distance=best_distance,
                policy=self.policy.name,
            )
        return Unmatched(best_distance=best_distance, confidence=confidence, policy=self.policy.name)
