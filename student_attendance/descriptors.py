import json
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from .exceptions import DescriptorError, DimensionMismatch

RawDescriptor = Union[str, bytes, Sequence[float], np.ndarray]


@dataclass(frozen=True)
class EnrolledStudent:
    student_id: str
    name: str
    descriptor: Optional[RawDescriptor] = None


def parse_descriptor(raw: RawDescriptor) -> np.ndarray:
    """Turn a JSON array string or a sequence of numbers into a read-only float32 vector."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise DescriptorError(f"Descriptor is not valid JSON: {exc}") from exc

    try:
        vector = np.array(raw, dtype=np.float32)
    except (TypeError, ValueError) as exc:
        raise DescriptorError(f"Descriptor must be a list of numbers: {exc}") from exc

    if vector.ndim != 1:
        raise DescriptorError("Descriptor must be a 1D vector.")
    if vector.size == 0:
        raise DescriptorError("Descriptor is empty.")
    if not np.all(np.isfinite(vector)):
        raise DescriptorError("Descriptor contains non-finite values.")

    vector.setflags(write=False)
    return vector


def descriptor_to_json(descriptor: RawDescriptor) -> str:
    vector = parse_descriptor(descriptor)
    return json.dumps([float(v) for v in vector])


def euclidean_distance(query: np.ndarray, candidate: np.ndarray, student_id: str = "") -> float:
    if query.shape != candidate.shape:
        raise DimensionMismatch(expected=int(query.size), actual=int(candidate.size), student_id=student_id)
    diff = query.astype(np.float64) - candidate.astype(np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def average_descriptor(samples: List[Any]) -> np.ndarray:
    vectors = [parse_descriptor(sample) for sample in samples]
    if not vectors:
        raise DescriptorError("At least one descriptor sample is required.")

    expected = int(vectors[0].size)
    for vector in vectors[1:]:
        if vector.size != expected:
            raise DimensionMismatch(expected=expected, actual=int(vector.size))

    mean = np.vstack(vectors).astype(np.float32).mean(axis=0)
    mean.setflags(write=False)
    return mean
