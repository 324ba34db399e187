import math
from dataclasses import dataclass

from .config import MAX_DISTANCE
from .exceptions import ConfigurationError


class DistancePolicy:
    name = "base"

    def confidence(self, distance: float) -> float:
        raise NotImplementedError

    def accepts(self, confidence: float, threshold: float) -> bool:
        return confidence >= threshold


@dataclass(frozen=True)
class ScaledDistancePolicy(DistancePolicy):
    max_distance: float = MAX_DISTANCE
    name = "scaled"

    def __post_init__(self):
        if self.max_distance <= 0:
            raise ConfigurationError("max_distance must be positive.")

    def confidence(self, distance: float) -> float:
        return 1.0 - (distance / self.max_distance)


@dataclass(frozen=True)
class RawDistancePolicy(DistancePolicy):
    name = "raw"

    def confidence(self, distance: float) -> float:
        return 1.0 - distance


def get_policy(name: str, max_distance: float = MAX_DISTANCE) -> DistancePolicy:
    key = (name or "").strip().lower()
    if key == ScaledDistancePolicy.name:
        return ScaledDistancePolicy(max_distance=max_distance)
    if key == RawDistancePolicy.name:
        return RawDistancePolicy()
    raise ConfigurationError(f"Unknown distance policy '{name}'. Use 'scaled' or 'raw'.")


def validate_threshold(threshold: float) -> float:
    value = float(threshold)
    if math.isnan(value):
        raise ConfigurationError("Confidence threshold must be a number.")
    return value
