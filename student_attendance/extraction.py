from typing import Any, List, Protocol

import numpy as np

from .exceptions import MultipleFacesDetected, NoFaceDetected


class EmbeddingExtractor(Protocol):
    """Face embedding model. Returns one descriptor per detected face."""

    def extract(self, image: Any) -> List[np.ndarray]:
        ...


def single_face(descriptors: List[np.ndarray]) -> np.ndarray:
    if not descriptors:
        raise NoFaceDetected("No face detected")
    if len(descriptors) > 1:
        raise MultipleFacesDetected("Multiple faces detected")
    return descriptors[0]


def extract_single(extractor: EmbeddingExtractor, image: Any) -> np.ndarray:
    return single_face(extractor.extract(image))
