from __future__ import annotations
from enum import Enum


class ExtractionMethod(str, Enum):
    FULL_FRAME = "full_frame"
    RANDOM = "random"
    CENTROID = "centroid"
    AUGMENTED = "augmented"
