"""
Reference group value object: one curated look reduced to a centroid.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class GenderTag(str, Enum):
    """Gender tag attached to reference groups and submissions."""

    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReferenceGroup:
    """
    Value object representing one reference group.

    The centroid is the mean of `sample_count` successfully embedded
    images. Groups with no successful embeddings are never created.
    The centroid array is made read-only so a published group cannot
    be patched in place.
    """

    label: str
    gender: GenderTag
    sample_count: int
    centroid: np.ndarray

    def __post_init__(self) -> None:
        """Validate the group and freeze its centroid."""
        if self.sample_count < 1:
            raise ValueError(
                f"Reference group {self.label!r} needs at least one sample, "
                f"got {self.sample_count}"
            )
        if self.centroid.ndim != 1 or self.centroid.size == 0:
            raise ValueError(
                f"Reference group {self.label!r} needs a non-empty 1-D centroid, "
                f"got shape {self.centroid.shape}"
            )
        self.centroid.setflags(write=False)

    @property
    def dimension(self) -> int:
        """Return the centroid length."""
        return int(self.centroid.shape[0])

    def summary(self) -> dict:
        """Return the label/gender/size summary reported after a reload."""
        return {
            "label": self.label,
            "gender": self.gender.value,
            "size": self.sample_count,
        }
