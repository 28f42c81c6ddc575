from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

import numpy as np

from segmask.compositing.colors import WHITE, Color
from segmask.geometry import BoundingBox, Box


@dataclass(frozen=True)
class CandidateObject:
    class_index: int
    class_name: str
    confidence: float
    box_input: Box  # model input grid, used unmodified for mask-grid mapping
    box_image: Box  # original image pixels, clamped to the image
    anchor_index: int  # slot in the detection tensor this candidate was read from


def _empty_mask() -> np.ndarray:
    return np.zeros(0, dtype=np.uint8)


@dataclass(frozen=True)
class ObjectResult:
    candidate: CandidateObject
    bounding_box: BoundingBox
    packed_mask: np.ndarray = field(default_factory=_empty_mask, compare=False)  # 1 bit/px, stride = box width
    color: Color = WHITE
    offset: tuple[int, int] = (0, 0)  # applied at composite time only
    # box-sized sigmoid*255 raster, kept only when soft compositing is wanted
    alpha_mask: np.ndarray | None = field(default=None, compare=False, repr=False)

    @property
    def class_index(self) -> int:
        return self.candidate.class_index

    @property
    def class_name(self) -> str:
        return self.candidate.class_name

    @property
    def confidence(self) -> float:
        return self.candidate.confidence

    @property
    def has_mask(self) -> bool:
        return self.packed_mask.size > 0 and not self.bounding_box.is_empty

    @property
    def has_alpha_mask(self) -> bool:
        return self.alpha_mask is not None and self.alpha_mask.size > 0 and not self.bounding_box.is_empty

    def with_color(self, color: Color) -> ObjectResult:
        return dataclasses.replace(self, color=color)

    def translated(self, dx: int, dy: int) -> ObjectResult:
        ox, oy = self.offset
        return dataclasses.replace(self, offset=(ox + int(dx), oy + int(dy)))

    def placed_box(self) -> BoundingBox:
        return self.bounding_box.translated(*self.offset)
