from __future__ import annotations

import math
from dataclasses import dataclass


def _clamp(value: int, lo: int, hi: int) -> int:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


@dataclass(frozen=True)
class Box:
    """Float xyxy box. Which grid it lives on is decided by the owner."""

    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_cxcywh(cls, cx: float, cy: float, w: float, h: float) -> Box:
        return cls(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> tuple[float, float]:
        return (self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2

    def scaled_about_center(self, factor: float) -> Box:
        if factor == 1.0:
            return self
        cx, cy = self.center
        w = self.width * factor
        h = self.height * factor
        return Box(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2


@dataclass(frozen=True)
class BoundingBox:
    """Integer pixel box; right/bottom are exclusive so width == right - left."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return max(0, self.right - self.left)

    @property
    def height(self) -> int:
        return max(0, self.bottom - self.top)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def translated(self, dx: int, dy: int) -> BoundingBox:
        return BoundingBox(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)


@dataclass(frozen=True)
class CropWindow:
    """Half-open [x0, x1) x [y0, y1) window into a raster."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return max(0, self.x1 - self.x0)

    @property
    def height(self) -> int:
        return max(0, self.y1 - self.y0)

    def slices(self) -> tuple[slice, slice]:
        return slice(self.y0, self.y0 + self.height), slice(self.x0, self.x0 + self.width)


@dataclass(frozen=True)
class MaskRegion:
    """Inclusive bounds of an object on the mask-embedding grid."""

    left: int
    top: int
    right: int
    bottom: int

    @classmethod
    def full(cls, mask_width: int, mask_height: int) -> MaskRegion:
        return cls(0, 0, mask_width - 1, mask_height - 1)

    def synthesis_slices(self) -> tuple[slice, slice]:
        return slice(self.top, self.bottom + 1), slice(self.left, self.right + 1)

    def crop_window(self) -> CropWindow:
        # Cropping treats right/bottom as exclusive, like extracting a pixel subset.
        return CropWindow(self.left, self.top, self.right, self.bottom)


def mask_region_for_box(
    box_input: Box,
    *,
    scale_x: float,
    scale_y: float,
    mask_width: int,
    mask_height: int,
) -> MaskRegion:
    left = math.floor(box_input.x1 * scale_x)
    top = math.floor(box_input.y1 * scale_y)
    right = math.ceil(box_input.x2 * scale_x)
    bottom = math.ceil(box_input.y2 * scale_y)
    return MaskRegion(
        left=_clamp(left, 0, mask_width - 1),
        top=_clamp(top, 0, mask_height - 1),
        right=_clamp(right, 0, mask_width - 1),
        bottom=_clamp(bottom, 0, mask_height - 1),
    )


def bounding_box_in_image(box: Box, image_width: int, image_height: int) -> BoundingBox:
    left = _clamp(math.floor(box.x1), 0, image_width - 1)
    top = _clamp(math.floor(box.y1), 0, image_height - 1)
    right = _clamp(math.ceil(box.x2), left, image_width)
    bottom = _clamp(math.ceil(box.y2), top, image_height)
    return BoundingBox(left, top, right, bottom)


@dataclass(frozen=True)
class ImageGeometry:
    """How the original image was fitted into the model input grid."""

    image_width: int
    image_height: int
    input_width: int
    input_height: int
    gain_x: float
    gain_y: float
    pad_x: float = 0.0
    pad_y: float = 0.0

    @classmethod
    def stretch(cls, image_size: tuple[int, int], input_size: tuple[int, int]) -> ImageGeometry:
        w, h = (int(image_size[0]), int(image_size[1]))
        in_w, in_h = (int(input_size[0]), int(input_size[1]))
        if w <= 0 or h <= 0:
            raise ValueError(f"image size must be > 0, got {image_size}")
        return cls(w, h, in_w, in_h, gain_x=in_w / w, gain_y=in_h / h)

    @classmethod
    def letterbox(cls, image_size: tuple[int, int], input_size: tuple[int, int]) -> ImageGeometry:
        w, h = (int(image_size[0]), int(image_size[1]))
        in_w, in_h = (int(input_size[0]), int(input_size[1]))
        if w <= 0 or h <= 0:
            raise ValueError(f"image size must be > 0, got {image_size}")

        gain = min(in_h / h, in_w / w)
        unpad_w = int(round(w * gain))
        unpad_h = int(round(h * gain))
        left = (in_w - unpad_w) // 2
        top = (in_h - unpad_h) // 2
        return cls(w, h, in_w, in_h, gain_x=gain, gain_y=gain, pad_x=float(left), pad_y=float(top))

    def input_to_image(self, box: Box) -> Box:
        x1 = (box.x1 - self.pad_x) / self.gain_x
        y1 = (box.y1 - self.pad_y) / self.gain_y
        x2 = (box.x2 - self.pad_x) / self.gain_x
        y2 = (box.y2 - self.pad_y) / self.gain_y
        return Box(
            min(max(x1, 0.0), float(self.image_width)),
            min(max(y1, 0.0), float(self.image_height)),
            min(max(x2, 0.0), float(self.image_width)),
            min(max(y2, 0.0), float(self.image_height)),
        )

    def image_to_input(self, box: Box) -> Box:
        return Box(
            box.x1 * self.gain_x + self.pad_x,
            box.y1 * self.gain_y + self.pad_y,
            box.x2 * self.gain_x + self.pad_x,
            box.y2 * self.gain_y + self.pad_y,
        )

    def content_box(self) -> Box:
        """Input-grid area the image occupies."""
        return self.image_to_input(Box(0.0, 0.0, float(self.image_width), float(self.image_height)))

    def clamp_to_content(self, box: Box) -> Box:
        """Clip an input-grid box so it never reaches into letterbox padding."""
        content = self.content_box()
        return Box(
            min(max(box.x1, content.x1), content.x2),
            min(max(box.y1, content.y1), content.y2),
            min(max(box.x2, content.x1), content.x2),
            min(max(box.y2, content.y1), content.y2),
        )

    def content_window(self, *, scale_x: float, scale_y: float, mask_width: int, mask_height: int) -> CropWindow:
        """Mask-grid window covering the image content (letterbox padding excluded)."""
        content = self.content_box()
        x0 = _clamp(math.floor(content.x1 * scale_x), 0, mask_width)
        y0 = _clamp(math.floor(content.y1 * scale_y), 0, mask_height)
        x1 = _clamp(math.ceil(content.x2 * scale_x - 1e-6), x0, mask_width)
        y1 = _clamp(math.ceil(content.y2 * scale_y - 1e-6), y0, mask_height)
        return CropWindow(x0, y0, x1, y1)
