from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import numpy as np

from segmask.compositing.colors import WHITE, Color
from segmask.detection.objects import ObjectResult
from segmask.errors import ConfigurationError, require_unit_interval
from segmask.masks.packing import unpack_mask

logger = logging.getLogger(__name__)


class PixelFormat(str, Enum):
    R8 = "r8_unorm"
    R8G8B8A8 = "r8g8b8a8_unorm"

    @property
    def bytes_per_pixel(self) -> int:
        return 4 if self is PixelFormat.R8G8B8A8 else 1


@dataclass(frozen=True)
class CompositeResult:
    pixels: np.ndarray  # (H, W) or (H, W, 4) uint8
    pixel_format: PixelFormat

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


def _clip_placement(
    left: int, top: int, width: int, height: int, canvas_w: int, canvas_h: int
) -> tuple[tuple[slice, slice], tuple[slice, slice]] | None:
    """Intersect a placed box with the canvas; returns (canvas slices, local slices)."""
    x0 = max(left, 0)
    y0 = max(top, 0)
    x1 = min(left + width, canvas_w)
    y1 = min(top + height, canvas_h)
    if x0 >= x1 or y0 >= y1:
        return None
    dst = (slice(y0, y1), slice(x0, x1))
    src = (slice(y0 - top, y1 - top), slice(x0 - left, x1 - left))
    return dst, src


def _draw_soft(
    target: np.ndarray,
    stored: np.ndarray,
    prob: np.ndarray,
    color: Color,
    pixel_confidence: float,
    rgb: bool,
) -> None:
    r, g, b, a = color.channel_bytes()
    alpha = (prob.astype(np.uint16) * a // 255).astype(np.uint8)
    write = (alpha / 255.0 > pixel_confidence) & (alpha > stored)
    if not write.any():
        return
    if rgb:
        alpha_w = alpha[write].astype(np.uint16)
        premul = [(c * alpha_w) // 255 for c in (r, g, b)]
        target[write] = np.stack(premul + [alpha_w], axis=-1).astype(np.uint8)
    else:
        target[write] = alpha[write]


def composite_masks(
    objects: Iterable[ObjectResult],
    width: int,
    height: int,
    *,
    rgb: bool = False,
    tint: Color = WHITE,
    use_object_color: bool = True,
    soft: bool = False,
    pixel_confidence: float = 0.65,
) -> CompositeResult:
    """Rasterize object masks onto one canvas.

    Hard mode stamps the colour's premultiplied bytes wherever the packed
    mask bit is set. Soft mode reads each object's ``alpha_mask`` instead:
    alpha is ``prob * A`` per pixel, colour channels are premultiplied by
    that alpha, and pixels whose alpha is not above ``pixel_confidence``
    are dropped.

    Overlaps resolve by max-alpha-wins: a pixel is overwritten only when the
    new alpha byte is strictly greater than the stored one, so the result
    does not depend on object order for opaque colours. Pixels that land
    outside the canvas are skipped.
    """
    width = int(width)
    height = int(height)
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"canvas size must be > 0, got {width}x{height}")
    pixel_confidence = require_unit_interval("pixel_confidence", pixel_confidence)

    pixel_format = PixelFormat.R8G8B8A8 if rgb else PixelFormat.R8
    shape = (height, width, 4) if rgb else (height, width)
    canvas = np.zeros(shape, dtype=np.uint8)

    drawn = 0
    for obj in objects:
        if obj is None or not (obj.has_alpha_mask if soft else obj.has_mask):
            continue

        box = obj.bounding_box
        placed = obj.placed_box()
        placement = _clip_placement(placed.left, placed.top, box.width, box.height, width, height)
        if placement is None:
            continue
        dst, src = placement

        chosen = obj.color if use_object_color else tint
        target = canvas[dst]
        stored = target[..., 3] if rgb else target
        if soft:
            _draw_soft(target, stored, obj.alpha_mask.reshape(box.height, box.width)[src], chosen, pixel_confidence, rgb)
        else:
            r, g, b, a = chosen.premultiplied_bytes()
            write = unpack_mask(obj.packed_mask, box.width, box.height)[src] & (a > stored)
            target[write] = (r, g, b, a) if rgb else a
        drawn += 1

    logger.debug("Composited %d objects onto %dx%d %s canvas", drawn, width, height, pixel_format.value)
    return CompositeResult(pixels=canvas, pixel_format=pixel_format)
