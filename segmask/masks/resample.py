from __future__ import annotations

from enum import Enum

import numpy as np
import torch
import torch.nn.functional as F

from segmask.geometry import CropWindow


class ResampleBackend(str, Enum):
    REFERENCE = "reference"
    VECTORIZED = "vectorized"


def _empty() -> np.ndarray:
    return np.zeros((0, 0), dtype=np.uint8)


def _source_taps(out_size: int, in_size: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    # Half-pixel centres, same convention as interpolate(..., align_corners=False).
    scale = in_size / out_size
    src = np.maximum((np.arange(out_size, dtype=np.float64) + 0.5) * scale - 0.5, 0.0)
    i0 = np.minimum(np.floor(src).astype(np.intp), in_size - 1)
    i1 = np.minimum(i0 + 1, in_size - 1)
    return i0, i1, src - i0


def resize_bilinear_reference(src: np.ndarray, width: int, height: int) -> np.ndarray:
    in_h, in_w = src.shape
    if in_h == 0 or in_w == 0 or width <= 0 or height <= 0:
        return _empty()

    y0, y1, ly = _source_taps(height, in_h)
    x0, x1, lx = _source_taps(width, in_w)
    values = src.astype(np.float64)
    rows = values[y0] * (1.0 - ly)[:, None] + values[y1] * ly[:, None]
    out = rows[:, x0] * (1.0 - lx) + rows[:, x1] * lx
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def resize_bilinear_vectorized(src: np.ndarray, width: int, height: int) -> np.ndarray:
    in_h, in_w = src.shape
    if in_h == 0 or in_w == 0 or width <= 0 or height <= 0:
        return _empty()

    x = torch.from_numpy(np.ascontiguousarray(src, dtype=np.float32))[None, None]
    with torch.inference_mode():
        out = F.interpolate(x, size=(int(height), int(width)), mode="bilinear", align_corners=False)
        out = out[0, 0].round_().clamp_(0, 255).to(torch.uint8)
    return out.numpy()


def resample_mask(
    raster: np.ndarray,
    window: CropWindow,
    width: int,
    height: int,
    *,
    backend: ResampleBackend = ResampleBackend.REFERENCE,
) -> np.ndarray:
    """Crop ``raster`` to ``window`` and stretch it to ``(height, width)``."""
    if window.width == 0 or window.height == 0 or width <= 0 or height <= 0:
        return _empty()

    ys, xs = window.slices()
    crop = raster[ys, xs]
    if backend is ResampleBackend.VECTORIZED:
        return resize_bilinear_vectorized(crop, width, height)
    return resize_bilinear_reference(crop, width, height)
