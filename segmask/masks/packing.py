from __future__ import annotations

import numpy as np

from segmask.errors import require_unit_interval


def pack_mask(raster: np.ndarray, threshold: float) -> np.ndarray:
    """Bit ``i`` (byte ``i >> 3``, bit ``i & 7``) is set when ``raster.flat[i] / 255 > threshold``."""
    threshold = require_unit_interval("pixel_confidence", threshold)
    bits = (raster.reshape(-1) / 255.0) > threshold
    return np.packbits(bits, bitorder="little")


def unpack_mask(packed: np.ndarray, width: int, height: int) -> np.ndarray:
    """(height, width) bool; bytes missing at the end read as clear pixels."""
    total = max(0, int(width)) * max(0, int(height))
    if total == 0:
        return np.zeros((max(0, int(height)), max(0, int(width))), dtype=bool)

    packed = np.asarray(packed, dtype=np.uint8).reshape(-1)
    available = min(total, packed.size * 8)
    bits = np.zeros(total, dtype=bool)
    if available:
        bits[:available] = np.unpackbits(packed, count=available, bitorder="little").astype(bool)
    return bits.reshape(int(height), int(width))
