from __future__ import annotations

import numpy as np

from segmask.errors import ConfigurationError
from segmask.geometry import MaskRegion
from segmask.model_shape import ModelShape


def sigmoid(x: np.ndarray) -> np.ndarray:
    # tanh form does not overflow for large negative logits
    return 0.5 * (1.0 + np.tanh(0.5 * x))


def mask_coefficients(detections: np.ndarray, shape: ModelShape, anchor_index: int) -> np.ndarray:
    """Mask weights of one anchor; they follow the class scores in the same channel-major layout."""
    if not (0 <= anchor_index < shape.num_anchors):
        raise ConfigurationError(f"anchor_index {anchor_index} out of range for {shape.num_anchors} anchors")
    anchors = shape.num_anchors
    start = anchor_index + anchors * shape.elements
    stop = start + anchors * shape.mask_channels
    return detections[start:stop:anchors]


def synthesize_mask(embedding: np.ndarray, coefficients: np.ndarray, region: MaskRegion) -> np.ndarray:
    """
    embedding: (M, mh, mw) prototype planes
    coefficients: (M,) weights of one object
    Returns: (mh, mw) uint8 probability raster, zero outside ``region``
    """
    _, mask_h, mask_w = embedding.shape
    raster = np.zeros((mask_h, mask_w), dtype=np.uint8)
    ys, xs = region.synthesis_slices()
    planes = embedding[:, ys, xs]
    if planes.shape[1] == 0 or planes.shape[2] == 0:
        return raster

    logits = np.tensordot(coefficients.astype(np.float32), planes, axes=1)
    raster[ys, xs] = (sigmoid(logits) * 255.0).astype(np.uint8)
    return raster
