from __future__ import annotations

from enum import Enum

import numpy as np
import torch
from torchvision.ops import batched_nms, nms


class SuppressionPolicy(str, Enum):
    CLASS_SCOPED = "class_scoped"  # detection / segmentation
    CLASS_AGNOSTIC = "class_agnostic"  # oriented-box style heads


def greedy_suppression(
    boxes: np.ndarray,
    classes: np.ndarray,
    iou_threshold: float,
    *,
    policy: SuppressionPolicy = SuppressionPolicy.CLASS_SCOPED,
    max_keep: int | None = None,
) -> np.ndarray:
    """
    boxes: (N, 4) xyxy, already sorted by confidence descending
    classes: (N,) class index per box
    Returns: indices (into boxes) of the kept candidates, in input order
    """
    n = boxes.shape[0]
    if n == 0:
        return np.zeros(0, dtype=np.int64)

    boxes_t = torch.as_tensor(np.ascontiguousarray(boxes), dtype=torch.float32)
    # Rank scores keep ties in the caller's (stable) order.
    ranks = torch.arange(n, 0, -1, dtype=torch.float32)
    with torch.inference_mode():
        if policy is SuppressionPolicy.CLASS_SCOPED:
            idxs = torch.as_tensor(np.asarray(classes), dtype=torch.int64)
            keep = batched_nms(boxes_t, ranks, idxs, float(iou_threshold))
        else:
            keep = nms(boxes_t, ranks, float(iou_threshold))

    kept = keep.numpy().astype(np.int64)
    if max_keep is not None:
        kept = kept[:max_keep]
    return kept
