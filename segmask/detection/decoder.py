from __future__ import annotations

import logging

import numpy as np

from segmask.detection.objects import CandidateObject
from segmask.detection.suppression import SuppressionPolicy, greedy_suppression
from segmask.errors import ConfigurationError, require_unit_interval
from segmask.geometry import Box, ImageGeometry
from segmask.model_shape import ModelShape

logger = logging.getLogger(__name__)


def decode_detections(
    detections: np.ndarray,
    shape: ModelShape,
    geometry: ImageGeometry,
    *,
    confidence: float,
    iou: float,
    policy: SuppressionPolicy = SuppressionPolicy.CLASS_SCOPED,
    max_detections: int | None = None,
) -> list[CandidateObject]:
    """
    detections: flat channel-major output, ``channel * anchors + anchor``
    Returns: candidates sorted by confidence descending, after suppression
    """
    confidence = require_unit_interval("confidence", confidence)
    iou = require_unit_interval("iou", iou)
    if max_detections is not None and max_detections <= 0:
        raise ConfigurationError(f"max_detections must be > 0, got {max_detections}")
    if detections.size == 0:
        return []
    if detections.size != shape.detection_size:
        raise ConfigurationError(
            f"Detection tensor has {detections.size} values, expected {shape.detection_size}"
        )

    anchors = shape.num_anchors
    view = detections.reshape(shape.detection_channels, anchors)
    scores = view[4 : shape.elements]  # (nc, A)
    best_class = scores.argmax(axis=0)
    best_score = scores[best_class, np.arange(anchors)]

    retained = np.nonzero(best_score > confidence)[0]
    if retained.size == 0:
        logger.debug("No anchors above confidence %.3f", confidence)
        return []

    order = retained[np.argsort(-best_score[retained], kind="stable")]
    cx, cy, w, h = (view[0, order], view[1, order], view[2, order], view[3, order])
    boxes = np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=1)
    classes = best_class[order]

    kept = greedy_suppression(boxes, classes, iou, policy=policy, max_keep=max_detections)
    logger.debug(
        "Decoded %d candidates (%d above confidence, policy=%s)", kept.size, order.size, policy.value
    )

    candidates: list[CandidateObject] = []
    for k in kept:
        anchor = int(order[k])
        class_index = int(classes[k])
        box_input = Box(*(float(v) for v in boxes[k]))
        candidates.append(
            CandidateObject(
                class_index=class_index,
                class_name=shape.class_name(class_index),
                confidence=float(best_score[anchor]),
                box_input=box_input,
                box_image=geometry.input_to_image(box_input),
                anchor_index=anchor,
            )
        )
    return candidates
