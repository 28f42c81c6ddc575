import itertools

import numpy as np
import pytest
import torch
from torchvision.ops import box_iou

from segmask.detection.decoder import decode_detections
from segmask.detection.suppression import SuppressionPolicy
from segmask.errors import ConfigurationError
from segmask.geometry import Box, ImageGeometry
from segmask.model_shape import ModelShape


def _detections(shape: ModelShape, entries) -> np.ndarray:
    """entries: (anchor, (cx, cy, w, h), class_index, score)"""
    out = np.zeros((shape.detection_channels, shape.num_anchors), dtype=np.float32)
    for anchor, (cx, cy, w, h), class_index, score in entries:
        out[0:4, anchor] = (cx, cy, w, h)
        out[4 + class_index, anchor] = score
    return out.reshape(-1)


def _random_detections(shape: ModelShape, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    out = np.zeros((shape.detection_channels, shape.num_anchors), dtype=np.float32)
    out[0] = rng.uniform(0, shape.input_width, shape.num_anchors)
    out[1] = rng.uniform(0, shape.input_height, shape.num_anchors)
    out[2] = rng.uniform(8, 200, shape.num_anchors)
    out[3] = rng.uniform(8, 200, shape.num_anchors)
    out[4 : shape.elements] = rng.uniform(0, 1, (shape.num_classes, shape.num_anchors))
    out[shape.elements :] = rng.normal(size=(shape.mask_channels, shape.num_anchors))
    return out.reshape(-1)


_SHAPE = ModelShape(640, 640, 3, 4, 160, 160, 16, class_names=("person", "car", "dog"))
_GEOMETRY = ImageGeometry.stretch((640, 640), (640, 640))


def test_single_anchor_is_decoded_in_both_coordinate_spaces() -> None:
    det = _detections(_SHAPE, [(7, (30.0, 30.0, 40.0, 40.0), 0, 0.9)])
    geometry = ImageGeometry.stretch((1280, 960), (640, 640))

    candidates = decode_detections(det, _SHAPE, geometry, confidence=0.5, iou=0.7)

    assert len(candidates) == 1
    c = candidates[0]
    assert c.class_index == 0
    assert c.class_name == "person"
    assert c.confidence == pytest.approx(0.9)
    assert c.anchor_index == 7
    assert c.box_input == Box(10.0, 10.0, 50.0, 50.0)
    assert c.box_image.as_tuple() == pytest.approx((20.0, 15.0, 100.0, 75.0))


def test_best_class_wins_per_anchor() -> None:
    det = _detections(_SHAPE, [(0, (100.0, 100.0, 20.0, 20.0), 1, 0.6)])
    det.reshape(_SHAPE.detection_channels, -1)[4 + 2, 0] = 0.8
    candidates = decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.5, iou=0.7)
    assert [c.class_name for c in candidates] == ["dog"]
    assert candidates[0].confidence == pytest.approx(0.8)


def test_empty_and_rejected_inputs_return_empty_list() -> None:
    assert decode_detections(np.zeros(0, dtype=np.float32), _SHAPE, _GEOMETRY, confidence=0.5, iou=0.5) == []
    det = _detections(_SHAPE, [(0, (10.0, 10.0, 5.0, 5.0), 0, 0.4)])
    assert decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.5, iou=0.5) == []


def test_confidence_threshold_is_strict() -> None:
    det = _detections(_SHAPE, [(0, (10.0, 10.0, 5.0, 5.0), 0, 0.5)])
    assert decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.5, iou=0.5) == []


def test_results_are_sorted_by_confidence() -> None:
    det = _detections(
        _SHAPE,
        [
            (0, (50.0, 50.0, 20.0, 20.0), 0, 0.6),
            (1, (200.0, 200.0, 20.0, 20.0), 0, 0.95),
            (2, (400.0, 400.0, 20.0, 20.0), 1, 0.8),
        ],
    )
    candidates = decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.1, iou=0.5)
    assert [c.anchor_index for c in candidates] == [1, 2, 0]


def test_class_scoped_suppression_keeps_other_classes() -> None:
    det = _detections(
        _SHAPE,
        [
            (0, (100.0, 100.0, 50.0, 50.0), 0, 0.9),
            (1, (102.0, 100.0, 50.0, 50.0), 0, 0.8),
            (2, (101.0, 100.0, 50.0, 50.0), 1, 0.7),
        ],
    )
    candidates = decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.1, iou=0.5)
    assert [c.anchor_index for c in candidates] == [0, 2]


def test_class_agnostic_suppression_crosses_classes() -> None:
    det = _detections(
        _SHAPE,
        [
            (0, (100.0, 100.0, 50.0, 50.0), 0, 0.9),
            (2, (101.0, 100.0, 50.0, 50.0), 1, 0.7),
        ],
    )
    candidates = decode_detections(
        det, _SHAPE, _GEOMETRY, confidence=0.1, iou=0.5, policy=SuppressionPolicy.CLASS_AGNOSTIC
    )
    assert [c.anchor_index for c in candidates] == [0]


def test_max_detections_keeps_the_most_confident() -> None:
    det = _detections(
        _SHAPE,
        [(i, (40.0 * i + 20, 20.0, 10.0, 10.0), 0, 0.5 + i * 0.05) for i in range(6)],
    )
    candidates = decode_detections(det, _SHAPE, _GEOMETRY, confidence=0.1, iou=0.5, max_detections=2)
    assert [c.anchor_index for c in candidates] == [5, 4]


@pytest.mark.parametrize(("confidence", "iou"), [(-0.1, 0.5), (1.1, 0.5), (0.5, -0.01), (0.5, 1.5)])
def test_rejects_thresholds_outside_unit_interval(confidence: float, iou: float) -> None:
    det = _detections(_SHAPE, [])
    with pytest.raises(ConfigurationError):
        decode_detections(det, _SHAPE, _GEOMETRY, confidence=confidence, iou=iou)


def test_rejects_tensor_of_wrong_size() -> None:
    with pytest.raises(ConfigurationError):
        decode_detections(np.zeros(10, dtype=np.float32), _SHAPE, _GEOMETRY, confidence=0.5, iou=0.5)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_no_same_class_pair_overlaps_above_iou_threshold(seed: int) -> None:
    shape = ModelShape(640, 640, 3, 2, 160, 160, 300)
    det = _random_detections(shape, seed)
    for confidence, iou in itertools.product([0.0, 0.3, 0.7], [0.0, 0.2, 0.5, 0.8, 1.0]):
        candidates = decode_detections(det, shape, _GEOMETRY, confidence=confidence, iou=iou)
        boxes = np.array([c.box_input.as_tuple() for c in candidates], dtype=np.float32).reshape(-1, 4)
        classes = np.array([c.class_index for c in candidates])
        ious = box_iou(torch.from_numpy(boxes), torch.from_numpy(boxes)).numpy()
        same_class = classes[:, None] == classes[None, :]
        np.fill_diagonal(same_class, False)
        assert not np.any(ious[same_class] > iou), (confidence, iou)


@pytest.mark.parametrize("seed", [3, 4])
def test_raising_confidence_yields_a_subset(seed: int) -> None:
    shape = ModelShape(640, 640, 3, 2, 160, 160, 300)
    det = _random_detections(shape, seed)
    previous: set[int] | None = None
    for confidence in [0.1, 0.3, 0.5, 0.7, 0.9]:
        kept = {c.anchor_index for c in decode_detections(det, shape, _GEOMETRY, confidence=confidence, iou=0.45)}
        if previous is not None:
            assert kept <= previous
        previous = kept
