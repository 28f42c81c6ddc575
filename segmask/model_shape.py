from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import torch

from segmask.errors import ConfigurationError
from segmask.tensor_utils import to_numpy_f32

_PROTO_CHANNEL_COUNTS = {8, 16, 32, 64, 128}

DETECTION_LAYOUTS = ("auto", "channels_first", "anchors_first")


def _looks_anchor_major(first: int, second: int, mask_channels: int, class_names: Sequence[str] | None) -> bool:
    if class_names:
        n = len(class_names)
        return first - 4 - mask_channels != n and second - 4 - mask_channels == n
    # Models have far more anchors than channels.
    return first > second


@dataclass(frozen=True)
class ModelShape:
    """Shape constants of a segmentation model's two outputs.

    A single struct covers every YOLO generation that emits
    ``(1, 4 + nc + M, anchors)`` detections and ``(1, M, mh, mw)`` prototypes
    (v8, v11 and their end-to-end variants share this layout).
    """

    input_width: int
    input_height: int
    num_classes: int
    mask_channels: int
    mask_width: int
    mask_height: int
    num_anchors: int
    class_names: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        for name in ("input_width", "input_height", "mask_width", "mask_height", "num_anchors"):
            value = getattr(self, name)
            if int(value) <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
        if self.num_classes <= 0:
            raise ConfigurationError(f"num_classes must be > 0, got {self.num_classes}")
        if self.mask_channels <= 0:
            raise ConfigurationError(f"mask_channels must be > 0, got {self.mask_channels}")
        if not self.class_names:
            object.__setattr__(self, "class_names", tuple(str(i) for i in range(self.num_classes)))
        elif len(self.class_names) != self.num_classes:
            raise ConfigurationError(
                f"class_names has {len(self.class_names)} entries, model declares {self.num_classes} classes"
            )

    @property
    def elements(self) -> int:
        return 4 + self.num_classes

    @property
    def detection_channels(self) -> int:
        return self.elements + self.mask_channels

    @property
    def detection_size(self) -> int:
        return self.detection_channels * self.num_anchors

    @property
    def embedding_size(self) -> int:
        return self.mask_channels * self.mask_width * self.mask_height

    @property
    def mask_scale_x(self) -> float:
        return self.mask_width / self.input_width

    @property
    def mask_scale_y(self) -> float:
        return self.mask_height / self.input_height

    def class_name(self, class_index: int) -> str:
        return self.class_names[class_index]

    @classmethod
    def from_output_shapes(
        cls,
        detection_shape: Sequence[int],
        mask_shape: Sequence[int],
        *,
        input_size: tuple[int, int],
        class_names: Sequence[str] | None = None,
        layout: str = "auto",
    ) -> ModelShape:
        """Build from declared output shapes; ``input_size`` is ``(width, height)``.

        ``layout`` says whether the detection output is ``(C, A)``
        ("channels_first") or ``(A, C)`` ("anchors_first"). "auto" picks the
        axis that matches ``class_names`` when given, otherwise assumes there
        are more anchors than channels.
        """
        det = [int(d) for d in detection_shape]
        proto = [int(d) for d in mask_shape]
        if len(det) == 3:
            det = det[1:]
        if len(det) != 2:
            raise ConfigurationError(f"Unexpected detection output shape: {tuple(detection_shape)}")
        if len(proto) == 4:
            proto = proto[1:]
        if len(proto) != 3:
            raise ConfigurationError(f"Unexpected mask output shape: {tuple(mask_shape)}")

        if proto[0] not in _PROTO_CHANNEL_COUNTS and proto[-1] in _PROTO_CHANNEL_COUNTS:
            mask_channels, mask_h, mask_w = proto[2], proto[0], proto[1]
        else:
            mask_channels, mask_h, mask_w = proto

        channels, anchors = det
        if layout not in DETECTION_LAYOUTS:
            raise ConfigurationError(f"layout must be one of {DETECTION_LAYOUTS}, got {layout!r}")
        if layout == "anchors_first" or (
            layout == "auto" and _looks_anchor_major(channels, anchors, mask_channels, class_names)
        ):
            channels, anchors = anchors, channels

        return cls(
            input_width=int(input_size[0]),
            input_height=int(input_size[1]),
            num_classes=channels - 4 - mask_channels,
            mask_channels=mask_channels,
            mask_width=mask_w,
            mask_height=mask_h,
            num_anchors=anchors,
            class_names=tuple(class_names) if class_names else (),
        )

    def normalize_detections(self, detections: np.ndarray | torch.Tensor) -> np.ndarray:
        """Return the detection output as a flat channel-major float32 array."""
        arr = to_numpy_f32(detections)
        if arr.size != self.detection_size:
            raise ConfigurationError(
                f"Detection tensor has {arr.size} values, expected {self.detection_size} "
                f"({self.detection_channels} channels x {self.num_anchors} anchors)"
            )
        if (
            arr.ndim >= 2
            and self.num_anchors != self.detection_channels
            and arr.shape[-2:] == (self.num_anchors, self.detection_channels)
        ):
            arr = arr.reshape(self.num_anchors, self.detection_channels).T
        return np.ascontiguousarray(arr).reshape(-1)

    def normalize_embedding(self, embedding: np.ndarray | torch.Tensor) -> np.ndarray:
        """Return the prototypes as a contiguous ``(M, mh, mw)`` float32 array."""
        arr = to_numpy_f32(embedding)
        if arr.size != self.embedding_size:
            raise ConfigurationError(
                f"Mask embedding tensor has {arr.size} values, expected {self.embedding_size} "
                f"({self.mask_channels} x {self.mask_height} x {self.mask_width})"
            )
        channels_last = (self.mask_height, self.mask_width, self.mask_channels)
        if (
            arr.ndim >= 3
            and arr.shape[-3:] == channels_last
            and channels_last != (self.mask_channels, self.mask_height, self.mask_width)
        ):
            arr = arr.reshape(channels_last).transpose(2, 0, 1)
        return np.ascontiguousarray(arr).reshape(self.mask_channels, self.mask_height, self.mask_width)

    def validate_tensors(
        self, detections: np.ndarray | torch.Tensor, embedding: np.ndarray | torch.Tensor
    ) -> tuple[np.ndarray, np.ndarray]:
        return self.normalize_detections(detections), self.normalize_embedding(embedding)
