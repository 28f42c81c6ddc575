from __future__ import annotations

import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import numpy as np
import torch

from segmask.compositing.colors import WHITE, Color
from segmask.compositing.compositor import CompositeResult, composite_masks
from segmask.cpu_features import detect_resample_backend
from segmask.detection.decoder import decode_detections
from segmask.detection.objects import CandidateObject, ObjectResult
from segmask.detection.suppression import SuppressionPolicy
from segmask.errors import ConfigurationError, require_unit_interval
from segmask.geometry import (
    BoundingBox,
    ImageGeometry,
    MaskRegion,
    bounding_box_in_image,
    mask_region_for_box,
)
from segmask.masks.packing import pack_mask
from segmask.masks.resample import ResampleBackend, resample_mask
from segmask.masks.synthesis import mask_coefficients, synthesize_mask
from segmask.model_shape import ModelShape
from segmask.tensor_utils import to_numpy_f32

logger = logging.getLogger(__name__)

TensorLike = np.ndarray | torch.Tensor
InferFn = Callable[[TensorLike], Sequence[TensorLike]]
BoxFilter = Callable[[CandidateObject], bool]

RESIZE_MODES = ("stretch", "letterbox")


def _image_size(image: TensorLike) -> tuple[int, int]:
    """(width, height) of an HWC numpy image or a CHW / BCHW torch tensor."""
    if isinstance(image, torch.Tensor):
        return int(image.shape[-1]), int(image.shape[-2])
    arr = np.asarray(image)
    if arr.ndim < 2:
        raise ConfigurationError(f"Expected an image array with at least 2 dims, got shape {arr.shape}")
    return int(arr.shape[1]), int(arr.shape[0])


class SegmentationPipeline:
    DEFAULT_CONFIDENCE = 0.23
    DEFAULT_IOU = 0.7
    DEFAULT_PIXEL_CONFIDENCE = 0.65

    def __init__(
        self,
        shape: ModelShape,
        *,
        infer: InferFn | None = None,
        resample_backend: ResampleBackend | None = None,
        max_workers: int = 1,
        suppression: SuppressionPolicy = SuppressionPolicy.CLASS_SCOPED,
        resize_mode: str = "stretch",
    ) -> None:
        self.shape = shape
        self.infer = infer
        self.max_workers = int(max_workers)
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be > 0, got {max_workers}")
        if resize_mode not in RESIZE_MODES:
            raise ConfigurationError(f"resize_mode must be one of {RESIZE_MODES}, got {resize_mode!r}")
        self.resize_mode = resize_mode
        self.suppression = SuppressionPolicy(suppression)
        self.resample_backend = resample_backend if resample_backend is not None else detect_resample_backend()
        logger.info(
            "Segmentation pipeline ready: input=%dx%d mask=%dx%dx%d classes=%d workers=%d resample=%s",
            shape.input_width,
            shape.input_height,
            shape.mask_channels,
            shape.mask_height,
            shape.mask_width,
            shape.num_classes,
            self.max_workers,
            self.resample_backend.value,
        )

    def geometry_for(self, image_size: tuple[int, int]) -> ImageGeometry:
        input_size = (self.shape.input_width, self.shape.input_height)
        if self.resize_mode == "letterbox":
            return ImageGeometry.letterbox(image_size, input_size)
        return ImageGeometry.stretch(image_size, input_size)

    def run(self, image: TensorLike, **kwargs) -> list[ObjectResult]:
        if self.infer is None:
            raise RuntimeError("SegmentationPipeline.run requires an infer callable")
        outputs = self.infer(image)
        if not isinstance(outputs, (tuple, list)) or len(outputs) < 2:
            raise RuntimeError(f"Unexpected inference output type/shape: {type(outputs)}")
        return self.process_outputs(outputs[0], outputs[1], _image_size(image), **kwargs)

    def run_as_canvas(
        self,
        image: TensorLike,
        *,
        tint: Color = WHITE,
        rgb: bool = False,
        soft: bool = True,
        **kwargs,
    ) -> tuple[list[ObjectResult], CompositeResult]:
        """Run on ``image`` and draw every object in ``tint`` on an image-sized canvas.

        With ``soft`` the overlay carries per-pixel mask probability as alpha;
        otherwise each object is stamped flat from its packed bits.
        """
        objects = self.run(image, keep_alpha=soft, **kwargs)
        width, height = _image_size(image)
        canvas = self.composite(
            objects,
            width,
            height,
            rgb=rgb,
            tint=tint,
            use_object_color=False,
            soft=soft,
            pixel_confidence=kwargs.get("pixel_confidence", self.DEFAULT_PIXEL_CONFIDENCE),
        )
        return objects, canvas

    def composite(
        self,
        objects: Sequence[ObjectResult],
        width: int,
        height: int,
        *,
        rgb: bool = False,
        tint: Color = WHITE,
        use_object_color: bool = True,
        soft: bool = False,
        pixel_confidence: float = DEFAULT_PIXEL_CONFIDENCE,
    ) -> CompositeResult:
        return composite_masks(
            objects,
            width,
            height,
            rgb=rgb,
            tint=tint,
            use_object_color=use_object_color,
            soft=soft,
            pixel_confidence=pixel_confidence,
        )

    def process_outputs(
        self,
        detections: TensorLike,
        embedding: TensorLike,
        image_size: tuple[int, int],
        *,
        confidence: float = DEFAULT_CONFIDENCE,
        iou: float = DEFAULT_IOU,
        pixel_confidence: float = DEFAULT_PIXEL_CONFIDENCE,
        label_index: int = -1,
        bbox_filter: BoxFilter | None = None,
        crop_to_box: bool = True,
        scale_bb: float = 1.0,
        max_detections: int | None = None,
        keep_alpha: bool = False,
    ) -> list[ObjectResult]:
        """Decode, filter and mask every object of one image.

        ``image_size`` is ``(width, height)`` of the original image. Results
        keep the decoder order (confidence descending). ``keep_alpha`` also
        stores each box-sized probability raster for soft compositing.
        """
        confidence = require_unit_interval("confidence", confidence)
        iou = require_unit_interval("iou", iou)
        pixel_confidence = require_unit_interval("pixel_confidence", pixel_confidence)
        scale_bb = float(scale_bb)
        if scale_bb <= 0.0:
            raise ConfigurationError(f"scale_bb must be > 0, got {scale_bb}")

        if to_numpy_f32(detections).size == 0:
            logger.debug("Empty detection tensor, nothing to decode")
            return []
        det, emb = self.shape.validate_tensors(detections, embedding)
        geometry = self.geometry_for(image_size)

        candidates = decode_detections(
            det,
            self.shape,
            geometry,
            confidence=confidence,
            iou=iou,
            policy=self.suppression,
            max_detections=max_detections,
        )
        if label_index != -1:
            candidates = [c for c in candidates if c.class_index == label_index]
        if bbox_filter is not None:
            candidates = [c for c in candidates if bbox_filter(c)]
        if not candidates:
            return []

        job = functools.partial(
            self._build_object,
            det,
            emb,
            geometry,
            pixel_confidence=pixel_confidence,
            crop_to_box=bool(crop_to_box),
            scale_bb=scale_bb,
            keep_alpha=bool(keep_alpha),
        )
        workers = min(self.max_workers, len(candidates))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="segmask") as pool:
                return list(pool.map(job, candidates))
        return [job(c) for c in candidates]

    def _build_object(
        self,
        detections: np.ndarray,
        embedding: np.ndarray,
        geometry: ImageGeometry,
        candidate: CandidateObject,
        *,
        pixel_confidence: float,
        crop_to_box: bool,
        scale_bb: float,
        keep_alpha: bool = False,
    ) -> ObjectResult:
        shape = self.shape
        if crop_to_box:
            box_input = candidate.box_input.scaled_about_center(scale_bb)
            final_box = bounding_box_in_image(
                geometry.input_to_image(box_input), geometry.image_width, geometry.image_height
            )
            # Same clamp as the image box, so padding rows never stretch into the mask.
            region = mask_region_for_box(
                geometry.clamp_to_content(box_input),
                scale_x=shape.mask_scale_x,
                scale_y=shape.mask_scale_y,
                mask_width=shape.mask_width,
                mask_height=shape.mask_height,
            )
            window = region.crop_window()
        else:
            final_box = BoundingBox(0, 0, geometry.image_width, geometry.image_height)
            region = MaskRegion.full(shape.mask_width, shape.mask_height)
            window = geometry.content_window(
                scale_x=shape.mask_scale_x,
                scale_y=shape.mask_scale_y,
                mask_width=shape.mask_width,
                mask_height=shape.mask_height,
            )

        try:
            coefficients = mask_coefficients(detections, shape, candidate.anchor_index)
            raster = synthesize_mask(embedding, coefficients, region)
            resized = resample_mask(
                raster, window, final_box.width, final_box.height, backend=self.resample_backend
            )
            packed = pack_mask(resized, pixel_confidence)
            alpha = resized if keep_alpha else None
        except (ValueError, IndexError) as e:
            logger.warning("Mask failed for anchor %d (%s), keeping object maskless: %s",
                           candidate.anchor_index, candidate.class_name, e)
            packed = np.zeros(0, dtype=np.uint8)
            alpha = None

        return ObjectResult(candidate=candidate, bounding_box=final_box, packed_mask=packed, alpha_mask=alpha)
