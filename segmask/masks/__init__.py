from segmask.masks.packing import pack_mask, unpack_mask
from segmask.masks.resample import (
    ResampleBackend,
    resample_mask,
    resize_bilinear_reference,
    resize_bilinear_vectorized,
)
from segmask.masks.synthesis import mask_coefficients, sigmoid, synthesize_mask

__all__ = [
    "ResampleBackend",
    "mask_coefficients",
    "pack_mask",
    "resample_mask",
    "resize_bilinear_reference",
    "resize_bilinear_vectorized",
    "sigmoid",
    "synthesize_mask",
    "unpack_mask",
]
