from __future__ import annotations

import statistics
import time
from typing import Callable

import numpy as np

from segmask.masks.resample import ResampleBackend, resize_bilinear_reference, resize_bilinear_vectorized

_RESIZERS: dict[ResampleBackend, Callable[[np.ndarray, int, int], np.ndarray]] = {
    ResampleBackend.REFERENCE: resize_bilinear_reference,
    ResampleBackend.VECTORIZED: resize_bilinear_vectorized,
}


def _resize_all(backend: ResampleBackend, crops: list[np.ndarray], target_hw: tuple[int, int]) -> None:
    resize = _RESIZERS[backend]
    height, width = target_hw
    for crop in crops:
        resize(crop, width, height)


def median_seconds(fn: Callable[[], None], *, runs: int = 3, warmup: bool = True) -> float:
    """Median wall time of ``fn`` over ``runs`` calls.

    The warm-up call is not timed; the first torch call on a CPU pays for
    kernel dispatch and thread-pool start-up.
    """
    if runs <= 0:
        raise ValueError(f"runs must be > 0, got {runs}")
    if warmup:
        fn()
    durations: list[float] = []
    for _ in range(runs):
        start = time.perf_counter()
        fn()
        durations.append(time.perf_counter() - start)
    return statistics.median(durations)


def benchmark_resample_speed(
    *,
    crop_count: int = 64,
    crop_hw: tuple[int, int] = (40, 30),
    target_hw: tuple[int, int] = (480, 360),
    seed: int = 0,
    runs: int = 3,
) -> dict[str, tuple[float, float]]:
    """Median seconds and crops/s per resample backend on random crops."""
    rng = np.random.default_rng(seed)
    crops = [rng.integers(0, 256, size=crop_hw, dtype=np.uint8) for _ in range(crop_count)]

    results: dict[str, tuple[float, float]] = {}
    for backend in ResampleBackend:
        median_duration = median_seconds(lambda b=backend: _resize_all(b, crops, target_hw), runs=runs)
        rate = len(crops) / median_duration if median_duration > 0 else 0.0
        results[backend.value] = (median_duration, rate)
    return results
