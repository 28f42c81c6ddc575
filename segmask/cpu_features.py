from __future__ import annotations

import functools
import logging

import psutil
import torch

from segmask.masks.resample import ResampleBackend

logger = logging.getLogger(__name__)

_SCALAR_CAPABILITIES = {"DEFAULT", "NO AVX"}


@functools.lru_cache(maxsize=1)
def detect_resample_backend() -> ResampleBackend:
    """Resolved once per process; callers pass the result into the pipeline."""
    get_capability = getattr(torch.backends.cpu, "get_cpu_capability", None)
    capability = str(get_capability()) if get_capability is not None else "DEFAULT"
    backend = ResampleBackend.REFERENCE if capability in _SCALAR_CAPABILITIES else ResampleBackend.VECTORIZED
    logger.debug("CPU capability %s -> resample backend %s", capability, backend.value)
    return backend


def default_worker_count() -> int:
    cores = psutil.cpu_count(logical=False) or psutil.cpu_count(logical=True) or 1
    return max(1, int(cores))
