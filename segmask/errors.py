from __future__ import annotations


class SegmaskError(Exception):
    pass


class ConfigurationError(SegmaskError, ValueError):
    """Invalid thresholds or tensors that do not match the declared model shape."""


def require_unit_interval(name: str, value: float) -> float:
    v = float(value)
    if not (0.0 <= v <= 1.0):
        raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
    return v
