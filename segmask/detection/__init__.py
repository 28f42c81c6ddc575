from __future__ import annotations

__all__ = [
    "CandidateObject",
    "ObjectResult",
    "SuppressionPolicy",
    "decode_detections",
    "greedy_suppression",
]


def __getattr__(name: str):
    if name in {"CandidateObject", "ObjectResult"}:
        from segmask.detection import objects as _objects

        return getattr(_objects, name)
    if name in {"SuppressionPolicy", "greedy_suppression"}:
        from segmask.detection import suppression as _suppression

        return getattr(_suppression, name)
    if name == "decode_detections":
        from segmask.detection import decoder as _decoder

        return _decoder.decode_detections
    raise AttributeError(name)
