from __future__ import annotations

__all__ = ["Color", "WHITE", "CompositeResult", "PixelFormat", "composite_masks"]


def __getattr__(name: str):
    if name in {"Color", "WHITE"}:
        from segmask.compositing import colors as _colors

        return getattr(_colors, name)
    if name in {"CompositeResult", "PixelFormat", "composite_masks"}:
        from segmask.compositing import compositor as _compositor

        return getattr(_compositor, name)
    raise AttributeError(name)
