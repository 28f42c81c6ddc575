from __future__ import annotations

from dataclasses import dataclass


def _unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


@dataclass(frozen=True)
class Color:
    """RGBA colour with float channels in [0, 1]."""

    r: float = 1.0
    g: float = 1.0
    b: float = 1.0
    a: float = 1.0

    def channel_bytes(self) -> tuple[int, int, int, int]:
        return tuple(int(_unit(c) * 255) for c in (self.r, self.g, self.b, self.a))

    def premultiplied_bytes(self) -> tuple[int, int, int, int]:
        """(r, g, b, a) bytes with colour channels premultiplied by the alpha byte."""
        a = int(_unit(self.a) * 255)
        return int(_unit(self.r) * a), int(_unit(self.g) * a), int(_unit(self.b) * a), a


WHITE = Color()
