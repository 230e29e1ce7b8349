"""Before/after comparison surfaces.

Presentation only: the divider never feeds back into the pixel pipeline.
The view holds the original bitmap at output dimensions ("before") and a
reference to the live rendered buffer ("after"), which the session resyncs
after every render.
"""

import numpy as np

from engine.codec import scale_to


def _read_only(pixels: np.ndarray) -> np.ndarray:
    view = pixels.view()
    view.flags.writeable = False
    return view


class ComparisonView:
    def __init__(
        self, original: np.ndarray, rendered: np.ndarray, divider: float = 0.5
    ):
        h, w = rendered.shape[:2]
        self.width = w
        self.height = h
        self._before = _read_only(scale_to(original, w, h))
        self._after = _read_only(rendered)
        self.divider = 0.5
        self.set_divider(divider)
        self.syncs = 0

    @property
    def before(self) -> np.ndarray:
        return self._before

    @property
    def after(self) -> np.ndarray:
        return self._after

    def set_divider(self, position: float) -> float:
        """Move the divider; ``position`` is the before-side fraction, clamped."""
        position = float(position)
        if np.isnan(position):
            position = 0.5
        self.divider = max(0.0, min(1.0, position))
        return self.divider

    @property
    def split_column(self) -> int:
        return int(round(self.divider * self.width))

    def sync(self, rendered: np.ndarray):
        """Point the after layer at the latest rendered buffer."""
        if rendered.shape[:2] != (self.height, self.width):
            raise ValueError(
                f"rendered buffer {rendered.shape[:2]} does not match view "
                f"{(self.height, self.width)}"
            )
        self._after = _read_only(rendered)
        self.syncs += 1

    def compose(self) -> np.ndarray:
        """Flatten both layers: before left of the divider, after right of it."""
        out = np.array(self._after, copy=True)
        split = self.split_column
        out[:, :split] = self._before[:, :split]
        return out
