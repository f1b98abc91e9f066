# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Turn an animated image's sub-images into fully resolved display frames.

A pixel board keeps a pixel lit until it is told otherwise, so every frame
produced here is the complete on-screen state: pixels the previous frame lit
that are not lit again are painted opaque black, and frame 0 is rebuilt
against the last frame so the loop seam is blanked as well.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


Box = tuple[int, int, int, int]  # (left, top, right, bottom), right/bottom exclusive

BLACK = np.array([0, 0, 0, 255], dtype=np.uint8)


class DisposalMethod:
    """Normalized disposal methods for animated images."""

    NONE = 0  # Do not dispose - leave frame for next to composite over
    BACKGROUND = 1  # Restore the sub-image region to the background color
    PREVIOUS = 2  # Restore the sub-image region to its state before drawing


@dataclass(frozen=True)
class SubImage:
    """One raw animation frame as decoded from the source.

    ``pixels`` is an RGBA uint8 array of shape (height, width, 4) placed at
    ``offset`` (left, top) on the logical canvas.
    """

    pixels: np.ndarray
    offset: tuple[int, int] = (0, 0)
    disposal: int = DisposalMethod.NONE
    background: tuple[int, int, int, int] = (0, 0, 0, 0)
    delay_ms: float | None = None

    @property
    def bounds(self) -> Box:
        left, top = self.offset
        height, width = self.pixels.shape[:2]
        return (left, top, left + width, top + height)


def _blank(size: tuple[int, int]) -> np.ndarray:
    width, height = size
    return np.zeros((height, width, 4), dtype=np.uint8)


def composite_over(dst: np.ndarray, src: np.ndarray) -> np.ndarray:
    """Alpha blend ``src`` over ``dst`` (straight alpha, same shape), returning a new array."""
    src_a = src[..., 3:4].astype(np.float32) / 255.0
    dst_a = dst[..., 3:4].astype(np.float32) / 255.0

    out_a = src_a + dst_a * (1.0 - src_a)
    weighted = src[..., :3].astype(np.float32) * src_a + dst[..., :3].astype(np.float32) * dst_a * (1.0 - src_a)

    out = np.zeros_like(dst)
    np.divide(weighted, out_a, out=weighted, where=out_a > 0)
    weighted[np.broadcast_to(out_a <= 0, weighted.shape)] = 0.0
    out[..., :3] = np.clip(np.rint(weighted), 0, 255).astype(np.uint8)
    out[..., 3] = np.clip(np.rint(out_a[..., 0] * 255.0), 0, 255).astype(np.uint8)
    return out


def lit_mask(frame: np.ndarray) -> np.ndarray:
    """Alpha mask of pixels a frame leaves lit on the board.

    A pixel is lit when it is not transparent and not black. Returns a uint8
    array of 255 (lit) or 0 with the frame's height and width.
    """
    lit = (frame[..., 3] != 0) & frame[..., :3].any(axis=-1)
    return np.where(lit, 255, 0).astype(np.uint8)


class Canvas:
    """Mutable accumulator for one compositing pass.

    Owned by a single ``compose_frames`` call and never shared; consumers only
    ever see copies produced by ``snapshot``.
    """

    def __init__(self, size: tuple[int, int]):
        self.size = size
        self.pixels = _blank(size)

    def clip(self, box: Box) -> Box | None:
        """Intersect ``box`` with the canvas bounds, None when they do not overlap."""
        width, height = self.size
        left, top, right, bottom = box
        left, top = max(left, 0), max(top, 0)
        right, bottom = min(right, width), min(bottom, height)
        if left >= right or top >= bottom:
            return None
        return (left, top, right, bottom)

    def draw(self, sub: SubImage) -> None:
        """Composite a sub-image over the canvas at its offset."""
        box = self.clip(sub.bounds)
        if box is None:
            return
        left, top, right, bottom = box
        ox, oy = sub.offset
        src = sub.pixels[top - oy : bottom - oy, left - ox : right - ox]
        region = self.pixels[top:bottom, left:right]
        self.pixels[top:bottom, left:right] = composite_over(region, src)

    def fill(self, box: Box, color: tuple[int, int, int, int]) -> None:
        clipped = self.clip(box)
        if clipped is None:
            return
        left, top, right, bottom = clipped
        self.pixels[top:bottom, left:right] = np.asarray(color, dtype=np.uint8)

    def save(self, box: Box) -> tuple[Box, np.ndarray] | None:
        """Copy a region so it can be put back with ``restore``."""
        clipped = self.clip(box)
        if clipped is None:
            return None
        left, top, right, bottom = clipped
        return clipped, self.pixels[top:bottom, left:right].copy()

    def restore(self, saved: tuple[Box, np.ndarray] | None) -> None:
        if saved is None:
            return
        (left, top, right, bottom), region = saved
        self.pixels[top:bottom, left:right] = region

    def snapshot(self) -> np.ndarray:
        return self.pixels.copy()


def render_frame(canvas: Canvas, sub: SubImage, previous: np.ndarray | None) -> np.ndarray:
    """Draw one sub-image and return the resulting read-only frame.

    The canvas is left in the state the sub-image's disposal method asks for,
    ready for the next sub-image.
    """
    if previous is None:
        frame = _blank(canvas.size)
    else:
        frame = canvas.snapshot()
        frame[lit_mask(previous) != 0] = BLACK

    saved = canvas.save(sub.bounds) if sub.disposal == DisposalMethod.PREVIOUS else None

    canvas.draw(sub)
    frame = composite_over(frame, canvas.pixels)

    if sub.disposal == DisposalMethod.BACKGROUND:
        canvas.fill(sub.bounds, sub.background)
    elif sub.disposal == DisposalMethod.PREVIOUS:
        canvas.restore(saved)

    frame.flags.writeable = False
    return frame


def compose_frames(sub_images: Sequence[SubImage], size: tuple[int, int]) -> list[np.ndarray]:
    """Resolve sub-images into complete frames the size of the logical canvas."""
    if not sub_images:
        return []

    canvas = Canvas(size)
    frames: list[np.ndarray] = []
    for sub in sub_images:
        frames.append(render_frame(canvas, sub, frames[-1] if frames else None))

    if len(frames) > 1:
        # Loop seam: frame 0 must blank whatever the last frame lit
        frames[0] = render_frame(Canvas(size), sub_images[0], frames[-1])

    logging.getLogger("compositor").debug(f"composited {len(frames)} frames at {size[0]}x{size[1]}")
    return frames


def frame_durations(sub_images: Sequence[SubImage], *, min_delay_ms: float) -> list[float] | None:
    """Per-frame display durations in seconds, None when the source has no delays."""
    if not sub_images or any(sub.delay_ms is None for sub in sub_images):
        return None
    return [max(min_delay_ms, float(sub.delay_ms)) / 1000.0 for sub in sub_images]  # type: ignore[arg-type]
