# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..config import Config
from ..utils.helpers import display_name
from .compositor import DisposalMethod, SubImage, compose_frames, frame_durations
from .exceptions import MediaDecodeError, MediaFormatError
from .sources import create_image_source


@dataclass(frozen=True)
class DecodedImage:
    """Typed output of the decoder: the logical canvas and its sub-images."""

    size: tuple[int, int]
    sub_images: list[SubImage]
    is_animated: bool


@dataclass(frozen=True)
class Animation:
    """Fully resolved frames and how long each stays on screen (seconds)."""

    frames: list[np.ndarray]
    durations: list[float]

    @property
    def size(self) -> tuple[int, int]:
        height, width = self.frames[0].shape[:2]
        return (width, height)


def _get_normalized_disposal_method(pil_img: Image.Image) -> int:
    """Get normalized disposal method from PIL image.

    Returns DisposalMethod constant regardless of format (GIF/APNG/WebP).
    """
    if hasattr(pil_img, "disposal_method"):
        gif_disposal = pil_img.disposal_method  # type: ignore[attr-defined]
        # GIF: 0/1=none, 2=background, 3=previous → normalize to 0,1,2
        if gif_disposal == 2:
            return DisposalMethod.BACKGROUND
        elif gif_disposal == 3:
            return DisposalMethod.PREVIOUS
        return DisposalMethod.NONE

    elif "disposal" in pil_img.info:
        # APNG: 0=none, 1=background, 2=previous → already normalized
        apng_disposal = pil_img.info["disposal"]
        if apng_disposal in (DisposalMethod.BACKGROUND, DisposalMethod.PREVIOUS):
            return apng_disposal
        return DisposalMethod.NONE

    # WebP frames arrive fully composited
    return DisposalMethod.NONE


def _background_rgba(pil_img: Image.Image) -> tuple[int, int, int, int]:
    """Resolve the palette background index, transparent when it is the transparent index."""
    background_index = pil_img.info.get("background")
    if background_index is None or pil_img.palette is None:
        return (0, 0, 0, 0)
    if background_index == pil_img.info.get("transparency"):
        return (0, 0, 0, 0)

    palette_data = pil_img.palette.getdata()[1]
    palette_rgb = np.frombuffer(palette_data, dtype=np.uint8)  # type: ignore[call-overload]
    if len(palette_rgb) % 3 != 0 or background_index * 3 + 3 > len(palette_rgb):
        return (0, 0, 0, 0)

    r, g, b = (int(v) for v in palette_rgb[background_index * 3 : background_index * 3 + 3])
    return (r, g, b, 255)


def _frame_extent(pil_img: Image.Image) -> tuple[int, int, int, int]:
    """Region the current frame's data covers on the logical canvas."""
    width, height = pil_img.size
    extent = getattr(pil_img, "dispose_extent", None)
    if not extent:
        return (0, 0, width, height)
    left, top, right, bottom = (int(v) for v in extent)
    return (max(left, 0), max(top, 0), min(right, width), min(bottom, height))


def decode_image(pil_img: Image.Image) -> DecodedImage:
    """Split an opened image into positioned sub-images.

    Stills produce a single full-size sub-image without a delay. Animated
    images produce one sub-image per frame, cropped to the region that frame
    updates, annotated with disposal, background color and delay.
    """
    size = pil_img.size
    if not getattr(pil_img, "is_animated", False):
        pixels = np.asarray(pil_img.convert("RGBA"), dtype=np.uint8)
        return DecodedImage(size=size, sub_images=[SubImage(pixels=pixels)], is_animated=False)

    # Palette and background index are global, read them before seeking
    pil_img.seek(0)
    background = _background_rgba(pil_img)

    sub_images: list[SubImage] = []
    for frame_idx in range(pil_img.n_frames):  # type: ignore[attr-defined]
        pil_img.seek(frame_idx)
        pil_img.load()

        left, top, right, bottom = _frame_extent(pil_img)
        rgba = pil_img.convert("RGBA")
        pixels = np.asarray(rgba.crop((left, top, right, bottom)), dtype=np.uint8)

        sub_images.append(
            SubImage(
                pixels=pixels,
                offset=(left, top),
                disposal=_get_normalized_disposal_method(pil_img),
                background=background,
                delay_ms=float(pil_img.info.get("duration", 0) or 0),
            )
        )

    return DecodedImage(size=size, sub_images=sub_images, is_animated=True)


def build_animation(decoded: DecodedImage, *, rate: float, min_delay_ms: float) -> Animation:
    """Composite decoded sub-images and attach display durations.

    Images without per-frame delays become a single frame shown for one
    pixel-clock interval (``1 / rate``) so the scheduler loops it forever.
    """
    frames = compose_frames(decoded.sub_images, decoded.size)
    durations = frame_durations(decoded.sub_images, min_delay_ms=min_delay_ms) if decoded.is_animated else None

    if durations is None:
        frames = frames[:1]
        durations = [1.0 / rate]

    return Animation(frames=frames, durations=durations)


async def load_animation(src_url: str, *, rate: float) -> Animation:
    """Open, decode and composite an image. Any failure raises a MediaSourceError."""
    logger = logging.getLogger("images")
    min_delay_ms = float(Config().get("stream.min_delay_ms"))

    source = await create_image_source(src_url)
    try:
        try:
            pil_img = source.open_image()
        except UnidentifiedImageError as e:
            raise MediaFormatError(f"unrecognized image format: {e}", src_url) from e
        except OSError as e:
            raise MediaDecodeError(f"cannot open image: {e}", src_url, e.errno) from e

        try:
            decoded = decode_image(pil_img)
        except (OSError, ValueError, EOFError) as e:
            raise MediaDecodeError(f"PIL error: {e}", src_url) from e
        finally:
            pil_img.close()
    finally:
        source.cleanup()

    animation = build_animation(decoded, rate=rate, min_delay_ms=min_delay_ms)

    width, height = animation.size
    kind = "animated" if decoded.is_animated else "still"
    logger.info(
        f"decoded {display_name(src_url)}: {kind} {width}x{height}, "
        f"{len(animation.frames)} frames, {sum(animation.durations):.2f}s per loop"
    )
    return animation
