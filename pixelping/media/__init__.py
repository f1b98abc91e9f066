# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Image loading, decoding and frame compositing."""

from .compositor import Canvas, DisposalMethod, SubImage, compose_frames, frame_durations, lit_mask
from .exceptions import (
    MediaDecodeError,
    MediaFormatError,
    MediaNetworkError,
    MediaNotFoundError,
    MediaSourceError,
)
from .images import Animation, DecodedImage, build_animation, decode_image, load_animation


__all__ = [
    "Animation",
    "Canvas",
    "DecodedImage",
    "DisposalMethod",
    "MediaDecodeError",
    "MediaFormatError",
    "MediaNetworkError",
    "MediaNotFoundError",
    "MediaSourceError",
    "SubImage",
    "build_animation",
    "compose_frames",
    "decode_image",
    "frame_durations",
    "lit_mask",
    "load_animation",
]
