# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import ipaddress
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


# Default addressable area of the display
MAX_X = 160
MAX_Y = 120


def encode_pixel(
    prefix: str,
    x: int,
    y: int,
    r: int,
    g: int,
    b: int,
    a: int,
    *,
    max_width: int = MAX_X,
    max_height: int = MAX_Y,
) -> ipaddress.IPv6Address | None:
    """Map one pixel to the address that lights it, or None if nothing should be sent.

    Channels are 16-bit (0..65535); only the top byte of each color is used.
    The address text is ``prefix:x:y:rr:gg:bb`` with x/y as decimal digits and
    colors as hex. A prefix already ending in ``:`` (``2001:db8::``) is joined
    without another separator.
    """
    if a == 0:
        return None
    if not (0 <= x < max_width and 0 <= y < max_height):
        return None

    sep = "" if prefix.endswith(":") else ":"
    text = f"{prefix}{sep}{x:d}:{y:d}:{r >> 8:x}:{g >> 8:x}:{b >> 8:x}"
    try:
        return ipaddress.IPv6Address(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class DisplayTarget:
    """Where and how an image is placed on the remote display."""

    prefix: str
    x_offset: int = 0
    y_offset: int = 0
    max_width: int = MAX_X
    max_height: int = MAX_Y

    @classmethod
    def from_config(cls, config) -> "DisplayTarget":
        return cls(
            prefix=str(config.get("target.prefix")),
            x_offset=int(config.get("target.x")),
            y_offset=int(config.get("target.y")),
            max_width=int(config.get("target.max_width")),
            max_height=int(config.get("target.max_height")),
        )


def frame_addresses(frame: np.ndarray, target: DisplayTarget) -> list[str]:
    """Addresses for every drawn pixel of a frame, in row-major order.

    The frame is clipped to the part that lands inside the display once the
    offset is applied.
    """
    height, width = frame.shape[:2]
    rows = max(0, min(height, target.max_height - target.y_offset))
    cols = max(0, min(width, target.max_width - target.x_offset))

    visible = frame[:rows, :cols]
    ys, xs = np.nonzero(visible[..., 3])

    addrs: list[str] = []
    skipped = 0
    for y, x in zip(ys.tolist(), xs.tolist(), strict=True):
        r, g, b, a = (int(v) * 257 for v in visible[y, x])
        addr = encode_pixel(
            target.prefix,
            x + target.x_offset,
            y + target.y_offset,
            r,
            g,
            b,
            a,
            max_width=target.max_width,
            max_height=target.max_height,
        )
        if addr is None:
            skipped += 1
            continue
        addrs.append(str(addr))

    if skipped:
        logging.getLogger("addressing").debug(f"skipped {skipped} pixels with no valid address")
    return addrs


def build_address_lists(frames: Sequence[np.ndarray], target: DisplayTarget) -> tuple[list[list[str]], int]:
    """Address lists for all frames plus the longest list length (queue capacity)."""
    address_lists = [frame_addresses(frame, target) for frame in frames]
    max_len = max((len(addrs) for addrs in address_lists), default=0)

    logging.getLogger("addressing").info(
        f"num addrs: {sum(len(a) for a in address_lists)} across {len(address_lists)} frames (max {max_len})"
    )
    return address_lists, max_len
