"""
End to end: image file -> frames -> address lists -> queue.
"""

import asyncio
import contextlib
import ipaddress

import pytest
from PIL import Image

from pixelping.media.images import load_animation
from pixelping.output.addressing import DisplayTarget, build_address_lists
from pixelping.streaming.scheduler import FrameScheduler

from .helpers import CLEAR, GREEN, RED


@pytest.mark.asyncio
async def test_still_image_to_queue(tmp_path):
    path = tmp_path / "tiny.png"
    img = Image.new("RGBA", (2, 2), CLEAR)
    img.putpixel((0, 0), RED)
    img.putpixel((1, 0), GREEN)
    img.save(path)

    animation = await load_animation(str(path), rate=100)
    lists, max_len = build_address_lists(animation.frames, DisplayTarget(prefix="2001:db8::"))

    expected = [
        str(ipaddress.IPv6Address("2001:db8::0:0:ff:0:0")),
        str(ipaddress.IPv6Address("2001:db8::1:0:0:ff:0")),
    ]
    assert lists == [expected]
    assert max_len == 2

    queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_len)
    scheduler = FrameScheduler(lists, animation.durations, 100, queue)
    producer = asyncio.create_task(scheduler.run())

    got = [await asyncio.wait_for(queue.get(), timeout=1.0) for _ in range(6)]

    producer.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await producer

    assert got == expected * 3


@pytest.mark.asyncio
async def test_animated_gif_blanks_between_frames(tmp_path):
    path = tmp_path / "blink.gif"
    on = Image.new("RGB", (2, 1), (0, 0, 0))
    on.putpixel((0, 0), (255, 0, 0))
    off = Image.new("RGB", (2, 1), (0, 0, 0))
    off.putpixel((1, 0), (0, 0, 255))
    on.save(path, save_all=True, append_images=[off], duration=[50, 50], loop=0)

    animation = await load_animation(str(path), rate=100)
    lists, _ = build_address_lists(animation.frames, DisplayTarget(prefix="2001:4c08:2028"))

    # Black pixels are still addressed so the board switches them off
    assert lists[0] == [
        str(ipaddress.IPv6Address("2001:4c08:2028:0:0:ff:0:0")),
        str(ipaddress.IPv6Address("2001:4c08:2028:1:0:0:0:0")),
    ]
    assert lists[1] == [
        str(ipaddress.IPv6Address("2001:4c08:2028:0:0:0:0:0")),
        str(ipaddress.IPv6Address("2001:4c08:2028:1:0:0:0:ff")),
    ]
