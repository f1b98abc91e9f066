"""
Tests for disposal-aware frame compositing.
"""

import numpy as np
import pytest

from pixelping.media.compositor import (
    Canvas,
    DisposalMethod,
    SubImage,
    composite_over,
    compose_frames,
    frame_durations,
    lit_mask,
    render_frame,
)

from .helpers import BLACK, BLUE, CLEAR, GREEN, RED, pixel, solid


def checkerboard(width, height):
    patch = np.zeros((height, width, 4), dtype=np.uint8)
    for y in range(height):
        for x in range(width):
            patch[y, x] = (x * 40 % 256, y * 60 % 256, 128, 255 if (x + y) % 2 == 0 else 0)
    return patch


def test_single_frame_equals_direct_render():
    """One sub-image without disposal is just that sub-image on a blank canvas"""
    patch = checkerboard(3, 2)
    frames = compose_frames([SubImage(pixels=patch, offset=(1, 2))], (5, 5))

    expected = np.zeros((5, 5, 4), dtype=np.uint8)
    expected[2:4, 1:4] = composite_over(expected[2:4, 1:4], patch)

    assert len(frames) == 1
    assert np.array_equal(frames[0], expected)


def test_compose_is_deterministic():
    subs = [
        SubImage(pixels=solid(2, 2, RED), offset=(0, 0), disposal=DisposalMethod.BACKGROUND),
        SubImage(pixels=checkerboard(3, 3), offset=(1, 1), disposal=DisposalMethod.PREVIOUS),
        SubImage(pixels=solid(1, 4, BLUE), offset=(3, 0)),
    ]

    first = compose_frames(subs, (4, 4))
    second = compose_frames(subs, (4, 4))

    assert len(first) == len(second) == 3
    for a, b in zip(first, second, strict=True):
        assert np.array_equal(a, b)


def test_frames_are_read_only_and_canvas_sized():
    frames = compose_frames([SubImage(pixels=solid(1, 1, RED), offset=(2, 1))], (6, 3))

    assert frames[0].shape == (3, 6, 4)
    with pytest.raises(ValueError):
        frames[0][0, 0] = RED


def test_restore_to_background_fills_region():
    canvas = Canvas((4, 4))
    canvas.draw(SubImage(pixels=solid(4, 4, BLUE)))

    sub = SubImage(
        pixels=checkerboard(2, 2),
        offset=(1, 1),
        disposal=DisposalMethod.BACKGROUND,
        background=GREEN,
    )
    render_frame(canvas, sub, None)

    assert np.array_equal(canvas.pixels[1:3, 1:3], solid(2, 2, GREEN))
    # Outside the sub-image nothing was rolled back
    assert pixel(canvas.pixels, 0, 0) == BLUE
    assert pixel(canvas.pixels, 3, 3) == BLUE


def test_restore_to_previous_restores_exact_region():
    canvas = Canvas((4, 4))
    canvas.draw(SubImage(pixels=checkerboard(4, 4)))
    before = canvas.snapshot()

    sub = SubImage(pixels=solid(2, 3, RED), offset=(2, 1), disposal=DisposalMethod.PREVIOUS)
    frame = render_frame(canvas, sub, None)

    assert np.array_equal(canvas.pixels, before)
    # The frame itself still shows the sub-image
    assert pixel(frame, 2, 1) == RED
    assert pixel(frame, 3, 3) == RED


def test_disposal_none_keeps_drawn_pixels():
    canvas = Canvas((2, 2))
    render_frame(canvas, SubImage(pixels=solid(1, 1, RED), offset=(1, 1)), None)

    assert pixel(canvas.pixels, 1, 1) == RED
    assert pixel(canvas.pixels, 0, 0) == CLEAR


def test_previously_lit_pixels_are_blacked_out():
    """A pixel lit in frame N and not drawn in frame N+1 is turned off explicitly"""
    subs = [
        SubImage(pixels=solid(1, 1, RED), offset=(0, 0), disposal=DisposalMethod.BACKGROUND),
        SubImage(pixels=solid(1, 1, GREEN), offset=(1, 0), disposal=DisposalMethod.BACKGROUND),
    ]
    frames = compose_frames(subs, (2, 1))

    assert pixel(frames[1], 0, 0) == BLACK
    assert pixel(frames[1], 1, 0) == GREEN


def test_loop_seam_blanks_pixels_of_last_frame():
    subs = [
        SubImage(pixels=solid(1, 1, RED), offset=(0, 0), disposal=DisposalMethod.BACKGROUND),
        SubImage(pixels=solid(1, 1, GREEN), offset=(1, 0), disposal=DisposalMethod.BACKGROUND),
    ]
    frames = compose_frames(subs, (2, 1))
    naive = compose_frames(subs[:1], (2, 1))[0]

    assert pixel(naive, 1, 0) == CLEAR
    assert pixel(frames[0], 0, 0) == RED
    assert pixel(frames[0], 1, 0) == BLACK
    assert not np.array_equal(frames[0], naive)


def test_single_frame_has_no_loop_seam():
    frames = compose_frames([SubImage(pixels=solid(2, 1, RED))], (2, 1))
    assert pixel(frames[0], 0, 0) == RED


def test_sub_image_is_clipped_to_canvas():
    subs = [
        SubImage(pixels=solid(3, 3, RED), offset=(-1, -1), disposal=DisposalMethod.PREVIOUS),
        SubImage(pixels=solid(2, 2, BLUE), offset=(5, 5), disposal=DisposalMethod.BACKGROUND),
        SubImage(pixels=solid(3, 1, GREEN), offset=(1, 1)),
    ]
    frames = compose_frames(subs, (2, 2))

    assert len(frames) == 3
    # Frame 1 draws nothing on screen; red from frame 0 is turned off
    assert np.array_equal(frames[1], solid(2, 2, BLACK))
    assert pixel(frames[2], 1, 1) == GREEN
    assert pixel(frames[2], 0, 0) == CLEAR


def test_restore_to_previous_on_first_frame():
    canvas = Canvas((3, 3))
    sub = SubImage(pixels=solid(2, 2, RED), offset=(2, 2), disposal=DisposalMethod.PREVIOUS)

    frame = render_frame(canvas, sub, None)

    assert pixel(frame, 2, 2) == RED
    assert not canvas.pixels.any()


def test_lit_mask_ignores_black_and_transparent():
    frame = np.array(
        [[(255, 0, 0, 0), (0, 0, 0, 255), (0, 0, 1, 255), (10, 0, 0, 1)]],
        dtype=np.uint8,
    )
    assert lit_mask(frame).tolist() == [[0, 0, 255, 255]]


def test_composite_over_blends_alpha():
    dst = np.array([[BLUE]], dtype=np.uint8)
    src = np.array([[(255, 0, 0, 128)]], dtype=np.uint8)

    out = composite_over(dst, src)

    r, g, b, a = (int(v) for v in out[0, 0])
    assert a == 255
    assert r == 128
    assert b == 127
    assert g == 0


def test_frame_durations():
    subs = [
        SubImage(pixels=solid(1, 1, RED), delay_ms=100.0),
        SubImage(pixels=solid(1, 1, RED), delay_ms=0.0),
    ]
    assert frame_durations(subs, min_delay_ms=10.0) == pytest.approx([0.1, 0.01])


def test_frame_durations_without_delays():
    assert frame_durations([SubImage(pixels=solid(1, 1, RED))], min_delay_ms=10.0) is None
    assert frame_durations([], min_delay_ms=10.0) is None
