"""
Tests for the top-level serve loop.
"""

import asyncio
import logging

import pytest
from PIL import Image

from pixelping import main as main_module
from pixelping.config import Config
from pixelping.streaming.scheduler import FrameScheduler

from .helpers import RED


class QuietSocket:
    def __init__(self):
        self.closed = False

    def sendto(self, data, addr):
        return len(data)

    def close(self):
        self.closed = True


@pytest.fixture
def tiny_png(tmp_path):
    path = tmp_path / "dot.png"
    Image.new("RGBA", (1, 1), RED).save(path)
    return path


@pytest.mark.asyncio
async def test_scheduler_crash_stops_serve(tiny_png, monkeypatch, caplog):
    sockets = []

    def fake_socket(**kwargs):
        sockets.append(QuietSocket())
        return sockets[-1]

    async def broken_run(self):
        raise RuntimeError("scheduler exploded")

    monkeypatch.setattr(main_module, "open_icmp_socket", fake_socket)
    monkeypatch.setattr(FrameScheduler, "run", broken_run)

    with caplog.at_level(logging.ERROR, logger="main"):
        status = await asyncio.wait_for(main_module.serve(Config(), str(tiny_png)), timeout=2.0)

    assert status == 1
    assert "frame-scheduler crashed" in caplog.text
    assert "scheduler exploded" in caplog.text
    assert sockets and all(s.closed for s in sockets)
