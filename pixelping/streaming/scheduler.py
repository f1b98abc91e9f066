# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import asyncio
import logging
from collections.abc import Sequence

from ..utils.metrics import PerformanceTracker


class FrameScheduler:
    """Sole producer feeding frame addresses into the bounded send queue.

    Each frame stays current for its display duration. During that time the
    frame's address list is pushed once per pixel-clock tick (``1 / rate``);
    when the duration runs out the remainder of the current burst is dropped
    and the next frame starts from its first address. ``put`` blocking on a
    full queue is the backpressure against slow workers.
    """

    def __init__(
        self,
        address_lists: Sequence[Sequence[str]],
        durations: Sequence[float],
        rate: float,
        queue: "asyncio.Queue[str]",
        *,
        log_metrics: bool = False,
        log_interval_s: float = 5.0,
    ):
        if len(address_lists) != len(durations):
            raise ValueError(f"{len(address_lists)} address lists but {len(durations)} durations")
        if not address_lists:
            raise ValueError("nothing to schedule: no frames")
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")

        self.address_lists = address_lists
        self.durations = durations
        self.tick_s = 1.0 / rate
        self.queue = queue
        self.log_metrics = log_metrics
        self.tracker = PerformanceTracker(log_interval_s=log_interval_s)
        self.frame_index = 0
        self._pushed = 0

    async def _push_burst(self, addrs: Sequence[str], frame_deadline: float) -> None:
        """Push one pass of a frame's addresses, stopping at the frame deadline."""
        loop = asyncio.get_running_loop()
        self._pushed = 0
        for addr in addrs:
            if loop.time() >= frame_deadline:
                break
            await self.queue.put(addr)
            self._pushed += 1

    async def play_frame(self, index: int) -> None:
        """Keep frame ``index`` on the display until its duration expires."""
        loop = asyncio.get_running_loop()
        addrs = self.address_lists[index]
        frame_deadline = loop.time() + self.durations[index]
        next_tick = loop.time()
        self._pushed = 0

        try:
            async with asyncio.timeout_at(frame_deadline):
                while loop.time() < frame_deadline:
                    await self._push_burst(addrs, frame_deadline)
                    if self._pushed < len(addrs):
                        break

                    self.tracker.record_burst()
                    self.tracker.record_queue_size(self.queue.qsize())

                    # Rate timer; the frame deadline cancels it if it fires first
                    next_tick += self.tick_s
                    if next_tick - loop.time() < -self.tick_s:
                        # Running behind (slow workers): resync instead of bursting to catch up
                        next_tick = loop.time()
                    await asyncio.sleep(max(0.0, next_tick - loop.time()))

                # Burst cut short by the deadline check, wait out the remainder
                await asyncio.sleep(max(0.0, frame_deadline - loop.time()))
        except TimeoutError:
            pass

        if self._pushed < len(addrs):
            self.tracker.record_abandoned(len(addrs) - self._pushed)

    def advance(self) -> int:
        """Move to the next frame, wrapping after the last. Returns the new index."""
        self.frame_index = (self.frame_index + 1) % len(self.address_lists)
        self.tracker.record_frame()
        return self.frame_index

    async def run(self) -> None:
        """Cycle through the frames until cancelled."""
        logger = logging.getLogger("scheduler")
        logger.info(
            f"scheduling {len(self.address_lists)} frames at {1.0 / self.tick_s:.0f} passes/s "
            f"(queue max={self.queue.maxsize})"
        )

        while True:
            await self.play_frame(self.frame_index)
            self.advance()

            if self.log_metrics and self.tracker.should_log():
                self._log_metrics()

    def _log_metrics(self) -> None:
        metrics = self.tracker.get_metrics_and_reset()
        logging.getLogger("scheduler").info(
            f"bursts/s={metrics['bursts_per_s']:.1f} jit={metrics['burst_jitter_ms']:.1f}ms "
            f"frames={metrics['frames_advanced']} abandoned={metrics['abandoned']} "
            f"q_avg={metrics['queue_avg']:.0f}/{self.queue.maxsize} q_max={metrics['queue_max']}"
        )
