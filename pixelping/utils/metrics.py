# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import math
import time


class RateMeter:
    """Rolling rate/jitter meter using a short timestamp window."""

    def __init__(self, window_s: float = 2.5):
        self.window_s = float(window_s)
        self.ts: list[float] = []

    def tick(self, t: float) -> None:
        """Record a timestamp."""
        self.ts.append(t)
        cut = t - self.window_s
        i = 0
        for i, v in enumerate(self.ts):  # noqa: B007
            if v >= cut:
                break
        if i > 0:
            del self.ts[:i]

    def rate_hz(self) -> float:
        """Calculate current rate in Hz."""
        n = len(self.ts)
        if n < 2:
            return 0.0
        duration = self.ts[-1] - self.ts[0]
        return (n - 1) / duration if duration > 0 else 0.0

    def jitter_ms(self) -> float:
        """Calculate timing jitter in milliseconds."""
        n = len(self.ts)
        if n < 3:
            return 0.0
        diffs = [(self.ts[i] - self.ts[i - 1]) for i in range(1, n)]
        mean = sum(diffs) / len(diffs)
        var = sum((d - mean) ** 2 for d in diffs) / (len(diffs) - 1)
        return math.sqrt(var) * 1000.0

    def clear(self) -> None:
        self.ts.clear()


class PerformanceTracker:
    """Counts bursts, probes and send errors and samples queue occupancy."""

    def __init__(self, log_interval_s: float = 5.0):
        self.log_interval_s = log_interval_s
        self.last_log = time.perf_counter()

        self.burst_meter = RateMeter()
        self.packet_meter = RateMeter()

        self.frames_advanced = 0
        self.bursts = 0
        self.packets_sent = 0
        self.send_errors = 0
        self.abandoned = 0

        self.queue_samples: list[int] = []

    def record_burst(self) -> None:
        self.burst_meter.tick(time.perf_counter())
        self.bursts += 1

    def record_frame(self) -> None:
        self.frames_advanced += 1

    def record_abandoned(self, count: int) -> None:
        """Record addresses dropped because a frame's time ran out mid-burst."""
        self.abandoned += count

    def record_packet(self) -> None:
        self.packet_meter.tick(time.perf_counter())
        self.packets_sent += 1

    def record_send_error(self) -> None:
        self.send_errors += 1

    def record_queue_size(self, size: int) -> None:
        self.queue_samples.append(size)

    def should_log(self) -> bool:
        """Check if it's time to log metrics."""
        return (time.perf_counter() - self.last_log) >= self.log_interval_s

    def get_metrics_and_reset(self) -> dict:
        """Get current metrics and reset counters."""
        queue_avg = (sum(self.queue_samples) / len(self.queue_samples)) if self.queue_samples else 0
        queue_max = max(self.queue_samples) if self.queue_samples else 0

        metrics = {
            "bursts_per_s": self.burst_meter.rate_hz(),
            "burst_jitter_ms": self.burst_meter.jitter_ms(),
            "pps": self.packet_meter.rate_hz(),
            "frames_advanced": self.frames_advanced,
            "bursts": self.bursts,
            "packets_sent": self.packets_sent,
            "send_errors": self.send_errors,
            "abandoned": self.abandoned,
            "queue_avg": queue_avg,
            "queue_max": queue_max,
        }

        self.frames_advanced = 0
        self.bursts = 0
        self.packets_sent = 0
        self.send_errors = 0
        self.abandoned = 0
        self.queue_samples.clear()
        self.last_log = time.perf_counter()

        return metrics
