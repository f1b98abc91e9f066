# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import asyncio
import logging
import socket
from collections.abc import Callable

from .icmp import PingWorker


class WorkerPool:
    """N independent ping workers sharing nothing but the address queue."""

    def __init__(
        self,
        queue: "asyncio.Queue[str]",
        payload: bytes,
        workers: int,
        *,
        socket_factory: Callable[[], socket.socket],
        log_metrics: bool = False,
        log_interval_s: float = 5.0,
    ):
        if workers < 1:
            raise ValueError(f"worker count must be positive, got {workers}")
        self.queue = queue
        self.payload = payload
        self.size = workers
        self.socket_factory = socket_factory
        self.log_metrics = log_metrics
        self.log_interval_s = log_interval_s

        self.workers: list[PingWorker] = []
        self._tasks: list[asyncio.Task] = []

    @property
    def tasks(self) -> list[asyncio.Task]:
        return list(self._tasks)

    def open(self) -> None:
        """Open one socket per worker.

        Every worker is configured identically, so the first failure is fatal
        for the whole pool: sockets already opened are closed and the OSError
        propagates.
        """
        try:
            for worker_id in range(self.size):
                sock = self.socket_factory()
                self.workers.append(
                    PingWorker(
                        worker_id,
                        self.queue,
                        self.payload,
                        sock,
                        log_metrics=self.log_metrics,
                        log_interval_s=self.log_interval_s,
                    )
                )
        except OSError as e:
            logging.getLogger("pool").error(f"could not open ping socket: {e}")
            self._close_all()
            raise

    def start(self) -> None:
        """Launch the worker tasks. ``open`` must have succeeded first."""
        if not self.workers:
            raise RuntimeError("WorkerPool.start() called before open()")
        self._tasks = [
            asyncio.create_task(worker.run(), name=f"ping-worker-{worker.worker_id}") for worker in self.workers
        ]
        logging.getLogger("pool").info(f"started {len(self._tasks)} workers")

    async def stop(self) -> None:
        """Cancel workers and close their sockets. In-flight probes are abandoned."""
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logging.getLogger("pool").error(f"worker cleanup error: {result!r}")
        self._tasks = []

        sent = sum(w.packets_sent for w in self.workers)
        errors = sum(w.send_errors for w in self.workers)
        self._close_all()
        logging.getLogger("pool").info(f"stopped workers (sent={sent} errors={errors})")

    def _close_all(self) -> None:
        for worker in self.workers:
            worker.close()
        self.workers = []
