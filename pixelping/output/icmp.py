# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import asyncio
import contextlib
import logging
import socket
import struct

from ..utils.metrics import PerformanceTracker


# ICMPv6 echo request layout (network byte order):
#   type:     128 (echo request)
#   code:     0
#   checksum: left 0, the kernel computes it for ICMPv6 sockets
#   id, seq:  fixed pair, the board ignores them
ICMPV6_ECHO_REQUEST = 128
ECHO_HDR = struct.Struct("!BBHHH")


def build_echo_request(ident: int = 0xDEAD, seq: int = 1) -> bytes:
    """Build the echo request sent for every pixel. Reused as-is for every probe."""
    return ECHO_HDR.pack(ICMPV6_ECHO_REQUEST, 0, 0, ident & 0xFFFF, seq & 0xFFFF)


def open_icmp_socket(*, privileged: bool = True, sndbuf: int = 1 << 20) -> socket.socket:
    """Open a non-blocking ICMPv6 socket.

    Raw sockets need CAP_NET_RAW; the unprivileged datagram variant needs the
    caller's group inside net.ipv4.ping_group_range. Raises OSError on failure.
    """
    sock_type = socket.SOCK_RAW if privileged else socket.SOCK_DGRAM
    sock = socket.socket(socket.AF_INET6, sock_type, socket.IPPROTO_ICMPV6)

    with contextlib.suppress(OSError):
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, sndbuf)

    sock.setblocking(False)
    return sock


class PingWorker:
    """Drains addresses from the queue and fires one echo request at each."""

    def __init__(
        self,
        worker_id: int,
        queue: "asyncio.Queue[str]",
        payload: bytes,
        sock: socket.socket,
        *,
        log_metrics: bool = False,
        log_interval_s: float = 5.0,
    ):
        self.worker_id = worker_id
        self.queue = queue
        self.payload = payload
        self.sock = sock
        self.log_metrics = log_metrics
        self.tracker = PerformanceTracker(log_interval_s=log_interval_s)
        self.packets_sent = 0
        self.send_errors = 0

    async def send(self, addr: str) -> None:
        """Send the payload to one address.

        The socket is non-blocking, so a full send buffer raises
        BlockingIOError and the probe is dropped like any other failed send.
        """
        self.sock.sendto(self.payload, (addr, 0))

    async def run(self) -> None:
        """Send forever, one probe per dequeued address. Send errors are logged and skipped."""
        logger = logging.getLogger("icmp")
        logger.info(f"worker={self.worker_id} starting")

        while True:
            addr = await self.queue.get()
            try:
                await self.send(addr)
                self.packets_sent += 1
                self.tracker.record_packet()
            except OSError as e:
                self.send_errors += 1
                self.tracker.record_send_error()
                logger.warning(f"worker={self.worker_id} could not send ping packet to {addr}: {e}")
            finally:
                self.queue.task_done()

            # sendto never suspends, let the producer and other workers run
            await asyncio.sleep(0)

            if self.log_metrics and self.tracker.should_log():
                self._log_metrics()

    def _log_metrics(self) -> None:
        metrics = self.tracker.get_metrics_and_reset()
        logging.getLogger("icmp").info(
            f"worker={self.worker_id} pps={metrics['pps']:.0f} "
            f"sent={metrics['packets_sent']} errors={metrics['send_errors']}"
        )

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self.sock.close()
