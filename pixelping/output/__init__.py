# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Pixel addressing and ICMPv6 probe sending."""

from .addressing import DisplayTarget, build_address_lists, encode_pixel, frame_addresses
from .icmp import PingWorker, build_echo_request, open_icmp_socket
from .pool import WorkerPool


__all__ = [
    "DisplayTarget",
    "PingWorker",
    "WorkerPool",
    "build_address_lists",
    "build_echo_request",
    "encode_pixel",
    "frame_addresses",
    "open_icmp_socket",
]
