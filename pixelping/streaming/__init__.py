# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Frame-paced transmission of address lists into the send queue."""

from .scheduler import FrameScheduler


__all__ = ["FrameScheduler"]
