# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Utility modules for metrics and helpers."""

from .helpers import display_name, is_http_url, resolve_local_path
from .metrics import PerformanceTracker, RateMeter


__all__ = [
    "PerformanceTracker",
    "RateMeter",
    "display_name",
    "is_http_url",
    "resolve_local_path",
]
