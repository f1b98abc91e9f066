# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Draw still and animated images on an IPv6 pixel display by pinging one address per pixel."""

__version__ = "0.1.0"
