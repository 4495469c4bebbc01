# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""merge-gateway: one endpoint that deep-merges two JSON backends and proxies writes."""

__version__ = "0.1.0"
