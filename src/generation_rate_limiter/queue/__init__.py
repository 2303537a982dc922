# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""In-process request queue enforcing per-model RPM and concurrency limits."""

from .request_queue import RequestQueue

__all__ = ["RequestQueue"]
