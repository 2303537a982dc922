# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and constants."""

from .keys import KeyRotationState, KeySelection
from .queue import QueueItem, new_item_id
from .quota import QuotaWindow, is_expired

__all__ = [
    # Key rotation
    "KeyRotationState",
    "KeySelection",
    # Queue types
    "QueueItem",
    # Quota windows
    "QuotaWindow",
    "is_expired",
    "new_item_id",
]
