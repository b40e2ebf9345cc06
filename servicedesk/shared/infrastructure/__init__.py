"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Logging setup
- Per-ticket locking
- Clock
"""

from servicedesk.shared.infrastructure.clock import Clock, utc_now
from servicedesk.shared.infrastructure.locks import KeyedAsyncLock
from servicedesk.shared.infrastructure.logging import get_logger, log_latency, setup_logging

__all__ = [
    "Clock",
    "utc_now",
    "KeyedAsyncLock",
    "get_logger",
    "log_latency",
    "setup_logging",
]
