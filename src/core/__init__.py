"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Clock abstraction for time-dependent logic
"""

from core.clock import Clock, FrozenClock, SystemClock
from core.logging import configure_logging, get_logger

__all__ = [
    "Clock",
    "FrozenClock",
    "SystemClock",
    "configure_logging",
    "get_logger",
]
