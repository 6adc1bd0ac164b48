"""
Adapters layer - Stores and clocks feeding the domain.
"""

from .clock import FixedClock, SystemClock
from .json_store import JsonShopStore

__all__ = ["FixedClock", "JsonShopStore", "SystemClock"]
