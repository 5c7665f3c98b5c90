"""
Configuration for sync state tracking.
"""

from .config_loader import SyncStateConfig

__all__ = ["SyncStateConfig"]
