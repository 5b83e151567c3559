# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for schedulers and workers.
"""

from core.config.defaults import (
    QueueDefaults,
    SchedulingDefaults,
    StorageDefaults,
    TimeoutDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "QueueDefaults",
    "SchedulingDefaults",
    "StorageDefaults",
    "TimeoutDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
