"""Common type definitions for the application.

This module provides shared type aliases used across multiple modules
to avoid duplication and ensure consistency.
"""

from collections.abc import Awaitable, Callable
from typing import Any

# Receives a transfer percentage in [0, 100]
ProgressCallback = Callable[[float], None]

# Receives every update published by an upload batch (sync or async)
UpdateCallback = Callable[[Any], Awaitable[None] | None]

__all__ = [
    "ProgressCallback",
    "UpdateCallback",
]
