"""
Utility functions for RoundSight.

This module provides:
- NaN-tolerant type conversion helpers
- Team value normalisation and round winners from reason codes
- Duration formatting
- A timing decorator
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import pandas as pd

from roundsight.core.constants import CT_WIN_REASONS, T_WIN_REASONS, Team

logger = logging.getLogger(__name__)

# Type variable for generic decorators
F = TypeVar("F", bound=Callable[..., Any])


def timed(func: F) -> F:
    """
    Decorator to measure and log function execution time.

    Usage:
        @timed
        def my_function():
            ...
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start_time
        logger.info(f"{func.__name__} completed in {elapsed:.3f}s")
        return result

    return wrapper  # type: ignore


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert a value to string."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    return str(value)


def safe_bool(value: Any, default: bool = False) -> bool:
    """Safely convert a value to bool."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return bool(value)
    except (ValueError, TypeError):
        return default


def team_to_side(value: Any) -> str:
    """
    Normalise a team value to "CT" or "T".

    Handles numeric team numbers (2=T, 3=CT), digit strings, and names such
    as "CT", "COUNTER-TERRORIST", "TERRORIST" or "T". Unassigned, spectator
    and unrecognised values return "".
    """
    if isinstance(value, str):
        name = value.strip().upper().replace("_", "-").replace(" ", "-")
        if name.isdigit():
            return team_to_side(int(name))
        if name in ("CT", "CTS") or name.startswith("COUNTER"):
            return "CT"
        if name in ("T", "TS", "TERRORIST", "TERRORISTS"):
            return "T"
        return ""
    number = safe_int(value, default=0)
    if number == Team.TERRORIST:
        return "T"
    if number == Team.CT:
        return "CT"
    return ""


def winner_from_reason(reason: Any) -> str:
    """Side awarded the round by a round-end reason code, empty when the code is not decisive."""
    code = safe_int(reason)
    if code in CT_WIN_REASONS:
        return "CT"
    if code in T_WIN_REASONS:
        return "T"
    return ""


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as m:ss."""
    total = max(int(seconds), 0)
    return f"{total // 60}:{total % 60:02d}"


def format_clock(seconds: float) -> str:
    """Format a countdown in seconds as mm:ss, floored at 00:00."""
    remaining = max(int(seconds), 0)
    return f"{remaining // 60:02d}:{remaining % 60:02d}"
