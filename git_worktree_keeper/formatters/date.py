"""Date and time formatting utilities."""

from datetime import datetime
from typing import Optional


def format_age(age_days: Optional[int]) -> str:
    """
    Format age in days.

    Args:
        age_days: Number of days, or None when the last commit is unknown

    Returns:
        Formatted age string
    """
    if age_days is None:
        return "-"
    return str(age_days)


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a creation timestamp as ``YYYY-MM-DD HH:MM``."""
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")
