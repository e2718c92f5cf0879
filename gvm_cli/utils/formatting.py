"""
Small helpers that turn byte counts, durations and install times into the
strings shown in the install summary and the installed-versions list.
"""

from datetime import datetime

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_size(num_bytes: int) -> str:
    """Archive sizes, e.g. 68123456 -> '65.0 MB'. Unknown sizes print as '0 B'."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    for unit in _SIZE_UNITS[:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Install wall time, e.g. 72.4 -> '1m 12s'. Sub-second runs print as '0s'."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{n}{suffix}" for n, suffix in ((hours, "h"), (minutes, "m")) if n]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_timestamp(moment: datetime) -> str:
    """Formats an install time as 'YYYY-MM-DD HH:MM'."""
    return moment.strftime("%Y-%m-%d %H:%M")
