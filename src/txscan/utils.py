"""Utility functions for txscan"""

import os
import time
from pathlib import Path


def get_int_env(key: str, default: int = 0) -> int:
    """Get integer value from environment variable, return default if not set or invalid."""
    val = os.getenv(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def get_float_env(key: str, default: float) -> float:
    """Get float value from environment variable, return default if not set or invalid."""
    val = os.getenv(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


def get_str_env(key: str, default: str) -> str:
    """
    Get string from environment variable, return default if not set.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        String value or default
    """
    return os.getenv(key, default)


def get_txscan_state_base() -> Path:
    """Get the base state directory for txscan.

    Priority:
    1. XDG_STATE_HOME environment variable (if set)
    2. ~/.local/state (default)

    Returns:
        Path to the base state directory (e.g., ~/.local/state/txscan)
    """
    xdg_state = os.environ.get('XDG_STATE_HOME')
    if xdg_state:
        base = Path(xdg_state)
    else:
        base = Path.home() / '.local' / 'state'

    return base / 'txscan'


def get_state_dir() -> Path:
    """Get the scanner state directory.

    TXSCAN_STATE_DIR overrides the default <state base>/scanners location.
    The directory is not created here; the state manager creates it lazily
    on first save.
    """
    override = os.environ.get('TXSCAN_STATE_DIR')
    if override:
        return Path(override).expanduser()
    return get_txscan_state_base() / 'scanners'


def get_legacy_state_dir() -> Path:
    """Get the directory holding legacy per-feature state files.

    TXSCAN_LEGACY_DIR overrides; otherwise a `cooldowns` directory next to
    the state directory.
    """
    override = os.environ.get('TXSCAN_LEGACY_DIR')
    if override:
        return Path(override).expanduser()
    return get_state_dir().parent / 'cooldowns'


def human_readable_size(size_bytes: int) -> str:
    """Convert bytes to human-readable format."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024:
            return f'{size_bytes:.2f} {unit}'
        size_bytes /= 1024
    return f'{size_bytes:.2f} PB'


def format_ago(timestamp: float, now: float | None = None) -> str:
    """Format the time elapsed since an epoch timestamp as `<1m`, `5m`, `2h`, `3d`.

    Returns 'unknown' for a zero/missing timestamp. Timestamps in the future
    (clock skew) count as fresh.
    """
    if not timestamp:
        return 'unknown'

    if now is None:
        now = time.time()
    seconds = int(now - timestamp)

    if seconds < 60:
        return '<1m'
    elif seconds < 3600:
        return f'{seconds // 60}m'
    elif seconds < 86400:
        return f'{seconds // 3600}h'
    return f'{seconds // 86400}d'
