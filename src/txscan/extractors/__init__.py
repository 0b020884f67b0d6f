"""Transcript extractors.

This package contains the pluggable extractors run by the scanner.
"""

from .auth_changes import DEFAULT_AUTH_WINDOW, AuthChangeDetector
from .base import Extractor
from .commands import KNOWN_COMMANDS, CommandDetector
from .last_message import LastMessageExtractor
from .secrets import SecretDetector


__all__ = [
    # Base class
    'Extractor',
    # Extractors
    'AuthChangeDetector',
    'CommandDetector',
    'LastMessageExtractor',
    'SecretDetector',
    # Constants
    'DEFAULT_AUTH_WINDOW',
    'KNOWN_COMMANDS',
]


def default_extractors() -> list[Extractor]:
    """Get list of default extractors.

    Returns:
        List of instantiated extractor objects.
    """
    return [
        LastMessageExtractor(),
        SecretDetector(),
        CommandDetector(),
        AuthChangeDetector(),
    ]
