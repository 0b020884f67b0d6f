"""Incremental scanner for session transcripts.

This package reads JSON-lines transcripts incrementally and derives the last
human message, leaked secrets, slash commands and auth changes from them.
"""

from .__version__ import __version__
from .errors import DuplicateExtractorError, InvalidSessionIdError, TxscanError
from .extractors import (
    AuthChangeDetector,
    CommandDetector,
    Extractor,
    LastMessageExtractor,
    SecretDetector,
    default_extractors,
)
from .models import (
    AuthChange,
    CacheStats,
    Command,
    MessageInfo,
    ScanMetrics,
    ScannerConfig,
    ScannerState,
    ScanResult,
    Secret,
    TranscriptHealth,
)
from .result_cache import ResultCache
from .scanner import TranscriptScanner, get_default_scanner, scan
from .state import StateManager


__all__ = [
    '__version__',
    # Entry points
    'scan',
    'get_default_scanner',
    'TranscriptScanner',
    'StateManager',
    'ResultCache',
    # Extractors
    'Extractor',
    'AuthChangeDetector',
    'CommandDetector',
    'LastMessageExtractor',
    'SecretDetector',
    'default_extractors',
    # Models
    'AuthChange',
    'CacheStats',
    'Command',
    'MessageInfo',
    'ScanMetrics',
    'ScannerConfig',
    'ScannerState',
    'ScanResult',
    'Secret',
    'TranscriptHealth',
    # Errors
    'TxscanError',
    'InvalidSessionIdError',
    'DuplicateExtractorError',
]
