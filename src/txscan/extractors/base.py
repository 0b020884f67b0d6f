"""Base class for transcript extractors."""

from abc import ABC, abstractmethod
from typing import Any

from txscan.line_parser import ParsedLine


class Extractor(ABC):
    """Base class for all transcript extractors.

    An extractor turns the records read by one scan into a delta, folds that
    delta into its accumulated state (stored under `id` in the scanner state),
    and renders the accumulated state as the typed value exposed on
    ScanResult. Accumulated state must be JSON-serializable.

    Extractors never touch storage; the scanner owns persistence.
    """

    # Whether scan results may be served from the result cache
    should_cache: bool = True
    # Longest time (seconds) a cached result stays valid for this extractor
    cache_ttl: float = 300.0

    @property
    @abstractmethod
    def id(self) -> str:
        """Extractor identifier, also its key in ScannerState.extractor_data."""
        pass

    @abstractmethod
    def extract(self, lines: list[ParsedLine], previous: Any = None) -> Any:
        """Extract a delta from the records of the current scan.

        Args:
            lines: Records read by this scan, in source order. On an
                incremental scan these are only the newly appended records.
            previous: Accumulated state from earlier scans (None on a full
                scan), for extractors that need context across scans.

        Returns:
            Extractor-specific, JSON-serializable delta.
        """
        pass

    @abstractmethod
    def merge(self, previous: Any, delta: Any) -> Any:
        """Fold a delta into previously accumulated state.

        Args:
            previous: Accumulated state from an earlier scan, or None.
            delta: Result of extract() for the current scan.

        Returns:
            New accumulated state. previous is not modified.
        """
        pass

    @abstractmethod
    def empty(self) -> Any:
        """Accumulated state used when nothing is known or extraction failed."""
        pass

    @abstractmethod
    def result(self, data: Any) -> Any:
        """Convert accumulated state to the value exposed on ScanResult."""
        pass
