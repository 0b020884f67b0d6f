"""Transcript scanner orchestration.

Pipeline for scan(session_id, path):
1. Result cache lookup
2. Load persisted state (or start fresh)
3. Incremental read of bytes appended since the last scan
4. Unchanged file: rebuild the result from persisted extractor state
5. Parse new records, numbering them after the last scan's records
6. Run every extractor in isolation and merge into its prior state
7. Persist state
8. Cache and return the result

A missing transcript raises FileNotFoundError; every other failure degrades
(full rescan, empty extractor result, unsaved state) and is logged.
"""

import logging
import os
import time
from typing import Any

from txscan import prometheus as prom
from txscan.errors import DuplicateExtractorError
from txscan.extractors import Extractor, default_extractors
from txscan.line_parser import ParsedLine, parse_lines
from txscan.models import ScanMetrics, ScannerConfig, ScanResult, build_health
from txscan.reader import ReadResult, read_incremental
from txscan.result_cache import ResultCache
from txscan.state import StateManager, validate_session_id


logger = logging.getLogger(__name__)

# Extractor id -> ScanResult field for the built-in extractors
RESULT_FIELDS = {
    'last_message': 'last_message',
    'secrets': 'secrets',
    'commands': 'commands',
    'auth_changes': 'auth_changes',
}


class TranscriptScanner:
    """Incrementally scans session transcripts with pluggable extractors."""

    def __init__(
        self,
        state_manager: StateManager | None = None,
        cache: ResultCache | None = None,
        config: ScannerConfig | None = None,
        extractors: list[Extractor] | None = None,
    ):
        """Initialize the scanner.

        Args:
            state_manager: State persistence (default: StateManager())
            cache: Result cache (default: a new ResultCache using config.cache_ttl)
            config: Tunables (default: ScannerConfig.from_env())
            extractors: Extractors to register (default: default_extractors())
        """
        self.config = config or ScannerConfig.from_env()
        self.state_manager = state_manager or StateManager()
        self.cache = cache if cache is not None else ResultCache(default_ttl=self.config.cache_ttl)
        self._extractors: dict[str, Extractor] = {}

        for extractor in default_extractors() if extractors is None else extractors:
            self.register_extractor(extractor)

    def register_extractor(self, extractor: Extractor) -> None:
        """Register an extractor.

        Raises:
            DuplicateExtractorError: an extractor with the same id is registered
        """
        if extractor.id in self._extractors:
            raise DuplicateExtractorError(extractor.id)
        self._extractors[extractor.id] = extractor
        logger.debug(f'Registered extractor {extractor.id}')

    def registered_extractors(self) -> list[str]:
        """Ids of registered extractors, in registration order."""
        return list(self._extractors)

    def scan(self, session_id: str, transcript_path: str) -> ScanResult:
        """Scan a transcript and return everything derived from it.

        Args:
            session_id: Session identifier ([A-Za-z0-9_-]+)
            transcript_path: Path to the JSON-lines transcript

        Returns:
            ScanResult snapshot

        Raises:
            InvalidSessionIdError: session_id is malformed
            FileNotFoundError: transcript does not exist
        """
        start_time = time.perf_counter()
        validate_session_id(session_id)

        cached = self.cache.get(session_id)
        if cached is not None:
            prom.result_cache_hits_total.inc()
            duration = time.perf_counter() - start_time
            prom.record_scan('cached', duration)
            logger.debug(f'Result cache hit for {session_id}')
            metrics = cached.metrics.model_copy(update={'cache_hit': True, 'scan_duration': duration})
            return cached.model_copy(update={'metrics': metrics}, deep=True)
        prom.result_cache_misses_total.inc()

        state = self.state_manager.load(session_id) or self.state_manager.create_initial(session_id)

        try:
            read = read_incremental(
                transcript_path, state.last_offset, state.last_mtime, max_bytes=self.config.max_read_bytes
            )
        except FileNotFoundError:
            prom.record_scan('not_found', time.perf_counter() - start_time)
            raise

        if read.cache_hit:
            result = self._build_result(
                session_id,
                state.extractor_data,
                read,
                metrics=ScanMetrics(cache_hit=True),
            )
            result.metrics.scan_duration = time.perf_counter() - start_time
            prom.record_scan('unchanged', result.metrics.scan_duration)
            self._cache_result(session_id, result)
            return result

        if read.reset:
            # Truncated or rotated: prior signals describe content that is gone
            prior_data: dict[str, Any] = {}
            first_line = 1
        else:
            prior_data = state.extractor_data
            first_line = state.last_line + 1

        lines = parse_lines(read.content, start_line=first_line)
        if len(lines) > self.config.max_lines:
            logger.warning(
                f'{transcript_path}: {len(lines)} new records exceed max_lines={self.config.max_lines}, '
                f'keeping the last {self.config.max_lines}'
            )
            lines = lines[-self.config.max_lines :]
        last_line = lines[-1].line_number if lines else first_line - 1

        extractor_data, durations, errors = self._run_extractors(lines, prior_data)

        new_state = StateManager.update(
            state if not read.reset else self.state_manager.create_initial(session_id),
            read.new_offset,
            read.mtime,
            extractor_data,
            last_line=last_line,
        )
        self.state_manager.save(session_id, new_state)

        metrics = ScanMetrics(
            lines_processed=len(lines),
            bytes_processed=read.bytes_read,
            cache_hit=False,
            extractor_durations=durations,
            extractor_errors=errors,
        )
        result = self._build_result(session_id, new_state.extractor_data, read, metrics=metrics)
        result.metrics.scan_duration = time.perf_counter() - start_time

        new_secrets = len(result.secrets) - len(self._safe_result('secrets', prior_data.get('secrets')) or [])
        if new_secrets > 0:
            prom.secrets_detected_total.inc(new_secrets)
        prom.record_scan(
            'scanned',
            result.metrics.scan_duration,
            lines=len(lines),
            bytes_read=read.bytes_read,
            parse_errors=sum(1 for line in lines if not line.valid),
        )
        logger.debug(
            f'Scanned {session_id}: {len(lines)} records, {read.bytes_read} bytes '
            f'in {result.metrics.scan_duration * 1000:.1f}ms'
        )

        self._cache_result(session_id, result)
        return result

    def _run_extractors(
        self, lines: list[ParsedLine], prior_data: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, float], list[str]]:
        """Run each extractor in isolation.

        A failing extractor keeps its prior accumulated state (or its empty
        state on a first scan); the others are unaffected.
        """
        extractor_data: dict[str, Any] = {}
        durations: dict[str, float] = {}
        errors: list[str] = []

        for extractor_id, extractor in self._extractors.items():
            previous = prior_data.get(extractor_id)
            started = time.perf_counter()
            success = True
            try:
                delta = extractor.extract(lines, previous)
                extractor_data[extractor_id] = extractor.merge(previous, delta)
            except Exception:
                logger.exception(f"Extractor '{extractor_id}' failed, keeping its previous state")
                success = False
                errors.append(extractor_id)
                extractor_data[extractor_id] = previous if previous is not None else self._safe_empty(extractor)

            durations[extractor_id] = time.perf_counter() - started
            prom.record_extractor(extractor_id, durations[extractor_id], success)

        return extractor_data, durations, errors

    def _safe_empty(self, extractor: Extractor) -> Any:
        try:
            return extractor.empty()
        except Exception:
            logger.exception(f"Extractor '{extractor.id}' failed to produce an empty state")
            return None

    def _safe_result(self, extractor_id: str, data: Any) -> Any:
        """Render accumulated state, falling back to the extractor's empty result."""
        extractor = self._extractors.get(extractor_id)
        if extractor is None:
            return None
        try:
            return extractor.result(data)
        except Exception:
            logger.exception(f"Extractor '{extractor_id}' could not render its state")
        try:
            return extractor.result(extractor.empty())
        except Exception:
            logger.exception(f"Extractor '{extractor_id}' could not render an empty state")
            return None

    def _build_result(
        self, session_id: str, extractor_data: dict[str, Any], read: ReadResult, metrics: ScanMetrics
    ) -> ScanResult:
        fields: dict[str, Any] = {}
        extras: dict[str, Any] = {}

        for extractor_id in self._extractors:
            value = self._safe_result(extractor_id, extractor_data.get(extractor_id))
            field_name = RESULT_FIELDS.get(extractor_id)
            if field_name is None:
                extras[extractor_id] = value
            elif value is not None:
                fields[field_name] = value

        last_message = extractor_data.get('last_message')
        message_count = last_message.get('turn_count', 0) if isinstance(last_message, dict) else 0

        return ScanResult(
            session_id=session_id,
            health=build_health(True, read.size, read.mtime, message_count),
            metrics=metrics,
            extras=extras,
            **fields,
        )

    def _cache_result(self, session_id: str, result: ScanResult) -> None:
        """Cache a result unless an extractor opts out; TTL is the shortest one configured."""
        if not all(e.should_cache for e in self._extractors.values()):
            return
        ttl = min([self.config.cache_ttl, *(e.cache_ttl for e in self._extractors.values())])
        # Callers may mutate the returned result; the cache keeps its own copy
        self.cache.set(session_id, result.model_copy(deep=True), ttl=ttl)


_default_scanner: TranscriptScanner | None = None


def get_default_scanner() -> TranscriptScanner:
    """Lazily created process-wide scanner used by scan()."""
    global _default_scanner
    if _default_scanner is None:
        _default_scanner = TranscriptScanner()
    return _default_scanner


def scan(session_id: str, transcript_path: str | os.PathLike) -> ScanResult:
    """Scan a transcript with the default scanner. See TranscriptScanner.scan."""
    return get_default_scanner().scan(session_id, os.fspath(transcript_path))
