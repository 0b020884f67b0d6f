"""Scanner state persistence.

One JSON state file per session lives in the state directory
($TXSCAN_STATE_DIR, or ~/.local/state/txscan/scanners/):

    <state_dir>/<session_id>.state

State behavior:
- Writes go to a temp file in the same directory and are renamed over the
  final path, so readers never observe a partial file
- Corrupt, unreadable or wrong-version state loads as None (full rescan)
- Persistence failures are logged, never raised
- Sessions without current state are migrated once from legacy
  per-feature state files; the legacy files are only read
"""

import json
import logging
import os
import re
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from txscan import prometheus as prom
from txscan.errors import InvalidSessionIdError
from txscan.models import STATE_VERSION, ScannerState
from txscan.utils import get_legacy_state_dir, get_state_dir


logger = logging.getLogger(__name__)

SESSION_ID_RE = re.compile(r'^[A-Za-z0-9_-]+$')
STATE_SUFFIX = '.state'


def validate_session_id(session_id: str) -> str:
    """Return session_id unchanged, or raise InvalidSessionIdError.

    Only [A-Za-z0-9_-] is accepted so ids can never escape the state directory.
    """
    if not isinstance(session_id, str) or not SESSION_ID_RE.match(session_id):
        raise InvalidSessionIdError(session_id)
    return session_id


# ============================================================================
# Legacy state migration
# ============================================================================


@dataclass
class LegacyState:
    """State recovered from one legacy per-feature state file."""

    source: str  # Legacy file name
    offset: int
    mtime: int  # Nanoseconds
    extractor_data: dict[str, Any] = field(default_factory=dict)


def _ms_to_ns(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return 0
    return int(value * 1_000_000)


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return 0
    return int(value)


def parse_legacy_transcript_state(source: str, raw: dict) -> LegacyState:
    """Convert an old last-message scanner state into a LegacyState.

    Legacy format: {lastReadOffset, lastReadMtime (ms), messageCount,
    lastUserMessage: {timestamp (ms), preview}}
    """
    message_count = _non_negative_int(raw.get('messageCount'))
    last_user = raw.get('lastUserMessage')
    if not isinstance(last_user, dict):
        last_user = {}

    preview = last_user.get('preview')
    preview = ' '.join(preview.split()) if isinstance(preview, str) else ''
    if len(preview) > 80:
        preview = preview[:78] + '..'
    timestamp = last_user.get('timestamp')
    timestamp = timestamp / 1000 if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool) else 0.0

    message = {
        'timestamp': timestamp,
        'preview': preview,
        'sender': 'human' if preview else 'unknown',
        'turn_number': message_count if preview else 0,
    }
    return LegacyState(
        source=source,
        offset=_non_negative_int(raw.get('lastReadOffset')),
        mtime=_ms_to_ns(raw.get('lastReadMtime')),
        extractor_data={'last_message': {'message': message, 'turn_count': message_count}},
    )


def parse_legacy_gitleaks_state(source: str, raw: dict) -> LegacyState:
    """Convert an old secret scanner state into a LegacyState.

    Legacy format: {lastScannedOffset, lastScannedMtime (ms), knownFindings}
    where each finding is a "<rule-id>-<line>" fingerprint. The secret values
    were never stored, so findings carry a placeholder match.
    """
    findings = []
    known = raw.get('knownFindings')
    for fingerprint in known if isinstance(known, list) else []:
        if not isinstance(fingerprint, str) or not fingerprint:
            continue
        rule_id, _, line = fingerprint.rpartition('-')
        findings.append(
            {
                'type': rule_id or fingerprint,
                'fingerprint': fingerprint,
                'line': int(line) if line.isdigit() else 0,
                'match': '[REDACTED]',
            }
        )

    return LegacyState(
        source=source,
        offset=_non_negative_int(raw.get('lastScannedOffset')),
        mtime=_ms_to_ns(raw.get('lastScannedMtime')),
        extractor_data={'secrets': {'findings': findings}},
    )


# Legacy file suffix -> parser
LEGACY_SOURCES: dict[str, Callable[[str, dict], LegacyState]] = {
    '-transcript.state': parse_legacy_transcript_state,
    '-gitleaks.state': parse_legacy_gitleaks_state,
}


def merge_legacy_states(candidates: list[LegacyState], now: float | None = None) -> ScannerState | None:
    """Fold legacy states into a single current-format state.

    The smallest offset (with its mtime) wins so no bytes are skipped;
    extractor payloads are combined, later candidates overriding earlier ones
    for the same extractor id.

    Returns:
        Merged ScannerState, or None when there are no candidates
    """
    if not candidates:
        return None

    conservative = min(candidates, key=lambda c: (c.offset, c.mtime))
    extractor_data: dict[str, Any] = {}
    for candidate in candidates:
        extractor_data.update(candidate.extractor_data)

    return ScannerState(
        version=STATE_VERSION,
        last_offset=conservative.offset,
        last_mtime=conservative.mtime,
        last_scan_at=time.time() if now is None else now,
        extractor_data=extractor_data,
    )


# ============================================================================
# State manager
# ============================================================================


class StateManager:
    """Loads and saves per-session ScannerState files."""

    def __init__(self, state_dir: str | Path | None = None, legacy_dir: str | Path | None = None):
        """Initialize state manager.

        Args:
            state_dir: Directory for state files (default: from TXSCAN_STATE_DIR)
            legacy_dir: Directory with legacy state files (default: from TXSCAN_LEGACY_DIR)
        """
        self._state_dir = Path(state_dir) if state_dir is not None else None
        self._legacy_dir = Path(legacy_dir) if legacy_dir is not None else None

    @property
    def state_dir(self) -> Path:
        return self._state_dir if self._state_dir is not None else get_state_dir()

    @property
    def legacy_dir(self) -> Path:
        return self._legacy_dir if self._legacy_dir is not None else get_legacy_state_dir()

    def get_state_path(self, session_id: str) -> Path:
        """Get the state file path for a session.

        Raises:
            InvalidSessionIdError: session_id is not [A-Za-z0-9_-]+
        """
        validate_session_id(session_id)
        return self.state_dir / f'{session_id}{STATE_SUFFIX}'

    def load(self, session_id: str, migrate: bool = True) -> ScannerState | None:
        """Load scanner state for a session.

        Falls back to legacy migration when no state file exists.

        Args:
            session_id: Session identifier
            migrate: Migrate (and save) legacy state when no state file exists;
                False makes load read-only

        Returns:
            ScannerState, or None when absent, corrupt or wrong version
        """
        path = self.get_state_path(session_id)

        if not path.exists():
            return self._migrate(session_id) if migrate else None

        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f'Failed to read state for {session_id}: {e}')
            return None

        if not isinstance(data, dict):
            logger.warning(f'State for {session_id} is not a JSON object, ignoring')
            return None

        if data.get('version') != STATE_VERSION:
            logger.warning(f'Unknown state version {data.get("version")!r} for {session_id}, ignoring')
            return None

        try:
            state = ScannerState.model_validate(data)
        except ValidationError as e:
            logger.warning(f'Invalid state for {session_id}: {e.error_count()} validation errors')
            return None

        logger.debug(f'Loaded state for {session_id} (offset={state.last_offset})')
        return state

    def save(self, session_id: str, state: ScannerState) -> bool:
        """Atomically save scanner state.

        Returns:
            True if saved, False if the write failed (the failure is logged)
        """
        path = self.get_state_path(session_id)
        tmp_path = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f'{session_id}{STATE_SUFFIX}.', suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(state.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
            logger.debug(f'Saved state for {session_id} (offset={state.last_offset})')
            return True

        except OSError as e:
            prom.state_save_failures_total.inc()
            logger.warning(f'Failed to save state for {session_id}: {type(e).__name__}: {e}')
            return False

        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def create_initial(self, session_id: str) -> ScannerState:
        """Create fresh state for a session (offset 0, no extractor data)."""
        validate_session_id(session_id)
        return ScannerState(version=STATE_VERSION, last_scan_at=time.time())

    @staticmethod
    def update(
        state: ScannerState,
        new_offset: int,
        new_mtime: int,
        extractor_deltas: dict[str, Any],
        last_line: int | None = None,
    ) -> ScannerState:
        """Return a new state advanced to new_offset/new_mtime.

        extractor_data is shallow-merged, keys in extractor_deltas override.
        The given state is not modified.
        """
        update = {
            'last_offset': new_offset,
            'last_mtime': new_mtime,
            'last_scan_at': time.time(),
            'extractor_data': {**state.extractor_data, **extractor_deltas},
        }
        if last_line is not None:
            update['last_line'] = last_line
        return state.model_copy(update=update)

    def delete(self, session_id: str) -> bool:
        """Delete state for a session.

        Returns:
            True if deleted, False if it didn't exist or could not be removed
        """
        path = self.get_state_path(session_id)

        try:
            path.unlink()
            logger.info(f'Deleted state for {session_id}')
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f'Failed to delete state for {session_id}: {e}')
            return False

    def list_sessions(self) -> list[str]:
        """List session ids that have state files (sorted)."""
        state_dir = self.state_dir
        if not state_dir.is_dir():
            return []

        sessions = []
        try:
            for entry in state_dir.iterdir():
                if entry.name.endswith(STATE_SUFFIX):
                    session_id = entry.name[: -len(STATE_SUFFIX)]
                    if SESSION_ID_RE.match(session_id):
                        sessions.append(session_id)
        except OSError as e:
            logger.warning(f'Failed to list sessions in {state_dir}: {e}')
            return []

        return sorted(sessions)

    def read_legacy_states(self, session_id: str) -> list[LegacyState]:
        """Read all legacy state files for a session. Malformed files are skipped."""
        legacy_dir = self.legacy_dir
        candidates = []

        for suffix, parser in LEGACY_SOURCES.items():
            path = legacy_dir / f'{session_id}{suffix}'
            if not path.is_file():
                continue
            try:
                with open(path, encoding='utf-8') as f:
                    raw = json.load(f)
                if not isinstance(raw, dict):
                    raise ValueError('not a JSON object')
                candidates.append(parser(path.name, raw))
            except (OSError, ValueError) as e:
                logger.warning(f'Skipping legacy state {path}: {e}')

        return candidates

    def _migrate(self, session_id: str) -> ScannerState | None:
        candidates = self.read_legacy_states(session_id)
        state = merge_legacy_states(candidates)
        if state is None:
            return None

        sources = ', '.join(c.source for c in candidates)
        logger.info(f'Migrated legacy state for {session_id} from {sources} (offset={state.last_offset})')
        prom.state_migrations_total.inc()
        self.save(session_id, state)
        return state
