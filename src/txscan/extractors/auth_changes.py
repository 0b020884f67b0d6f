"""Authentication change detector."""

import re
from typing import Any

from txscan.line_parser import ParsedLine, extract_text, flatten_text, record_timestamp
from txscan.models import AuthChange

from .base import Extractor
from .commands import KNOWN_COMMANDS, find_commands, is_user_input


AUTH_COMMANDS = frozenset({'/login', '/swap-auth'})

# How many records after an auth command may carry its success message
DEFAULT_AUTH_WINDOW = 10

_IDENTITY = r'([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}|[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,})'
IDENTITY_RE = re.compile(_IDENTITY)

SUCCESS_PATTERNS = [
    re.compile(rf'Login successful(?:\s+for\s+{_IDENTITY})?', re.IGNORECASE),
    re.compile(rf'Successfully logged in(?:\s+as\s+{_IDENTITY})?', re.IGNORECASE),
    re.compile(rf'Switched to account\s+{_IDENTITY}', re.IGNORECASE),
    re.compile(rf'Now using account\s+{_IDENTITY}', re.IGNORECASE),
    re.compile(r'Authentication successful(?:[^\n@]*?\s([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}))?', re.IGNORECASE),
]


def match_success(text: str) -> tuple[bool, str]:
    """Return (matched, identity) for an auth success message; identity may be ''."""
    for pattern in SUCCESS_PATTERNS:
        match = pattern.search(text)
        if match:
            return True, match.group(1) or ''
    return False, ''


def identity_from_args(args: list[str]) -> str:
    for arg in args:
        match = IDENTITY_RE.fullmatch(arg)
        if match:
            return match.group(0)
    return ''


class AuthChangeDetector(Extractor):
    """Detects confirmed logins and account switches.

    An auth command (/login, /swap-auth) counts only when a success message
    follows within `window` records; a newer auth command supersedes an
    unconfirmed older one. The identity comes from the success message, or
    from the command arguments when the message names none.

    Accumulated state: {'changes': [AuthChange dict, ...],
    'pending': unconfirmed command or None}. The pending command lets a
    confirmation that arrives in a later scan still be matched.
    """

    def __init__(self, window: int = DEFAULT_AUTH_WINDOW):
        if window < 1:
            raise ValueError(f'Invalid auth window: {window} (must be >= 1)')
        self.window = window

    @property
    def id(self) -> str:
        return 'auth_changes'

    def extract(self, lines: list[ParsedLine], previous: Any = None) -> dict:
        changes = []
        pending = previous.get('pending') if isinstance(previous, dict) else None
        if pending is not None:
            pending = dict(pending)

        for line in lines:
            if pending is not None:
                pending['seen'] += 1
                if pending['seen'] > self.window:
                    pending = None

            if not line.valid:
                continue

            command = self._auth_command(line)
            if command is not None:
                pending = command
                continue

            if pending is None:
                continue

            matched, identity = match_success(flatten_text(line.data))
            if not matched:
                continue

            timestamp = record_timestamp(line) or pending['timestamp']
            changes.append(
                AuthChange(
                    login_timestamp=timestamp,
                    email=identity or identity_from_args(pending['args']),
                    line=line.line_number,
                ).model_dump()
            )
            pending = None

        return {'changes': changes, 'pending': pending}

    def _auth_command(self, line: ParsedLine) -> dict | None:
        if not is_user_input(line.data):
            return None
        text = extract_text(line.data)
        if not text:
            return None

        found = None
        for command, args in find_commands(text, KNOWN_COMMANDS):
            if command in AUTH_COMMANDS:
                found = {'command': command, 'args': args, 'timestamp': record_timestamp(line), 'seen': 0}
        return found

    def merge(self, previous: Any, delta: dict) -> dict:
        prev_changes = previous.get('changes', []) if isinstance(previous, dict) else []
        return {'changes': [*prev_changes, *delta.get('changes', [])], 'pending': delta.get('pending')}

    def empty(self) -> dict:
        return {'changes': [], 'pending': None}

    def result(self, data: Any) -> list[AuthChange]:
        if not isinstance(data, dict):
            return []
        return [AuthChange.model_validate(c) for c in data.get('changes', [])]
