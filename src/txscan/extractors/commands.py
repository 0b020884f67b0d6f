"""Slash command detector."""

import re
from typing import Any

from txscan.line_parser import ParsedLine, extract_text, record_sender, record_timestamp
from txscan.models import Command

from .base import Extractor


# Slash commands recognized in user input. Anything else that looks like
# /word (file paths, URLs, fractions, made-up commands) is ignored.
KNOWN_COMMANDS = frozenset(
    {
        '/add-dir',
        '/agents',
        '/bug',
        '/clear',
        '/compact',
        '/config',
        '/context',
        '/cost',
        '/doctor',
        '/exit',
        '/export',
        '/help',
        '/hooks',
        '/ide',
        '/init',
        '/install-github-app',
        '/login',
        '/logout',
        '/mcp',
        '/memory',
        '/model',
        '/permissions',
        '/pr-comments',
        '/release-notes',
        '/resume',
        '/review',
        '/rewind',
        '/status',
        '/statusline',
        '/swap-auth',
        '/terminal-setup',
        '/todos',
        '/upgrade',
        '/usage',
        '/vim',
    }
)

# /word[-word]* not glued to a preceding word, path or URL, and not followed by more path
COMMAND_TOKEN_RE = re.compile(r'(?<![\w/:.\-])/[a-z][a-z0-9]*(?:-[a-z0-9]+)*(?![\w/\-])')

# Commands typed in the CLI are recorded as tagged markup in user messages
_COMMAND_NAME_RE = re.compile(r'<command-name>\s*(/?[^<\s]+)\s*</command-name>')
_COMMAND_ARGS_RE = re.compile(r'<command-args>(.*?)</command-args>', re.DOTALL)


def normalize_command_markup(text: str) -> str:
    """Rewrite `<command-name>/x</command-name><command-args>a</command-args>` as `/x a`."""
    name = _COMMAND_NAME_RE.search(text)
    if not name:
        return text
    command = name.group(1) if name.group(1).startswith('/') else f'/{name.group(1)}'
    args = _COMMAND_ARGS_RE.search(text)
    return f'{command} {args.group(1).strip()}' if args else command


def find_commands(text: str, known: frozenset[str] = KNOWN_COMMANDS) -> list[tuple[str, list[str]]]:
    """Find (command, args) pairs in text, in source order.

    Args run from the command to the end of its line, or to the next
    recognized command on the same line, split on whitespace.
    """
    found = []
    for physical_line in normalize_command_markup(text).split('\n'):
        matches = [m for m in COMMAND_TOKEN_RE.finditer(physical_line) if m.group(0) in known]
        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(physical_line)
            found.append((match.group(0), physical_line[match.end() : end].split()))
    return found


def is_user_input(data: Any) -> bool:
    """True for human records and for untyped records carrying plain text."""
    if not isinstance(data, dict):
        return False
    if record_sender(data) == 'human':
        return True
    return 'type' not in data and 'sender' not in data


class CommandDetector(Extractor):
    """Detects recognized slash commands typed by the user.

    Accumulated state: {'commands': [Command dict, ...]} in source order,
    capped at the most recent `max_history` entries.
    """

    def __init__(self, known_commands: frozenset[str] | set[str] | None = None, max_history: int = 1000):
        self.known_commands = frozenset(known_commands) if known_commands is not None else KNOWN_COMMANDS
        self.max_history = max_history

    @property
    def id(self) -> str:
        return 'commands'

    def extract(self, lines: list[ParsedLine], previous: Any = None) -> dict:
        commands = []

        for line in lines:
            if not line.valid or not is_user_input(line.data):
                continue

            text = extract_text(line.data)
            if not text:
                continue

            timestamp = record_timestamp(line)
            for command, args in find_commands(text, self.known_commands):
                commands.append(
                    Command(command=command, args=args, timestamp=timestamp, line=line.line_number).model_dump()
                )

        return {'commands': commands}

    def merge(self, previous: Any, delta: dict) -> dict:
        prev_commands = previous.get('commands', []) if isinstance(previous, dict) else []
        commands = [*prev_commands, *delta.get('commands', [])]
        return {'commands': commands[-self.max_history :]}

    def empty(self) -> dict:
        return {'commands': []}

    def result(self, data: Any) -> list[Command]:
        if not isinstance(data, dict):
            return []
        return [Command.model_validate(c) for c in data.get('commands', [])]
