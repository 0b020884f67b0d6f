"""JSON-lines parsing for transcript chunks.

Malformed records are kept with a parse error instead of aborting the batch,
so a single corrupt line never hides the rest of the transcript.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class ParsedLine:
    """One transcript record.

    Exactly one of data/parse_error is set: data holds the decoded JSON value
    on success, parse_error describes the failure otherwise.
    """

    line_number: int  # 1-based, sequential after blank lines are dropped
    raw_line: str  # Original text, untrimmed
    data: Any = None
    parse_error: str | None = None

    def __post_init__(self):
        if (self.data is None) == (self.parse_error is None):
            raise ValueError('ParsedLine needs exactly one of data or parse_error')

    @property
    def valid(self) -> bool:
        return self.parse_error is None


def parse_line(line: str, line_number: int) -> ParsedLine:
    """Parse a single transcript line.

    A blank line or a bare JSON null is reported as a parse error, since
    neither carries a record.
    """
    stripped = line.strip()
    if not stripped:
        return ParsedLine(line_number=line_number, raw_line=line, parse_error='empty line')

    try:
        data = json.loads(stripped)
    except ValueError as e:
        return ParsedLine(line_number=line_number, raw_line=line, parse_error=str(e) or 'invalid JSON')

    if data is None:
        return ParsedLine(line_number=line_number, raw_line=line, parse_error='null record')
    return ParsedLine(line_number=line_number, raw_line=line, data=data)


def parse_lines(text: str, start_line: int = 1) -> list[ParsedLine]:
    """Split a text chunk into parsed records.

    Empty and whitespace-only lines are dropped and do not consume a line
    number, so numbering is sequential over the kept records.

    Args:
        text: Decoded transcript chunk
        start_line: Line number assigned to the first kept record

    Returns:
        List of ParsedLine in source order
    """
    parsed = []
    line_number = start_line

    # str.splitlines() would also break on U+2028 and friends inside JSON strings
    for raw in text.split('\n'):
        if not raw.strip():
            continue
        parsed.append(parse_line(raw, line_number))
        line_number += 1

    return parsed


def is_transcript_entry(line: ParsedLine) -> bool:
    """Return True if a parsed record looks like a transcript entry."""
    if not line.valid or not isinstance(line.data, dict):
        return False

    data = line.data
    has_type = isinstance(data.get('type'), str)
    has_sender = isinstance(data.get('sender'), str)
    has_timestamp = data.get('timestamp') is not None or isinstance(data.get('ts'), (int, float))
    return has_type or has_sender or has_timestamp


def extract_text(data: Any) -> str:
    """Extract the first non-empty text of a transcript record.

    Handles `message.content` as a plain string or as a list of content
    blocks (non-text blocks such as tool_use or image are skipped), then falls
    back to top-level `text`, `content` and `message` string fields.
    """
    if not isinstance(data, dict):
        return ''

    message = data.get('message')
    if isinstance(message, dict):
        content = message.get('content')
        if isinstance(content, str) and content.strip():
            return content
        if isinstance(content, list):
            for block in content:
                if not isinstance(block, dict) or block.get('type') != 'text':
                    continue
                text = block.get('text')
                if isinstance(text, str) and text.strip():
                    return text

    for key in ('text', 'content', 'message'):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value

    return ''


def flatten_text(data: Any) -> str:
    """Join every key and scalar value of a nested JSON value with spaces."""
    parts: list[str] = []
    stack = [data]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict):
            for key, value in reversed(list(item.items())):
                stack.append(value)
                stack.append(key)
        elif isinstance(item, list):
            stack.extend(reversed(item))
        elif item is not None:
            parts.append(str(item))
    return ' '.join(parts)


def record_sender(data: Any) -> str:
    """Classify a record as 'human', 'assistant' or 'unknown'."""
    if not isinstance(data, dict):
        return 'unknown'
    kind = data.get('type')
    if kind is None:
        kind = data.get('sender')
    if kind in ('user', 'human'):
        return 'human'
    if kind == 'assistant':
        return 'assistant'
    return 'unknown'


def parse_timestamp(value: Any) -> float:
    """Convert a record timestamp to epoch seconds.

    Accepts ISO-8601 strings and epoch numbers (seconds or milliseconds).
    Returns 0.0 when the value is missing or unparseable.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        # Values this large are milliseconds
        return value / 1000 if value > 1e11 else float(value)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).timestamp()
        except ValueError:
            return 0.0
    return 0.0


def record_timestamp(line: ParsedLine) -> float:
    """Timestamp of a parsed record in epoch seconds (0.0 if absent)."""
    if not isinstance(line.data, dict):
        return 0.0
    return parse_timestamp(line.data.get('timestamp', line.data.get('ts')))


def get_parse_stats(lines: list[ParsedLine]) -> dict[str, int]:
    """Return total/valid/invalid counts and the valid percentage."""
    total = len(lines)
    valid = sum(1 for line in lines if line.valid)
    return {
        'total': total,
        'valid': valid,
        'invalid': total - valid,
        'valid_percent': valid * 100 // total if total else 0,
    }
