"""Last human message extractor."""

from typing import Any

from txscan.line_parser import ParsedLine, extract_text, record_sender, record_timestamp
from txscan.models import MessageInfo

from .base import Extractor


PREVIEW_LENGTH = 80
ELLIPSIS = '..'


def make_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    """Collapse whitespace and truncate text to at most `limit` characters."""
    text = ' '.join(text.split())
    if len(text) > limit:
        return text[: limit - len(ELLIPSIS)] + ELLIPSIS
    return text


class LastMessageExtractor(Extractor):
    """Finds the most recent human message and counts conversation turns.

    Accumulated state: {'message': MessageInfo dict or None, 'turn_count': int}
    where turn_count is the number of human + assistant records seen so far,
    so turn numbers keep counting across incremental scans.
    """

    @property
    def id(self) -> str:
        return 'last_message'

    def extract(self, lines: list[ParsedLine], previous: Any = None) -> dict:
        turn_count = sum(1 for line in lines if line.valid and record_sender(line.data) != 'unknown')

        for i in range(len(lines) - 1, -1, -1):
            line = lines[i]
            if not line.valid or record_sender(line.data) != 'human':
                continue

            text = extract_text(line.data).strip()
            if not text:
                continue

            turn_number = sum(1 for prior in lines[: i + 1] if prior.valid and record_sender(prior.data) != 'unknown')
            message = MessageInfo(
                timestamp=record_timestamp(line),
                preview=make_preview(text),
                sender='human',
                turn_number=turn_number,
            )
            return {'message': message.model_dump(), 'turn_count': turn_count}

        return {'message': None, 'turn_count': turn_count}

    def merge(self, previous: Any, delta: dict) -> dict:
        prev_count = 0
        prev_message = None
        if isinstance(previous, dict):
            prev_count = previous.get('turn_count') or 0
            prev_message = previous.get('message')

        message = prev_message
        if delta.get('message'):
            message = dict(delta['message'])
            message['turn_number'] += prev_count

        return {'message': message, 'turn_count': prev_count + delta.get('turn_count', 0)}

    def empty(self) -> dict:
        return {'message': None, 'turn_count': 0}

    def result(self, data: Any) -> MessageInfo:
        if isinstance(data, dict) and data.get('message'):
            return MessageInfo.model_validate(data['message'])
        return MessageInfo()
