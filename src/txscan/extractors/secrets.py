"""Leaked credential detector."""

import hashlib
import re
from dataclasses import dataclass
from typing import Any

from txscan.line_parser import ParsedLine, flatten_text
from txscan.models import Secret

from .base import Extractor


@dataclass(frozen=True)
class SecretPattern:
    """A known secret shape. `group` selects the secret value inside the match."""

    type: str
    regex: re.Pattern
    group: int = 0


# Order matters: a later pattern never reports a span already claimed by an earlier one
SECRET_PATTERNS = [
    SecretPattern('GitHub Token', re.compile(r'\b(?:ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9_]{36,}\b')),
    SecretPattern('GitHub Token', re.compile(r'\bgithub_pat_[A-Za-z0-9_]{22,}\b')),
    SecretPattern('AWS Access Key', re.compile(r'\b(?:AKIA|ASIA|AROA|AIDA)[A-Z0-9]{16}\b')),
    SecretPattern(
        'AWS Secret Key',
        re.compile(r'aws_?secret_?(?:access_?)?key["\'\s:=]+([A-Za-z0-9/+=]{40})(?![A-Za-z0-9/+=])', re.IGNORECASE),
        group=1,
    ),
    SecretPattern('Stripe API Key', re.compile(r'\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]{24,}\b')),
    SecretPattern('Slack Token', re.compile(r'\bxox[baprs]-[A-Za-z0-9-]{10,}')),
    SecretPattern('Anthropic API Key', re.compile(r'\bsk-ant-[A-Za-z0-9_-]{20,}')),
    SecretPattern('OpenAI API Key', re.compile(r'\bsk-(?!ant-)(?:proj-)?[A-Za-z0-9_-]{20,}')),
    SecretPattern(
        'Private Key',
        re.compile(r'-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----[\s\S]*?-----END (?:[A-Z]+ )?PRIVATE KEY-----'),
    ),
    SecretPattern(
        'API Key',
        re.compile(
            r'\b(?:api[_-]?key|apikey|auth[_-]?token|access[_-]?token|secret[_-]?key)["\'\s:=]+([A-Za-z0-9_\-]{20,})',
            re.IGNORECASE,
        ),
        group=1,
    ),
]

# Values shorter than this redact to REDACTED_PLACEHOLDER
MIN_REDACT_LENGTH = 12
REDACTED_PLACEHOLDER = '***'
_PEM_HEADER_RE = re.compile(r'-----BEGIN [A-Z ]*PRIVATE KEY-----')


def fingerprint(value: str, secret_type: str) -> str:
    """Stable dedup key for a secret value, namespaced by category."""
    slug = re.sub(r'[^a-z0-9]+', '-', secret_type.lower()).strip('-') or 'secret'
    digest = hashlib.sha256(f'{secret_type}\0{value}'.encode('utf-8')).hexdigest()[:16]
    return f'{slug}_{digest}'


def redact(value: str) -> str:
    """Display-safe form of a secret: first 4 chars, '...', last 3 chars.

    Short values collapse to a fixed placeholder; private key blocks keep only
    their PEM header.
    """
    if len(value) < MIN_REDACT_LENGTH:
        return REDACTED_PLACEHOLDER

    header = _PEM_HEADER_RE.match(value)
    if header:
        return f'{header.group(0)}...'

    return f'{value[:4]}...{value[-3:]}'


def find_secrets(text: str) -> list[tuple[str, str]]:
    """Find (type, value) pairs in text, in pattern order, without overlaps."""
    found = []
    claimed: list[tuple[int, int]] = []

    for pattern in SECRET_PATTERNS:
        for match in pattern.regex.finditer(text):
            start, end = match.span(pattern.group)
            if any(start < c_end and c_start < end for c_start, c_end in claimed):
                continue
            claimed.append((start, end))
            found.append((pattern.type, match.group(pattern.group)))

    return found


class SecretDetector(Extractor):
    """Detects leaked credentials and reports each distinct value once.

    Accumulated state: {'findings': [Secret dict, ...]} ordered by line.
    """

    @property
    def id(self) -> str:
        return 'secrets'

    def extract(self, lines: list[ParsedLine], previous: Any = None) -> dict:
        findings: dict[str, dict] = {}

        for line in lines:
            # Malformed records can still leak credentials
            text = flatten_text(line.data) if line.valid else line.raw_line
            for secret_type, value in find_secrets(text):
                fp = fingerprint(value, secret_type)
                if fp in findings:
                    continue
                findings[fp] = Secret(
                    type=secret_type,
                    fingerprint=fp,
                    line=line.line_number,
                    match=redact(value),
                ).model_dump()

        return {'findings': list(findings.values())}

    def merge(self, previous: Any, delta: dict) -> dict:
        merged: dict[str, dict] = {}
        prev_findings = previous.get('findings', []) if isinstance(previous, dict) else []

        for finding in [*prev_findings, *delta.get('findings', [])]:
            fp = finding['fingerprint']
            known = merged.get(fp)
            if known is None or finding['line'] < known['line']:
                merged[fp] = dict(finding)

        return {'findings': sorted(merged.values(), key=lambda f: f['line'])}

    def empty(self) -> dict:
        return {'findings': []}

    def result(self, data: Any) -> list[Secret]:
        if not isinstance(data, dict):
            return []
        return [Secret.model_validate(f) for f in data.get('findings', [])]
