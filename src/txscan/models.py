"""Pydantic models for scanner state and scan results"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from txscan.utils import format_ago, get_float_env, get_int_env, human_readable_size


# State file format version - increment when the format changes
STATE_VERSION = 2

DEFAULT_CACHE_TTL = 10.0
DEFAULT_MAX_READ_MB = 100
DEFAULT_MAX_LINES = 100_000


class ScannerState(BaseModel):
    """Durable scan cursor for one session.

    Attributes:
        version: State schema version (STATE_VERSION)
        last_offset: Bytes of the transcript already consumed
        last_mtime: Transcript mtime (ns) observed at the last successful scan
        last_scan_at: Wall-clock time of the last scan (epoch seconds)
        last_line: Records consumed so far; line numbers continue from here
        extractor_data: Per-extractor accumulated state, keyed by extractor id
    """

    version: int = Field(STATE_VERSION, description='State schema version')
    last_offset: int = Field(0, ge=0, description='Byte offset already consumed')
    last_mtime: int = Field(0, ge=0, description='Transcript mtime in nanoseconds')
    last_scan_at: float = Field(0.0, description='Epoch seconds of last scan')
    last_line: int = Field(0, ge=0, description='Number of records consumed so far')
    extractor_data: dict[str, Any] = Field(default_factory=dict, description='Per-extractor accumulated state')


class MessageInfo(BaseModel):
    """Most recent human-authored message in the transcript"""

    timestamp: float = Field(0.0, description='Epoch seconds, 0 when unknown')
    preview: str = Field('', max_length=80, description='Whitespace-normalized preview')
    sender: Literal['human', 'assistant', 'unknown'] = 'unknown'
    turn_number: int = Field(0, ge=0, description='Human + assistant records up to this message')


class Secret(BaseModel):
    """A leaked credential, reported once per fingerprint"""

    type: str = Field(..., examples=['GitHub Token'])
    fingerprint: str = Field(..., description='Stable dedup key, includes the category')
    line: int = Field(..., description='Earliest line the value was seen on')
    match: str = Field(..., description='Redacted display form, never the literal value')


class Command(BaseModel):
    """A recognized slash command"""

    command: str = Field(..., examples=['/login'])
    args: list[str] = Field(default_factory=list)
    timestamp: float = 0.0
    line: int


class AuthChange(BaseModel):
    """A confirmed login or account switch"""

    login_timestamp: float = 0.0
    email: str = Field(..., description='Full address or bare domain')
    line: int = Field(..., description='Line of the confirming success message')


class TranscriptHealth(BaseModel):
    """Transcript file health at scan time"""

    exists: bool
    size_bytes: int = 0
    last_modified: float = Field(0.0, description='Epoch seconds')
    message_count: int = 0
    last_modified_ago: str = 'unknown'


class ScanMetrics(BaseModel):
    """Performance numbers for a single scan"""

    scan_duration: float = Field(0.0, description='Seconds')
    lines_processed: int = 0
    bytes_processed: int = 0
    cache_hit: bool = False
    extractor_durations: dict[str, float] = Field(default_factory=dict)
    extractor_errors: list[str] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Snapshot of everything derived from a transcript"""

    session_id: str
    last_message: MessageInfo = Field(default_factory=MessageInfo)
    secrets: list[Secret] = Field(default_factory=list)
    commands: list[Command] = Field(default_factory=list)
    auth_changes: list[AuthChange] = Field(default_factory=list)
    health: TranscriptHealth
    metrics: ScanMetrics = Field(default_factory=ScanMetrics)
    extras: dict[str, Any] = Field(default_factory=dict, description='Results of custom extractors, by id')

    def to_cli(self, colorize: bool = False) -> str:
        """Format result for CLI output"""
        GREY = '\033[90m' if colorize else ''
        RED = '\033[91m' if colorize else ''
        CYAN = '\033[96m' if colorize else ''
        BOLD = '\033[1m' if colorize else ''
        RESET = '\033[0m' if colorize else ''

        lines = []
        lines.append(f'{BOLD}Session:{RESET} {self.session_id}')

        health = self.health
        lines.append(
            f'{GREY}Transcript:{RESET} {human_readable_size(health.size_bytes)}, '
            f'{health.message_count} messages, modified {health.last_modified_ago} ago'
        )

        msg = self.last_message
        if msg.preview:
            lines.append(f'{GREY}Last message (turn {msg.turn_number}):{RESET} {CYAN}{msg.preview}{RESET}')
        else:
            lines.append(f'{GREY}Last message:{RESET} none')

        if self.secrets:
            lines.append('')
            lines.append(f'{RED}{BOLD}Secrets ({len(self.secrets)}):{RESET}')
            for secret in self.secrets:
                lines.append(f'  {RED}{secret.type}{RESET} line {secret.line}: {secret.match}')

        if self.commands:
            lines.append('')
            lines.append(f'{BOLD}Commands ({len(self.commands)}):{RESET}')
            for cmd in self.commands:
                args = ' '.join(cmd.args)
                lines.append(f'  line {cmd.line}: {cmd.command} {args}'.rstrip())

        if self.auth_changes:
            lines.append('')
            lines.append(f'{BOLD}Auth changes ({len(self.auth_changes)}):{RESET}')
            for change in self.auth_changes:
                lines.append(f'  line {change.line}: {change.email}')

        m = self.metrics
        lines.append('')
        source = 'cache' if m.cache_hit else f'{m.lines_processed} lines, {m.bytes_processed} bytes'
        lines.append(f'{GREY}Scanned in {m.scan_duration * 1000:.1f}ms ({source}){RESET}')
        if m.extractor_errors:
            lines.append(f'{RED}Failed extractors: {", ".join(m.extractor_errors)}{RESET}')

        return '\n'.join(lines)


def build_health(exists: bool, size_bytes: int, mtime_ns: int, message_count: int) -> TranscriptHealth:
    """Build TranscriptHealth from stat values."""
    last_modified = mtime_ns / 1_000_000_000 if mtime_ns else 0.0
    return TranscriptHealth(
        exists=exists,
        size_bytes=size_bytes,
        last_modified=last_modified,
        message_count=message_count,
        last_modified_ago=format_ago(last_modified),
    )


class CacheStats(BaseModel):
    """Result cache statistics"""

    entries: int
    size_bytes: int
    hits: int
    misses: int
    hit_rate: float = Field(..., ge=0.0, le=1.0)


class ScannerConfig(BaseModel):
    """Scanner tunables.

    Attributes:
        cache_ttl: Result cache TTL in seconds
        max_read_bytes: Most bytes read by one scan; larger spans keep only their tail
        max_lines: Maximum records kept from a single read
    """

    cache_ttl: float = Field(DEFAULT_CACHE_TTL, gt=0)
    max_read_bytes: int = Field(DEFAULT_MAX_READ_MB * 1024 * 1024, gt=0)
    max_lines: int = Field(DEFAULT_MAX_LINES, gt=0)

    @classmethod
    def from_env(cls) -> 'ScannerConfig':
        """Build config from TXSCAN_* environment variables, falling back to defaults."""
        cache_ttl = get_float_env('TXSCAN_CACHE_TTL', DEFAULT_CACHE_TTL)
        max_read_mb = get_int_env('TXSCAN_MAX_READ_MB', DEFAULT_MAX_READ_MB)
        max_lines = get_int_env('TXSCAN_MAX_LINES', DEFAULT_MAX_LINES)
        return cls(
            cache_ttl=cache_ttl if cache_ttl > 0 else DEFAULT_CACHE_TTL,
            max_read_bytes=(max_read_mb if max_read_mb > 0 else DEFAULT_MAX_READ_MB) * 1024 * 1024,
            max_lines=max_lines if max_lines > 0 else DEFAULT_MAX_LINES,
        )
