"""Incremental transcript reader.

Reads only the bytes appended to a transcript since the last scan, using the
byte offset and mtime recorded in scanner state:

- unchanged size and mtime: cache hit, nothing is read
- file shrank (truncated or rotated): reset, read from byte 0
- otherwise: read [last_offset, size)

When the span to read is larger than max_bytes, only its tail is read,
starting at the first complete line.
"""

import logging
import os
import stat
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass
class ReadResult:
    """Outcome of an incremental read.

    new_offset and mtime always describe the file as it was stat'ed, so
    callers can persist them verbatim.
    """

    content: str  # Decoded text of the new bytes
    bytes_read: int  # Number of raw bytes decoded into content
    new_offset: int  # Current file size
    mtime: int  # Current mtime in nanoseconds
    size: int  # Current file size
    cache_hit: bool  # File unchanged since last read
    reset: bool = False  # File shrank, content starts at byte 0
    skipped_bytes: int = 0  # Bytes of the span skipped because of max_bytes


def read_incremental(path: str, last_offset: int, last_mtime: int, max_bytes: int | None = None) -> ReadResult:
    """Read bytes appended to a file since (last_offset, last_mtime).

    Args:
        path: Path to the transcript file
        last_offset: Byte offset consumed by the previous read (0 = full read)
        last_mtime: File mtime (ns) observed by the previous read
        max_bytes: Read at most this many trailing bytes of the span, if set

    Returns:
        ReadResult with the decoded new content and post-read offset/mtime

    Raises:
        ValueError: last_offset or last_mtime is negative
        FileNotFoundError: path does not exist
        IsADirectoryError: path is a directory
    """
    if last_offset < 0:
        raise ValueError(f'Invalid offset: {last_offset} (must be >= 0)')
    if last_mtime < 0:
        raise ValueError(f'Invalid mtime: {last_mtime} (must be >= 0)')

    st = os.stat(path)
    if stat.S_ISDIR(st.st_mode):
        raise IsADirectoryError(f'Path is a directory: {path}')

    size = st.st_size
    mtime = st.st_mtime_ns

    if size == last_offset and mtime == last_mtime:
        logger.debug(f'No changes in {path} (size={size})')
        return ReadResult(content='', bytes_read=0, new_offset=size, mtime=mtime, size=size, cache_hit=True)

    reset = False
    start = last_offset
    if size < last_offset:
        logger.info(f'{path} shrank from {last_offset} to {size} bytes, rescanning from start')
        reset = True
        start = 0

    skipped = 0
    if max_bytes is not None and size - start > max_bytes:
        skipped = size - start - max_bytes

    with open(path, 'rb') as f:
        if skipped:
            # Read one byte before the tail to know whether it starts on a line boundary
            f.seek(start + skipped - 1)
            data = f.read(size - start - skipped + 1)
            end = start + skipped - 1 + len(data)
            if data[:1] == b'\n':
                data = data[1:]
            else:
                cut = data.find(b'\n')
                dropped = len(data) if cut < 0 else cut + 1
                data = data[dropped:]
                skipped += dropped - 1
            logger.warning(f'{path}: {size - start} new bytes exceed {max_bytes}, skipped the first {skipped}')
        else:
            f.seek(start)
            data = f.read(size - start)
            end = start + len(data)

    # A multi-byte character cut at the read boundary becomes U+FFFD instead of raising
    content = data.decode('utf-8', errors='replace')

    logger.debug(f'Read {len(data)} bytes from {path} at offset {start + skipped}')
    return ReadResult(
        content=content,
        bytes_read=len(data),
        new_offset=end,
        mtime=mtime,
        size=size,
        cache_hit=False,
        reset=reset,
        skipped_bytes=skipped,
    )
