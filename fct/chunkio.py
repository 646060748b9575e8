from __future__ import annotations

import io
from typing import BinaryIO

from .constants import COPY_BUFFER_SIZE, MAX_SEEK_OFFSET
from .errors import ArchiveIOError, TruncatedArchiveError
from .records import EntryHeader


def _read_up_to(f: BinaryIO, n: int) -> bytes:
    """Read until ``n`` bytes or EOF; a single read() may return less on some streams."""
    buf = f.read(n)
    if len(buf) == n or not buf:
        return buf
    parts = [buf]
    got = len(buf)
    while got < n:
        more = f.read(n - got)
        if not more:
            break
        parts.append(more)
        got += len(more)
    return b"".join(parts)


def _batches(chunk_count: int, chunk_size: int):
    """Yield chunk counts per read so full chunks move through a bounded buffer."""
    per_batch = max(1, COPY_BUFFER_SIZE // chunk_size)
    remaining = chunk_count
    while remaining > 0:
        n = min(per_batch, remaining)
        yield n
        remaining -= n


def write_payload(src: BinaryIO, dst: BinaryIO, header: EntryHeader, chunk_size: int) -> int:
    """Copy a source file into the archive as ``header`` describes it.

    Full chunks are written verbatim. A trailing partial chunk is zero-padded
    to ``chunk_size`` so every stored block has the same length. A source that
    yields fewer bytes than were measured at stat time raises ArchiveIOError.

    Returns the number of bytes written to ``dst``.
    """
    written = 0
    for n in _batches(header.chunk_count, chunk_size):
        want = n * chunk_size
        buf = _read_up_to(src, want)
        if len(buf) != want:
            raise ArchiveIOError(f"Source shrank while reading: {header.path}")
        dst.write(buf)
        written += want
    if header.last_chunk_size > 0:
        buf = _read_up_to(src, chunk_size)
        if len(buf) < header.last_chunk_size:
            raise ArchiveIOError(f"Source shrank while reading: {header.path}")
        # Bytes past last_chunk_size (source grew since stat) are not part of the entry
        buf = buf[: header.last_chunk_size]
        dst.write(buf + b"\x00" * (chunk_size - len(buf)))
        written += chunk_size
    return written


def copy_payload(src: BinaryIO, dst: BinaryIO, header: EntryHeader, chunk_size: int, *, fill: bool) -> int:
    """Copy an entry's payload out of the archive at the current position.

    With ``fill`` the padded final block is written as stored (archive to
    archive copies); without it only ``last_chunk_size`` bytes are written so
    the output has the original length.

    Returns the number of bytes written to ``dst``.
    """
    written = 0
    for n in _batches(header.chunk_count, chunk_size):
        want = n * chunk_size
        buf = _read_up_to(src, want)
        if len(buf) != want:
            raise TruncatedArchiveError(f"Archive ends inside the data of {header.path}")
        dst.write(buf)
        written += want
    if header.last_chunk_size > 0:
        buf = _read_up_to(src, chunk_size)
        if len(buf) != chunk_size:
            raise TruncatedArchiveError(f"Archive ends inside the last chunk of {header.path}")
        if not fill:
            buf = buf[: header.last_chunk_size]
        dst.write(buf)
        written += len(buf)
    return written


def skip_payload(f: BinaryIO, header: EntryHeader, chunk_size: int) -> None:
    """Move past an entry's stored blocks without reading them."""
    span = header.stored_blocks * chunk_size
    if span <= MAX_SEEK_OFFSET:
        f.seek(span, io.SEEK_CUR)
        return
    # Offset does not fit a single relative seek; step one block at a time
    for _ in range(header.stored_blocks):
        f.seek(chunk_size, io.SEEK_CUR)
