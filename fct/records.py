from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .constants import ENTRY_PREFIX_SIZE, MAX_CHUNK_COUNT, MAX_PATH_LEN
from .errors import (
    EntryTooLargeError,
    InvalidHeaderError,
    PathTooLongError,
    TruncatedHeaderError,
)


# Entry header fixed prefix (8 bytes)
# struct: <I H H
#  - chunk_count u32 (full chunks)
#  - last_chunk_size u16 (0 = no trailing partial chunk)
#  - path_len u16 (UTF-8 bytes that follow, no terminator)
_ENTRY_PREFIX_STRUCT = struct.Struct("<IHH")


@dataclass
class EntryHeader:
    path: str
    chunk_count: int = 0
    last_chunk_size: int = 0

    @classmethod
    def for_length(cls, path: str, length: int, chunk_size: int) -> "EntryHeader":
        chunk_count, last_chunk_size = divmod(length, chunk_size)
        if chunk_count > MAX_CHUNK_COUNT:
            raise EntryTooLargeError(
                f"File of {length} bytes needs {chunk_count} chunks; at most {MAX_CHUNK_COUNT} fit"
            )
        return cls(path=path, chunk_count=chunk_count, last_chunk_size=last_chunk_size)

    @property
    def path_bytes(self) -> bytes:
        return self.path.encode("utf-8")

    @property
    def header_size(self) -> int:
        return ENTRY_PREFIX_SIZE + len(self.path_bytes)

    @property
    def stored_blocks(self) -> int:
        """Blocks occupying disk space, counting the padded partial block."""
        return self.chunk_count + (1 if self.last_chunk_size > 0 else 0)

    def size(self, chunk_size: int) -> int:
        return self.chunk_count * chunk_size + self.last_chunk_size

    def stored_size(self, chunk_size: int) -> int:
        return self.stored_blocks * chunk_size

    def pack(self) -> bytes:
        raw_path = self.path_bytes
        if len(raw_path) > MAX_PATH_LEN:
            raise PathTooLongError(f"Path is {len(raw_path)} bytes; at most {MAX_PATH_LEN} fit: {self.path[:64]}...")
        if not 0 <= self.chunk_count <= MAX_CHUNK_COUNT:
            raise EntryTooLargeError(f"chunk_count out of range: {self.chunk_count}")
        return _ENTRY_PREFIX_STRUCT.pack(self.chunk_count, self.last_chunk_size, len(raw_path)) + raw_path

    def __str__(self) -> str:
        return f'File Name: "{self.path}"; Chunk Count: {self.chunk_count}; Last Chunk Size: {self.last_chunk_size}'


def write_entry_header(f: BinaryIO, header: EntryHeader) -> int:
    """Write ``header`` at the current position; return its offset."""
    raw = header.pack()
    off = f.tell()
    f.write(raw)
    return off


def read_entry_header(f: BinaryIO, chunk_size: Optional[int] = None) -> Optional[EntryHeader]:
    """Decode one entry header at the current position.

    Returns None at a clean end of archive (no bytes left). A partial fixed
    prefix raises TruncatedHeaderError; a short or undecodable path raises
    InvalidHeaderError. When ``chunk_size`` is given the partial-chunk
    invariant is checked as well.
    """
    fixed = f.read(ENTRY_PREFIX_SIZE)
    if not fixed:
        return None
    if len(fixed) != ENTRY_PREFIX_SIZE:
        raise TruncatedHeaderError(f"Entry header is incomplete ({len(fixed)} of {ENTRY_PREFIX_SIZE} bytes)")
    chunk_count, last_chunk_size, path_len = _ENTRY_PREFIX_STRUCT.unpack(fixed)
    raw_path = f.read(path_len)
    if len(raw_path) != path_len:
        raise InvalidHeaderError(f"Entry path is incomplete ({len(raw_path)} of {path_len} bytes)")
    try:
        path = raw_path.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidHeaderError(f"Entry path is not valid UTF-8: {exc}") from exc
    if chunk_size is not None and last_chunk_size >= chunk_size:
        raise InvalidHeaderError(
            f"Last chunk size {last_chunk_size} is not smaller than chunk size {chunk_size}: {path}"
        )
    return EntryHeader(path=path, chunk_count=chunk_count, last_chunk_size=last_chunk_size)
