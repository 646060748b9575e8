from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .constants import ARCHIVE_MAGIC, MAX_CHUNK_SIZE, MIN_CHUNK_SIZE
from .errors import BadMagicError, ChunkSizeError, FormatError


# magic[3], chunk_size u16
_SUPERBLOCK_STRUCT = struct.Struct("<3sH")


@dataclass
class Superblock:
    chunk_size: int


def check_chunk_size(chunk_size: int) -> int:
    if chunk_size > MAX_CHUNK_SIZE:
        raise ChunkSizeError(f"Chunk size {chunk_size} exceeds maximum of {MAX_CHUNK_SIZE}")
    if chunk_size < MIN_CHUNK_SIZE:
        raise ChunkSizeError(f"Chunk size must be at least {MIN_CHUNK_SIZE}")
    return chunk_size


def pack_superblock(chunk_size: int) -> bytes:
    return _SUPERBLOCK_STRUCT.pack(ARCHIVE_MAGIC, check_chunk_size(chunk_size))


def write_superblock(f: BinaryIO, chunk_size: int) -> None:
    f.seek(0)
    f.write(pack_superblock(chunk_size))


def read_superblock(f: BinaryIO) -> Superblock:
    f.seek(0)
    raw = f.read(_SUPERBLOCK_STRUCT.size)
    if len(raw) != _SUPERBLOCK_STRUCT.size:
        raise FormatError("Archive header too short")
    magic, chunk_size = _SUPERBLOCK_STRUCT.unpack(raw)
    if magic != ARCHIVE_MAGIC:
        raise BadMagicError("Invalid archive header")
    if chunk_size < MIN_CHUNK_SIZE:
        raise FormatError("Archive header has a zero chunk size")
    return Superblock(chunk_size=chunk_size)
