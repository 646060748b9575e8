from __future__ import annotations

import io
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterable, List, Optional

from .constants import ARCHIVE_HEADER_SIZE, DEFAULT_CHUNK_SIZE
from .chunkio import copy_payload, skip_payload, write_payload
from .errors import (
    ArchiveIOError,
    EntryNotFoundError,
    FctError,
    FormatError,
    PathError,
    PermissionDeniedError,
    TruncatedArchiveError,
)
from .pathutil import norm_path, relativize
from .records import EntryHeader, read_entry_header, write_entry_header
from .superblock import check_chunk_size, read_superblock, write_superblock


@dataclass
class ListedEntry:
    ordinal: int  # 1-based, on-disk order
    path: str
    size: int


class FctArchive:
    """Sequential chunked archive with a lazily rebuilt header index.

    Entries are stored back to back after the 5-byte archive header; every
    operation walks them from the start. The header index is a cache of the
    decoded entry headers and is rescanned whenever it is marked stale.

    Positions taken by the extract/remove methods are 0-based; ``list()``
    reports 1-based ordinals.
    """

    def __init__(self, path: str, *, strict: bool = False):
        self.path = os.fspath(path)
        self.f: Optional[BinaryIO] = None
        self.chunk_size: int = 0
        # Lenient scans stop at a damaged header as if the archive ended there;
        # strict scans raise the FormatError instead.
        self.strict = strict
        self.scan_truncated_at: Optional[int] = None
        self._headers: List[EntryHeader] = []
        self._headers_stale = True

    @classmethod
    def create(cls, path: str, chunk_size: int = DEFAULT_CHUNK_SIZE, *, strict: bool = False) -> "FctArchive":
        """Create (or truncate) ``path`` as an empty archive and return it open."""
        check_chunk_size(chunk_size)
        archive = cls(path, strict=strict)
        archive.f = open(archive.path, "w+b")
        try:
            write_superblock(archive.f, chunk_size)
            archive.f.flush()
        except OSError:
            archive.close()
            raise
        archive.chunk_size = chunk_size
        archive._headers = []
        archive._headers_stale = False
        return archive

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __len__(self) -> int:
        return len(self.headers())

    def open(self):
        if self.f is not None:
            return
        self.f = open(self.path, "r+b")
        try:
            sb = read_superblock(self.f)
        except (FctError, OSError) as exc:
            # Ensure file handle is closed on failure to avoid leaks
            self.close()
            raise exc
        self.chunk_size = sb.chunk_size
        self._headers = []
        self._headers_stale = True

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    # scanning

    def _require_open(self) -> BinaryIO:
        if self.f is None:
            raise RuntimeError("Archive not open")
        return self.f

    def _file_size(self) -> int:
        f = self._require_open()
        f.flush()
        return os.fstat(f.fileno()).st_size

    def seek_to_start(self) -> None:
        self._require_open().seek(ARCHIVE_HEADER_SIZE)

    def _advance_over_entry(self, file_size: Optional[int] = None) -> Optional[EntryHeader]:
        """Decode the header at the cursor and seek past its data.

        Returns None at the end of the archive. When ``file_size`` is given,
        an entry whose blocks would run past it raises TruncatedArchiveError.
        """
        f = self._require_open()
        header = read_entry_header(f, self.chunk_size)
        if header is None:
            return None
        if file_size is not None and f.tell() + header.stored_size(self.chunk_size) > file_size:
            raise TruncatedArchiveError(f"Archive ends inside the data of {header.path}")
        skip_payload(f, header, self.chunk_size)
        return header

    def headers(self) -> List[EntryHeader]:
        """Return the header index, rescanning the archive if it is stale."""
        if not self._headers_stale:
            return list(self._headers)
        self._headers = []
        self.scan_truncated_at = None
        file_size = self._file_size()
        self.seek_to_start()
        f = self._require_open()
        while True:
            offset = f.tell()
            try:
                header = self._advance_over_entry(file_size)
            except FormatError:
                if self.strict:
                    raise
                self.scan_truncated_at = offset
                break
            if header is None:
                break
            self._headers.append(header)
        self._headers_stale = False
        return list(self._headers)

    def list(self) -> List[ListedEntry]:
        return [
            ListedEntry(ordinal=i + 1, path=h.path, size=h.size(self.chunk_size))
            for i, h in enumerate(self.headers())
        ]

    # append

    def append(self, source_path: str, root: Optional[str] = None) -> EntryHeader:
        """Append one file at the end of the archive.

        The archived path is ``source_path`` relative to ``root`` (the current
        directory by default). Read-only sources are refused. If writing fails
        part way the archive is truncated back to its previous end.

        An archive with a damaged tail is refused with FormatError: an entry
        written after the damage could never be listed.
        """
        f = self._require_open()
        self.headers()
        if self.scan_truncated_at is not None:
            raise FormatError(
                f"Archive is damaged at offset {self.scan_truncated_at}; refusing to append behind it"
            )
        st = os.stat(source_path)
        if not stat.S_ISREG(st.st_mode):
            raise ArchiveIOError(f"Not a regular file: {source_path}")
        if not st.st_mode & (stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH):
            raise PermissionDeniedError(f"File is read-only: {source_path}")
        arc_path = relativize(root if root is not None else os.getcwd(), source_path)
        header = EntryHeader.for_length(arc_path, st.st_size, self.chunk_size)
        raw = header.pack()

        with open(source_path, "rb") as src:
            start = f.seek(0, io.SEEK_END)
            try:
                f.write(raw)
                write_payload(src, f, header, self.chunk_size)
                f.flush()
            except (FctError, OSError):
                f.seek(start)
                f.truncate()
                raise

        self._headers.append(header)
        return header

    def append_many(
        self,
        paths: Iterable[str],
        root: Optional[str] = None,
        *,
        on_entry: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
    ) -> List[str]:
        """Append each path independently; return the ones that failed."""
        failed: List[str] = []
        for p in paths:
            try:
                header = self.append(p, root=root)
            except (FctError, OSError) as exc:
                failed.append(p)
                if on_error:
                    on_error(p, exc)
                continue
            if on_entry:
                on_entry(header.path)
        return failed

    # extract

    @staticmethod
    def _destination(output_dir: str, arc_path: str) -> str:
        rel = norm_path(arc_path)
        if not rel:
            raise PathError(f"Entry has an empty path: {arc_path!r}")
        return os.path.join(os.fspath(output_dir), *rel.split("/"))

    def _write_out(self, header: EntryHeader, dst: str) -> None:
        """Create ``dst`` and copy the entry's data into it; drop partial output on failure."""
        f = self._require_open()
        try:
            with open(dst, "xb") as out:
                copy_payload(f, out, header, self.chunk_size, fill=False)
        except FileExistsError:
            raise
        except (FctError, OSError):
            try:
                os.unlink(dst)
            except FileNotFoundError:
                pass
            raise

    def extract_one(self, output_dir: str, position: int) -> Optional[str]:
        """Extract the entry at 0-based ``position`` into ``output_dir``.

        The target is located by walking the archive, not through the header
        index. An existing output file is left alone and None is returned;
        otherwise the path written is returned.
        """
        f = self._require_open()
        if position < 0:
            raise EntryNotFoundError(f"No entry at position {position}")
        output_dir = os.fspath(output_dir) or "."
        os.makedirs(output_dir, exist_ok=True)
        self.seek_to_start()
        for _ in range(position):
            if self._advance_over_entry() is None:
                raise EntryNotFoundError(f"No entry at position {position}")
        header = read_entry_header(f, self.chunk_size)
        if header is None:
            raise EntryNotFoundError(f"No entry at position {position}")

        dst = self._destination(output_dir, header.path)
        if os.path.exists(dst):
            return None
        os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
        try:
            self._write_out(header, dst)
        except FileExistsError:
            return None
        return dst

    def _check_positions(self, positions: Iterable[int], count: int) -> None:
        for i in positions:
            if not 0 <= i < count:
                raise EntryNotFoundError(f"No entry at position {i} (archive has {count})")

    def extract_many(
        self,
        output_dir: str,
        indices: Optional[Iterable[int]] = None,
        *,
        on_entry: Optional[Callable[[str, bool], None]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
    ) -> List[str]:
        """Extract the entries at 0-based ``indices`` (all when empty) in one pass.

        Entries are visited in on-disk order. Per-entry failures are collected
        and returned as archived paths; existing output files are skipped.
        ``on_entry`` receives the archived path and whether it was written.
        """
        f = self._require_open()
        output_dir = os.fspath(output_dir) or "."
        headers = self.headers()
        count = len(headers)
        wanted = sorted(indices) if indices is not None else []
        if not wanted:
            wanted = list(range(count))
        self._check_positions(wanted, count)
        wanted_set = set(wanted)
        failed: List[str] = []

        def _fail(arc_path: str, exc: Exception):
            failed.append(arc_path)
            if on_error:
                on_error(arc_path, exc)

        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as exc:
            for i in wanted:
                _fail(headers[i].path, exc)
            return failed

        prev_dir: Optional[str] = None
        self.seek_to_start()
        for i in range(count):
            if i not in wanted_set:
                self._advance_over_entry()
                continue
            header = read_entry_header(f, self.chunk_size)
            if header is None:
                raise TruncatedArchiveError("Archive ended before its indexed entries")
            data_start = f.tell()
            try:
                dst = self._destination(output_dir, header.path)
            except PathError as exc:
                _fail(header.path, exc)
                skip_payload(f, header, self.chunk_size)
                continue
            cur_dir = os.path.dirname(dst) or "."
            if cur_dir != prev_dir:
                try:
                    os.makedirs(cur_dir, exist_ok=True)
                except OSError as exc:
                    _fail(header.path, exc)
                    skip_payload(f, header, self.chunk_size)
                    continue
                prev_dir = cur_dir
            if os.path.exists(dst):
                skip_payload(f, header, self.chunk_size)
                if on_entry:
                    on_entry(header.path, False)
                continue
            try:
                self._write_out(header, dst)
            except TruncatedArchiveError:
                raise
            except FileExistsError:
                f.seek(data_start)
                skip_payload(f, header, self.chunk_size)
                if on_entry:
                    on_entry(header.path, False)
                continue
            except OSError as exc:
                _fail(header.path, exc)
                f.seek(data_start)
                skip_payload(f, header, self.chunk_size)
                continue
            if on_entry:
                on_entry(header.path, True)
        return failed

    # remove

    def _adopt(self, other: "FctArchive") -> None:
        """Take over ``other``'s file and state; ``other`` is left closed."""
        self.close()
        self.path = other.path
        self.f = other.f
        self.chunk_size = other.chunk_size
        self._headers = other._headers
        self._headers_stale = True
        self.scan_truncated_at = None
        other.f = None

    def remove(self, indices: Iterable[int]) -> int:
        """Rewrite the archive without the entries at 0-based ``indices``.

        Kept entries are copied block for block into a temporary archive next
        to this one, which then replaces the original with os.replace. On any
        failure the temporary file is deleted and the original is untouched.

        Returns the number of entries removed.
        """
        f = self._require_open()
        headers = self.headers()
        if not headers:
            raise EntryNotFoundError("No files in archive")
        doomed = set(indices)
        self._check_positions(doomed, len(headers))

        archive_dir = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".fct-remove-", suffix=".tmp", dir=archive_dir)
        os.close(fd)
        removed = 0
        try:
            tmp = FctArchive.create(tmp_path, self.chunk_size, strict=self.strict)
            try:
                # Only scanned entries are copied; a damaged tail past them is dropped
                self.seek_to_start()
                for index in range(len(headers)):
                    header = read_entry_header(f, self.chunk_size)
                    if header is None:
                        raise TruncatedArchiveError("Archive ended before its indexed entries")
                    if index in doomed:
                        skip_payload(f, header, self.chunk_size)
                        removed += 1
                    else:
                        write_entry_header(tmp.f, header)
                        copy_payload(f, tmp.f, header, self.chunk_size, fill=True)
                tmp.f.flush()
            finally:
                tmp.close()
            shutil.copymode(self.path, tmp_path)
            self.close()
            os.replace(tmp_path, self.path)
        except (FctError, OSError):
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            if self.f is None:
                self.open()
            raise

        rewritten = FctArchive(self.path, strict=self.strict)
        rewritten.open()
        self._adopt(rewritten)
        return removed


def create_archive(path: str, chunk_size: int = DEFAULT_CHUNK_SIZE, *, strict: bool = False) -> FctArchive:
    return FctArchive.create(path, chunk_size, strict=strict)


def open_archive(path: str, *, strict: bool = False) -> FctArchive:
    archive = FctArchive(path, strict=strict)
    archive.open()
    return archive
