"""
FCT: a chunked file container.

Files are packed back to back into one archive; each file's content is split
into fixed-size chunks (chosen once per archive, up to 65535 bytes) and the
final partial chunk is zero-padded. There is no index block: entries are found
by scanning headers from the start of the archive.

Features:

- Create, append, list, extract (single or batch) and remove entries.
- Removal rewrites the archive into a temporary file and swaps it in with an
  atomic rename; the original is untouched if anything fails.
- Extraction never overwrites existing files.

See fct.archive.FctArchive for the programmatic API and fct.cli for the
command-line tool.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "records",
    "chunkio",
    "archive",
    "pathutil",
]
