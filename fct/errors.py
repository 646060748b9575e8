class FctError(Exception):
    """Base class for FCT archive errors."""


# Format/structure
class FormatError(FctError):
    pass


class BadMagicError(FormatError):
    pass


class TruncatedHeaderError(FormatError):
    """Fewer than the fixed entry-header bytes were left in the archive."""


class InvalidHeaderError(FormatError):
    pass


class TruncatedArchiveError(FormatError):
    """An entry's payload blocks end before the archive does."""


# Field limits
class SizeLimitExceeded(FctError):
    pass


class ChunkSizeError(SizeLimitExceeded):
    pass


class EntryTooLargeError(SizeLimitExceeded):
    pass


class PathTooLongError(SizeLimitExceeded):
    pass


# Sources and lookups
class ArchiveIOError(FctError):
    pass


class PermissionDeniedError(FctError):
    pass


class PathError(FctError):
    pass


class EntryNotFoundError(FctError):
    pass
