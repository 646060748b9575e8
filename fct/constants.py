# Magic and archive header
ARCHIVE_MAGIC = b"FCT"      # 3 bytes, followed by chunk_size u16
ARCHIVE_HEADER_SIZE = 5

# Field widths
MAX_CHUNK_SIZE = 0xFFFF     # chunk_size is stored as u16
MIN_CHUNK_SIZE = 1
MAX_CHUNK_COUNT = 0xFFFFFFFF  # chunk_count is stored as u32
MAX_PATH_LEN = 0xFFFF       # path_len is stored as u16

# Entry header fixed prefix: chunk_count u32, last_chunk_size u16, path_len u16
ENTRY_PREFIX_SIZE = 8

# Largest offset accepted by a single relative seek (signed 64-bit off_t).
# The field limits cap a payload near 2**48 bytes, so real spans stay below it;
# skip_payload only steps per block when this bound is lowered.
MAX_SEEK_OFFSET = (1 << 63) - 1

DEFAULT_CHUNK_SIZE = 4096
COPY_BUFFER_SIZE = 1_048_576  # 1 MiB; full chunks are moved in batches up to this size
