"""Reader for the IFF-style chunk tree.

A chunk is a 4-byte tag, a 4-byte big-endian length and `length` data bytes.
Container chunks start their data with a 4-byte form type (except the CAT
family) followed by child chunks. After a leaf the next header starts at
the data end rounded up to 2 bytes; after a container, to 4 bytes (8 for
the FOR8/LIS8/PRO8/CAT8 variants).
"""

import re
from typing import Iterable, Optional

from scenedig.decoders import decode_leaf, scavenge_tokens
from scenedig.models import BinaryIndex, Chunk, RecoveryLog
from scenedig.models.chunk import CHUNK_HEADER_SIZE, FORM_TYPE_SIZE
from scenedig.protocols import LeafDecoder
from scenedig.utils.binary import is_valid_tag

CONTAINER_TAGS = frozenset({
    "FORM", "LIST", "PROP", "CAT ",
    "FOR4", "FOR8", "LIS4", "LIS8", "PRO4", "PRO8", "CAT4", "CAT8",
})

# Smallest buffer holding a header plus a form type
MIN_BUFFER_SIZE = 12

LEAF_ALIGNMENT = 2


def container_alignment(tag: str) -> int:
    return 8 if tag.endswith("8") else 4


def has_form_type(tag: str) -> bool:
    return not tag.startswith("CAT")


class ChunkTreeReader:
    """Build a BinaryIndex from a complete buffer.

    The walk is iterative, so adversarial nesting cannot exhaust the
    interpreter stack. Malformed input never raises: offending chunks are
    rejected and the rest of their parent is skipped.
    """

    def __init__(
        self,
        max_chunks: int = 50_000,
        container_tags: Optional[Iterable[str]] = None,
        max_depth: int = 256,
        max_strings: int = 2000,
        scan_safety_limit: int = 2_000_000,
        decoders: Optional[list[LeafDecoder]] = None,
    ):
        self.max_chunks = max_chunks
        self.container_tags = CONTAINER_TAGS | frozenset(container_tags or ())
        # Leftmost match of any container tag in a single pass
        self._tag_pattern = re.compile(
            b"|".join(re.escape(tag.encode("latin-1")) for tag in sorted(self.container_tags))
        )
        self.max_depth = max_depth
        self.max_strings = max_strings
        self.scan_safety_limit = scan_safety_limit
        self.decoders = decoders

    def read(self, buffer: bytes, log: Optional[RecoveryLog] = None) -> BinaryIndex:
        """Index every reachable chunk in pre-order.

        Args:
            buffer: Complete input bytes
            log: Collector for warnings (a private one is used if omitted)

        Returns:
            The (possibly partial or empty) index
        """
        log = log if log is not None else RecoveryLog()
        index = BinaryIndex(file_size=len(buffer), max_strings=self.max_strings)

        if len(buffer) < MIN_BUFFER_SIZE:
            log.warn(f"Buffer too small for a chunk tree ({len(buffer)} bytes)")
            return index

        pos = 0
        attempts = 0
        while pos + CHUNK_HEADER_SIZE <= len(buffer):
            if len(index.chunks) >= self.max_chunks:
                break

            root = self._read_root(buffer, pos)
            if root is not None:
                if index.header_tag is None:
                    index.header_tag = root.tag
                self._walk(buffer, root, index, log)
                pos = root.next_offset
                continue

            attempts += 1
            if attempts > self.scan_safety_limit:
                log.warn(f"Container scan stopped after {self.scan_safety_limit} attempts")
                break
            pos = self._next_candidate(buffer, pos + 1)

        if not index.chunks:
            log.warn("No container chunk found; scavenging raw bytes for strings")
            index.add_strings(scavenge_tokens(buffer, limit=self.max_strings))

        log.info(f"Indexed {len(index.chunks)} chunks, {len(index.extracted_strings)} strings")
        return index

    # Top level

    def _next_candidate(self, buffer: bytes, start: int) -> int:
        """Offset of the next byte sequence matching a container tag."""
        match = self._tag_pattern.search(buffer, start)
        return match.start() if match else len(buffer)

    def _read_root(self, buffer: bytes, offset: int) -> Optional[Chunk]:
        header = self._read_header(buffer, offset, len(buffer))
        if header is None:
            return None
        tag, size = header

        if tag in self.container_tags:
            return self._make_chunk(buffer, offset, tag, size, depth=0, container=True)
        if offset == 0 and self._spans_as_container(buffer, tag, size):
            return self._make_chunk(buffer, offset, tag, size, depth=0, container=True)
        return None

    def _spans_as_container(self, buffer: bytes, tag: str, size: int) -> bool:
        """Root-span sniff for containers with unregistered tags.

        A chunk at offset 0 that covers the whole buffer and whose payload
        starts with a form type and a valid child header is a container.
        """
        end = CHUNK_HEADER_SIZE + size
        alignment = container_alignment(tag)
        if end > len(buffer) or len(buffer) - end >= alignment:
            return False
        if size < FORM_TYPE_SIZE + CHUNK_HEADER_SIZE:
            return False
        if not is_valid_tag(buffer[CHUNK_HEADER_SIZE : CHUNK_HEADER_SIZE + FORM_TYPE_SIZE]):
            return False

        child = CHUNK_HEADER_SIZE + FORM_TYPE_SIZE
        header = self._read_header(buffer, child, end)
        if header is None:
            return False
        return child + CHUNK_HEADER_SIZE + header[1] <= end

    # Chunks

    @staticmethod
    def _read_header(buffer: bytes, offset: int, limit: int) -> Optional[tuple[str, int]]:
        if offset < 0 or offset + CHUNK_HEADER_SIZE > limit:
            return None
        raw_tag = buffer[offset : offset + 4]
        if not is_valid_tag(raw_tag):
            return None
        size = int.from_bytes(buffer[offset + 4 : offset + 8], "big")
        return raw_tag.decode("ascii"), size

    def _make_chunk(
        self,
        buffer: bytes,
        offset: int,
        tag: str,
        size: int,
        depth: int,
        container: bool,
    ) -> Optional[Chunk]:
        """Build a chunk, or None if its data would run past the buffer."""
        if offset + CHUNK_HEADER_SIZE + size > len(buffer):
            return None

        if container and has_form_type(tag) and size < FORM_TYPE_SIZE:
            container = False

        if not container:
            return Chunk(tag=tag, offset=offset, size=size, is_container=False,
                         depth=depth, alignment=LEAF_ALIGNMENT)

        form_type = None
        if has_form_type(tag):
            start = offset + CHUNK_HEADER_SIZE
            form_type = buffer[start : start + FORM_TYPE_SIZE].decode("latin-1")
        return Chunk(tag=tag, offset=offset, size=size, is_container=True,
                     form_type=form_type, depth=depth, alignment=container_alignment(tag))

    def _walk(self, buffer: bytes, root: Chunk, index: BinaryIndex, log: RecoveryLog) -> None:
        """Append root and its descendants in pre-order."""
        index.chunks.append(root)
        # Frames of [container, cursor]
        stack: list[list] = [[root, root.child_offset]]
        depth_warned = False

        while stack:
            frame = stack[-1]
            parent, cursor = frame
            if cursor >= parent.data_end:
                stack.pop()
                continue

            if len(index.chunks) >= self.max_chunks:
                log.warn(f"Chunk limit reached ({self.max_chunks}); index truncated")
                return

            header = self._read_header(buffer, cursor, parent.data_end)
            if header is None:
                log.info(f"Unreadable chunk header at {cursor} inside {parent.tag}@{parent.offset}")
                stack.pop()
                continue

            tag, size = header
            chunk = self._make_chunk(buffer, cursor, tag, size, parent.depth + 1,
                                     container=tag in self.container_tags)
            if chunk is None:
                log.warn(f"Chunk {tag}@{cursor} declares {size} bytes past end of buffer; "
                         f"skipping rest of {parent.tag}@{parent.offset}")
                stack.pop()
                continue
            if chunk.data_end > parent.data_end:
                log.warn(f"Chunk {tag}@{cursor} escapes parent {parent.tag}@{parent.offset}; "
                         f"skipping rest of parent")
                stack.pop()
                continue

            index.chunks.append(chunk)
            frame[1] = chunk.next_offset

            if not chunk.is_container:
                decode_leaf(buffer, chunk, index, self.decoders)
            elif chunk.depth < self.max_depth:
                stack.append([chunk, chunk.child_offset])
            elif not depth_warned:
                log.warn(f"Maximum depth {self.max_depth} reached; not descending further")
                depth_warned = True


def build_index(
    buffer: bytes,
    max_chunks: int = 50_000,
    *,
    container_tags: Optional[Iterable[str]] = None,
    max_depth: int = 256,
    max_strings: int = 2000,
    scan_safety_limit: int = 2_000_000,
    decoders: Optional[list[LeafDecoder]] = None,
    log: Optional[RecoveryLog] = None,
) -> BinaryIndex:
    """Parse buffer into a BinaryIndex; never raises on malformed input.

    Args:
        buffer: Complete input bytes
        max_chunks: Hard ceiling on indexed chunks
        container_tags: Extra tags to treat as containers
        max_depth: Maximum container nesting that is descended into
        max_strings: Capacity of the global string pool
        scan_safety_limit: Maximum number of failed root candidates
        decoders: Leaf decode cascade override
        log: Collector for warnings

    Returns:
        The index; partial when the input is damaged
    """
    reader = ChunkTreeReader(
        max_chunks=max_chunks,
        container_tags=container_tags,
        max_depth=max_depth,
        max_strings=max_strings,
        scan_safety_limit=scan_safety_limit,
        decoders=decoders,
    )
    return reader.read(bytes(buffer), log)
