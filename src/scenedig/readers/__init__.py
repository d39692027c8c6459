"""Readers turning raw bytes into a chunk index."""

from scenedig.readers.chunk_tree import CONTAINER_TAGS, ChunkTreeReader, build_index

__all__ = ["CONTAINER_TAGS", "ChunkTreeReader", "build_index"]
