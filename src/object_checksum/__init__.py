"""Resumable, chunked checksum computation for objects in a blob store."""

__version__ = "0.1.0"
