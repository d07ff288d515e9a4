"""Error taxonomy for context storage.

Backend failures never surface as exceptions: drivers turn them into a
``None`` read or a ``False`` write/remove. The classes below cover the
conditions that are raised to the caller because they point at a
programming or configuration mistake, plus the compressor failure that the
truncation strategies recover from locally.
"""

from __future__ import annotations


class ContextStorageError(Exception):
    """Base class for every error raised by this package."""


class OutOfRangeError(ContextStorageError, IndexError):
    """Index-based mutation on a record that does not exist."""


class ConfigurationError(ContextStorageError, ValueError):
    """Malformed driver, storage or truncation configuration."""


class CompressionError(ContextStorageError):
    """A compressor could not turn a message range into a record."""
