"""Shared helpers: events, cancellation, byte formatting."""
from .cancellation import CancellationToken
from .events import EventEmitter
from .formatting import format_bytes

__all__ = ["CancellationToken", "EventEmitter", "format_bytes"]
